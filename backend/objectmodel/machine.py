"""
Machine state - scalar live values that are not part of an entity collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from core.types import PrinterStatus
from .entities import MIN_AXES, NO_REFERENCE


@dataclass
class MachineState:
    status: PrinterStatus = PrinterStatus.CONNECTING
    current_tool: int = NO_REFERENCE
    machine_name: str = ""
    ip_address: str = ""
    firmware_name: str = ""
    firmware_features: Tuple[str, ...] = ()
    speed_percent: int = 100
    fan_percent: int = 0
    is_delta: bool = False
    num_axes: int = MIN_AXES
    workplace_number: int = 0
    file_name: str = ""
    file_size: int = 0
    progress_percent: int = 0
    # file, filament, layer
    times_left: List[Optional[int]] = field(default_factory=lambda: [None, None, None])
    z_probe: str = ""
    mounted_volumes: int = 0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "current_tool": self.current_tool,
            "machine_name": self.machine_name,
            "ip_address": self.ip_address,
            "firmware_name": self.firmware_name,
            "firmware_features": list(self.firmware_features),
            "speed_percent": self.speed_percent,
            "fan_percent": self.fan_percent,
            "is_delta": self.is_delta,
            "num_axes": self.num_axes,
            "workplace_number": self.workplace_number,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "progress_percent": self.progress_percent,
            "times_left": list(self.times_left),
            "z_probe": self.z_probe,
            "mounted_volumes": self.mounted_volumes,
        }
