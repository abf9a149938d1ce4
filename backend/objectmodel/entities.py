"""
Mirrored object model entities.

Entities are mutable: handlers update fields in place as values arrive.
`bindings` is reserved for the UI (e.g. which screen slot shows the
entity); nothing in the sync engine reads or writes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.types import ToolStatus


NO_REFERENCE = -1

MAX_TOTAL_AXES = 10
MIN_AXES = 3

# G54, G55, G56, G57, G58, G59, G59.1, G59.2, G59.3
WORKPLACE_NAMES = ("G54", "G55", "G56", "G57", "G58", "G59", "G59.1", "G59.2", "G59.3")
MAX_TOTAL_WORKPLACES = len(WORKPLACE_NAMES)


@dataclass
class Axis:
    index: int
    letter: str = ""
    visible: bool = False
    homed: bool = False
    babystep: float = 0.0
    position: float = 0.0
    workplace_offsets: List[float] = field(default_factory=lambda: [0.0] * MAX_TOTAL_WORKPLACES)
    bindings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "letter": self.letter,
            "visible": self.visible,
            "homed": self.homed,
            "babystep": self.babystep,
            "position": self.position,
            "workplace_offsets": list(self.workplace_offsets),
        }


@dataclass
class Tool:
    """
    A tool. Only the first heater, extruder and spindle are tracked.

    `spindle` is the index of the spindle driving this tool; the store owns
    both entities, so this is a relation and not ownership.
    """
    index: int
    heater: int = NO_REFERENCE
    extruder: int = NO_REFERENCE
    spindle: int = NO_REFERENCE
    offsets: List[float] = field(default_factory=lambda: [0.0] * MAX_TOTAL_AXES)
    status: ToolStatus = ToolStatus.OFF
    extrusion_percent: int = 100
    bindings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "heater": self.heater,
            "extruder": self.extruder,
            "spindle": self.spindle,
            "offsets": list(self.offsets),
            "status": self.status.value,
            "extrusion_percent": self.extrusion_percent,
        }


@dataclass
class Spindle:
    index: int
    active: int = 0
    current: int = 0
    max: int = 0
    tool: int = NO_REFERENCE
    bindings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "active": self.active,
            "current": self.current,
            "max": self.max,
            "tool": self.tool,
        }


@dataclass
class BedOrChamber:
    index: int
    heater: int = NO_REFERENCE
    bindings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"index": self.index, "heater": self.heater}
