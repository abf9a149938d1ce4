"""
Core immutable types for the panel sync engine.

Requests are frozen dataclasses so the outbound stream is deterministic
and testable. Status enums map the controller's status strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple


# =============================================================================
# Subsystems
# =============================================================================


class Subsystem(Enum):
    """
    Top-level branches of the remote object model.

    Declaration order is the poll priority order.
    """
    NETWORK = "network"
    BOARDS = "boards"
    MOVE = "move"
    HEAT = "heat"
    TOOLS = "tools"
    SPINDLES = "spindles"
    DIRECTORIES = "directories"
    FANS = "fans"
    INPUTS = "inputs"
    JOB = "job"
    SCANNER = "scanner"
    SENSORS = "sensors"
    STATE = "state"
    VOLUMES = "volumes"

    @property
    def flags(self) -> str:
        """Flags sent with a detail request for this subsystem."""
        return "vn" if self is Subsystem.STATE else "v"


POLL_PRIORITY: Tuple[Subsystem, ...] = tuple(Subsystem)
ALL_SUBSYSTEMS = frozenset(Subsystem)


# =============================================================================
# Request Protocol & Types
# =============================================================================


class Request(Protocol):
    """Protocol for all outbound requests."""

    def to_gcode(self) -> str:
        """Convert to the G-code line sent to the controller."""
        ...


SUMMARY_FLAGS = "d99f"


@dataclass(frozen=True)
class SummaryRequest:
    """Lightweight cross-subsystem status summary (M409 F"d99f")."""

    def to_gcode(self) -> str:
        return f'M409 F"{SUMMARY_FLAGS}"'


@dataclass(frozen=True)
class DetailRequest:
    """Full current data of one subsystem (M409 K"<key>" F"<flags>")."""
    subsystem: Subsystem

    def to_gcode(self) -> str:
        return f'M409 K"{self.subsystem.value}" F"{self.subsystem.flags}"'


# =============================================================================
# Status Types
# =============================================================================


class PrinterStatus(Enum):
    CONNECTING = "connecting"
    PANEL_INITIALIZING = "panelInitializing"
    IDLE = "idle"
    PRINTING = "printing"
    HALTED = "halted"
    STARTING = "starting"
    PAUSED = "paused"
    BUSY = "busy"
    PAUSING = "pausing"
    RESUMING = "resuming"
    FLASHING = "flashing"
    TOOL_CHANGE = "toolChange"
    SIMULATING = "simulating"
    OFF = "off"
    CANCELLING = "cancelling"
    CONFIGURING = "configuring"

    @property
    def print_in_progress(self) -> bool:
        return self in (
            PrinterStatus.PRINTING,
            PrinterStatus.PAUSED,
            PrinterStatus.PAUSING,
            PrinterStatus.RESUMING,
            PrinterStatus.SIMULATING,
        )

    @property
    def is_connecting(self) -> bool:
        return self in (PrinterStatus.CONNECTING, PrinterStatus.PANEL_INITIALIZING)


# Controller status strings, compared case-insensitively
PRINTER_STATUS_MAP = {
    "busy": PrinterStatus.BUSY,
    "cancelling": PrinterStatus.CANCELLING,
    "changingtool": PrinterStatus.TOOL_CHANGE,
    "halted": PrinterStatus.HALTED,
    "idle": PrinterStatus.IDLE,
    "off": PrinterStatus.OFF,
    "paused": PrinterStatus.PAUSED,
    "pausing": PrinterStatus.PAUSING,
    "processing": PrinterStatus.PRINTING,
    "processingconfig": PrinterStatus.CONFIGURING,
    "resuming": PrinterStatus.RESUMING,
    "simulating": PrinterStatus.SIMULATING,
    "starting": PrinterStatus.STARTING,
    "updating": PrinterStatus.FLASHING,
}


class HeaterStatus(Enum):
    OFF = "off"
    STANDBY = "standby"
    ACTIVE = "active"
    FAULT = "fault"
    TUNING = "tuning"
    OFFLINE = "offline"

    @classmethod
    def from_text(cls, text: str) -> HeaterStatus:
        """Unknown strings map to OFF."""
        for status in cls:
            if status.value == text.lower():
                return status
        return cls.OFF


class ToolStatus(Enum):
    OFF = "off"
    STANDBY = "standby"
    ACTIVE = "active"

    @classmethod
    def from_text(cls, text: str) -> ToolStatus:
        """Unknown strings map to OFF."""
        for status in cls:
            if status.value == text.lower():
                return status
        return cls.OFF


class TemperatureKind(Enum):
    CURRENT = "current"
    ACTIVE = "active"
    STANDBY = "standby"


# =============================================================================
# Alert
# =============================================================================


@dataclass(frozen=True)
class Alert:
    """A complete message box as delivered to the UI."""
    title: str
    text: str
    mode: int
    seq: int
    timeout: float
    controls: int

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "text": self.text,
            "mode": self.mode,
            "seq": self.seq,
            "timeout": self.timeout,
            "controls": self.controls,
        }


# Firmware name prefixes and the feature flags they imply
FIRMWARE_FEATURES = (
    ("RepRapFirmware", ("quoteFilenames",)),
    ("Smoothie", ("noGcodesFolder", "noStandbyTemps", "noG10Temps", "noDriveNumber", "noM20M36")),
    ("Repetier", ("noGcodesFolder", "noStandbyTemps", "noG10Temps")),
    ("Marlin", ("noGcodesFolder", "noStandbyTemps", "noG10Temps")),
)


def features_for_firmware(name: str) -> Optional[Tuple[str, ...]]:
    """Feature flags for a firmware name, or None if the name is not recognised."""
    for prefix, features in FIRMWARE_FEATURES:
        if name.startswith(prefix):
            return features
    return None
