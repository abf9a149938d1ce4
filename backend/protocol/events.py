"""
Events - notifications delivered to UI collaborators
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Optional


class EventType(Enum):
    """Event types emitted by the sync engine"""

    # Object model
    AXIS_CHANGED = auto()
    AXIS_POSITION_CHANGED = auto()
    TOOL_CHANGED = auto()
    SPINDLE_CHANGED = auto()
    HEATER_TEMPERATURE_CHANGED = auto()
    HEATER_STATUS_CHANGED = auto()

    # Alerts and messages
    ALERT_DELIVERED = auto()
    ALERT_CLEARED = auto()
    SIMPLE_ALERT = auto()
    RESPONSE_RECEIVED = auto()

    # Machine status
    STATUS_STRING_RECEIVED = auto()
    STATUS_CHANGED = auto()
    MACHINE_FIELD_CHANGED = auto()
    RESTART_DETECTED = auto()


@dataclass
class Event:
    """Event with optional data payload"""
    type: EventType
    data: Optional[Any] = None

    @classmethod
    def axis_changed(cls, index: int, letter: str, visible: bool, homed: bool, babystep: float) -> 'Event':
        return cls(EventType.AXIS_CHANGED, data={
            "index": index,
            "letter": letter,
            "visible": visible,
            "homed": homed,
            "babystep": babystep,
        })

    @classmethod
    def axis_position_changed(cls, index: int, value: float) -> 'Event':
        return cls(EventType.AXIS_POSITION_CHANGED, data={"index": index, "value": value})

    @classmethod
    def tool_changed(cls, index: int) -> 'Event':
        return cls(EventType.TOOL_CHANGED, data={"index": index})

    @classmethod
    def spindle_changed(cls, index: int) -> 'Event':
        return cls(EventType.SPINDLE_CHANGED, data={"index": index})

    @classmethod
    def heater_temperature_changed(cls, heater: int, kind: Any, value: float) -> 'Event':
        return cls(EventType.HEATER_TEMPERATURE_CHANGED, data={
            "heater": heater,
            "kind": kind,
            "value": value,
        })

    @classmethod
    def heater_status_changed(cls, heater: int, status: Any) -> 'Event':
        return cls(EventType.HEATER_STATUS_CHANGED, data={"heater": heater, "status": status})

    @classmethod
    def alert_delivered(cls, alert: Any) -> 'Event':
        return cls(EventType.ALERT_DELIVERED, data=alert)

    @classmethod
    def alert_cleared(cls) -> 'Event':
        return cls(EventType.ALERT_CLEARED)

    @classmethod
    def simple_alert(cls, text: str) -> 'Event':
        return cls(EventType.SIMPLE_ALERT, data=text)

    @classmethod
    def response_received(cls, text: str) -> 'Event':
        return cls(EventType.RESPONSE_RECEIVED, data=text)

    @classmethod
    def status_string_received(cls, text: str) -> 'Event':
        return cls(EventType.STATUS_STRING_RECEIVED, data=text)

    @classmethod
    def status_changed(cls, old: Any, new: Any) -> 'Event':
        return cls(EventType.STATUS_CHANGED, data={"old": old, "new": new})

    @classmethod
    def machine_field_changed(cls, name: str, value: Any) -> 'Event':
        return cls(EventType.MACHINE_FIELD_CHANGED, data={"field": name, "value": value})

    @classmethod
    def restart_detected(cls) -> 'Event':
        return cls(EventType.RESTART_DETECTED)

    def to_dict(self) -> dict:
        data = self.data
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        elif isinstance(data, dict):
            data = {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}
        return {"type": self.type.name, "data": data}
