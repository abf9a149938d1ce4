"""
Sync Engine - Main facade for the panel object model mirror.

Wires transport, tokenizer, dispatcher, session, scheduler and store
together. Everything runs inside tick(): read what arrived, process it to
completion, then send at most one request.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Deque, Dict, List, Optional, TYPE_CHECKING

from core.coercion import parse_bool, parse_float, parse_int, parse_uint
from core.executor import DEFAULT_HISTORY_LIMIT, RequestChannel
from core.logger import log_critical, log_info, log_ok, log_warn
from core.tokenizer import ArrayEndToken, MessageEndToken, ValueToken, tokenize
from core.types import (
    PRINTER_STATUS_MAP,
    HeaterStatus,
    PrinterStatus,
    Subsystem,
    SummaryRequest,
    TemperatureKind,
    ToolStatus,
    features_for_firmware,
)
from objectmodel.entities import MAX_TOTAL_AXES, MAX_TOTAL_WORKPLACES, NO_REFERENCE, Axis
from objectmodel.store import ObjectModelStore
from protocol.dispatcher import FieldPathDispatcher
from protocol.events import Event
from protocol.fields import SEQ_FIELDS, FieldCode, KeyCode
from protocol.scheduler import Action, ActionKind, PollScheduler, SchedulerConfig, SchedulerState
from protocol.session import AlertField, MessageSession

if TYPE_CHECKING:
    from core.transport import Transport


# Longest plausible job time estimate (10 days, in seconds)
MAX_TIME_LEFT = 10 * 24 * 60 * 60

# times_left slots
TIME_LEFT_FILE = 0
TIME_LEFT_FILAMENT = 1
TIME_LEFT_LAYER = 2

DEFAULT_EVENT_LIMIT = 500
DEFAULT_MESSAGE_LIMIT = 50

Handler = Callable[[List[int], str], None]


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def percent(fraction: float) -> int:
    return int(fraction * 100.0 + 0.5)


@dataclass
class EngineConfig:
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    history_limit: int = DEFAULT_HISTORY_LIMIT
    event_limit: int = DEFAULT_EVENT_LIMIT
    message_limit: int = DEFAULT_MESSAGE_LIMIT


class SyncEngine:
    """
    Mirrors the controller's object model.

    Usage:
        engine = SyncEngine(transport)
        engine.subscribe(print)
        engine.start()
        while True:
            engine.tick()

    Collaborators receive Event objects; the store is the source of truth
    for anything they need to read back.
    """

    def __init__(
        self,
        transport: "Transport",
        clock: Optional[Callable[[], int]] = None,
        has_pending_work: Optional[Callable[[], bool]] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.transport = transport
        self._clock = clock or monotonic_ms
        self._has_pending_work = has_pending_work or (lambda: False)

        self.store = ObjectModelStore()
        self.scheduler = PollScheduler(self.config.scheduler)
        self.dispatcher = FieldPathDispatcher()
        self.session = MessageSession(self.store, self.scheduler, self._emit)
        self.channel = RequestChannel(transport, self.config.history_limit)

        self.events: Deque[Event] = deque(maxlen=self.config.event_limit)
        self.messages: Deque[str] = deque(maxlen=self.config.message_limit)
        self.message_seq = 0
        self._subscribers: List[Callable[[Event], None]] = []

        self._handlers: Dict[FieldCode, Handler] = self._build_handlers()

    # =========================================================================
    # Collaborators
    # =========================================================================

    def subscribe(self, callback: Callable[[Event], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Event], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _emit(self, event: Event) -> None:
        self.events.append(event)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                log_warn("Subscriber failed", {"event": event.type.name, "error": str(e)})

    def recent_events(self, limit: Optional[int] = None) -> List[Event]:
        events = list(self.events)
        if limit is None:
            return events
        return events[-limit:] if limit > 0 else []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> Action:
        """Send the first summary request. Replies start the poll cycle."""
        now = self._clock()
        action = Action(ActionKind.SUMMARY, SummaryRequest())
        self.channel.send(action.request, now, kind="summary")
        self.scheduler.mark_request_sent(now, action)
        log_ok("Sync engine started")
        return action

    def reset(self) -> None:
        """Forget everything, as if freshly constructed (reconnect)."""
        self.scheduler.state = SchedulerState()
        self.store.clear()
        self.session.reset()
        self.dispatcher.reset_key()
        self.messages.clear()
        self.message_seq = 0

    def tick(self) -> Action:
        """
        One cooperative step.

        Processes every line that has arrived, then asks the scheduler what
        to do and sends at most one request.
        """
        for line in self.transport.read_lines():
            self.feed_line(line)

        now = self._clock()
        action = self.scheduler.next_action(now, self._has_pending_work())
        if action.kind is ActionKind.RESEND:
            log_warn("No response to last request, resending summary", {
                "since_poll_ms": now - self.scheduler.state.last_poll_time,
            })
        if action.sends:
            self.channel.send(action.request, now, kind=action.kind.name.lower())
            self.scheduler.mark_request_sent(now, action)
        return action

    # =========================================================================
    # Message processing
    # =========================================================================

    def feed_line(self, line: str) -> None:
        """Process one complete response line."""
        tokens = tokenize(line)
        if not tokens:
            return

        self.begin_message()
        for token in tokens:
            if isinstance(token, ValueToken):
                self.process_value(token.path, token.indices, token.value)
            elif isinstance(token, ArrayEndToken):
                self.process_array_end(token.path, token.indices)
            elif isinstance(token, MessageEndToken):
                self.end_message()

    def begin_message(self) -> None:
        self.session.begin()

    def process_value(self, path: str, indices: List[int], value: str) -> None:
        """Route one field to its handler. Unknown paths are dropped."""
        if not self.session.active:
            self.begin_message()
        if len(indices) < path.count("^"):
            return

        handler = self._handlers.get(self.dispatcher.dispatch(path))
        if handler is not None:
            handler(indices, value)

    def process_array_end(self, path: str, indices: List[int]) -> None:
        code = self.dispatcher.dispatch_array_end(path)
        if code is FieldCode.UNKNOWN:
            return
        if code in (FieldCode.TOOLS_EXTRUDERS_ARRAY, FieldCode.TOOLS_HEATERS_ARRAY) \
                and self.dispatcher.current_key is not KeyCode.TOOLS:
            return
        self.session.array_ended(code, indices)

    def end_message(self) -> None:
        self.session.end(self._clock())
        self.dispatcher.reset_key()

    # =========================================================================
    # Handler table
    # =========================================================================

    def _build_handlers(self) -> Dict[FieldCode, Handler]:
        handlers: Dict[FieldCode, Handler] = {
            FieldCode.KEY: self._on_key,

            # Live values
            FieldCode.FANS_ACTUAL_VALUE: self._on_fan_value,
            FieldCode.HEATERS_CURRENT: partial(self._on_heater_temperature, TemperatureKind.CURRENT),
            FieldCode.HEATERS_ACTIVE: partial(self._on_heater_temperature, TemperatureKind.ACTIVE),
            FieldCode.HEATERS_STANDBY: partial(self._on_heater_temperature, TemperatureKind.STANDBY),
            FieldCode.HEATERS_STATE: self._on_heater_state,
            FieldCode.JOB_FILE_POSITION: self._on_file_position,
            FieldCode.JOB_TIMES_LEFT_FILE: partial(self._on_time_left, TIME_LEFT_FILE),
            FieldCode.JOB_TIMES_LEFT_FILAMENT: partial(self._on_time_left, TIME_LEFT_FILAMENT),
            FieldCode.JOB_TIMES_LEFT_LAYER: partial(self._on_time_left, TIME_LEFT_LAYER),
            FieldCode.AXES_HOMED: self._on_axis_homed,
            FieldCode.AXES_USER_POSITION: self._on_axis_position,
            FieldCode.SENSORS_PROBE_VALUE: self._on_probe_value,
            FieldCode.SPINDLES_CURRENT: self._on_spindle_current,
            FieldCode.STATE_CURRENT_TOOL: self._on_current_tool,
            FieldCode.STATE_STATUS: self._on_status,
            FieldCode.STATE_UPTIME: self._on_uptime,
            FieldCode.TOOLS_STATE: self._on_tool_state,

            # Detail responses
            FieldCode.BOARDS_FIRMWARE_NAME: self._on_firmware_name,
            FieldCode.HEAT_BED_HEATERS: partial(self._on_bed_or_chamber_heater, self.store.beds),
            FieldCode.HEAT_CHAMBER_HEATERS: partial(self._on_bed_or_chamber_heater, self.store.chambers),
            FieldCode.JOB_FILE_NAME: self._on_file_name,
            FieldCode.JOB_FILE_SIZE: self._on_file_size,
            FieldCode.AXES_BABYSTEP: self._on_axis_babystep,
            FieldCode.AXES_LETTER: self._on_axis_letter,
            FieldCode.AXES_VISIBLE: self._on_axis_visible,
            FieldCode.AXES_WORKPLACE_OFFSETS: self._on_workplace_offset,
            FieldCode.EXTRUDERS_FACTOR: self._on_extrusion_factor,
            FieldCode.KINEMATICS_NAME: self._on_kinematics,
            FieldCode.SPEED_FACTOR: self._on_speed_factor,
            FieldCode.WORKPLACE_NUMBER: self._on_workplace_number,
            FieldCode.NETWORK_NAME: self._on_network_name,
            FieldCode.NETWORK_INTERFACES_ACTUAL_IP: self._on_ip_address,
            FieldCode.SPINDLES_ACTIVE: self._on_spindle_active,
            FieldCode.SPINDLES_MAX: self._on_spindle_max,
            FieldCode.SPINDLES_TOOL: self._on_spindle_tool,
            FieldCode.TOOLS_EXTRUDERS: self._on_tool_extruder,
            FieldCode.TOOLS_HEATERS: self._on_tool_heater,
            FieldCode.TOOLS_NUMBER: self._on_tool_number,
            FieldCode.TOOLS_OFFSETS: self._on_tool_offset,
            FieldCode.VOLUMES_MOUNTED: self._on_volume_mounted,

            # Message box
            FieldCode.MESSAGE_BOX: self._on_message_box,
            FieldCode.MESSAGE_BOX_MESSAGE: partial(self._on_alert_field, AlertField.TEXT, str),
            FieldCode.MESSAGE_BOX_TITLE: partial(self._on_alert_field, AlertField.TITLE, str),
            FieldCode.MESSAGE_BOX_MODE: partial(self._on_alert_field, AlertField.MODE, parse_int),
            FieldCode.MESSAGE_BOX_SEQ: partial(self._on_alert_field, AlertField.SEQ, parse_uint),
            FieldCode.MESSAGE_BOX_TIMEOUT: partial(self._on_alert_field, AlertField.TIMEOUT, parse_float),
            FieldCode.MESSAGE_BOX_AXIS_CONTROLS: partial(self._on_alert_field, AlertField.CONTROLS, parse_uint),

            # Push messages
            FieldCode.PUSH_RESPONSE: self._on_push_response,
            FieldCode.PUSH_MESSAGE: self._on_push_message,
            FieldCode.PUSH_SEQ: self._on_push_seq,
        }
        for code, subsystem in SEQ_FIELDS.items():
            handlers[code] = partial(self._on_seq, subsystem)
        return handlers

    def _set_machine(self, name: str, value: Any) -> None:
        machine = self.store.machine
        if getattr(machine, name) != value:
            setattr(machine, name, value)
            self._emit(Event.machine_field_changed(name, value))

    def _axis_changed(self, axis: Axis) -> None:
        self._emit(Event.axis_changed(axis.index, axis.letter, axis.visible, axis.homed, axis.babystep))

    def _on_key(self, indices: List[int], value: str) -> None:
        key = self.dispatcher.set_key(value)
        self.session.key_received(key)

    # =========================================================================
    # Live values
    # =========================================================================

    def _on_seq(self, subsystem: Subsystem, indices: List[int], value: str) -> None:
        seq = parse_int(value)
        if seq is not None:
            self.scheduler.update_seq(subsystem, seq)

    def _on_fan_value(self, indices: List[int], value: str) -> None:
        # Only the first fan is mirrored
        if indices[0] != 0:
            return
        fraction = parse_float(value)
        if fraction is not None and 0.0 <= fraction <= 1.0:
            self._set_machine("fan_percent", percent(fraction))

    def _on_heater_temperature(self, kind: TemperatureKind, indices: List[int], value: str) -> None:
        temperature = parse_float(value) if kind is TemperatureKind.CURRENT else parse_int(value)
        if temperature is None:
            return
        heater = indices[0]
        if self.store.heater_in_use(heater):
            self._emit(Event.heater_temperature_changed(heater, kind, temperature))

    def _on_heater_state(self, indices: List[int], value: str) -> None:
        heater = indices[0]
        if self.store.heater_in_use(heater):
            self._emit(Event.heater_status_changed(heater, HeaterStatus.from_text(value)))

    def _on_file_position(self, indices: List[int], value: str) -> None:
        machine = self.store.machine
        if not machine.status.print_in_progress or machine.file_size <= 0:
            return
        position = parse_uint(value)
        if position is not None:
            self._set_machine("progress_percent", int(position * 100.0 / machine.file_size + 0.5))

    def _on_time_left(self, slot: int, indices: List[int], value: str) -> None:
        seconds = parse_int(value)
        if seconds is None or not 0 <= seconds < MAX_TIME_LEFT:
            return
        if not self.store.machine.status.print_in_progress:
            return
        times_left = list(self.store.machine.times_left)
        times_left[slot] = seconds
        self._set_machine("times_left", times_left)

    def _on_axis_homed(self, indices: List[int], value: str) -> None:
        homed = parse_bool(value)
        axis = self.store.get_or_create_axis(indices[0])
        if homed is None or axis is None:
            return
        if axis.homed != homed:
            axis.homed = homed
            self._axis_changed(axis)

    def _on_axis_position(self, indices: List[int], value: str) -> None:
        position = parse_float(value)
        axis = self.store.get_axis(indices[0])
        if position is None or axis is None:
            return
        axis.position = position
        self._emit(Event.axis_position_changed(axis.index, position))

    def _on_probe_value(self, indices: List[int], value: str) -> None:
        # First value of the first probe only
        if indices[0] == 0 and indices[1] == 0:
            self._set_machine("z_probe", value)

    def _on_spindle_current(self, indices: List[int], value: str) -> None:
        current = parse_uint(value)
        if current is None:
            return
        spindle = self.store.spindles.get_or_create(indices[0])
        if spindle.current != current:
            spindle.current = current
            self._emit(Event.spindle_changed(spindle.index))

    def _on_current_tool(self, indices: List[int], value: str) -> None:
        if self.store.machine.status.is_connecting:
            return
        tool = parse_int(value)
        if tool is not None:
            self._set_machine("current_tool", tool)

    def _on_status(self, indices: List[int], value: str) -> None:
        self._emit(Event.status_string_received(value))

        if not self.scheduler.initialized:
            status = PrinterStatus.PANEL_INITIALIZING
        else:
            status = PRINTER_STATUS_MAP.get(value.lower(), PrinterStatus.CONNECTING)

        machine = self.store.machine
        if status is not machine.status:
            old = machine.status
            machine.status = status
            log_info(f"Status {old.value} → {status.value}")
            self._emit(Event.status_changed(old, status))

    def _on_uptime(self, indices: List[int], value: str) -> None:
        uptime = parse_uint(value)
        if uptime is not None and self.scheduler.observe_uptime(uptime):
            self._restarted()

    def _restarted(self) -> None:
        """The controller rebooted: everything mirrored so far is stale."""
        self.scheduler.reset()
        self.store.clear()
        log_critical("Full resync queued", {"dirty": len(self.scheduler.dirty_subsystems())})
        self._emit(Event.restart_detected())

    def _on_tool_state(self, indices: List[int], value: str) -> None:
        tool = self.store.tools.get(indices[0])
        if tool is None:
            return
        status = ToolStatus.from_text(value)
        if tool.status is not status:
            tool.status = status
            self._emit(Event.tool_changed(tool.index))

    # =========================================================================
    # Detail responses
    # =========================================================================

    def _on_firmware_name(self, indices: List[int], value: str) -> None:
        # Main board only
        if indices[0] != 0:
            return
        self._set_machine("firmware_name", value)
        features = features_for_firmware(value)
        if features is not None:
            self._set_machine("firmware_features", features)

    def _on_bed_or_chamber_heater(self, collection, indices: List[int], value: str) -> None:
        heater = parse_int(value)
        if heater is None:
            return
        if heater > NO_REFERENCE:
            collection.get_or_create(indices[0]).heater = heater
        else:
            existing = collection.get(indices[0])
            if existing is not None:
                existing.heater = NO_REFERENCE

    def _on_file_name(self, indices: List[int], value: str) -> None:
        self._set_machine("file_name", value)

    def _on_file_size(self, indices: List[int], value: str) -> None:
        size = parse_uint(value)
        self._set_machine("file_size", size if size is not None else 0)

    def _on_axis_babystep(self, indices: List[int], value: str) -> None:
        babystep = parse_float(value)
        axis = self.store.get_or_create_axis(indices[0])
        if babystep is None or axis is None:
            return
        if axis.babystep != babystep:
            axis.babystep = babystep
            self._axis_changed(axis)

    def _on_axis_letter(self, indices: List[int], value: str) -> None:
        axis = self.store.get_or_create_axis(indices[0])
        if axis is None:
            return
        letter = value[:1]
        if axis.letter != letter:
            axis.letter = letter
            self._axis_changed(axis)

    def _on_axis_visible(self, indices: List[int], value: str) -> None:
        visible = parse_bool(value)
        axis = self.store.get_or_create_axis(indices[0])
        if visible is None or axis is None:
            return
        if visible:
            self.session.axis_visible()
        if axis.visible != visible:
            axis.visible = visible
            self._axis_changed(axis)

    def _on_workplace_offset(self, indices: List[int], value: str) -> None:
        offset = parse_float(value)
        axis = self.store.get_or_create_axis(indices[0])
        workplace = indices[1]
        if offset is None or axis is None or workplace >= MAX_TOTAL_WORKPLACES:
            return
        if axis.workplace_offsets[workplace] != offset:
            axis.workplace_offsets[workplace] = offset
            self._axis_changed(axis)

    def _on_extrusion_factor(self, indices: List[int], value: str) -> None:
        factor = parse_float(value)
        tool = self.store.tool_for_extruder(indices[0])
        if factor is None or tool is None:
            return
        extrusion_percent = percent(factor)
        if tool.extrusion_percent != extrusion_percent:
            tool.extrusion_percent = extrusion_percent
            self._emit(Event.tool_changed(tool.index))

    def _configuring(self) -> bool:
        return self.store.machine.status in (PrinterStatus.CONFIGURING, PrinterStatus.CONNECTING)

    def _on_kinematics(self, indices: List[int], value: str) -> None:
        if not self._configuring():
            self._set_machine("is_delta", value.lower() == "delta")

    def _on_speed_factor(self, indices: List[int], value: str) -> None:
        factor = parse_float(value)
        if factor is not None:
            self._set_machine("speed_percent", percent(factor))

    def _on_workplace_number(self, indices: List[int], value: str) -> None:
        number = parse_uint(value)
        if number is not None:
            self._set_machine("workplace_number", number)

    def _on_network_name(self, indices: List[int], value: str) -> None:
        if not self._configuring():
            self._set_machine("machine_name", value)

    def _on_ip_address(self, indices: List[int], value: str) -> None:
        if indices[0] == 0:
            self._set_machine("ip_address", value)

    def _on_spindle_active(self, indices: List[int], value: str) -> None:
        active = parse_uint(value)
        if active is not None:
            spindle = self.store.spindles.get_or_create(indices[0])
            if spindle.active != active:
                spindle.active = active
                self._emit(Event.spindle_changed(spindle.index))
        self.session.spindle_seen(indices[0])

    def _on_spindle_max(self, indices: List[int], value: str) -> None:
        # Fans replies carry a "max" field too
        if self.dispatcher.current_key is not KeyCode.SPINDLES:
            return
        maximum = parse_uint(value)
        if maximum is None:
            return
        spindle = self.store.spindles.get_or_create(indices[0])
        if spindle.max != maximum:
            spindle.max = maximum
            self._emit(Event.spindle_changed(spindle.index))

    def _on_spindle_tool(self, indices: List[int], value: str) -> None:
        tool = parse_int(value)
        if tool is None:
            return
        spindle = self.store.spindles.get(indices[0])
        if spindle is not None and spindle.tool == tool:
            return
        detached = self.store.set_spindle_tool(indices[0], tool)
        self._emit(Event.spindle_changed(indices[0]))
        for index in detached:
            self._emit(Event.tool_changed(index))
        if tool != NO_REFERENCE:
            self._emit(Event.tool_changed(tool))

    def _on_tool_extruder(self, indices: List[int], value: str) -> None:
        # Only the first extruder of a tool is tracked
        if indices[1] > 0:
            return
        extruder = parse_int(value)
        if extruder is None:
            return
        tool = self.store.tools.get_or_create(indices[0])
        if tool.extruder != extruder:
            tool.extruder = extruder
            self._emit(Event.tool_changed(tool.index))

    def _on_tool_heater(self, indices: List[int], value: str) -> None:
        if indices[1] > 0:
            return
        heater = parse_int(value)
        if heater is None:
            return
        tool = self.store.tools.get_or_create(indices[0])
        if tool.heater != heater:
            tool.heater = heater
            self._emit(Event.tool_changed(tool.index))

    def _on_tool_number(self, indices: List[int], value: str) -> None:
        self.session.tool_seen(indices[0])

    def _on_tool_offset(self, indices: List[int], value: str) -> None:
        offset = parse_float(value)
        axis = indices[1]
        if offset is None or axis >= MAX_TOTAL_AXES:
            return
        tool = self.store.tools.get_or_create(indices[0])
        if tool.offsets[axis] != offset:
            tool.offsets[axis] = offset
            self._emit(Event.tool_changed(tool.index))

    def _on_volume_mounted(self, indices: List[int], value: str) -> None:
        if parse_bool(value):
            self.session.volume_mounted()

    # =========================================================================
    # Message box and push messages
    # =========================================================================

    def _on_message_box(self, indices: List[int], value: str) -> None:
        # null: the box was closed elsewhere
        if value == "":
            self._emit(Event.alert_cleared())

    def _on_alert_field(
        self,
        alert_field: AlertField,
        parse: Callable[[str], Any],
        indices: List[int],
        value: str,
    ) -> None:
        parsed = parse(value)
        if parsed is not None:
            self.session.stage_alert(alert_field, parsed)

    def _on_push_response(self, indices: List[int], value: str) -> None:
        self.messages.append(value)
        self._emit(Event.response_received(value))

    def _on_push_message(self, indices: List[int], value: str) -> None:
        if value == "":
            self._emit(Event.alert_cleared())
        else:
            self._emit(Event.simple_alert(value))

    def _on_push_seq(self, indices: List[int], value: str) -> None:
        seq = parse_uint(value)
        if seq is not None:
            self.message_seq = seq

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Status snapshot (for API)."""
        last = self.channel.get_last()
        return {
            "connected": self.transport.is_connected,
            "status": self.store.machine.status.value,
            "initialized": self.scheduler.initialized,
            "dirty": [s.value for s in self.scheduler.dirty_subsystems()],
            "last_request": last.gcode if last else None,
            "message_seq": self.message_seq,
        }
