"""
Message session - the transaction around one controller reply.

begin() → accumulate fields → end(). Composite message box fields are
staged and only delivered at end() when all six arrived; array ends trim
entities the controller no longer reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntFlag, auto
from typing import Callable, List, Optional, TYPE_CHECKING

from core.logger import log_alert
from core.types import Alert, Subsystem
from objectmodel.entities import MAX_TOTAL_AXES, MIN_AXES, NO_REFERENCE
from .events import Event
from .fields import FieldCode, KeyCode

if TYPE_CHECKING:
    from objectmodel.store import ObjectModelStore
    from .scheduler import PollScheduler


class AlertField(IntFlag):
    TEXT = auto()
    TITLE = auto()
    MODE = auto()
    SEQ = auto()
    TIMEOUT = auto()
    CONTROLS = auto()


ALL_ALERT_FIELDS = (
    AlertField.TEXT | AlertField.TITLE | AlertField.MODE
    | AlertField.SEQ | AlertField.TIMEOUT | AlertField.CONTROLS
)


@dataclass
class StagedAlert:
    """Message box fields collected during one reply."""
    seen: AlertField = AlertField(0)
    text: str = ""
    title: str = ""
    mode: int = 0
    seq: int = 0
    timeout: float = 0.0
    controls: int = 0

    @property
    def complete(self) -> bool:
        return self.seen == ALL_ALERT_FIELDS

    @property
    def says_no_message(self) -> bool:
        return bool(self.seen & AlertField.MODE) and self.mode < 0

    def to_alert(self) -> Alert:
        return Alert(
            title=self.title,
            text=self.text,
            mode=self.mode,
            seq=self.seq,
            timeout=self.timeout,
            controls=self.controls,
        )


class SessionState(Enum):
    IDLE = auto()
    ACCUMULATING = auto()


def trim_from(collection, start: int) -> None:
    """Remove every entity with index >= start, gaps included."""
    following = [index for index in collection.indices() if index >= start]
    if following:
        collection.remove(following[0], all_following=True)


class MessageSession:
    """
    Per-reply bookkeeping shared by the field handlers.

    Also walks the tools/spindles arrays so entities that disappeared on
    the controller are removed when their array ends.
    """

    def __init__(
        self,
        store: "ObjectModelStore",
        scheduler: "PollScheduler",
        emit: Callable[[Event], None],
    ):
        self._store = store
        self._scheduler = scheduler
        self._emit = emit

        self.state = SessionState.IDLE
        self.alert = StagedAlert()
        self.last_alert_seq = 0
        self.answering: Optional[Subsystem] = None

        self.last_tool = NO_REFERENCE
        self.last_spindle = NO_REFERENCE
        self.visible_axes_counted = 0
        self.mounted_volumes_counted = 0

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    def begin(self) -> None:
        self.state = SessionState.ACCUMULATING
        self.alert = StagedAlert()
        self.answering = None

    def key_received(self, key: KeyCode) -> None:
        """The reply declared which subsystem it answers."""
        self.answering = key.subsystem
        if key is KeyCode.MOVE:
            self.visible_axes_counted = 0
        elif key is KeyCode.SPINDLES:
            self.last_spindle = NO_REFERENCE
        elif key is KeyCode.TOOLS:
            self.last_tool = NO_REFERENCE
        elif key is KeyCode.VOLUMES:
            self.mounted_volumes_counted = 0

    def end(self, now: int) -> None:
        """
        Commit the reply.

        The answered subsystem is marked fresh even when the reply lacked
        some of its fields; changing that would change the polling cadence.
        """
        if self.alert.says_no_message:
            log_alert("Message box cleared")
            self._emit(Event.alert_cleared())
        elif self.alert.complete and self.alert.seq != self.last_alert_seq:
            alert = self.alert.to_alert()
            log_alert("Message box", {"seq": alert.seq, "title": alert.title})
            self._emit(Event.alert_delivered(alert))
            self.last_alert_seq = alert.seq

        self._scheduler.request_done(self.answering)
        self._scheduler.mark_response_received(now)

        self.alert = StagedAlert()
        self.answering = None
        self.state = SessionState.IDLE

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACCUMULATING

    # =========================================================================
    # Composite alert
    # =========================================================================

    def stage_alert(self, field: AlertField, value) -> None:
        if field is AlertField.TEXT:
            self.alert.text = value
        elif field is AlertField.TITLE:
            self.alert.title = value
        elif field is AlertField.MODE:
            self.alert.mode = value
        elif field is AlertField.SEQ:
            self.alert.seq = value
        elif field is AlertField.TIMEOUT:
            self.alert.timeout = value
        elif field is AlertField.CONTROLS:
            self.alert.controls = value
        self.alert.seen |= field

    # =========================================================================
    # Array walk
    # =========================================================================

    def tool_seen(self, index: int) -> None:
        """Tools skipped between the previous and this index no longer exist."""
        for missing in range(self.last_tool + 1, index):
            self._store.tools.remove(missing)
        self.last_tool = index

    def spindle_seen(self, index: int) -> None:
        for missing in range(self.last_spindle + 1, index):
            self._store.spindles.remove(missing)
        self.last_spindle = index

    def axis_visible(self) -> None:
        self.visible_axes_counted += 1

    def volume_mounted(self) -> None:
        self.mounted_volumes_counted += 1

    def array_ended(self, code: FieldCode, indices: List[int]) -> None:
        """
        An array finished; the innermost index is its length.

        Entities beyond what the controller reported are trimmed.
        """
        if not indices:
            return
        length = indices[-1]
        store = self._store

        if code is FieldCode.AXES_ARRAY and self.answering is Subsystem.MOVE:
            store.hide_axes_from(length)
            num_axes = min(max(self.visible_axes_counted, MIN_AXES), MAX_TOTAL_AXES)
            if num_axes != store.machine.num_axes:
                store.machine.num_axes = num_axes
                self._emit(Event.machine_field_changed("num_axes", num_axes))

        elif code is FieldCode.TOOLS_ARRAY and self.answering is Subsystem.TOOLS:
            trim_from(store.tools, self.last_tool + 1)

        elif code is FieldCode.SPINDLES_ARRAY and self.answering is Subsystem.SPINDLES:
            trim_from(store.spindles, self.last_spindle + 1)

        elif code is FieldCode.BED_HEATERS_ARRAY:
            trim_from(store.beds, length)

        elif code is FieldCode.CHAMBER_HEATERS_ARRAY:
            trim_from(store.chambers, length)

        elif code is FieldCode.TOOLS_EXTRUDERS_ARRAY and length == 0 and len(indices) > 1:
            tool = store.tools.get_or_create(indices[0])
            if tool.extruder != NO_REFERENCE:
                tool.extruder = NO_REFERENCE
                self._emit(Event.tool_changed(tool.index))

        elif code is FieldCode.TOOLS_HEATERS_ARRAY and length == 0 and len(indices) > 1:
            tool = store.tools.get_or_create(indices[0])
            if tool.heater != NO_REFERENCE:
                tool.heater = NO_REFERENCE
                self._emit(Event.tool_changed(tool.index))

        elif code is FieldCode.VOLUMES_ARRAY and self.answering is Subsystem.VOLUMES:
            if self.mounted_volumes_counted != store.machine.mounted_volumes:
                store.machine.mounted_volumes = self.mounted_volumes_counted
                self._emit(Event.machine_field_changed("mounted_volumes", self.mounted_volumes_counted))

    def reset(self) -> None:
        """Forget all per-connection state (restart or reconnect)."""
        self.alert = StagedAlert()
        self.last_alert_seq = 0
        self.last_tool = NO_REFERENCE
        self.last_spindle = NO_REFERENCE
        self.visible_axes_counted = 0
        self.mounted_volumes_counted = 0
