"""
Poll scheduler - decides what to request from the controller next.

One sequence counter and one dirty bit per subsystem. A changed counter
marks its subsystem dirty; dirty subsystems get a detail request in fixed
priority order, otherwise the summary request keeps the counters fresh.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, FrozenSet, List, Optional

from core.logger import log_sync, log_critical
from core.types import (
    ALL_SUBSYSTEMS,
    POLL_PRIORITY,
    DetailRequest,
    Request,
    Subsystem,
    SummaryRequest,
)


SEQ_MASK = 0xFFFF

DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_RESPONSE_INTERVAL_MS = 700
DEFAULT_POLL_TIMEOUT_MS = 4000


@dataclass
class SchedulerConfig:
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    response_interval_ms: int = DEFAULT_RESPONSE_INTERVAL_MS
    poll_timeout_ms: int = DEFAULT_POLL_TIMEOUT_MS
    fetch: FrozenSet[Subsystem] = ALL_SUBSYSTEMS


class ActionKind(Enum):
    WAIT = auto()       # too early, send nothing
    DETAIL = auto()     # detail request for a dirty subsystem
    SUMMARY = auto()    # nothing dirty, regular summary poll
    YIELD = auto()      # another collaborator takes this poll turn
    RESEND = auto()     # previous request timed out, summary again


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    request: Optional[Request] = None

    @property
    def sends(self) -> bool:
        return self.request is not None


WAIT = Action(ActionKind.WAIT)
YIELD = Action(ActionKind.YIELD)


@dataclass
class SchedulerState:
    """Plain data so next_action() can stay a pure function."""
    seqs: Dict[Subsystem, Optional[int]] = field(
        default_factory=lambda: {s: None for s in Subsystem})
    dirty: Dict[Subsystem, bool] = field(
        default_factory=lambda: {s: False for s in Subsystem})
    last_poll_time: int = 0
    last_response_time: int = 0
    remote_uptime: int = 0
    initialized: bool = False

    def next_dirty(self) -> Optional[Subsystem]:
        for subsystem in POLL_PRIORITY:
            if self.dirty[subsystem]:
                return subsystem
        return None


def next_action(
    state: SchedulerState,
    config: SchedulerConfig,
    now: int,
    has_pending_work: bool = False,
) -> Action:
    """
    Decide what to send at time `now` (milliseconds).

    Sends nothing until poll_interval has passed since the last request and
    response_interval since the last response. If a response came in after
    the last request, polls the first dirty subsystem, yields to pending
    work, or falls back to the summary. With no response for poll_timeout
    the outstanding request is treated as lost and the summary re-sent.
    """
    since_poll = now - state.last_poll_time
    since_response = now - state.last_response_time

    if since_poll < config.poll_interval_ms or since_response < config.response_interval_ms:
        return WAIT

    if since_poll > since_response:
        subsystem = state.next_dirty()
        if subsystem is not None:
            return Action(ActionKind.DETAIL, DetailRequest(subsystem))
        if has_pending_work:
            return YIELD
        return Action(ActionKind.SUMMARY, SummaryRequest())

    if since_poll >= config.poll_timeout_ms:
        return Action(ActionKind.RESEND, SummaryRequest())

    return WAIT


class PollScheduler:
    """Owns scheduler state and the bookkeeping around it."""

    def __init__(self, config: Optional[SchedulerConfig] = None):
        self.config = config or SchedulerConfig()
        self.state = SchedulerState()

    # =========================================================================
    # Sequence numbers
    # =========================================================================

    def update_seq(self, subsystem: Subsystem, value: int) -> bool:
        """Store a received sequence number. Returns True if it changed."""
        if subsystem not in self.config.fetch:
            return False

        value &= SEQ_MASK
        if self.state.seqs[subsystem] == value:
            return False

        self.state.seqs[subsystem] = value
        self.state.dirty[subsystem] = True
        log_sync(f"{subsystem.value} changed", {"seq": value})
        return True

    def is_dirty(self, subsystem: Subsystem) -> bool:
        return self.state.dirty[subsystem]

    def dirty_subsystems(self) -> List[Subsystem]:
        return [s for s in POLL_PRIORITY if self.state.dirty[s]]

    def next_to_poll(self) -> Optional[Subsystem]:
        return self.state.next_dirty()

    def request_done(self, subsystem: Optional[Subsystem]) -> None:
        """A reply for `subsystem` has been fully processed."""
        if subsystem is not None:
            self.state.dirty[subsystem] = False

    # =========================================================================
    # Timing
    # =========================================================================

    def next_action(self, now: int, has_pending_work: bool = False) -> Action:
        return next_action(self.state, self.config, now, has_pending_work)

    def mark_request_sent(self, now: int, action: Optional[Action] = None) -> None:
        self.state.last_poll_time = now
        if action is not None and action.kind is ActionKind.DETAIL:
            # Every subsystem gets worked through once from here on
            self.state.initialized = True

    def mark_response_received(self, now: int) -> None:
        self.state.last_response_time = now

    @property
    def initialized(self) -> bool:
        return self.state.initialized

    # =========================================================================
    # Restart detection
    # =========================================================================

    def observe_uptime(self, uptime: int) -> bool:
        """Record the remote uptime. Returns True if it went backwards."""
        restarted = uptime < self.state.remote_uptime
        if restarted:
            log_critical("Controller restart detected", {
                "previous_uptime": self.state.remote_uptime,
                "uptime": uptime,
            })
        self.state.remote_uptime = uptime
        return restarted

    def reset(self) -> None:
        """
        Forget every sequence number and mark every fetched subsystem dirty.

        No received value can match an unknown counter, so the next summary
        confirms what is already queued for a detail request.
        """
        for subsystem in Subsystem:
            self.state.seqs[subsystem] = None
            self.state.dirty[subsystem] = subsystem in self.config.fetch
        self.state.initialized = False
        log_sync("Sequence numbers reset, full resync queued")

    def to_dict(self) -> dict:
        """Export scheduler state (for API)."""
        return {
            "seqs": {s.value: self.state.seqs[s] for s in POLL_PRIORITY},
            "dirty": [s.value for s in self.dirty_subsystems()],
            "last_poll_time": self.state.last_poll_time,
            "last_response_time": self.state.last_response_time,
            "remote_uptime": self.state.remote_uptime,
            "initialized": self.state.initialized,
        }
