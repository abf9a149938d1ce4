"""
Unit tests for the poll scheduler.
"""

import pytest

from core.types import ALL_SUBSYSTEMS, DetailRequest, Subsystem, SummaryRequest
from protocol.scheduler import (
    ActionKind,
    PollScheduler,
    SchedulerConfig,
    SchedulerState,
    next_action,
)


@pytest.fixture
def scheduler() -> PollScheduler:
    return PollScheduler()


def responded_state() -> SchedulerState:
    """A request went out at 0 and its response arrived at 100."""
    return SchedulerState(last_poll_time=0, last_response_time=100)


class TestRequests:
    """Request G-code."""

    def test_summary(self):
        assert SummaryRequest().to_gcode() == 'M409 F"d99f"'

    def test_detail(self):
        assert DetailRequest(Subsystem.HEAT).to_gcode() == 'M409 K"heat" F"v"'

    def test_state_detail_uses_vn(self):
        assert DetailRequest(Subsystem.STATE).to_gcode() == 'M409 K"state" F"vn"'


class TestSequenceNumbers:
    """Tests for update_seq and dirty bits."""

    def test_new_value_marks_dirty(self, scheduler):
        assert scheduler.update_seq(Subsystem.HEAT, 5)
        assert scheduler.is_dirty(Subsystem.HEAT)

    def test_same_value_is_not_rerequested(self, scheduler):
        scheduler.update_seq(Subsystem.HEAT, 5)
        scheduler.request_done(Subsystem.HEAT)
        assert not scheduler.update_seq(Subsystem.HEAT, 5)
        assert not scheduler.is_dirty(Subsystem.HEAT)

    def test_values_wrap_to_16_bits(self, scheduler):
        scheduler.update_seq(Subsystem.MOVE, 0x10001)
        assert scheduler.state.seqs[Subsystem.MOVE] == 1

    def test_unfetched_subsystem_is_ignored(self):
        scheduler = PollScheduler(SchedulerConfig(fetch=frozenset({Subsystem.HEAT})))
        assert not scheduler.update_seq(Subsystem.MOVE, 3)
        assert not scheduler.is_dirty(Subsystem.MOVE)

    def test_priority_order(self, scheduler):
        for subsystem in (Subsystem.HEAT, Subsystem.MOVE, Subsystem.TOOLS):
            scheduler.update_seq(subsystem, 1)
        assert scheduler.next_to_poll() is Subsystem.MOVE
        scheduler.request_done(Subsystem.MOVE)
        assert scheduler.next_to_poll() is Subsystem.HEAT

    def test_request_done_none_is_noop(self, scheduler):
        scheduler.update_seq(Subsystem.JOB, 1)
        scheduler.request_done(None)
        assert scheduler.is_dirty(Subsystem.JOB)


class TestNextAction:
    """Tests for the pure timing decision."""

    def test_waits_for_poll_interval(self):
        state = responded_state()
        assert next_action(state, SchedulerConfig(), 999).kind is ActionKind.WAIT

    def test_waits_for_response_interval(self):
        state = SchedulerState(last_poll_time=0, last_response_time=500)
        # 1000 ms since the request but only 500 since the response
        assert next_action(state, SchedulerConfig(), 1000).kind is ActionKind.WAIT

    def test_summary_when_nothing_dirty(self):
        action = next_action(responded_state(), SchedulerConfig(), 1000)
        assert action.kind is ActionKind.SUMMARY
        assert action.request == SummaryRequest()

    def test_detail_for_first_dirty(self):
        state = responded_state()
        state.dirty[Subsystem.TOOLS] = True
        state.dirty[Subsystem.NETWORK] = True
        action = next_action(state, SchedulerConfig(), 1000)
        assert action.kind is ActionKind.DETAIL
        assert action.request == DetailRequest(Subsystem.NETWORK)

    def test_yields_to_pending_work(self):
        action = next_action(responded_state(), SchedulerConfig(), 1000, has_pending_work=True)
        assert action.kind is ActionKind.YIELD
        assert not action.sends

    def test_dirty_beats_pending_work(self):
        state = responded_state()
        state.dirty[Subsystem.JOB] = True
        action = next_action(state, SchedulerConfig(), 1000, has_pending_work=True)
        assert action.kind is ActionKind.DETAIL

    def test_no_response_waits_until_timeout(self):
        state = SchedulerState(last_poll_time=1000, last_response_time=500)
        assert next_action(state, SchedulerConfig(), 4999).kind is ActionKind.WAIT

    def test_timeout_resends_summary(self):
        state = SchedulerState(last_poll_time=1000, last_response_time=500)
        action = next_action(state, SchedulerConfig(), 5000)
        assert action.kind is ActionKind.RESEND
        assert action.request == SummaryRequest()

    def test_custom_intervals(self):
        config = SchedulerConfig(poll_interval_ms=100, response_interval_ms=50)
        state = SchedulerState(last_poll_time=0, last_response_time=10)
        assert next_action(state, config, 99).kind is ActionKind.WAIT
        assert next_action(state, config, 100).kind is ActionKind.SUMMARY


class TestBookkeeping:
    """Timing marks, initialization and restart handling."""

    def test_detail_request_initializes(self, scheduler):
        scheduler.mark_response_received(100)
        scheduler.update_seq(Subsystem.HEAT, 1)
        action = scheduler.next_action(1000)
        scheduler.mark_request_sent(1000, action)
        assert scheduler.initialized

    def test_summary_request_does_not_initialize(self, scheduler):
        scheduler.mark_response_received(100)
        action = scheduler.next_action(1000)
        scheduler.mark_request_sent(1000, action)
        assert not scheduler.initialized

    def test_uptime_decrease_is_restart(self, scheduler):
        assert not scheduler.observe_uptime(10)
        assert not scheduler.observe_uptime(20)
        assert scheduler.observe_uptime(5)
        assert not scheduler.observe_uptime(6)

    def test_reset_marks_everything_dirty(self, scheduler):
        scheduler.update_seq(Subsystem.HEAT, 4)
        scheduler.reset()
        assert set(scheduler.dirty_subsystems()) == set(ALL_SUBSYSTEMS)
        assert scheduler.state.seqs[Subsystem.HEAT] is None
        assert not scheduler.initialized

    def test_reset_only_marks_fetched(self):
        scheduler = PollScheduler(SchedulerConfig(fetch=frozenset({Subsystem.HEAT, Subsystem.MOVE})))
        scheduler.reset()
        assert scheduler.dirty_subsystems() == [Subsystem.MOVE, Subsystem.HEAT]

    def test_to_dict(self, scheduler):
        scheduler.update_seq(Subsystem.STATE, 9)
        data = scheduler.to_dict()
        assert data["seqs"]["state"] == 9
        assert data["dirty"] == ["state"]
