"""
Property-Based Tests for sync engine invariants.

These tests verify dispatch, store ordering and scheduler behaviour for
ANY generated input, not just hand-picked examples.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from core.types import ALL_SUBSYSTEMS, POLL_PRIORITY, Subsystem
from objectmodel import IndexedCollection, Tool
from protocol.dispatcher import FieldPathDispatcher
from protocol.fields import ARRAY_END_TABLE, FIELD_TABLE, KEY_TABLE
from protocol.scheduler import ActionKind, PollScheduler, SchedulerConfig, SchedulerState, next_action


# =============================================================================
# Hypothesis Strategies
# =============================================================================


index_strategy = st.integers(min_value=0, max_value=40)
index_lists = st.lists(index_strategy, max_size=30)
subsystem_sets = st.sets(st.sampled_from(list(Subsystem)))


# =============================================================================
# Dispatcher
# =============================================================================


class TestDispatchProperties:
    """Lookup does not depend on the order tables are declared in."""

    @given(st.permutations(FIELD_TABLE))
    @settings(max_examples=50)
    def test_any_table_order_resolves_declared_codes(self, table):
        dispatcher = FieldPathDispatcher(table, KEY_TABLE, ARRAY_END_TABLE)
        for pattern, code in FIELD_TABLE:
            assert dispatcher.dispatch(pattern) is code

    @given(st.sampled_from(FIELD_TABLE), st.data())
    def test_lookup_ignores_case(self, entry, data):
        pattern, code = entry
        flips = data.draw(st.lists(st.booleans(), min_size=len(pattern), max_size=len(pattern)))
        mangled = "".join(c.upper() if flip else c.lower() for c, flip in zip(pattern, flips))
        assert FieldPathDispatcher().dispatch(mangled) is code


# =============================================================================
# Store
# =============================================================================


class TestStoreProperties:
    """Index-sorted collection invariants."""

    @given(index_lists)
    def test_always_sorted_and_unique(self, indices):
        tools = IndexedCollection("tool", Tool)
        for index in indices:
            tools.get_or_create(index)
        assert tools.indices() == sorted(set(indices))

    @given(index_lists)
    def test_get_or_create_is_idempotent(self, indices):
        tools = IndexedCollection("tool", Tool)
        first = [tools.get_or_create(i) for i in indices]
        second = [tools.get_or_create(i) for i in indices]
        assert all(a is b for a, b in zip(first, second))

    @given(index_lists, index_strategy)
    def test_ranged_removal(self, indices, cut):
        tools = IndexedCollection("tool", Tool)
        for index in indices:
            tools.get_or_create(index)
        tools.remove(cut, all_following=True)
        if cut in indices:
            assert tools.indices() == sorted(i for i in set(indices) if i < cut)
        else:
            assert tools.indices() == sorted(set(indices))

    @given(index_lists, index_strategy)
    def test_single_removal(self, indices, target):
        tools = IndexedCollection("tool", Tool)
        for index in indices:
            tools.get_or_create(index)
        tools.remove(target)
        assert tools.indices() == sorted(set(indices) - {target})


# =============================================================================
# Scheduler
# =============================================================================


class TestSchedulerProperties:
    """Poll ordering and timing invariants."""

    @given(subsystem_sets)
    def test_next_to_poll_follows_priority(self, dirty):
        scheduler = PollScheduler()
        for subsystem in dirty:
            scheduler.update_seq(subsystem, 1)

        polled = []
        while scheduler.next_to_poll() is not None:
            subsystem = scheduler.next_to_poll()
            polled.append(subsystem)
            scheduler.request_done(subsystem)

        assert polled == [s for s in POLL_PRIORITY if s in dirty]

    @given(st.lists(st.integers(min_value=0, max_value=0xFFFF), min_size=1, max_size=20))
    def test_repeated_seq_never_redirties(self, values):
        scheduler = PollScheduler()
        for value in values:
            scheduler.update_seq(Subsystem.HEAT, value)
            scheduler.request_done(Subsystem.HEAT)
            assert not scheduler.update_seq(Subsystem.HEAT, value)
            assert not scheduler.is_dirty(Subsystem.HEAT)

    @given(
        st.integers(min_value=0, max_value=100_000),
        st.integers(min_value=0, max_value=100_000),
        st.integers(min_value=0, max_value=100_000),
        subsystem_sets,
        st.booleans(),
    )
    def test_sends_only_after_intervals(self, last_poll, last_response, now, dirty, pending):
        state = SchedulerState(last_poll_time=last_poll, last_response_time=last_response)
        for subsystem in dirty:
            state.dirty[subsystem] = True
        config = SchedulerConfig()

        action = next_action(state, config, now, pending)
        if action.sends:
            assert now - last_poll >= config.poll_interval_ms
            assert now - last_response >= config.response_interval_ms
        if action.kind is ActionKind.DETAIL:
            assert action.request.subsystem is state.next_dirty()

    @given(st.lists(st.integers(min_value=0, max_value=1_000_000), min_size=1, max_size=30))
    def test_restart_counted_once_per_decrease(self, uptimes):
        scheduler = PollScheduler()
        restarts = sum(scheduler.observe_uptime(u) for u in uptimes)
        expected = sum(1 for prev, cur in zip([0] + uptimes, uptimes) if cur < prev)
        assert restarts == expected

    @given(subsystem_sets)
    def test_reset_dirties_every_fetched_subsystem(self, fetch):
        scheduler = PollScheduler(SchedulerConfig(fetch=frozenset(fetch)))
        scheduler.reset()
        assert set(scheduler.dirty_subsystems()) == set(fetch) & set(ALL_SUBSYSTEMS)
