"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import List

import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.transport import MockTransport
from engine import SyncEngine
from protocol.events import Event


class FakeClock:
    """Millisecond clock the tests advance by hand."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def engine(transport, clock) -> SyncEngine:
    return SyncEngine(transport, clock=clock)


@pytest.fixture
def events(engine) -> List[Event]:
    """Every event the engine emits, in order."""
    received: List[Event] = []
    engine.subscribe(received.append)
    return received
