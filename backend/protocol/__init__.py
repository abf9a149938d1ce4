"""Protocol layer - field dispatch, message sessions, poll scheduling"""

from .dispatcher import FieldPathDispatcher
from .events import Event, EventType
from .scheduler import PollScheduler, SchedulerConfig
from .session import MessageSession

__all__ = [
    'FieldPathDispatcher', 'Event', 'EventType',
    'PollScheduler', 'SchedulerConfig', 'MessageSession',
]
