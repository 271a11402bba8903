"""Stateful services behind the quiz manager."""

from .key_value_store import InMemoryStore, JsonDirectoryStore, KeyValueStore
from .quiz_repository import QuizRepository
from .quiz_session import QuizSession, SessionStatus
from .scheduling import ManualScheduler, Scheduler, ThreadingScheduler
from .undo_coordinator import UndoCoordinator, UndoEnvelope

__all__ = [
    "InMemoryStore",
    "JsonDirectoryStore",
    "KeyValueStore",
    "ManualScheduler",
    "QuizRepository",
    "QuizSession",
    "Scheduler",
    "SessionStatus",
    "ThreadingScheduler",
    "UndoCoordinator",
    "UndoEnvelope",
]
