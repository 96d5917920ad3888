"""
Service layer helpers that orchestrate the event store and domain logic.
"""

from .event_board import EventBoardService, create_event
from .event_store import EventStoreProtocol
from .session import SessionContext, SessionStorage, generate_fingerprint

__all__ = [
    "EventBoardService",
    "create_event",
    "EventStoreProtocol",
    "SessionContext",
    "SessionStorage",
    "generate_fingerprint",
]
