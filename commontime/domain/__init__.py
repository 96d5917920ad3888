"""
Domain layer - Pure selection, gesture and aggregation logic without I/O.
"""

from .aggregation import build_leaderboard, intensity
from .availability import flatten, group
from .drag import DragGestureInterpreter, DragMode, DragState
from .models import (
    CreatedEvent,
    Event,
    EventResponse,
    Leaderboard,
    LeaderboardEntry,
    SlotType,
    SubmitResult,
    TimeSlot,
)
from .selection import SelectionSet, SelectionStore

__all__ = [
    "build_leaderboard",
    "intensity",
    "flatten",
    "group",
    "DragGestureInterpreter",
    "DragMode",
    "DragState",
    "CreatedEvent",
    "Event",
    "EventResponse",
    "Leaderboard",
    "LeaderboardEntry",
    "SlotType",
    "SubmitResult",
    "TimeSlot",
    "SelectionSet",
    "SelectionStore",
]
