"""
Domain models for events, time slots and availability.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

if TYPE_CHECKING:
    from .selection import SelectionSet

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SlotType(str, Enum):
    """One of the three fixed daily periods."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def order(self) -> int:
        return _SLOT_ORDER[self]

    @classmethod
    def parse(cls, value: "str | SlotType") -> "SlotType":
        """Parse a slot name, raising ValueError for unknown names."""
        if isinstance(value, SlotType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown slot '{value}', expected one of: {names}") from None


_SLOT_ORDER = {SlotType.MORNING: 0, SlotType.AFTERNOON: 1, SlotType.EVENING: 2}

SLOT_LABELS = {
    SlotType.MORNING: "Morning",
    SlotType.AFTERNOON: "Afternoon",
    SlotType.EVENING: "Evening",
}


def parse_date(value: str) -> Date:
    """
    Parse a calendar date in YYYY-MM-DD form.

    Raises:
        ValueError: If the string is not a valid calendar date
    """
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").date()
    except ValueError as exc:
        raise ValueError(f"Invalid date '{value}': {exc}") from exc


@dataclass(frozen=True)
class TimeSlot:
    """
    A single (date, slot) cell of the availability grid.

    Identity is the (date, slot) pair; the date is kept as its ISO string
    because that is how it travels on the wire.
    """
    date: str
    slot: SlotType

    def __post_init__(self):
        parse_date(self.date)
        object.__setattr__(self, "slot", SlotType.parse(self.slot))

    @property
    def key(self) -> str:
        return f"{self.date}:{self.slot.value}"

    @classmethod
    def parse_key(cls, key: str) -> "TimeSlot":
        """Inverse of ``key``: ``"2024-01-15:morning"`` -> TimeSlot."""
        date_str, sep, slot = key.partition(":")
        if not sep:
            raise ValueError(f"Invalid slot key '{key}', expected DATE:SLOT")
        return cls(date=date_str, slot=SlotType.parse(slot))

    def sort_key(self) -> Tuple[str, int]:
        return (self.date, self.slot.order)

    def as_date(self) -> Date:
        return parse_date(self.date)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Event:
    """
    An event as readers see it. Passcode and creator token are never part
    of this view.
    """
    id: str
    title: str
    start_date: str
    is_locked: bool
    created_at: DateTime
    expires_at: DateTime
    final_slot: Optional[TimeSlot] = None

    def is_expired(self, now: Optional[DateTime] = None) -> bool:
        return self.expires_at < (now or pendulum.now("UTC"))


@dataclass(frozen=True)
class EventResponse:
    """One participant's persisted availability for an event."""
    id: int
    event_id: str
    nickname: str
    user_fingerprint: str
    selection: "SelectionSet"
    updated_at: DateTime


@dataclass(frozen=True)
class CreatedEvent:
    """Result of creating an event; the only time the secrets are handed out."""
    id: str
    passcode: str
    creator_token: str


@dataclass(frozen=True)
class SubmitResult:
    created: bool = False
    updated: bool = False


@dataclass(frozen=True)
class LeaderboardEntry:
    """Aggregated popularity of a single slot."""
    date: str
    slot: SlotType
    count: int
    participants: List[str] = field(default_factory=list)

    @property
    def time_slot(self) -> TimeSlot:
        return TimeSlot(date=self.date, slot=self.slot)


@dataclass(frozen=True)
class Leaderboard:
    """Ranked slots plus the largest count (never below 1)."""
    entries: List[LeaderboardEntry]
    max_count: int = 1

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
