"""
Wire schemas for the event store.

Every payload crossing the store boundary is validated here and converted
into domain types straight away. Anything that does not fit raises
``MalformedPayloadError``.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

import pendulum
import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pendulum import DateTime

from ..domain.availability import flatten, group
from ..domain.exceptions import MalformedPayloadError
from ..domain.models import (
    CreatedEvent,
    Event,
    EventResponse,
    Leaderboard,
    LeaderboardEntry,
    SlotType,
    SubmitResult,
    TimeSlot,
)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: Type[PayloadT], data: Any) -> PayloadT:
    """Validate raw data against a schema, mapping failures to MalformedPayloadError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise MalformedPayloadError(
            f"Malformed {model.__name__} payload: {exc.error_count()} error(s)\n{exc}"
        ) from exc


def parse_timestamp(value: str) -> DateTime:
    try:
        parsed = pendulum.parse(value)
    except (ValueError, TypeError) as exc:
        raise MalformedPayloadError(f"Invalid timestamp {value!r}: {exc}") from exc
    if not isinstance(parsed, DateTime):
        raise MalformedPayloadError(f"Expected a timestamp, got {value!r}")
    return parsed


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TimeSlotPayload(_Payload):
    date: str
    slot: str

    def to_domain(self) -> TimeSlot:
        try:
            return TimeSlot(date=self.date, slot=SlotType.parse(self.slot))
        except ValueError as exc:
            raise MalformedPayloadError(str(exc)) from exc

    @classmethod
    def from_domain(cls, cell: TimeSlot) -> "TimeSlotPayload":
        return cls(date=cell.date, slot=cell.slot.value)


class EventPayload(_Payload):
    id: str
    title: str
    start_date: str
    is_locked: bool = False
    final_slot: Optional[TimeSlotPayload] = None
    created_at: str
    expires_at: str

    def to_domain(self) -> Event:
        return Event(
            id=self.id,
            title=self.title,
            start_date=self.start_date,
            is_locked=self.is_locked,
            final_slot=self.final_slot.to_domain() if self.final_slot else None,
            created_at=parse_timestamp(self.created_at),
            expires_at=parse_timestamp(self.expires_at),
        )


class StoredEventPayload(EventPayload):
    """Event row as the local store keeps it, secrets included."""
    passcode: str
    creator_token: str


class ResponsePayload(_Payload):
    id: int
    event_id: str
    nickname: str
    user_fingerprint: str
    availability: Dict[str, List[str]]
    updated_at: str

    def to_domain(self) -> EventResponse:
        return EventResponse(
            id=self.id,
            event_id=self.event_id,
            nickname=self.nickname,
            user_fingerprint=self.user_fingerprint,
            selection=flatten(self.availability),
            updated_at=parse_timestamp(self.updated_at),
        )

    @classmethod
    def from_domain(cls, response: EventResponse) -> "ResponsePayload":
        return cls(
            id=response.id,
            event_id=response.event_id,
            nickname=response.nickname,
            user_fingerprint=response.user_fingerprint,
            availability=group(response.selection),
            updated_at=response.updated_at.to_iso8601_string(),
        )


class EventWithResponsesPayload(_Payload):
    event: EventPayload
    responses: List[ResponsePayload] = Field(default_factory=list)


class CreatedEventPayload(_Payload):
    id: str
    passcode: str
    creator_token: str

    def to_domain(self) -> CreatedEvent:
        return CreatedEvent(id=self.id, passcode=self.passcode, creator_token=self.creator_token)


class SubmitResultPayload(_Payload):
    success: bool = True
    created: bool = False
    updated: bool = False

    def to_domain(self) -> SubmitResult:
        return SubmitResult(created=self.created, updated=self.updated)


class VerifyResultPayload(_Payload):
    valid: bool


class HeatmapSlotPayload(_Payload):
    slot_date: str
    slot_type: str
    participant_count: int
    names: List[str] = Field(default_factory=list)


class HeatmapPayload(_Payload):
    heatmap: List[HeatmapSlotPayload] = Field(default_factory=list)

    def to_domain(self) -> Leaderboard:
        entries = []
        for item in self.heatmap:
            cell = TimeSlotPayload(date=item.slot_date, slot=item.slot_type).to_domain()
            entries.append(LeaderboardEntry(
                date=cell.date,
                slot=cell.slot,
                count=item.participant_count,
                participants=list(item.names),
            ))
        max_count = max((entry.count for entry in entries), default=0)
        return Leaderboard(entries=entries, max_count=max(max_count, 1))

    @classmethod
    def from_domain(cls, leaderboard: Leaderboard) -> "HeatmapPayload":
        return cls(heatmap=[
            HeatmapSlotPayload(
                slot_date=entry.date,
                slot_type=entry.slot.value,
                participant_count=entry.count,
                names=list(entry.participants),
            )
            for entry in leaderboard
        ])


class StoreSnapshot(_Payload):
    """On-disk layout of the local JSON store."""
    events: List[StoredEventPayload] = Field(default_factory=list)
    responses: List[ResponsePayload] = Field(default_factory=list)
