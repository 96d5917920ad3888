"""
In-memory event store for running without the hosted backend.

Enforces the same rules as the REST backend (expiry, locking, nickname
ownership, passcode throttling). Optionally keeps its rows in a JSON file so
separate CLI invocations see the same events.
"""

import hmac
import json
import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.aggregation import build_leaderboard
from ..domain.availability import flatten
from ..domain.exceptions import (
    ExpiredError,
    ForbiddenError,
    LockedError,
    MalformedPayloadError,
    NicknameConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..domain.models import (
    CreatedEvent,
    Event,
    EventResponse,
    Leaderboard,
    SubmitResult,
    TimeSlot,
    parse_date,
)
from .rate_limiter import PasscodeRateLimiter
from .schemas import (
    ResponsePayload,
    StoredEventPayload,
    StoreSnapshot,
    TimeSlotPayload,
    parse_payload,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

PASSCODE_RE = re.compile(r"^\d{4}$")
MAX_TITLE_LENGTH = 50
MAX_NICKNAME_LENGTH = 20


def generate_passcode() -> str:
    """Random 4-digit passcode without a leading zero."""
    return str(1000 + secrets.randbelow(9000))


@dataclass
class _EventRecord:
    id: str
    title: str
    passcode: str
    creator_token: str
    start_date: str
    created_at: DateTime
    expires_at: DateTime
    is_locked: bool = False
    final_slot: Optional[TimeSlot] = None

    def to_event(self) -> Event:
        return Event(
            id=self.id,
            title=self.title,
            start_date=self.start_date,
            is_locked=self.is_locked,
            final_slot=self.final_slot,
            created_at=self.created_at,
            expires_at=self.expires_at,
        )


class InMemoryEventStore:
    """
    Event store kept in process memory.

    Args:
        data_file: Optional JSON file to load from and write back to
        ttl_days: Lifetime of newly created events
        rate_limiter: Throttle for passcode attempts
        clock: Source of "now", injectable for tests
    """

    def __init__(
        self,
        data_file: Optional[Path] = None,
        ttl_days: int = 30,
        rate_limiter: Optional[PasscodeRateLimiter] = None,
        clock: Optional[Callable[[], DateTime]] = None
    ):
        self.data_file = data_file
        self.ttl_days = ttl_days
        self._clock = clock or (lambda: pendulum.now("UTC"))
        self._rate_limiter = rate_limiter or PasscodeRateLimiter(clock=self._clock)
        self._events: Dict[str, _EventRecord] = {}
        self._responses: Dict[Tuple[str, str], EventResponse] = {}
        self._next_response_id = 1
        self._load()

    async def create_event(
        self,
        title: str,
        start_date: str,
        passcode: Optional[str] = None
    ) -> CreatedEvent:
        title = (title or "").strip()
        if not 1 <= len(title) <= MAX_TITLE_LENGTH:
            raise ValidationError(f"Title must be between 1 and {MAX_TITLE_LENGTH} characters")
        if not start_date:
            raise ValidationError("A start date is required")
        try:
            parse_date(start_date)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        if not passcode or not PASSCODE_RE.match(passcode):
            passcode = generate_passcode()

        now = self._clock()
        record = _EventRecord(
            id=str(uuid.uuid4()),
            title=title,
            passcode=passcode,
            creator_token=secrets.token_hex(16),
            start_date=start_date,
            created_at=now,
            expires_at=now.add(days=self.ttl_days),
        )
        self._events[record.id] = record
        self._save()

        logger.info("Created event %s (%s)", record.id, title)
        return CreatedEvent(id=record.id, passcode=record.passcode, creator_token=record.creator_token)

    async def fetch_event_and_responses(self, event_id: str) -> Tuple[Event, List[EventResponse]]:
        record = self._get_record(event_id)
        self._ensure_not_expired(record)

        responses = [r for (eid, _), r in self._responses.items() if eid == event_id]
        responses.sort(key=lambda r: (r.updated_at, r.id), reverse=True)
        return record.to_event(), responses

    async def submit_response(
        self,
        event_id: str,
        nickname: str,
        fingerprint: str,
        availability: Dict[str, List[str]]
    ) -> SubmitResult:
        if not event_id:
            raise ValidationError("An event id is required")
        if not nickname or len(nickname) > MAX_NICKNAME_LENGTH:
            raise ValidationError(f"Nickname must be between 1 and {MAX_NICKNAME_LENGTH} characters")
        if not fingerprint:
            raise ValidationError("A user fingerprint is required")
        selection = flatten(availability)

        record = self._get_record(event_id)
        if record.is_locked:
            raise LockedError("The event is locked and no longer accepts changes")
        self._ensure_not_expired(record)

        now = self._clock()
        existing = self._responses.get((event_id, nickname))
        if existing is not None:
            if existing.user_fingerprint != fingerprint:
                raise NicknameConflictError(f"The nickname '{nickname}' is already taken")
            self._responses[(event_id, nickname)] = EventResponse(
                id=existing.id,
                event_id=event_id,
                nickname=nickname,
                user_fingerprint=fingerprint,
                selection=selection,
                updated_at=now,
            )
            self._save()
            logger.debug("Updated response of %s for event %s", nickname, event_id)
            return SubmitResult(updated=True)

        self._responses[(event_id, nickname)] = EventResponse(
            id=self._next_response_id,
            event_id=event_id,
            nickname=nickname,
            user_fingerprint=fingerprint,
            selection=selection,
            updated_at=now,
        )
        self._next_response_id += 1
        self._save()
        logger.debug("Created response of %s for event %s", nickname, event_id)
        return SubmitResult(created=True)

    async def verify_passcode(self, event_id: str, passcode: str, caller_id: str = "anonymous") -> bool:
        self._rate_limiter.hit(caller_id, event_id)

        if not passcode or not PASSCODE_RE.match(passcode):
            return False

        record = self._get_record(event_id)
        self._ensure_not_expired(record)
        return hmac.compare_digest(record.passcode, passcode)

    async def lock_event(
        self,
        event_id: str,
        creator_token: str,
        final_slot: Optional[TimeSlot] = None
    ) -> None:
        if not creator_token:
            raise ForbiddenError("Creator credentials are required to lock an event")

        record = self._get_record(event_id)
        if not hmac.compare_digest(record.creator_token, creator_token):
            raise ForbiddenError("Not allowed to lock this event")
        if record.is_locked:
            raise LockedError("The event is already locked")

        record.is_locked = True
        record.final_slot = final_slot
        self._save()
        logger.info("Locked event %s (final slot %s)", event_id, final_slot)

    async def get_heatmap(self, event_id: str) -> Leaderboard:
        self._get_record(event_id)
        _, responses = await self.fetch_event_and_responses(event_id)
        return build_leaderboard({r.nickname: r.selection for r in responses})

    def _get_record(self, event_id: str) -> _EventRecord:
        record = self._events.get(event_id)
        if record is None:
            raise NotFoundError(f"Event {event_id} does not exist")
        return record

    def _ensure_not_expired(self, record: _EventRecord) -> None:
        if record.expires_at < self._clock():
            raise ExpiredError(f"Event {record.id} has expired")

    def _load(self) -> None:
        """Load rows from the data file, if one is configured and present."""
        if self.data_file is None or not self.data_file.exists():
            return

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise MalformedPayloadError(f"Data file {self.data_file} is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Cannot read data file {self.data_file}: {exc}") from exc

        snapshot = parse_payload(StoreSnapshot, data)

        for item in snapshot.events:
            self._events[item.id] = _EventRecord(
                id=item.id,
                title=item.title,
                passcode=item.passcode,
                creator_token=item.creator_token,
                start_date=item.start_date,
                created_at=parse_timestamp(item.created_at),
                expires_at=parse_timestamp(item.expires_at),
                is_locked=item.is_locked,
                final_slot=item.final_slot.to_domain() if item.final_slot else None,
            )
        for item in snapshot.responses:
            response = item.to_domain()
            self._responses[(response.event_id, response.nickname)] = response
            self._next_response_id = max(self._next_response_id, response.id + 1)

        logger.debug(
            "Loaded %d event(s) and %d response(s) from %s",
            len(self._events), len(self._responses), self.data_file
        )

    def _save(self) -> None:
        if self.data_file is None:
            return

        snapshot = StoreSnapshot(
            events=[
                StoredEventPayload(
                    id=record.id,
                    title=record.title,
                    passcode=record.passcode,
                    creator_token=record.creator_token,
                    start_date=record.start_date,
                    is_locked=record.is_locked,
                    final_slot=TimeSlotPayload.from_domain(record.final_slot) if record.final_slot else None,
                    created_at=record.created_at.to_iso8601_string(),
                    expires_at=record.expires_at.to_iso8601_string(),
                )
                for record in self._events.values()
            ],
            responses=[ResponsePayload.from_domain(r) for r in self._responses.values()],
        )

        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_file, "w", encoding="utf-8") as f:
            json.dump(snapshot.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
