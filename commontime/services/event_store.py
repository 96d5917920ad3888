"""
Protocol describing the event store behaviour needed by the services.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Tuple

from ..domain.models import CreatedEvent, Event, EventResponse, Leaderboard, SubmitResult, TimeSlot


class EventStoreProtocol(Protocol):
    """Implemented by the REST client and by the in-memory store."""

    async def create_event(
        self,
        title: str,
        start_date: str,
        passcode: Optional[str] = None,
    ) -> CreatedEvent:
        """Create an event and hand out its passcode and creator token."""

    async def fetch_event_and_responses(self, event_id: str) -> Tuple[Event, List[EventResponse]]:
        """Return the event and all responses, newest first."""

    async def submit_response(
        self,
        event_id: str,
        nickname: str,
        fingerprint: str,
        availability: Dict[str, List[str]],
    ) -> SubmitResult:
        """Create or overwrite the response owned by ``nickname``."""

    async def verify_passcode(self, event_id: str, passcode: str, caller_id: str = "anonymous") -> bool:
        """Check a passcode; throttled per caller and event."""

    async def lock_event(
        self,
        event_id: str,
        creator_token: str,
        final_slot: Optional[TimeSlot] = None,
    ) -> None:
        """Close the event for further responses."""

    async def get_heatmap(self, event_id: str) -> Leaderboard:
        """Server-side aggregation of all responses."""
