"""
Application service for one participant working on one event.

The service owns the participant's local selection, keeps it reconciled
with the responses fetched from the store, and derives the group view
(everyone's selections, leaderboard, visible weeks) from both. Local edits
are never blocked on the store; only ``save`` and the other coroutines
reach it.
"""

from __future__ import annotations

import logging
from itertools import chain
from typing import Dict, List, Optional, Set

from ..domain.aggregation import build_leaderboard
from ..domain.availability import group
from ..domain.drag import DragGestureInterpreter
from ..domain.exceptions import CommonTimeError, SessionError
from ..domain.models import CreatedEvent, Event, EventResponse, Leaderboard, SlotType, SubmitResult, TimeSlot
from ..domain.selection import Listener, SelectionSet, SelectionStore
from ..domain.week_grid import (
    DEFAULT_MAX_WEEKS,
    display_week_indices,
    next_week_to_add,
    week_cells,
    week_start,
    weeks_with_data,
)
from .event_store import EventStoreProtocol
from .session import SessionContext

logger = logging.getLogger(__name__)

MAX_NICKNAME_LENGTH = 20


async def create_event(
    store: EventStoreProtocol,
    session: SessionContext,
    *,
    title: str,
    start_date: str,
    passcode: Optional[str] = None,
    nickname: Optional[str] = None,
) -> CreatedEvent:
    """
    Create an event and remember the creator credentials in the session.

    With a nickname the creator is joined straight away.
    """
    if nickname is not None:
        nickname = validate_nickname(nickname)

    created = await store.create_event(title=title, start_date=start_date, passcode=passcode)
    session.remember_creator(created.id, created.creator_token, created.passcode)
    if nickname is not None:
        session.nickname = nickname
    return created


def validate_nickname(nickname: str) -> str:
    nickname = nickname.strip()
    if not 1 <= len(nickname) <= MAX_NICKNAME_LENGTH:
        raise SessionError(f"Nickname must be between 1 and {MAX_NICKNAME_LENGTH} characters")
    return nickname


class EventBoardService:
    """
    Coordinates the local selection with the event store.

    Dependency inversion toward a protocol makes it easy to plug in the REST
    client or the in-memory store in tests.
    """

    def __init__(
        self,
        store: EventStoreProtocol,
        session: SessionContext,
        event_id: str,
        *,
        max_weeks: int = DEFAULT_MAX_WEEKS,
        on_change: Optional[Listener] = None,
    ) -> None:
        self._store = store
        self._session = session
        self.event_id = event_id
        self.max_weeks = max_weeks
        self._selection = SelectionStore(on_change=on_change)
        self._event: Optional[Event] = None
        self._responses: List[EventResponse] = []
        self._added_weeks: Set[int] = set()

    @property
    def event(self) -> Event:
        if self._event is None:
            raise SessionError(f"Event {self.event_id} has not been loaded yet")
        return self._event

    @property
    def responses(self) -> List[EventResponse]:
        return list(self._responses)

    @property
    def selection(self) -> SelectionStore:
        return self._selection

    @property
    def session(self) -> SessionContext:
        return self._session

    async def load(self) -> Event:
        """
        Fetch the event and every response, replacing what was fetched before.

        The participant's own response rehydrates the local selection unless
        the local selection has unsaved changes, which are kept pending.
        """
        event, responses = await self._store.fetch_event_and_responses(self.event_id)
        self._event = event
        self._responses = list(responses)
        self._rehydrate()
        return event

    async def join(self, nickname: str, passcode: Optional[str] = None) -> bool:
        """
        Take a nickname for this event, verifying the passcode unless the
        session already holds a verified one.
        """
        nickname = validate_nickname(nickname)

        if not self._session.is_verified(self.event_id):
            if passcode is None or not await self.verify_passcode(passcode):
                return False

        self._session.nickname = nickname
        await self.load()
        return True

    async def verify_passcode(self, passcode: str) -> bool:
        valid = await self._store.verify_passcode(
            self.event_id,
            passcode,
            caller_id=self._session.fingerprint,
        )
        if valid:
            self._session.remember_verified(self.event_id, passcode)
        return valid

    def own_response(self) -> Optional[EventResponse]:
        nickname = self._session.nickname
        for response in self._responses:
            if response.nickname == nickname:
                return response
        return None

    def all_selections(self) -> Dict[str, SelectionSet]:
        """
        Everyone's selections in response order, with the participant's own
        entry replaced by the local (possibly unsaved) selection.
        """
        selections = {r.nickname: r.selection for r in self._responses}
        nickname = self._session.nickname
        if nickname and (nickname in selections or self._selection.current):
            selections[nickname] = self._selection.current
        return selections

    def leaderboard(self) -> Leaderboard:
        return build_leaderboard(self.all_selections())

    def participants_for(self, cell: TimeSlot) -> List[str]:
        return [name for name, selection in self.all_selections().items() if cell in selection]

    def gesture(self) -> DragGestureInterpreter:
        return DragGestureInterpreter(
            is_selected=self._selection.is_selected,
            on_batch=self._selection.apply_batch,
        )

    def toggle(self, date: str, slot: SlotType) -> SelectionSet:
        return self._selection.toggle_single(date, slot)

    def clear(self) -> SelectionSet:
        return self._selection.clear()

    async def save(self) -> SubmitResult:
        """
        Submit the local selection and refetch.

        On failure the error propagates and the selection stays unsaved so
        the participant can retry.
        """
        nickname = self._session.require_nickname()
        submitted = self._selection.current

        try:
            result = await self._store.submit_response(
                self.event_id,
                nickname,
                self._session.fingerprint,
                group(submitted),
            )
        except CommonTimeError as exc:
            logger.warning("Saving selection of %s for %s failed: %s", nickname, self.event_id, exc)
            raise

        self._selection.mark_saved(submitted)
        logger.info(
            "Saved %d slot(s) for %s on event %s", len(submitted), nickname, self.event_id
        )
        await self.load()
        return result

    async def lock(self, final_slot: Optional[TimeSlot] = None) -> Event:
        creator_token = self._session.creator_tokens.get(self.event_id)
        if not creator_token:
            raise SessionError("Only the creator of this event can lock it")

        await self._store.lock_event(self.event_id, creator_token, final_slot)
        return await self.load()

    async def heatmap(self) -> Leaderboard:
        """Aggregation as computed by the store from persisted responses only."""
        return await self._store.get_heatmap(self.event_id)

    def weeks_to_display(self) -> List[int]:
        cells = chain.from_iterable(self.all_selections().values())
        with_data = weeks_with_data(self.event.start_date, cells)
        return display_week_indices(with_data, self._added_weeks, self.max_weeks)

    def add_week(self) -> Optional[int]:
        index = next_week_to_add(self.weeks_to_display(), self.max_weeks)
        if index is not None:
            self._added_weeks.add(index)
        return index

    def week_grid(self, week_index: int) -> List[List[TimeSlot]]:
        return week_cells(week_start(self.event.start_date, week_index))

    def _rehydrate(self) -> None:
        own = self.own_response()
        if own is None:
            return
        if self._selection.has_unsaved_changes:
            logger.info(
                "Keeping unsaved selection of %s over the fetched response", own.nickname
            )
            return
        self._selection.replace(own.selection)
