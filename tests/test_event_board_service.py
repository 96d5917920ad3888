"""
Tests for the EventBoardService orchestration layer.
"""

import asyncio

import pytest

from commontime.domain.exceptions import LockedError, SessionError, StoreError
from commontime.domain.models import SlotType
from commontime.services.event_board import EventBoardService, create_event
from commontime.services.session import SessionContext

from conftest import cell


class FailingStore:
    """Wraps a store and fails submissions on demand."""

    def __init__(self, inner):
        self._inner = inner
        self.fail_with = None
        self.submissions = []

    async def submit_response(self, event_id, nickname, fingerprint, availability):
        self.submissions.append(availability)
        if self.fail_with is not None:
            raise self.fail_with
        return await self._inner.submit_response(event_id, nickname, fingerprint, availability)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def _new_event(store, session=None):
    session = session or SessionContext(fingerprint="fp-creator")
    created = asyncio.run(create_event(store, session, title="Board games", start_date="2024-01-15", passcode="1234"))
    return created, session


def _board(store, event_id, nickname, fingerprint=None):
    session = SessionContext(nickname=nickname, fingerprint=fingerprint or f"fp-{nickname}")
    board = EventBoardService(store, session, event_id)
    asyncio.run(board.load())
    return board


class TestCreateAndJoin:
    """Tests for creating and joining events."""

    def test_create_event_remembers_creator(self, store):
        created, session = _new_event(store)

        assert session.is_creator(created.id)
        assert session.is_verified(created.id)

    def test_join_with_wrong_passcode(self, store):
        created, _ = _new_event(store)
        session = SessionContext(fingerprint="fp-alice")
        board = EventBoardService(store, session, created.id)

        assert asyncio.run(board.join("alice", "0000")) is False
        assert session.nickname is None

    def test_join_with_passcode(self, store):
        created, _ = _new_event(store)
        session = SessionContext(fingerprint="fp-alice")
        board = EventBoardService(store, session, created.id)

        assert asyncio.run(board.join("alice", "1234")) is True
        assert session.nickname == "alice"
        assert session.verified_events[created.id] == "1234"
        assert board.event.title == "Board games"

    def test_join_rejects_long_nickname(self, store):
        created, _ = _new_event(store)
        board = EventBoardService(store, SessionContext(), created.id)

        with pytest.raises(SessionError):
            asyncio.run(board.join("x" * 21, "1234"))

    def test_create_with_nickname(self, store):
        session = SessionContext(fingerprint="fp-carol")

        created = asyncio.run(create_event(
            store, session, title="Board games", start_date="2024-01-15", nickname=" carol "
        ))

        assert session.nickname == "carol"
        assert session.is_creator(created.id)

    def test_create_rejects_long_nickname(self, store):
        session = SessionContext(fingerprint="fp-carol")

        with pytest.raises(SessionError):
            asyncio.run(create_event(
                store, session, title="Board games", start_date="2024-01-15", nickname="x" * 21
            ))
        assert session.creator_tokens == {}

    def test_event_requires_load(self, store):
        board = EventBoardService(store, SessionContext(), "missing")

        with pytest.raises(SessionError):
            board.event


class TestSelectionReconciliation:
    """Local selection versus fetched responses."""

    def test_save_and_rehydrate(self, store):
        created, _ = _new_event(store)
        board = _board(store, created.id, "alice")

        board.gesture().run([cell("2024-01-15", "morning"), cell("2024-01-15", "afternoon")])
        asyncio.run(board.save())

        fresh = _board(store, created.id, "alice")
        assert fresh.selection.current == {cell("2024-01-15", "morning"), cell("2024-01-15", "afternoon")}
        assert not fresh.selection.has_unsaved_changes

    def test_unsaved_changes_survive_refetch(self, store):
        created, _ = _new_event(store)
        board = _board(store, created.id, "alice")
        board.toggle("2024-01-15", SlotType.MORNING)
        asyncio.run(board.save())

        board.toggle("2024-01-16", SlotType.EVENING)
        asyncio.run(board.load())

        assert board.selection.current == {cell("2024-01-15", "morning"), cell("2024-01-16", "evening")}
        assert board.selection.has_unsaved_changes

    def test_failed_save_keeps_selection_pending(self, store):
        created, _ = _new_event(store)
        failing = FailingStore(store)
        board = _board(failing, created.id, "alice")
        board.toggle("2024-01-15", SlotType.MORNING)
        failing.fail_with = StoreError("network down")

        with pytest.raises(StoreError):
            asyncio.run(board.save())

        assert board.selection.current == {cell("2024-01-15", "morning")}
        assert board.selection.has_unsaved_changes

        failing.fail_with = None
        asyncio.run(board.save())
        assert not board.selection.has_unsaved_changes
        assert failing.submissions[-1] == {"2024-01-15": ["morning"]}

    def test_save_on_locked_event(self, store):
        created, creator = _new_event(store)
        asyncio.run(store.lock_event(created.id, created.creator_token))
        board = _board(store, created.id, "alice")
        board.toggle("2024-01-15", SlotType.MORNING)

        with pytest.raises(LockedError):
            asyncio.run(board.save())
        assert board.selection.has_unsaved_changes

    def test_save_requires_nickname(self, store):
        created, _ = _new_event(store)
        board = EventBoardService(store, SessionContext(), created.id)
        asyncio.run(board.load())

        with pytest.raises(SessionError):
            asyncio.run(board.save())


class TestGroupView:
    """Everyone's selections and the leaderboard."""

    def test_own_entry_uses_local_selection(self, store):
        created, _ = _new_event(store)
        alice = _board(store, created.id, "alice")
        alice.toggle("2024-01-15", SlotType.MORNING)
        asyncio.run(alice.save())

        bob = _board(store, created.id, "bob")
        bob.toggle("2024-01-15", SlotType.MORNING)
        bob.toggle("2024-01-16", SlotType.EVENING)

        leaderboard = bob.leaderboard()

        assert [(e.date, e.slot, e.count, e.participants) for e in leaderboard] == [
            ("2024-01-15", SlotType.MORNING, 2, ["alice", "bob"]),
            ("2024-01-16", SlotType.EVENING, 1, ["bob"]),
        ]
        assert leaderboard.max_count == 2
        assert bob.participants_for(cell("2024-01-15", "morning")) == ["alice", "bob"]

    def test_local_deselect_hides_saved_entry(self, store):
        created, _ = _new_event(store)
        alice = _board(store, created.id, "alice")
        alice.toggle("2024-01-15", SlotType.MORNING)
        asyncio.run(alice.save())

        alice.toggle("2024-01-15", SlotType.MORNING)

        assert alice.leaderboard().entries == []
        # The store still has the saved response until the next save
        assert asyncio.run(alice.heatmap()).entries[0].participants == ["alice"]

    def test_weeks_to_display(self, store):
        created, _ = _new_event(store)
        board = _board(store, created.id, "alice")

        assert board.weeks_to_display() == [0]

        board.toggle("2024-01-30", SlotType.MORNING)
        assert board.weeks_to_display() == [2]

        assert board.add_week() == 0
        assert board.weeks_to_display() == [0, 2]

    def test_weeks_follow_local_deselect(self, store):
        created, _ = _new_event(store)
        board = _board(store, created.id, "alice")
        board.toggle("2024-01-30", SlotType.MORNING)
        asyncio.run(board.save())
        assert board.weeks_to_display() == [2]

        board.toggle("2024-01-30", SlotType.MORNING)

        assert board.weeks_to_display() == [0]

    def test_week_grid(self, store):
        created, _ = _new_event(store)
        board = _board(store, created.id, "alice")

        rows = board.week_grid(1)

        assert rows[0][0] == cell("2024-01-22", "morning")


class TestLock:
    """Locking through the service."""

    def test_creator_can_lock(self, store):
        created, creator = _new_event(store)
        board = EventBoardService(store, creator, created.id)

        event = asyncio.run(board.lock(cell("2024-01-16", "evening")))

        assert event.is_locked
        assert event.final_slot == cell("2024-01-16", "evening")

    def test_participant_cannot_lock(self, store):
        created, _ = _new_event(store)
        board = _board(store, created.id, "alice")

        with pytest.raises(SessionError):
            asyncio.run(board.lock())
