"""
Tests for the leaderboard aggregation.
"""

import pytest

from commontime.domain.aggregation import build_leaderboard, intensity, slot_count
from commontime.domain.models import SlotType
from commontime.domain.selection import SelectionSet

from conftest import cell


class TestBuildLeaderboard:
    """Tests for build_leaderboard."""

    def test_counts_and_ranks_slots(self):
        all_selections = {
            "alice": SelectionSet([cell("2024-01-15", "morning")]),
            "bob": SelectionSet([cell("2024-01-15", "morning"), cell("2024-01-16", "evening")]),
        }

        leaderboard = build_leaderboard(all_selections)

        assert [(e.date, e.slot, e.count, e.participants) for e in leaderboard] == [
            ("2024-01-15", SlotType.MORNING, 2, ["alice", "bob"]),
            ("2024-01-16", SlotType.EVENING, 1, ["bob"]),
        ]
        assert leaderboard.max_count == 2

    def test_participants_follow_input_order_not_alphabetical(self):
        shared = cell("2024-01-15", "evening")
        all_selections = {
            "zoe": SelectionSet([shared]),
            "adam": SelectionSet([shared]),
        }

        leaderboard = build_leaderboard(all_selections)

        assert leaderboard.entries[0].participants == ["zoe", "adam"]

    def test_ties_keep_first_seen_order(self):
        all_selections = {
            "alice": SelectionSet([cell("2024-01-17", "morning")]),
            "bob": SelectionSet([cell("2024-01-15", "evening")]),
        }

        leaderboard = build_leaderboard(all_selections)

        assert [e.date for e in leaderboard] == ["2024-01-17", "2024-01-15"]

    def test_empty_input_has_max_count_one(self):
        leaderboard = build_leaderboard({})

        assert leaderboard.entries == []
        assert leaderboard.max_count == 1

    def test_repeated_calls_are_identical(self):
        all_selections = {
            "alice": SelectionSet([cell("2024-01-15", "morning"), cell("2024-01-16", "morning")]),
            "bob": SelectionSet([cell("2024-01-16", "morning")]),
            "carol": SelectionSet([cell("2024-01-15", "afternoon")]),
        }

        first = build_leaderboard(all_selections)
        second = build_leaderboard(all_selections)

        assert first == second

    def test_count_matches_membership(self):
        target = cell("2024-01-16", "morning")
        all_selections = {
            "alice": SelectionSet([target]),
            "bob": SelectionSet([cell("2024-01-15", "morning")]),
            "carol": SelectionSet([target, cell("2024-01-15", "morning")]),
        }

        leaderboard = build_leaderboard(all_selections)

        expected = sum(1 for s in all_selections.values() if target in s)
        assert slot_count(leaderboard, target) == expected == 2
        assert slot_count(leaderboard, cell("2024-01-20", "evening")) == 0


class TestIntensity:
    """Tests for intensity scaling."""

    def test_bounds(self):
        assert intensity(0, 4) == pytest.approx(0.15)
        assert intensity(4, 4) == pytest.approx(0.6)
        assert intensity(2, 4) == pytest.approx(0.375)

    def test_non_positive_max(self):
        assert intensity(3, 0) == 0.0
