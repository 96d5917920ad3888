"""
Aggregation of everyone's selections into a ranked leaderboard.

Pure functions only: the leaderboard is recomputed from its input on every
call and holds no state of its own.
"""

from typing import Dict, List, Mapping, Tuple

from .models import Leaderboard, LeaderboardEntry, SlotType, TimeSlot
from .selection import SelectionSet

MIN_INTENSITY = 0.15
MAX_INTENSITY = 0.6


def build_leaderboard(all_selections: Mapping[str, SelectionSet]) -> Leaderboard:
    """
    Count participants per (date, slot) and rank the slots.

    Participants are listed in the iteration order of ``all_selections``.
    Slots are sorted by count descending; ties keep the order in which the
    slot was first encountered.
    """
    counts: Dict[Tuple[str, SlotType], List[str]] = {}

    for nickname, selection in all_selections.items():
        for cell in selection:
            counts.setdefault((cell.date, cell.slot), []).append(nickname)

    entries = [
        LeaderboardEntry(date=date, slot=slot, count=len(names), participants=names)
        for (date, slot), names in counts.items()
    ]
    # sorted() is stable, so ties stay in first-seen order
    entries = sorted(entries, key=lambda entry: entry.count, reverse=True)

    max_count = max((entry.count for entry in entries), default=0)
    return Leaderboard(entries=entries, max_count=max(max_count, 1))


def slot_count(leaderboard: Leaderboard, cell: TimeSlot) -> int:
    for entry in leaderboard:
        if entry.date == cell.date and entry.slot is cell.slot:
            return entry.count
    return 0


def intensity(count: int, max_count: int) -> float:
    """Map a count onto a display intensity between 0.15 and 0.6."""
    if max_count <= 0:
        return 0.0
    ratio = count / max_count
    return MIN_INTENSITY + ratio * (MAX_INTENSITY - MIN_INTENSITY)
