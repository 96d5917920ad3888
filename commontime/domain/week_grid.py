"""
Week-by-week layout of an event's availability grid.

Weeks start on Monday. Week 0 is the week containing the event's start date.
"""

from typing import Iterable, List, Optional, Set

import pendulum
from pendulum import Date

from .models import SlotType, TimeSlot, parse_date

DAYS_PER_WEEK = 7
DEFAULT_MAX_WEEKS = 4


def monday_of(day: Date) -> Date:
    return day.subtract(days=day.weekday())


def week_start(start_date: str, week_index: int) -> Date:
    """Monday of the given week of an event."""
    return monday_of(parse_date(start_date)).add(weeks=week_index)


def week_dates(monday: Date) -> List[str]:
    return [monday.add(days=offset).to_date_string() for offset in range(DAYS_PER_WEEK)]


def week_cells(monday: Date) -> List[List[TimeSlot]]:
    """
    Cells of one week as rows of slots, each row spanning Monday..Sunday.
    """
    dates = week_dates(monday)
    return [
        [TimeSlot(date=date_str, slot=slot) for date_str in dates]
        for slot in SlotType
    ]


def week_index_of(start_date: str, date_str: str) -> int:
    base = monday_of(parse_date(start_date))
    target = monday_of(parse_date(date_str))
    return base.diff(target, False).in_days() // DAYS_PER_WEEK


def weeks_with_data(start_date: str, cells: Iterable[TimeSlot]) -> Set[int]:
    """Indices of weeks (from 0) that contain at least one selected cell."""
    indices: Set[int] = set()
    for cell in cells:
        index = week_index_of(start_date, cell.date)
        if index >= 0:
            indices.add(index)
    return indices


def display_week_indices(
    with_data: Iterable[int],
    added: Iterable[int] = (),
    max_weeks: int = DEFAULT_MAX_WEEKS
) -> List[int]:
    """
    Weeks to show: those with data plus explicitly added ones, limited to
    the first ``max_weeks``. Falls back to week 0 when nothing qualifies.
    """
    shown = {
        index for index in list(with_data) + list(added)
        if 0 <= index < max_weeks
    }
    if not shown:
        shown.add(0)
    return sorted(shown)


def next_week_to_add(displayed: Iterable[int], max_weeks: int = DEFAULT_MAX_WEEKS) -> Optional[int]:
    """First week index not yet displayed, or None once all weeks are shown."""
    taken = set(displayed)
    for index in range(max_weeks):
        if index not in taken:
            return index
    return None


def is_today(date_str: str, tz: str = "UTC") -> bool:
    return date_str == pendulum.today(tz).to_date_string()
