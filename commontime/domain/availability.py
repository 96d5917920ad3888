"""
Conversion between flat selections and the grouped wire form.

The store exchanges availability as ``{"2024-01-15": ["morning", "evening"]}``.
"""

from typing import Any, Dict, List, Mapping

from .exceptions import MalformedPayloadError
from .models import SlotType, TimeSlot
from .selection import SelectionSet


def group(selection: SelectionSet) -> Dict[str, List[str]]:
    """Group a selection by date; dates ascending, slots in display order."""
    availability: Dict[str, List[str]] = {}
    for cell in selection.sorted():
        availability.setdefault(cell.date, []).append(cell.slot.value)
    return availability


def flatten(availability: Mapping[str, Any]) -> SelectionSet:
    """
    Expand the grouped wire form back into a selection.

    Raises:
        MalformedPayloadError: If the payload is not a date -> slot list mapping
    """
    if not isinstance(availability, Mapping):
        raise MalformedPayloadError(
            f"Availability must be a mapping, got {type(availability).__name__}"
        )

    cells = []
    for date_str, slots in availability.items():
        if not isinstance(slots, (list, tuple)):
            raise MalformedPayloadError(
                f"Slots for {date_str!r} must be a list, got {type(slots).__name__}"
            )
        for slot in slots:
            try:
                cells.append(TimeSlot(date=date_str, slot=SlotType.parse(slot)))
            except ValueError as exc:
                raise MalformedPayloadError(str(exc)) from exc

    return SelectionSet(cells)
