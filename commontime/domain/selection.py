"""
Selection set and store for one participant's availability.

A selection is a plain set of (date, slot) cells. Batch mutations are set
union or set difference, never per-cell toggles, which makes them idempotent.
"""

from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional

from .models import SlotType, TimeSlot


class SelectionSet:
    """
    Immutable set of TimeSlot values owned by a single participant.

    Invariant: no duplicate (date, slot) pair; membership is binary.
    """

    __slots__ = ("_slots",)

    def __init__(self, slots: Iterable[TimeSlot] = ()):
        self._slots: FrozenSet[TimeSlot] = frozenset(slots)

    def __contains__(self, item: object) -> bool:
        return item in self._slots

    def __iter__(self) -> Iterator[TimeSlot]:
        return iter(self.sorted())

    def __len__(self) -> int:
        return len(self._slots)

    def __bool__(self) -> bool:
        return bool(self._slots)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SelectionSet):
            return self._slots == other._slots
        if isinstance(other, (set, frozenset)):
            return self._slots == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._slots)

    def __repr__(self) -> str:
        keys = ", ".join(slot.key for slot in self.sorted())
        return f"SelectionSet({{{keys}}})"

    def contains(self, date: str, slot: SlotType) -> bool:
        return TimeSlot(date=date, slot=slot) in self._slots

    def sorted(self) -> List[TimeSlot]:
        """Display order: date ascending, then morning < afternoon < evening."""
        return sorted(self._slots, key=TimeSlot.sort_key)

    def as_frozenset(self) -> FrozenSet[TimeSlot]:
        return self._slots

    def apply_batch(self, pairs: Iterable[TimeSlot], select: bool) -> "SelectionSet":
        """
        Apply one select/deselect operation uniformly to ``pairs``.

        Selecting is a union (cells already selected stay selected),
        deselecting is a difference. Both are idempotent.
        """
        batch = frozenset(pairs)
        if select:
            return SelectionSet(self._slots | batch)
        return SelectionSet(self._slots - batch)

    def toggle(self, cell: TimeSlot) -> "SelectionSet":
        return self.apply_batch([cell], select=cell not in self._slots)


Listener = Callable[[SelectionSet], None]


class SelectionStore:
    """
    Holds the current participant's selection and the last saved snapshot.

    Each public mutation is one state transition and notifies the listener
    once, however many cells it touched.
    """

    def __init__(
        self,
        initial: Optional[SelectionSet] = None,
        on_change: Optional[Listener] = None
    ):
        self._current = initial or SelectionSet()
        self._saved = self._current
        self._on_change = on_change

    @property
    def current(self) -> SelectionSet:
        return self._current

    @property
    def saved(self) -> SelectionSet:
        return self._saved

    @property
    def has_unsaved_changes(self) -> bool:
        return self._current != self._saved

    def is_selected(self, cell: TimeSlot) -> bool:
        return cell in self._current

    def apply_batch(self, pairs: Iterable[TimeSlot], select: bool) -> SelectionSet:
        return self._commit(self._current.apply_batch(pairs, select))

    def toggle_single(self, date: str, slot: SlotType) -> SelectionSet:
        cell = TimeSlot(date=date, slot=slot)
        return self.apply_batch([cell], select=cell not in self._current)

    def clear(self) -> SelectionSet:
        return self._commit(SelectionSet())

    def replace(self, selection: SelectionSet, saved: bool = True) -> SelectionSet:
        """Overwrite the selection wholesale, e.g. when rehydrating from the store."""
        if saved:
            self._saved = selection
        return self._commit(selection)

    def mark_saved(self, selection: Optional[SelectionSet] = None) -> None:
        """Record ``selection`` (default: the current one) as persisted."""
        self._saved = self._current if selection is None else selection

    def _commit(self, selection: SelectionSet) -> SelectionSet:
        self._current = selection
        if self._on_change is not None:
            self._on_change(selection)
        return selection
