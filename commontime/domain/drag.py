"""
Drag gesture interpreter for the availability grid.

Turns a pointer-down / move / up sequence over grid cells into exactly one
batched selection change. While the gesture runs, touched cells preview the
pending change without touching the committed selection.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set

from .models import TimeSlot


class DragMode(str, Enum):
    SELECT = "select"
    DESELECT = "deselect"


@dataclass
class DragState:
    """Transient state of an active gesture; never persisted."""
    mode: DragMode
    touched_keys: Set[str] = field(default_factory=set)
    active: bool = True


BatchHandler = Callable[[List[TimeSlot], bool], object]
MembershipCheck = Callable[[TimeSlot], bool]


class DragGestureInterpreter:
    """
    Reconciles pointer events into a single batch toggle.

    Args:
        is_selected: Returns the committed membership of a cell
        on_batch: Receives ``(cells, select)`` once per finished gesture
    """

    def __init__(self, is_selected: MembershipCheck, on_batch: BatchHandler):
        self._is_selected = is_selected
        self._on_batch = on_batch
        self._state: Optional[DragState] = None

    @property
    def state(self) -> Optional[DragState]:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is not None and self._state.active

    def start(self, cell: TimeSlot) -> DragState:
        # Painting mode is the negation of the first cell's membership
        mode = DragMode.DESELECT if self._is_selected(cell) else DragMode.SELECT
        self._state = DragState(mode=mode, touched_keys={cell.key})
        return self._state

    def move_over(self, cell: TimeSlot) -> None:
        if not self.is_active:
            return
        self._state.touched_keys.add(cell.key)

    def end(self) -> Optional[List[TimeSlot]]:
        """
        Finish the gesture and emit its batch.

        Returns the emitted cells, or None when no gesture was active.
        """
        state = self._state
        self._state = None
        if state is None or not state.active or not state.touched_keys:
            return None

        cells = sorted(
            (TimeSlot.parse_key(key) for key in state.touched_keys),
            key=TimeSlot.sort_key
        )
        self._on_batch(cells, state.mode is DragMode.SELECT)
        return cells

    def leave(self) -> Optional[List[TimeSlot]]:
        """Pointer left the grid; the partial gesture is committed, not cancelled."""
        return self.end()

    def displayed_selected(self, cell: TimeSlot) -> bool:
        """Selected state a cell should render with, including the live preview."""
        if self.is_active and cell.key in self._state.touched_keys:
            return self._state.mode is DragMode.SELECT
        return self._is_selected(cell)

    def run(self, cells: Iterable[TimeSlot]) -> Optional[List[TimeSlot]]:
        """Replay a full gesture: start on the first cell, move over the rest, end."""
        iterator = iter(cells)
        first = next(iterator, None)
        if first is None:
            return None
        self.start(first)
        for cell in iterator:
            self.move_over(cell)
        return self.end()
