"""
Tests for the drag gesture interpreter.
"""

from commontime.domain.drag import DragGestureInterpreter, DragMode
from commontime.domain.selection import SelectionSet, SelectionStore

from conftest import cell

MON_MORNING = cell("2024-01-15", "morning")
MON_AFTERNOON = cell("2024-01-15", "afternoon")
TUE_MORNING = cell("2024-01-16", "morning")


def _interpreter(store: SelectionStore, batches=None):
    def on_batch(cells, select):
        if batches is not None:
            batches.append((list(cells), select))
        store.apply_batch(cells, select)

    return DragGestureInterpreter(is_selected=store.is_selected, on_batch=on_batch)


class TestDragGesture:
    """Tests for DragGestureInterpreter."""

    def test_drag_over_empty_cells_selects_them(self):
        store = SelectionStore()
        batches = []
        gesture = _interpreter(store, batches)

        gesture.start(MON_MORNING)
        gesture.move_over(MON_AFTERNOON)
        gesture.end()

        assert batches == [([MON_MORNING, MON_AFTERNOON], True)]
        assert store.current == {MON_MORNING, MON_AFTERNOON}

    def test_starting_on_selected_cell_deselects(self):
        store = SelectionStore(SelectionSet([MON_MORNING, MON_AFTERNOON, TUE_MORNING]))
        gesture = _interpreter(store)

        state = gesture.start(MON_MORNING)
        gesture.move_over(TUE_MORNING)
        gesture.end()

        assert state.mode is DragMode.DESELECT
        assert store.current == {MON_AFTERNOON}

    def test_select_mode_keeps_already_selected_cells(self):
        store = SelectionStore(SelectionSet([MON_AFTERNOON]))
        gesture = _interpreter(store)

        gesture.start(MON_MORNING)
        gesture.move_over(MON_AFTERNOON)
        gesture.end()

        assert store.current == {MON_MORNING, MON_AFTERNOON}

    def test_repeated_moves_are_idempotent(self):
        store = SelectionStore()
        batches = []
        gesture = _interpreter(store, batches)

        gesture.start(MON_MORNING)
        for _ in range(3):
            gesture.move_over(MON_AFTERNOON)
            gesture.move_over(MON_MORNING)

        assert gesture.state.touched_keys == {MON_MORNING.key, MON_AFTERNOON.key}
        gesture.end()
        assert len(batches) == 1
        assert len(batches[0][0]) == 2

    def test_tap_equals_toggle_single(self):
        for initial in (SelectionSet(), SelectionSet([MON_MORNING])):
            tapped = SelectionStore(initial)
            toggled = SelectionStore(initial)
            gesture = _interpreter(tapped)

            gesture.start(MON_MORNING)
            gesture.end()
            toggled.toggle_single(MON_MORNING.date, MON_MORNING.slot)

            assert tapped.current == toggled.current

    def test_leaving_the_grid_commits_partial_gesture(self):
        store = SelectionStore()
        gesture = _interpreter(store)

        gesture.start(MON_MORNING)
        gesture.move_over(TUE_MORNING)
        gesture.leave()

        assert store.current == {MON_MORNING, TUE_MORNING}
        assert not gesture.is_active

    def test_end_fires_exactly_once(self):
        store = SelectionStore()
        batches = []
        gesture = _interpreter(store, batches)

        gesture.start(MON_MORNING)
        gesture.end()
        gesture.end()
        gesture.leave()

        assert len(batches) == 1

    def test_moves_without_active_gesture_are_ignored(self):
        store = SelectionStore()
        batches = []
        gesture = _interpreter(store, batches)

        gesture.move_over(MON_MORNING)

        assert gesture.end() is None
        assert batches == []
        assert store.current == set()

    def test_preview_overrides_committed_state_only_while_dragging(self):
        store = SelectionStore(SelectionSet([MON_AFTERNOON]))
        gesture = _interpreter(store)

        gesture.start(MON_MORNING)

        # Touched cell previews the pending selection before anything is committed
        assert gesture.displayed_selected(MON_MORNING) is True
        assert store.current == {MON_AFTERNOON}
        # Untouched cells show their committed state
        assert gesture.displayed_selected(MON_AFTERNOON) is True
        assert gesture.displayed_selected(TUE_MORNING) is False

        gesture.end()
        assert gesture.displayed_selected(MON_MORNING) is True
        assert gesture.displayed_selected(TUE_MORNING) is False

    def test_preview_in_deselect_mode(self):
        store = SelectionStore(SelectionSet([MON_MORNING, MON_AFTERNOON]))
        gesture = _interpreter(store)

        gesture.start(MON_MORNING)
        gesture.move_over(MON_AFTERNOON)

        assert gesture.displayed_selected(MON_MORNING) is False
        assert gesture.displayed_selected(MON_AFTERNOON) is False
        assert store.is_selected(MON_AFTERNOON)

    def test_run_replays_a_whole_gesture(self):
        store = SelectionStore()
        gesture = _interpreter(store)

        emitted = gesture.run([MON_MORNING, MON_AFTERNOON, MON_MORNING])

        assert emitted == [MON_MORNING, MON_AFTERNOON]
        assert store.current == {MON_MORNING, MON_AFTERNOON}
        assert gesture.run([]) is None
