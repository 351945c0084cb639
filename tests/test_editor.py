"""Unit tests for the editor session (modes, pointer edits, and history)."""

import pytest

from element_cloner.canvas.editor import EditorSession
from element_cloner.status import FilterState, StatusBus, StatusMessage
from element_cloner.utils.constants import (
    MARKER_DELETE_SELECTED,
    MARKER_EXPORT_SELECTED,
    MARKER_HOVER,
    MARKER_RESIZABLE,
)

from conftest import fragment


def last_text(status: StatusBus) -> str:
    return [e for e in status.recent if isinstance(e, StatusMessage)][-1].text


def last_state(status: StatusBus) -> FilterState:
    return [e for e in status.recent if isinstance(e, FilterState)][-1]


class EditorTestCase:
    """Opens an editor on two stacked 100x50 fragments at (40, 40) and (40, 110)."""

    def setup_method(self):
        self.status = StatusBus(log_events=False)
        self.editor = EditorSession(self.status, 1000, 800)
        self.first = fragment(width=100, height=50)
        self.second = fragment(width=100, height=50)
        self.editor.open([self.first, self.second])

    def screen(self, wx, wy):
        return self.editor.engine.state.to_screen(wx, wy)

    def click_world(self, wx, wy):
        return self.editor.click(*self.screen(wx, wy))

    def drag_world(self, start, end):
        self.editor.pointer_down(*self.screen(*start))
        self.editor.pointer_move(*self.screen(*end))
        self.editor.pointer_up(*self.screen(*end))


class TestOpenAndModes(EditorTestCase):

    def test_open_lays_out_column(self):
        assert self.editor.active
        assert self.editor.world.fragments == [self.first, self.second]
        assert self.first.offset_rect().top == 40
        assert self.second.offset_rect().top == 110
        assert last_text(self.status) == "Editor Opened. Use toolbar to Refine, Crop, or Export."
        assert last_state(self.status) == FilterState('pan', False, False)

    def test_open_with_nothing(self):
        editor = EditorSession(self.status)
        assert editor.open([]) is False
        assert not editor.active
        assert last_text(self.status) == "Nothing to edit. Pick elements first."

    def test_aliases_and_unknown_modes(self):
        assert self.editor.set_mode('select') == 'move'
        assert self.editor.set_mode('none') == 'pan'
        assert self.editor.set_mode('lasso') == 'pan'

    def test_toggle_returns_to_pan(self):
        assert self.editor.toggle_mode('delete') == 'delete'
        assert self.editor.toggle_mode('delete') == 'pan'
        assert last_state(self.status).mode == 'pan'

    def test_export_pick_entry_message(self):
        self.editor.set_mode('export-pick')
        assert last_text(self.status) == "Select elements one by one to export them together."

    def test_exit_drops_composition(self):
        self.editor.exit()
        assert not self.editor.active
        assert len(self.editor.world) == 0
        assert not self.editor.history.can_undo
        assert last_text(self.status) == "Editor closed."

    def test_zoom_buttons_and_wheel(self):
        scale = self.editor.engine.state.scale
        assert self.editor.zoom_in() == pytest.approx(scale + 0.1)
        assert self.editor.zoom_out() == pytest.approx(scale)

        self.editor.wheel(-100)
        assert self.editor.engine.state.scale == pytest.approx(scale + 0.1)


class TestSelections(EditorTestCase):

    def test_delete_flow_with_undo(self):
        self.editor.set_mode('delete')
        assert self.click_world(90, 65) is self.first
        assert self.editor.markers.has(self.first.uid, MARKER_DELETE_SELECTED)

        assert self.editor.execute_delete() == 1
        assert self.editor.world.fragments == [self.second]
        assert last_text(self.status) == "Deleted 1 element(s)"
        assert self.editor.delete_selection == []

        self.editor.undo()
        assert self.editor.world.fragments == [self.first, self.second]
        assert last_state(self.status) == FilterState('delete', False, True)

    def test_delete_in_any_click_order_restores_order(self):
        third = self.editor.world.add(fragment(width=100, height=50), 40, 180)
        self.editor.set_mode('delete')
        self.click_world(90, 205)
        self.click_world(90, 135)

        assert self.editor.execute_delete() == 2
        self.editor.undo()
        assert self.editor.world.fragments == [self.first, self.second, third]

    def test_click_twice_deselects(self):
        self.editor.set_mode('delete')
        self.click_world(90, 65)
        self.click_world(90, 65)
        assert self.editor.delete_selection == []
        assert self.editor.execute_delete() == 0

    def test_leaving_mode_clears_selection(self):
        self.editor.set_mode('export-pick')
        self.click_world(90, 65)
        assert self.editor.export_selection == [self.first]

        self.editor.set_mode('pan')
        assert self.editor.export_selection == []
        assert self.editor.markers.keys_with(MARKER_EXPORT_SELECTED) == []

    def test_hover_stack_cycles_and_nested_picks_collapse(self):
        inner = self.first.append(fragment(left=10, top=10, width=20, height=20))
        self.editor.set_mode('delete')

        self.editor.pointer_move(*self.screen(55, 55))
        assert self.editor.hovered is inner
        assert self.editor.markers.has(inner.uid, MARKER_HOVER)

        self.editor.wheel(100, shift=True)
        assert self.editor.hovered is self.first
        assert last_text(self.status) == "Depth: 2/2 (<div>) - Shift+Scroll to cycle"

        self.editor.click(*self.screen(55, 55))
        self.editor.wheel(100, shift=True)
        self.editor.click(*self.screen(55, 55))
        assert self.editor.delete_selection == [self.first, inner]

        assert self.editor.execute_delete() == 1
        assert self.editor.world.fragments == [self.second]

    def test_resize_marks_once(self):
        self.editor.set_mode('resize')
        self.click_world(90, 65)
        self.click_world(90, 65)

        assert self.editor.markers.has(self.first.uid, MARKER_RESIZABLE)
        assert len(self.editor.history.undo_stack) == 1

        self.editor.undo()
        assert not self.editor.markers.has(self.first.uid, MARKER_RESIZABLE)

    def test_click_on_empty_canvas(self):
        self.editor.set_mode('delete')
        assert self.click_world(500, 500) is None


class TestMove(EditorTestCase):

    def test_drop_on_empty_canvas(self):
        self.editor.set_mode('move')
        self.drag_world((90, 65), (290, 65))

        assert self.first.parent is self.editor.world.root
        assert self.first.placement() == ('40px', '240px', 'absolute')

        self.editor.undo()
        assert self.first.placement() == ('40px', '40px', 'absolute')
        self.editor.redo()
        assert self.first.placement() == ('40px', '240px', 'absolute')

    def test_drop_onto_fragment_reparents(self):
        self.editor.set_mode('move')
        self.drag_world((90, 65), (90, 135))

        assert self.first.parent is self.second
        assert self.first.placement() == ('0px', '0px', 'absolute')
        assert self.editor.world.fragments == [self.second]

        self.editor.undo()
        assert self.editor.world.fragments == [self.first, self.second]

    def test_click_without_motion_records_nothing(self):
        self.editor.set_mode('move')
        self.editor.pointer_down(*self.screen(90, 65))
        self.editor.pointer_up(*self.screen(90, 65))

        assert not self.editor.history.can_undo
        assert self.first.placement() == ('40px', '40px', 'absolute')

    def test_undo_cancels_drag_in_progress(self):
        self.editor.set_mode('move')
        self.editor.pointer_down(*self.screen(90, 65))
        self.editor.pointer_move(*self.screen(300, 300))
        self.editor.undo()

        assert self.editor.drag is None
        assert self.first.placement() == ('40px', '40px', 'absolute')

    def test_add_fragment_is_undoable(self):
        cx, _ = self.editor.engine.world_center()
        extra = self.editor.add_fragment(fragment(width=20, height=20))

        assert extra in self.editor.world
        assert extra.offset_rect().left == pytest.approx(cx - 10, abs=0.01)

        self.editor.undo()
        assert extra not in self.editor.world


class TestCropMode(EditorTestCase):

    def test_crop_over_empty_canvas(self):
        self.editor.set_mode('crop')
        assert last_text(self.status) == "Click and drag on the canvas to define your export area."

        self.drag_world((150, 170), (190, 210))

        assert self.editor.engine.crop.rect is not None
        assert last_text(self.status) == "Zoomed to crop. The background has fallen away. Ready to export."

    def test_crop_cannot_start_on_fragment(self):
        self.editor.set_mode('crop')
        self.editor.pointer_down(*self.screen(90, 65))
        assert not self.editor.engine.crop.active

    def test_committed_crop_survives_mode_change(self):
        self.editor.set_mode('crop')
        self.drag_world((150, 170), (190, 210))
        self.editor.set_mode('pan')
        assert self.editor.engine.crop.rect is not None
