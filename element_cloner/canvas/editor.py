"""
Editor session over the canvas world.

Holds the composition, the viewport engine, the command log, and the
tool mode, and turns pointer input (in screen coordinates) into edits.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..snapshot.markers import MarkerOverlay
from ..snapshot.nodes import FragmentNode, px
from ..status import FilterState, StatusBus
from ..utils.log import get_logger
from ..utils.constants import (
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    MARKER_DELETE_SELECTED,
    MARKER_DRAGGING,
    MARKER_EXPORT_SELECTED,
    MARKER_HOVER,
    MARKER_RESIZABLE,
    WORLD_PADDING,
    ZOOM_STEP,
)
from .history import Add, BatchDelete, CommandLog, Move, Resize, delete_of
from .viewport import CanvasEngine, ViewportLimits
from .world import CanvasWorld


EDIT_MODES = ('pan', 'move', 'resize', 'crop', 'export-pick', 'delete')

# Mode names accepted from transports
MODE_ALIASES = {'none': 'pan', 'select': 'move'}

# Modes in which hovering marks the fragment under the pointer
HOVER_MODES = ('move', 'resize', 'export-pick', 'delete')


@dataclass
class DragState:
    element: FragmentNode
    grab_x: float
    grab_y: float
    old_parent: FragmentNode
    old_next_sibling: Optional[FragmentNode]
    old_placement: Tuple[Optional[str], Optional[str], Optional[str]]
    moved: bool = False


class EditorSession:
    """
    Composition editor.

    Fragment markers (hover, selections, resizable, dragging) live in the
    editor's own MarkerOverlay keyed by fragment uid, never in the
    fragments themselves.
    """

    def __init__(
        self,
        status: StatusBus,
        viewport_width: float = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: float = DEFAULT_VIEWPORT_HEIGHT,
        limits: Optional[ViewportLimits] = None,
        padding: float = WORLD_PADDING
    ):
        self.status = status
        self.logger = get_logger("editor")

        self.markers = MarkerOverlay()
        self.world = CanvasWorld(padding)
        self.engine = CanvasEngine(self.world, viewport_width, viewport_height, limits)
        self.history = CommandLog(self.markers, on_change=self._on_history_change)

        self.active = False
        self.mode = 'pan'
        self.export_selection: List[FragmentNode] = []
        self.delete_selection: List[FragmentNode] = []

        self.drag: Optional[DragState] = None
        self.hover_stack: List[FragmentNode] = []
        self.hover_index = 0
        self.hovered: Optional[FragmentNode] = None

    # --- lifecycle ----------------------------------------------------------

    def open(self, fragments: Iterable[FragmentNode]) -> bool:
        """
        Place fragments in a column and fit the view.

        Returns:
            False when there was nothing to edit
        """
        fragments = list(fragments)
        if not fragments:
            self.status.status("Nothing to edit. Pick elements first.", False)
            return False

        self._reset()
        self.world.layout_column(fragments)
        self.active = True
        self.engine.fit_to_screen()
        self.logger.info(f"Editor opened with {len(fragments)} fragments")
        self.status.status("Editor Opened. Use toolbar to Refine, Crop, or Export.", True)
        self.sync_state()
        return True

    def _reset(self) -> None:
        self.drag = None
        self.hovered = None
        self.hover_stack = []
        self.hover_index = 0
        self.export_selection = []
        self.delete_selection = []
        self.mode = 'pan'
        self.markers.clear()
        self.engine.clear_crop()
        self.engine.end_pan()
        self.world.clear()
        self.history.undo_stack = []
        self.history.redo_stack = []

    def exit(self) -> None:
        """Leave the editor and drop the composition and history."""
        if not self.active:
            return
        self._reset()
        self.active = False
        self.status.status("Editor closed.", False)

    # --- state --------------------------------------------------------------

    def state(self) -> FilterState:
        return FilterState(self.mode, self.history.can_undo, self.history.can_redo)

    def sync_state(self) -> FilterState:
        """Recompute bounds, re-clamp the view, and publish the edit state."""
        self.world.recompute()
        self.engine.clamp_pan()
        state = self.state()
        self.status.publish(state)
        return state

    def _on_history_change(self) -> None:
        if self.active:
            self.sync_state()

    # --- modes --------------------------------------------------------------

    def set_mode(self, mode: str) -> str:
        mode = MODE_ALIASES.get(mode, mode)
        if mode not in EDIT_MODES:
            mode = 'pan'
        if mode != self.mode:
            self._leave_mode(self.mode)
            self.mode = mode
            if mode == 'crop':
                self.engine.fit_to_screen()
                self.status.status("Click and drag on the canvas to define your export area.", True)
            elif mode == 'export-pick':
                self.status.status("Select elements one by one to export them together.", True)
        self.sync_state()
        return self.mode

    def toggle_mode(self, mode: str) -> str:
        """Switch to a mode, or back to pan when it is already current."""
        mode = MODE_ALIASES.get(mode, mode)
        if mode == self.mode:
            return self.set_mode('pan')
        return self.set_mode(mode)

    def _leave_mode(self, mode: str) -> None:
        self._set_hover(None)
        self.hover_stack = []
        if mode == 'export-pick':
            self.export_selection = []
            self.markers.clear(MARKER_EXPORT_SELECTED)
        elif mode == 'delete':
            self.delete_selection = []
            self.markers.clear(MARKER_DELETE_SELECTED)
        elif mode == 'move':
            self._cancel_drag()
        elif mode == 'crop':
            if self.engine.crop.active or self.engine.crop.rect is None:
                self.engine.clear_crop()

    # --- pointer ------------------------------------------------------------

    def pointer_down(self, sx: float, sy: float) -> None:
        wx, wy = self.engine.to_world(sx, sy)
        if self.mode == 'pan':
            self.engine.begin_pan(sx, sy)
        elif self.mode == 'crop':
            if self.world.hit_test(wx, wy) is None:
                self.engine.begin_crop(sx, sy)
        elif self.mode == 'move':
            target = self.hovered or self.world.hit_test(wx, wy)
            if target is not None:
                self._begin_drag(target, wx, wy)

    def pointer_move(self, sx: float, sy: float) -> None:
        if self.engine.state.is_panning:
            self.engine.pan_to(sx, sy)
        elif self.engine.crop.active:
            self.engine.update_crop(sx, sy)
        elif self.drag is not None:
            wx, wy = self.engine.to_world(sx, sy)
            self.drag.moved = True
            rect = self.world.absolute_rect(self.drag.element)
            offset = self.drag.element.offset_rect()
            # Shift by the difference so the grab point stays under the pointer
            self.drag.element.place_at(
                offset.left + (wx - self.drag.grab_x) - rect.left,
                offset.top + (wy - self.drag.grab_y) - rect.top,
            )
        else:
            self.hover(sx, sy)

    def pointer_up(self, sx: float, sy: float) -> None:
        if self.engine.state.is_panning:
            self.engine.end_pan()
        elif self.engine.crop.active:
            if self.engine.end_crop():
                self.status.status("Zoomed to crop. The background has fallen away. Ready to export.", True)
        elif self.drag is not None:
            self._drop(*self.engine.to_world(sx, sy))

    def _begin_drag(self, element: FragmentNode, wx: float, wy: float) -> None:
        rect = self.world.absolute_rect(element)
        self.drag = DragState(
            element=element,
            grab_x=wx - rect.left,
            grab_y=wy - rect.top,
            old_parent=element.parent,
            old_next_sibling=element.next_sibling,
            old_placement=element.placement(),
        )
        self.markers.add(element.uid, MARKER_DRAGGING)

    def _cancel_drag(self) -> None:
        if self.drag is None:
            return
        drag = self.drag
        self.drag = None
        self.markers.remove(drag.element.uid, MARKER_DRAGGING)
        drag.old_parent.insert_before(drag.element, drag.old_next_sibling)
        drag.element.set_placement(drag.old_placement)

    def _drop(self, wx: float, wy: float) -> None:
        drag = self.drag
        self.drag = None
        element = drag.element
        self.markers.remove(element.uid, MARKER_DRAGGING)

        # Put the element back first so the Move command replays from the original state
        element_rect = self.world.absolute_rect(element)
        element.set_placement(drag.old_placement)
        if not drag.moved:
            return

        parent = self.world.hit_test(wx, wy, exclude=element)
        if parent is None or element.contains(parent):
            parent = self.world.root

        left, top = element_rect.left, element_rect.top
        if parent is not self.world.root:
            parent_rect = self.world.absolute_rect(parent)
            left -= parent_rect.left
            top -= parent_rect.top

        new_placement = (px(top), px(left), 'absolute')

        self.history.apply(Move(
            element=element,
            old_parent=drag.old_parent,
            old_next_sibling=drag.old_next_sibling,
            old_placement=drag.old_placement,
            new_parent=parent,
            new_placement=new_placement,
        ))
        self.logger.debug(f"Moved <{element.tag}> to ({left:g}, {top:g})")

    # --- hover and click ----------------------------------------------------

    def _set_hover(self, node: Optional[FragmentNode]) -> None:
        if self.hovered is not None:
            self.markers.remove(self.hovered.uid, MARKER_HOVER)
        self.hovered = node
        if node is not None:
            self.markers.add(node.uid, MARKER_HOVER)

    def hover(self, sx: float, sy: float) -> Optional[FragmentNode]:
        if self.mode not in HOVER_MODES:
            return None
        self.hover_stack = self.world.hit_stack(*self.engine.to_world(sx, sy))
        self.hover_index = 0
        first = self.hover_stack[0] if self.hover_stack else None
        if first is not self.hovered:
            self._set_hover(first)
        return self.hovered

    def cycle(self, delta_y: float) -> Optional[FragmentNode]:
        """Move through the stack of fragments under the pointer; wraps at both ends."""
        count = len(self.hover_stack)
        if count <= 1:
            return self.hovered
        step = 1 if delta_y > 0 else -1
        self.hover_index = (self.hover_index + step) % count
        node = self.hover_stack[self.hover_index]
        self._set_hover(node)
        self.status.status(
            f"Depth: {self.hover_index + 1}/{count} (<{node.tag}>) - Shift+Scroll to cycle",
            True
        )
        return node

    def wheel(self, delta_y: float, shift: bool = False) -> None:
        if shift and self.mode in HOVER_MODES:
            self.cycle(delta_y)
        else:
            self.engine.wheel(delta_y)
            self.sync_state()

    def click(self, sx: float, sy: float) -> Optional[FragmentNode]:
        """
        Apply the current mode to the fragment under the pointer.

        Returns:
            The fragment acted on, if any
        """
        target = self.hovered
        if target is None or target not in self.world:
            target = self.world.hit_test(*self.engine.to_world(sx, sy))
        if target is None:
            return None

        if self.mode == 'delete':
            self._toggle(self.delete_selection, target, MARKER_DELETE_SELECTED)
        elif self.mode == 'export-pick':
            self._toggle(self.export_selection, target, MARKER_EXPORT_SELECTED)
        elif self.mode == 'resize':
            if self.markers.has(target.uid, MARKER_RESIZABLE):
                return target
            self.history.apply(Resize(target, was_resizable=False))
        else:
            return None
        return target

    def _toggle(self, selection: List[FragmentNode], node: FragmentNode, marker: str) -> None:
        if node in selection:
            selection.remove(node)
            self.markers.remove(node.uid, marker)
        else:
            selection.append(node)
            self.markers.add(node.uid, marker)

    # --- edits --------------------------------------------------------------

    def execute_delete(self) -> int:
        """
        Remove the delete selection as one undoable step.

        Returns:
            Number of fragments removed
        """
        targets = [n for n in self.delete_selection if n in self.world]
        # Drop nested picks; removing the ancestor removes them too
        targets = [n for n in targets if not any(o is not n and o.contains(n) for o in targets)]
        # Document order, so undo can restore later siblings first
        order = {node: i for i, node in enumerate(self.world.root.iter_elements())}
        targets.sort(key=order.__getitem__)
        self.markers.clear(MARKER_DELETE_SELECTED)
        self.delete_selection = []
        if not targets:
            self.sync_state()
            return 0

        self.history.apply(BatchDelete([delete_of(n) for n in targets]))
        self.status.status(f"Deleted {len(targets)} element(s)", True)
        return len(targets)

    def add_fragment(self, fragment: FragmentNode) -> FragmentNode:
        """Add a fragment centred on the current view as one undoable step."""
        cx, cy = self.engine.world_center()
        rect = fragment.offset_rect()
        fragment.place_at(cx - rect.width / 2, cy - rect.height / 2)
        self.history.apply(Add(fragment, self.world.root))
        return fragment

    def undo(self) -> None:
        self._cancel_drag()
        self.history.undo()

    def redo(self) -> None:
        self._cancel_drag()
        self.history.redo()

    def zoom_in(self) -> float:
        scale = self.engine.zoom_by(ZOOM_STEP)
        self.sync_state()
        return scale

    def zoom_out(self) -> float:
        scale = self.engine.zoom_by(-ZOOM_STEP)
        self.sync_state()
        return scale

    def fit(self) -> float:
        scale = self.engine.fit_to_screen()
        self.sync_state()
        return scale
