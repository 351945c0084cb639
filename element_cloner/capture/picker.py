"""
Element picker.

Supplies capture targets from pointer interaction: hovering builds a
depth stack of the elements under the pointer, Shift+wheel cycles
through it, and clicking toggles the highlighted element in the
multi-capture queue.
"""

from typing import List, Optional

from ..snapshot.host import CaptureHost
from ..snapshot.markers import MarkerOverlay
from ..snapshot.nodes import VisualNode
from ..status import StatusBus
from ..utils.log import get_logger
from ..utils.constants import MARKER_HIGHLIGHT, MARKER_SELECTED


PICKER_MODES = ('single', 'multi')


class Picker:
    """
    Pointer-driven element selection over a CaptureHost.
    """

    def __init__(self, host: CaptureHost, markers: MarkerOverlay, status: StatusBus):
        self.host = host
        self.markers = markers
        self.status = status
        self.logger = get_logger("picker")

        self.mode = 'single'
        self.active = False
        self.queue: List[str] = []
        self.target_id: Optional[str] = None

        self.depth_stack: List[VisualNode] = []
        self.depth_index = 0
        self.highlighted: Optional[VisualNode] = None

    def enable(self, mode: str = 'single') -> None:
        if mode not in PICKER_MODES:
            mode = 'single'
        self.mode = mode
        self.active = True
        if mode == 'multi':
            self.status.status("Click elements to add to Multi-Capture (Shift+Scroll to cycle depth)", True)
        else:
            self.status.status("Click to select and Edit (Shift+Scroll to cycle depth)", True)

    def start_multi(self) -> None:
        """Start a fresh multi-capture selection."""
        self.queue = []
        self.enable('multi')

    def _set_highlight(self, node: Optional[VisualNode]) -> None:
        if self.highlighted is not None:
            self.markers.remove(self.highlighted.node_id, MARKER_HIGHLIGHT)
        self.highlighted = node
        if node is not None:
            self.markers.add(node.node_id, MARKER_HIGHLIGHT)

    async def hover(self, x: float, y: float) -> Optional[VisualNode]:
        """
        Rebuild the depth stack for a viewport point.

        Returns:
            The element now highlighted
        """
        if not self.active:
            return None
        self.depth_stack = await self.host.depth_stack(x, y)
        self.depth_index = 0
        first = self.depth_stack[0] if self.depth_stack else None
        if first is None or (self.highlighted is not None and self.highlighted.node_id == first.node_id):
            return self.highlighted
        self._set_highlight(first)
        return first

    def cycle(self, delta_y: float) -> Optional[VisualNode]:
        """
        Move through the depth stack (Shift+wheel); wraps at both ends.
        """
        count = len(self.depth_stack)
        if count <= 1:
            return self.highlighted
        if delta_y > 0:
            self.depth_index = (self.depth_index + 1) % count
        else:
            self.depth_index = (self.depth_index - 1 + count) % count

        node = self.depth_stack[self.depth_index]
        self._set_highlight(node)
        self.status.status(
            f"Depth: {self.depth_index + 1}/{count} (<{node.tag}>) - Shift+Scroll to cycle",
            True
        )
        return node

    def click(self) -> Optional[str]:
        """
        Toggle the highlighted element in the queue.

        Returns:
            The current capture target after the toggle
        """
        if not self.active or self.highlighted is None:
            return self.target_id
        self.toggle(self.highlighted.node_id)
        return self.target_id

    def toggle(self, node_id: str) -> None:
        if node_id in self.queue:
            self.markers.remove(node_id, MARKER_SELECTED)
            self.queue.remove(node_id)
            if self.target_id == node_id:
                self.target_id = self.queue[-1] if self.queue else None
        else:
            self.markers.add(node_id, MARKER_SELECTED)
            self.queue.append(node_id)
            self.target_id = node_id

        self.status.status(f"Selected {len(self.queue)} elements. Ready to Scrape or Finish.", True)

    async def select(self, selector: str) -> Optional[str]:
        """Toggle the first element matching a CSS selector."""
        node_id = await self.host.resolve(selector)
        if node_id is None:
            self.status.status(f"No element matches {selector}", False)
            return None
        self.toggle(node_id)
        return node_id

    def disable(self, clean: bool = True) -> None:
        """
        Stop picking.

        Args:
            clean: Also drop the queue and its selection markers
        """
        self.active = False
        self._set_highlight(None)
        self.depth_stack = []
        self.depth_index = 0
        if clean:
            self.markers.clear(MARKER_HIGHLIGHT)
            self.markers.clear(MARKER_SELECTED)
            self.queue = []
