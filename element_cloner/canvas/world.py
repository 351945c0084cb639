"""
Canvas world: the composition surface for frozen fragments.
"""

from typing import Callable, Iterable, Iterator, List, Optional

from ..snapshot.nodes import FragmentNode
from ..utils.geometry import Rect, union
from ..utils.constants import (
    EDITOR_COLUMN_GAP,
    EDITOR_COLUMN_PADDING,
    UI_ID_PREFIX,
    WORLD_PADDING,
)


WORLD_ROOT_ID = f"{UI_ID_PREFIX}canvas-world"

# Bounds reported for an empty world
EMPTY_BOUNDS = Rect(0, 0, 1000, 1000)


class CanvasWorld:
    """
    Fragments placed at absolute world coordinates under one root.

    ``bounds`` is the padded union of the top-level fragments and is
    recomputed after every structural change; ``paper`` is the unpadded
    content area drawn behind them.
    """

    def __init__(self, padding: float = WORLD_PADDING):
        self.padding = padding
        self.root = FragmentNode(tag='div', attributes={'id': WORLD_ROOT_ID})
        self.bounds = EMPTY_BOUNDS
        self.paper = EMPTY_BOUNDS
        self._listeners: List[Callable[[Rect], None]] = []

    @property
    def fragments(self) -> List[FragmentNode]:
        return self.root.element_children

    def __contains__(self, node: FragmentNode) -> bool:
        return node is not self.root and self.root.contains(node)

    def __len__(self) -> int:
        return len(self.fragments)

    def subscribe(self, listener: Callable[[Rect], None]) -> None:
        self._listeners.append(listener)

    def recompute(self) -> Rect:
        """Recalculate bounds from the current top-level fragments."""
        content = union(f.offset_rect() for f in self.fragments)
        if content is None:
            self.paper = EMPTY_BOUNDS
            self.bounds = EMPTY_BOUNDS
        else:
            self.paper = content
            self.bounds = content.expanded(self.padding)
        for listener in list(self._listeners):
            listener(self.bounds)
        return self.bounds

    def add(self, fragment: FragmentNode, left: float, top: float) -> FragmentNode:
        fragment.place_at(left, top)
        self.root.append(fragment)
        self.recompute()
        return fragment

    def layout_column(
        self,
        fragments: Iterable[FragmentNode],
        padding: float = EDITOR_COLUMN_PADDING,
        gap: float = EDITOR_COLUMN_GAP
    ) -> None:
        """Stack fragments top to bottom, left aligned, below any existing content."""
        y = padding
        if self.fragments:
            y = max(f.offset_rect().bottom for f in self.fragments) + gap
        for fragment in fragments:
            fragment.place_at(padding, y)
            self.root.append(fragment)
            y += fragment.offset_rect().height + gap
        self.recompute()

    def absolute_rect(self, node: FragmentNode) -> Rect:
        """World-space rectangle of a fragment, following parent offsets up to the root."""
        rect = node.offset_rect()
        left, top = rect.left, rect.top
        parent = node.parent
        while parent is not None and parent is not self.root:
            offset = parent.offset_rect()
            left += offset.left
            top += offset.top
            parent = parent.parent
        return Rect(left, top, rect.width, rect.height)

    def _placed(self, node: FragmentNode) -> Iterator[FragmentNode]:
        # Absolutely placed descendants come before their parent
        for child in reversed(node.element_children):
            if node is self.root or child.style.get('position') == 'absolute':
                yield from self._placed(child)
                yield child

    def hit_stack(self, x: float, y: float, exclude: Optional[FragmentNode] = None) -> List[FragmentNode]:
        """
        Fragments under a world point, topmost first.

        Top-level fragments and absolutely placed descendants take part;
        ``exclude`` and everything inside it are skipped.
        """
        hits = []
        for fragment in self._placed(self.root):
            if exclude is not None and exclude.contains(fragment):
                continue
            if self.absolute_rect(fragment).contains_point(x, y):
                hits.append(fragment)
        return hits

    def hit_test(self, x: float, y: float, exclude: Optional[FragmentNode] = None) -> Optional[FragmentNode]:
        hits = self.hit_stack(x, y, exclude)
        return hits[0] if hits else None

    def clear(self) -> None:
        for fragment in list(self.root.children):
            fragment.detach()
        self.recompute()
