"""
Shared fixtures: an in-memory capture host, node builders, and fake fetches.

No browser or network is needed; the in-memory host serves hand-built
VisualNode trees through the same CaptureHost contract as Playwright.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from element_cloner.snapshot.host import CaptureHost, ScrollerMetrics, ViewportMetrics  # noqa: E402
from element_cloner.snapshot.markers import MarkerOverlay  # noqa: E402
from element_cloner.snapshot.nodes import TEXT_TAG, FragmentNode, VisualNode, px  # noqa: E402
from element_cloner.status import StatusBus  # noqa: E402
from element_cloner.utils.geometry import Rect  # noqa: E402


# ============================================================================
# Node builders
# ============================================================================

def text(value: str) -> VisualNode:
    return VisualNode(node_id="", tag=TEXT_TAG, text=value)


def element(
    node_id: str,
    tag: str = "div",
    *children: VisualNode,
    attributes: Optional[Dict[str, str]] = None,
    style: Optional[Dict[str, str]] = None,
    rect: Tuple[float, float, float, float] = (0, 0, 100, 50),
    **kwargs
) -> VisualNode:
    """Build a VisualNode; text children contribute to innerText."""
    node = VisualNode(
        node_id=node_id,
        tag=tag,
        attributes=dict(attributes or {}),
        children=list(children),
        style=dict(style or {}),
        rect=Rect(*rect),
        **kwargs
    )
    return node


def card(node_id: str, label: str, top: float = 0) -> VisualNode:
    """A visible list item with one line of text."""
    return element(
        node_id, "div",
        element(f"{node_id}-p", "p", text(label), rect=(0, top, 100, 20)),
        attributes={"class": "card"},
        style={"color": "rgb(0, 0, 0)", "width": "100px", "height": "50px"},
        rect=(0, top, 100, 50),
    )


def fragment(tag: str = "div", left: float = 0, top: float = 0,
             width: float = 100, height: float = 50, **attributes) -> FragmentNode:
    """An absolutely placed fragment with an explicit size."""
    node = FragmentNode(tag=tag, attributes=dict(attributes))
    node.style['width'] = px(width)
    node.style['height'] = px(height)
    node.place_at(left, top)
    return node


# ============================================================================
# In-memory host
# ============================================================================

class InMemoryHost(CaptureHost):
    """CaptureHost over a static VisualNode tree."""

    def __init__(self, root: VisualNode, url: str = "https://example.com/page"):
        self.root = root
        self.url = url
        self.scroll_y = 0.0
        self.scrolls: List[Tuple[Optional[str], float]] = []
        self.stacks: Dict[Tuple[float, float], List[str]] = {}
        self.scroller_metrics: List[ScrollerMetrics] = []
        self.blobs: Dict[str, str] = {}
        self.observed: Optional[str] = None
        self.callback = None
        self.markers: Optional[MarkerOverlay] = None
        self.closed = False

    def _index(self) -> Dict[str, VisualNode]:
        return {n.node_id: n for n in self.root.iter_elements()}

    async def resolve(self, selector: str) -> Optional[str]:
        for node in self.root.iter_elements():
            if selector == node.tag:
                return node.node_id
            if selector.startswith('#') and node.id == selector[1:]:
                return node.node_id
            if selector.startswith('.') and selector[1:] in node.class_list:
                return node.node_id
        return None

    async def snapshot(self, node_id: str, depth: Optional[int] = None) -> Optional[VisualNode]:
        return self._index().get(node_id)

    async def depth_stack(self, x: float, y: float) -> List[VisualNode]:
        index = self._index()
        return [index[i] for i in self.stacks.get((x, y), []) if i in index]

    async def scroll_by(self, node_id: Optional[str], dy: float) -> None:
        self.scrolls.append((node_id, dy))
        self.scroll_y += dy

    async def viewport(self) -> ViewportMetrics:
        return ViewportMetrics(0.0, self.scroll_y, 1280, 800)

    async def scrollers(self, min_overflow: int = 10) -> List[ScrollerMetrics]:
        return list(self.scroller_metrics)

    async def observe(self, node_id: str, callback) -> None:
        self.observed = node_id
        self.callback = callback

    async def disconnect(self) -> None:
        self.observed = None
        self.callback = None

    async def fetch_blob(self, url: str) -> Optional[str]:
        return self.blobs.get(url)

    def attach_markers(self, markers: MarkerOverlay) -> None:
        self.markers = markers

    async def close(self) -> None:
        self.closed = True

    async def insert(self, parent_id: str, node: VisualNode) -> None:
        """Append a node under a parent and report it like a mutation observer."""
        parent = self._index()[parent_id]
        parent.children.append(node)
        node.parent = parent
        if self.callback is not None:
            await self.callback(node)


class FakeFetch:
    """Asset fetch stub with call tracking."""

    def __init__(self, results: Optional[Dict[str, Optional[str]]] = None, error: Optional[Exception] = None):
        self.results = results or {}
        self.error = error
        self.calls: List[str] = []

    async def __call__(self, url: str) -> Optional[str]:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.results.get(url)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def status() -> StatusBus:
    return StatusBus(log_events=False)


def feed_tree() -> VisualNode:
    """A body holding a feed with three distinct cards."""
    return element(
        "body", "body",
        element(
            "feed", "section",
            card("c1", "First", top=0),
            card("c2", "Second", top=60),
            card("c3", "Third", top=120),
            attributes={"id": "feed"},
            rect=(0, 0, 100, 170),
        ),
        rect=(0, 0, 1280, 800),
    )


@pytest.fixture
def feed_page() -> VisualNode:
    return feed_tree()


@pytest.fixture
def host(feed_page) -> InMemoryHost:
    return InMemoryHost(feed_page)
