"""
Capture/scrape controller.

Repeatedly snapshots the children of a target element, freezing every
visible, not-yet-seen child into a CapturedItem, and scrolls the nearest
scroll container between passes. Elements inserted while scraping go
through the same pipeline.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set

from ..exceptions import HostError
from ..snapshot.fingerprint import fingerprint
from ..snapshot.freezer import StyleFreezer
from ..snapshot.host import CaptureHost
from ..snapshot.markers import MarkerOverlay
from ..snapshot.nodes import FragmentNode, VisualNode
from ..status import StatusBus
from ..utils.log import get_logger
from ..utils.constants import (
    MARKER_CAPTURED,
    REVEAL_FRAME_INTERVAL,
    SCROLL_STEP,
    SETTLE_INTERVAL,
)
from .reveal import RevealTracker


class CaptureState(Enum):
    IDLE = "idle"
    SCRAPING = "scraping"


@dataclass(frozen=True)
class CapturedItem:
    """
    One captured element.

    The fragment may still be upgraded in place by pending image embeds;
    ``html`` always serializes its current state.
    """
    fingerprint: str
    fragment: FragmentNode = field(compare=False, repr=False)

    @property
    def html(self) -> str:
        return self.fragment.to_html()


def _now_ms() -> float:
    return time.monotonic() * 1000


class CaptureController:
    """
    Drives capture passes against a target element.

    States are IDLE and SCRAPING; ``stop()`` is always allowed.
    """

    def __init__(
        self,
        host: CaptureHost,
        freezer: StyleFreezer,
        markers: MarkerOverlay,
        status: StatusBus,
        scroll_step: int = SCROLL_STEP,
        settle_interval: float = SETTLE_INTERVAL,
        animate: bool = True
    ):
        """
        Initialize the controller.

        Args:
            host: Live document
            freezer: Style freezer shared with the session
            markers: Marker overlay of the live document
            status: Status bus for counts and messages
            scroll_step: Pixels scrolled per pass
            settle_interval: Seconds to wait after each scroll
            animate: Run the reveal feedback loop while scraping
        """
        self.host = host
        self.freezer = freezer
        self.markers = markers
        self.status = status
        self.scroll_step = scroll_step
        self.settle_interval = settle_interval
        self.animate = animate
        self.logger = get_logger("capture")

        self.state = CaptureState.IDLE
        self.items: List[CapturedItem] = []
        self.target_id: Optional[str] = None
        self.direction = 'down'
        self.speed = 0

        self.reveal = RevealTracker(markers)
        self.on_item: Optional[Callable[[CapturedItem], None]] = None

        self._seen: Set[str] = set()
        # Node ids of captured elements; the "captured" marker only follows the reveal
        self._captured_ids: Set[str] = set()
        self._loop_task: Optional[asyncio.Task] = None
        self._reveal_task: Optional[asyncio.Task] = None

    @property
    def scraping(self) -> bool:
        return self.state is CaptureState.SCRAPING

    def clear(self) -> None:
        """Drop captured items, the fingerprint set, and the captured ids."""
        self.items = []
        self._seen.clear()
        self._captured_ids.clear()

    async def start(self, target_id: Optional[str] = None, speed: int = 1, direction: str = 'down') -> None:
        """
        Enter SCRAPING.

        Args:
            target_id: Element whose children are captured (document body when None)
            speed: 0 for a single pass, otherwise keep scrolling until stopped
            direction: 'down' appends items, 'up' prepends them
        """
        if self.scraping:
            await self.stop()

        if target_id is None:
            target_id = await self.host.resolve('body')
            self.status.status("No target picked. Auto-scrolling full page.", False)
        if target_id is None:
            self.status.status("Nothing to capture on this page.", False)
            return

        self.target_id = target_id
        self.direction = 'up' if direction == 'up' else 'down'
        self.speed = speed
        self.clear()
        await self._clear_captured_markers()

        self.state = CaptureState.SCRAPING
        await self.host.observe(target_id, self._on_inserted)
        self.status.status("Scraping started...", True)

        self.reveal.direction = self.direction
        self.reveal.pending = []
        if self.animate:
            metrics = await self.host.viewport()
            self.reveal.start(metrics.scroll_y, metrics.height, _now_ms())
            self._reveal_task = asyncio.ensure_future(self._reveal_loop())

        self._loop_task = asyncio.ensure_future(self._capture_loop())

    async def _clear_captured_markers(self) -> None:
        root = await self.host.snapshot(self.target_id)
        if root is None:
            return
        self.markers.clear(MARKER_CAPTURED, keys=[n.node_id for n in root.iter_elements()])

    async def _capture_loop(self) -> None:
        while self.scraping:
            try:
                await self.capture_snapshot()
            except HostError as e:
                self.logger.warning(f"Capture pass failed: {e}")

            if self.speed <= 0:
                break

            amount = -self.scroll_step if self.direction == 'up' else self.scroll_step
            try:
                await self.host.scroll_by(self.target_id, amount)
            except HostError as e:
                self.logger.warning(f"Scroll failed: {e}")

            # Wait for render or lazy-load
            await asyncio.sleep(self.settle_interval)

    async def _reveal_loop(self) -> None:
        while self.scraping:
            try:
                metrics = await self.host.viewport()
            except HostError:
                break
            self.reveal.update(metrics.scroll_y, metrics.height, _now_ms())
            await asyncio.sleep(REVEAL_FRAME_INTERVAL)

    async def wait(self) -> None:
        """Wait for the capture loop to finish (single passes finish on their own)."""
        if self._loop_task is not None:
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass

    async def capture_snapshot(self) -> None:
        """Process the target's current children once."""
        root = await self.host.snapshot(self.target_id)
        if root is None:
            self.logger.warning("Capture target is no longer in the document")
            return

        children = root.element_children
        if not children:
            self.logger.debug(f"Target <{root.tag}> has no children to capture")
            if root.tag != 'body':
                self.process(root)
            return

        for child in children:
            self.process(child)

    def _inside_captured(self, node: VisualNode) -> bool:
        keys = [node.node_id, *node.ancestry()]
        return any(k in self._captured_ids or self.markers.has(k, MARKER_CAPTURED) for k in keys)

    def process(self, node: VisualNode) -> Optional[CapturedItem]:
        """
        Run one element through visibility, dedup, and freeze.

        Returns:
            The new item, or None when the element was skipped
        """
        if node.rect.width <= 0 or node.rect.height <= 0:
            return None
        if node.node_id != self.target_id and self._inside_captured(node):
            return None

        fp = fingerprint(node)
        if fp in self._seen:
            return None
        self._seen.add(fp)

        item = CapturedItem(fp, self.freezer.freeze(node))
        self._captured_ids.add(node.node_id)
        if self.direction == 'up':
            self.items.insert(0, item)
        else:
            self.items.append(item)

        self.reveal.track(node.node_id, node.rect.top, node.rect.height)
        self.status.count(len(self.items))
        if self.on_item is not None:
            self.on_item(item)
        return item

    async def _on_inserted(self, node: VisualNode) -> None:
        if self.scraping:
            self.process(node)

    async def stop(self) -> None:
        """Leave SCRAPING; captured items are kept."""
        if not self.scraping:
            return
        self.state = CaptureState.IDLE

        for task in (self._loop_task, self._reveal_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._reveal_task = None

        try:
            await self.host.disconnect()
        except HostError as e:
            self.logger.debug(f"Disconnect failed: {e}")

        self.reveal.stop()
        self.status.status(f"Collected {len(self.items)} items. Open Editor to proceed.", False)
