"""
Reveal animation state.

Purely visual feedback: captured items are marked as "captured" once a
reveal line, lagging behind the scroll position, passes over them.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..snapshot.markers import MarkerOverlay
from ..utils.constants import (
    MARKER_CAPTURED,
    REVEAL_CRAWL_STEP,
    REVEAL_LAG_RATIO,
    REVEAL_SWEEP_MS,
    REVEAL_VELOCITY_SMOOTHING,
    REVEAL_VELOCITY_THRESHOLD,
)


# Scan line is hidden this far outside the viewport
SCAN_LINE_MARGIN = 50


@dataclass
class PendingReveal:
    node_id: str
    abs_y: float
    height: float
    revealed: bool = False


class RevealTracker:
    """
    Tracks scroll velocity and moves a reveal line through the document.

    The line crawls in the capture direction every frame and is pulled
    forward when scrolling is fast, staying a quarter viewport behind the
    leading edge.
    """

    def __init__(self, markers: MarkerOverlay, direction: str = "down"):
        self.markers = markers
        self.direction = direction
        self.pending: List[PendingReveal] = []
        self.active = False

        self.line_y = 0.0
        self.velocity = 0.0
        self._last_y = 0.0
        self._last_time = 0.0

    def start(self, scroll_y: float, viewport_height: float, now_ms: float) -> None:
        """Place the reveal line at the trailing edge of the viewport."""
        self.active = True
        self.pending = []
        self.velocity = 0.0
        self.line_y = scroll_y + viewport_height if self.direction == 'up' else scroll_y
        self._last_y = scroll_y
        self._last_time = now_ms

    def track(self, node_id: str, abs_y: float, height: float) -> None:
        self.pending.append(PendingReveal(node_id, abs_y, height))

    def update(self, scroll_y: float, viewport_height: float, now_ms: float) -> List[str]:
        """
        Advance one frame.

        Args:
            scroll_y: Current window scroll offset
            viewport_height: Window height
            now_ms: Current time in milliseconds

        Returns:
            Ids revealed during this frame
        """
        dt = now_ms - self._last_time
        if dt > 0:
            instant = (scroll_y - self._last_y) / dt
            self.velocity = self.velocity * REVEAL_VELOCITY_SMOOTHING + instant * (1 - REVEAL_VELOCITY_SMOOTHING)
        self._last_y = scroll_y
        self._last_time = now_ms

        lag = viewport_height * REVEAL_LAG_RATIO
        if self.direction == 'up':
            target = scroll_y + viewport_height
            if self.velocity < -REVEAL_VELOCITY_THRESHOLD:
                target += lag
            self.line_y = min(self.line_y, target) - REVEAL_CRAWL_STEP
        else:
            target = scroll_y
            if self.velocity > REVEAL_VELOCITY_THRESHOLD:
                target -= lag
            self.line_y = max(self.line_y, target) + REVEAL_CRAWL_STEP

        revealed = []
        for item in self.pending:
            if item.revealed:
                continue
            if self.direction == 'up':
                hit = self.line_y <= item.abs_y + item.height
            else:
                hit = self.line_y >= item.abs_y
            if hit:
                self._reveal(item)
                revealed.append(item.node_id)
        return revealed

    def _reveal(self, item: PendingReveal) -> None:
        item.revealed = True
        self.markers.add(item.node_id, MARKER_CAPTURED)

    def scan_line(self, scroll_y: float, viewport_height: float) -> Optional[float]:
        """Viewport position of the scan line, or None while it is off screen."""
        rel_y = self.line_y - scroll_y
        if rel_y < -SCAN_LINE_MARGIN or rel_y > viewport_height + SCAN_LINE_MARGIN:
            return None
        return rel_y

    @staticmethod
    def sweep_position(top: float, height: float, elapsed_ms: float) -> float:
        """Position of the sweeping line used for single-pass captures."""
        return top + height * ((elapsed_ms % REVEAL_SWEEP_MS) / REVEAL_SWEEP_MS)

    def stop(self) -> None:
        """Reveal everything still pending."""
        self.active = False
        for item in self.pending:
            if not item.revealed:
                self._reveal(item)
