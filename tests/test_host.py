"""Unit tests for the Playwright host's marker paint layer."""

import pytest

from element_cloner.snapshot.host import PlaywrightHost
from element_cloner.snapshot.markers import MarkerOverlay
from element_cloner.utils.constants import MARKER_CAPTURED, MARKER_HIGHLIGHT


class FakePage:
    """Page stub that records paint calls and can react to the first one."""

    def __init__(self):
        self.painted = []
        self.on_paint = None

    async def evaluate(self, script, arg=None):
        entries, _ = arg
        self.painted.append(entries)
        if self.on_paint is not None:
            callback, self.on_paint = self.on_paint, None
            callback()


class TestMarkerPaint:
    """Test coalescing of marker changes into page paints."""

    def setup_method(self):
        self.host = PlaywrightHost()
        self.page = FakePage()
        self.host._page = self.page
        self.markers = MarkerOverlay()
        self.host.attach_markers(self.markers)

    @pytest.mark.asyncio
    async def test_same_tick_changes_paint_once(self):
        self.markers.add("a", MARKER_HIGHLIGHT)
        self.markers.add("b", MARKER_CAPTURED)
        await self.host._paint_task

        assert len(self.page.painted) == 1
        assert set(self.page.painted[0]) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_changes_during_paint_are_flushed(self):
        self.page.on_paint = lambda: self.markers.add("late", MARKER_CAPTURED)

        self.markers.add("a", MARKER_HIGHLIGHT)
        await self.host._paint_task

        assert len(self.page.painted) == 2
        assert self.page.painted[1] == {"late": [MARKER_CAPTURED]}
