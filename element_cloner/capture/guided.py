"""
Guided full-document capture.

While active, reports how far the user has scrolled the window and every
scroll container that hides content.
"""

import asyncio
import math
from typing import List, Optional

from ..exceptions import HostError
from ..snapshot.host import CaptureHost, ScrollerMetrics
from ..status import GuidedProgress, ScrollerProgress, StatusBus
from ..utils.log import get_logger
from ..utils.constants import GUIDED_POLL_INTERVAL, GUIDED_MIN_OVERFLOW


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_progress(scrollers: List[ScrollerMetrics]) -> GuidedProgress:
    """
    Combine per-scroller progress into one report.

    Args:
        scrollers: Window metrics first, then each scroll container

    Returns:
        Rounded average progress with the per-scroller breakdown
    """
    if not scrollers:
        return GuidedProgress(0, ())
    values = [s.progress for s in scrollers]
    breakdown = tuple(
        ScrollerProgress(s.name, _round_half_up(v)) for s, v in zip(scrollers, values)
    )
    return GuidedProgress(_round_half_up(sum(values) / len(values)), breakdown)


class GuidedCapture:
    """
    Polls scroll progress until cancelled.
    """

    def __init__(
        self,
        host: CaptureHost,
        status: StatusBus,
        poll_interval: float = GUIDED_POLL_INTERVAL,
        min_overflow: int = GUIDED_MIN_OVERFLOW
    ):
        self.host = host
        self.status = status
        self.poll_interval = poll_interval
        self.min_overflow = min_overflow
        self.logger = get_logger("guided")

        self.active = False
        self.last: Optional[GuidedProgress] = None
        self._task: Optional[asyncio.Task] = None

    async def begin(self) -> None:
        if self.active:
            return
        self.active = True
        await self.report()
        self._task = asyncio.ensure_future(self._poll())

    async def report(self) -> GuidedProgress:
        scrollers = await self.host.scrollers(self.min_overflow)
        progress = compute_progress(scrollers)
        if progress != self.last:
            self.last = progress
            self.status.publish(progress)
        return progress

    async def _poll(self) -> None:
        while self.active:
            await asyncio.sleep(self.poll_interval)
            if not self.active:
                break
            try:
                await self.report()
            except HostError as e:
                self.logger.debug(f"Progress poll failed: {e}")

    async def cancel(self) -> None:
        self.active = False
        self.last = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
