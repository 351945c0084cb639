"""
Outbound status events.

Everything the core reports (capture counts, status lines, guided
progress, editor state) is pushed through a StatusBus as a typed event.
"""

from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Tuple, Union

from .utils.log import get_logger


@dataclass(frozen=True)
class CountUpdate:
    """Number of captured items so far."""
    count: int


@dataclass(frozen=True)
class StatusMessage:
    """Free-text status line; ``active`` is True while work is in progress."""
    text: str
    active: bool = False


@dataclass(frozen=True)
class ScrollerProgress:
    name: str
    progress: int


@dataclass(frozen=True)
class GuidedProgress:
    """Overall and per-scroller guided capture progress in percent."""
    progress: int
    scrollers: Tuple[ScrollerProgress, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FilterState:
    """Editor mode and history availability."""
    mode: str
    can_undo: bool
    can_redo: bool


StatusEvent = Union[CountUpdate, StatusMessage, GuidedProgress, FilterState]

EVENT_ACTIONS = {
    CountUpdate: 'COUNT_UPDATE',
    StatusMessage: 'STATUS_UPDATE',
    GuidedProgress: 'GUIDED_PROGRESS',
    FilterState: 'UPDATE_FILTER_STATE',
}


def event_to_dict(event: StatusEvent) -> Dict[str, Any]:
    """Serialize an event the way transports send it."""
    data = asdict(event)
    data['action'] = EVENT_ACTIONS[type(event)]
    return data


class StatusBus:
    """
    Publishes status events to subscribers and keeps a short history.
    """

    def __init__(self, history: int = 100, log_events: bool = True):
        """
        Initialize the bus.

        Args:
            history: Number of recent events kept for polling transports
            log_events: Attach the default logging subscriber
        """
        self.logger = get_logger("session")
        self._subscribers: List[Callable[[StatusEvent], None]] = []
        self._recent: Deque[StatusEvent] = deque(maxlen=history)
        if log_events:
            self.subscribe(self._log_event)

    def subscribe(self, callback: Callable[[StatusEvent], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[StatusEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def recent(self) -> List[StatusEvent]:
        return list(self._recent)

    def publish(self, event: StatusEvent) -> None:
        self._recent.append(event)
        for callback in list(self._subscribers):
            callback(event)

    def count(self, count: int) -> None:
        self.publish(CountUpdate(count))

    def status(self, text: str, active: bool = False) -> None:
        self.publish(StatusMessage(text, active))

    def _log_event(self, event: StatusEvent) -> None:
        if isinstance(event, StatusMessage):
            self.logger.info(event.text)
        else:
            self.logger.debug(f"{EVENT_ACTIONS[type(event)]}: {event}")
