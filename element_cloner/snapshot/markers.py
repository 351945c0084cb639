"""
UI marker overlay.

Transient UI state (highlighted, selected, captured, ...) is kept here,
keyed by node id, instead of on the nodes themselves. Nothing in this map
reaches fingerprints, frozen styles, or exported documents.
"""

from contextlib import contextmanager
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set


MarkerListener = Callable[[str, FrozenSet[str]], None]


class MarkerOverlay:
    """
    Mapping from node key to the set of UI markers shown on it.

    Listeners are called with ``(key, markers)`` after every change so a
    host can repaint its marker layer.
    """

    def __init__(self):
        self._markers: Dict[str, Set[str]] = {}
        self._listeners: List[MarkerListener] = []

    def subscribe(self, listener: MarkerListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: MarkerListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: str) -> None:
        markers = self.markers_of(key)
        for listener in list(self._listeners):
            listener(key, markers)

    def has(self, key: str, marker: str) -> bool:
        return marker in self._markers.get(key, ())

    def markers_of(self, key: str) -> FrozenSet[str]:
        return frozenset(self._markers.get(key, ()))

    def keys_with(self, marker: str) -> List[str]:
        return [key for key, markers in self._markers.items() if marker in markers]

    def add(self, key: str, marker: str) -> None:
        markers = self._markers.setdefault(key, set())
        if marker not in markers:
            markers.add(marker)
            self._notify(key)

    def remove(self, key: str, marker: str) -> None:
        markers = self._markers.get(key)
        if markers and marker in markers:
            markers.discard(marker)
            if not markers:
                del self._markers[key]
            self._notify(key)

    def toggle(self, key: str, marker: str) -> bool:
        """Flip a marker; returns True when it is now set."""
        if self.has(key, marker):
            self.remove(key, marker)
            return False
        self.add(key, marker)
        return True

    def clear(self, marker: Optional[str] = None, keys: Optional[Iterable[str]] = None) -> None:
        """
        Remove markers in bulk.

        Args:
            marker: Only remove this marker (all markers when None)
            keys: Only touch these keys (every key when None)
        """
        targets = list(self._markers) if keys is None else list(keys)
        for key in targets:
            if marker is None:
                if self._markers.pop(key, None):
                    self._notify(key)
            else:
                self.remove(key, marker)

    @contextmanager
    def suspended(self, keys: Optional[Iterable[str]] = None) -> Iterator[Dict[str, FrozenSet[str]]]:
        """
        Temporarily strip markers, restoring them when the block exits.

        Restoration also happens when the block raises.

        Args:
            keys: Keys to strip (every marked key when None)

        Yields:
            The markers that were stripped, by key
        """
        if keys is None:
            keys = list(self._markers)
        saved = {key: self.markers_of(key) for key in keys if key in self._markers}
        for key in saved:
            self.clear(keys=[key])
        try:
            yield saved
        finally:
            for key, markers in saved.items():
                for marker in markers:
                    self.add(key, marker)
