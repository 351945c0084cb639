"""
Rectangle helpers shared by the snapshot model and the canvas.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in document or world coordinates."""
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.width / 2, self.top + self.height / 2)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @classmethod
    def from_edges(cls, left: float, top: float, right: float, bottom: float) -> "Rect":
        return cls(left, top, right - left, bottom - top)

    @classmethod
    def from_points(cls, x1: float, y1: float, x2: float, y2: float) -> "Rect":
        """Normalized rectangle spanned by two corner points."""
        return cls(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))

    def expanded(self, margin: float) -> "Rect":
        return Rect(
            self.left - margin,
            self.top - margin,
            self.width + margin * 2,
            self.height + margin * 2,
        )

    def intersects(self, other: "Rect") -> bool:
        return (
            self.left <= other.right and other.left <= self.right and
            self.top <= other.bottom and other.top <= self.bottom
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def to_dict(self) -> dict:
        return {
            'left': self.left,
            'top': self.top,
            'width': self.width,
            'height': self.height,
        }


def union(rects: Iterable[Rect]) -> Optional[Rect]:
    """
    Smallest rectangle enclosing every input rectangle.

    Returns:
        The enclosing Rect, or None for an empty input
    """
    left = top = float('inf')
    right = bottom = float('-inf')
    seen = False
    for r in rects:
        seen = True
        left = min(left, r.left)
        top = min(top, r.top)
        right = max(right, r.right)
        bottom = max(bottom, r.bottom)
    if not seen:
        return None
    return Rect.from_edges(left, top, right, bottom)
