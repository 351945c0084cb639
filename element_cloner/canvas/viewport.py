"""
Viewport transform for the canvas.

Screen and world coordinates are related by ``screen = world * scale + pan``.
The engine owns pan, zoom, fitting, crop selection, and the minimap
projection, and keeps the world bounds reachable after every change.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .world import CanvasWorld
from ..utils.geometry import Rect
from ..utils.constants import (
    CROP_ZOOM_CEILING,
    CROP_ZOOM_RATIO,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    FIT_CEILING,
    FIT_RATIO,
    MIN_CROP_SIZE,
    MINIMAP_HEIGHT,
    MINIMAP_WIDTH,
    PAN_CLAMP_PADDING,
    WHEEL_ZOOM_INTENSITY,
    ZOOM_MAX,
    ZOOM_MIN,
)


@dataclass
class ViewportLimits:
    """Configurable zoom range and pan clamp margin."""
    min_scale: float = ZOOM_MIN
    max_scale: float = ZOOM_MAX
    clamp_padding: float = PAN_CLAMP_PADDING

    def clamp_scale(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))


@dataclass
class ViewportState:
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    is_panning: bool = False

    def to_screen(self, wx: float, wy: float) -> Tuple[float, float]:
        return (wx * self.scale + self.x, wy * self.scale + self.y)

    def to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return ((sx - self.x) / self.scale, (sy - self.y) / self.scale)


@dataclass
class CropState:
    """Crop selection in world coordinates."""
    active: bool = False
    rect: Optional[Rect] = None
    start: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class MinimapProjection:
    """
    Minimap geometry.

    ``context`` is the world area shown (the bounds doubled around their
    centre); ``viewport`` is the visible area in minimap pixels.
    """
    scale: float
    context: Rect
    viewport: Rect


class CanvasEngine:
    """
    Pan, zoom, crop, and minimap over a CanvasWorld.
    """

    def __init__(
        self,
        world: CanvasWorld,
        viewport_width: float = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: float = DEFAULT_VIEWPORT_HEIGHT,
        limits: Optional[ViewportLimits] = None
    ):
        self.world = world
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.limits = limits or ViewportLimits()

        self.state = ViewportState()
        self.crop = CropState()
        self._pan_origin: Tuple[float, float] = (0.0, 0.0)

    def to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return self.state.to_world(sx, sy)

    def resize(self, width: float, height: float) -> None:
        self.viewport_width = width
        self.viewport_height = height
        self.clamp_pan()

    # --- zoom ---------------------------------------------------------------

    def set_zoom(self, scale: float) -> float:
        self.state.scale = self.limits.clamp_scale(scale)
        self.clamp_pan()
        return self.state.scale

    def zoom_by(self, delta: float) -> float:
        return self.set_zoom(self.state.scale + delta)

    def wheel(self, delta_y: float) -> float:
        """Zoom from a wheel event; scrolling up zooms in."""
        return self.zoom_by(-delta_y * WHEEL_ZOOM_INTENSITY)

    def _center_on(self, rect: Rect, scale: float) -> None:
        self.state.scale = self.limits.clamp_scale(scale)
        cx, cy = rect.center
        self.state.x = self.viewport_width / 2 - cx * self.state.scale
        self.state.y = self.viewport_height / 2 - cy * self.state.scale
        self.clamp_pan()

    def fit_to_screen(self) -> float:
        """Scale and centre the world bounds in the viewport."""
        bounds = self.world.bounds
        scale = min(
            self.viewport_width * FIT_RATIO / bounds.width,
            self.viewport_height * FIT_RATIO / bounds.height,
            FIT_CEILING,
        )
        self._center_on(bounds, scale)
        return self.state.scale

    def zoom_to_rect(self, rect: Rect) -> float:
        scale = min(
            self.viewport_width * CROP_ZOOM_RATIO / rect.width,
            self.viewport_height * CROP_ZOOM_RATIO / rect.height,
            CROP_ZOOM_CEILING,
        )
        self._center_on(rect, scale)
        return self.state.scale

    # --- pan ----------------------------------------------------------------

    def begin_pan(self, sx: float, sy: float) -> None:
        self.state.is_panning = True
        self._pan_origin = (sx - self.state.x, sy - self.state.y)

    def pan_to(self, sx: float, sy: float) -> None:
        if not self.state.is_panning:
            return
        self.state.x = sx - self._pan_origin[0]
        self.state.y = sy - self._pan_origin[1]
        self.clamp_pan()

    def end_pan(self) -> None:
        self.state.is_panning = False

    def pan_by(self, dx: float, dy: float) -> None:
        self.state.x += dx
        self.state.y += dy
        self.clamp_pan()

    def clamp_pan(self) -> None:
        """
        Keep the world bounds at least partly inside the viewport.

        The margin is the clamp padding in world units, capped at half the
        viewport so the bounds can never leave it entirely. Bounds smaller
        than the viewport may sit anywhere inside it.
        """
        bounds = self.world.bounds
        s = self.state.scale
        pad_x = min(self.limits.clamp_padding * s, self.viewport_width / 2)
        pad_y = min(self.limits.clamp_padding * s, self.viewport_height / 2)

        min_x, max_x = sorted((self.viewport_width - bounds.right * s - pad_x, pad_x - bounds.left * s))
        min_y, max_y = sorted((self.viewport_height - bounds.bottom * s - pad_y, pad_y - bounds.top * s))

        self.state.x = max(min_x, min(max_x, self.state.x))
        self.state.y = max(min_y, min(max_y, self.state.y))

    def visible_world(self) -> Rect:
        s = self.state.scale
        return Rect(-self.state.x / s, -self.state.y / s, self.viewport_width / s, self.viewport_height / s)

    def world_center(self) -> Tuple[float, float]:
        """World coordinates of the viewport centre."""
        return self.to_world(self.viewport_width / 2, self.viewport_height / 2)

    # --- crop ---------------------------------------------------------------

    def begin_crop(self, sx: float, sy: float) -> None:
        self.crop.active = True
        self.crop.start = self.to_world(sx, sy)
        self.crop.rect = None

    def update_crop(self, sx: float, sy: float) -> Optional[Rect]:
        if not self.crop.active or self.crop.start is None:
            return None
        wx, wy = self.to_world(sx, sy)
        self.crop.rect = Rect.from_points(self.crop.start[0], self.crop.start[1], wx, wy)
        return self.crop.rect

    def end_crop(self) -> bool:
        """
        Finish a crop drag.

        Returns:
            True when the rectangle was committed and zoomed to
        """
        if not self.crop.active:
            return False
        self.crop.active = False
        self.crop.start = None
        rect = self.crop.rect
        if rect is None or rect.width <= MIN_CROP_SIZE or rect.height <= MIN_CROP_SIZE:
            self.crop.rect = None
            return False
        self.zoom_to_rect(rect)
        return True

    def clear_crop(self) -> None:
        self.crop = CropState()

    # --- minimap ------------------------------------------------------------

    def minimap(self, width: float = MINIMAP_WIDTH, height: float = MINIMAP_HEIGHT) -> MinimapProjection:
        bounds = self.world.bounds
        context = Rect(
            bounds.left - bounds.width * 0.5,
            bounds.top - bounds.height * 0.5,
            bounds.width * 2,
            bounds.height * 2,
        )
        scale = min(width / context.width, height / context.height)

        visible = self.visible_world()
        view = Rect(
            (visible.left - context.left) * scale,
            (visible.top - context.top) * scale,
            max(2.0, visible.width * scale),
            max(2.0, visible.height * scale),
        )
        return MinimapProjection(scale, context, view)

    def center_on_minimap(self, mx: float, my: float) -> None:
        """Centre the viewport on the world point under a minimap click."""
        projection = self.minimap()
        wx = projection.context.left + mx / projection.scale
        wy = projection.context.top + my / projection.scale
        s = self.state.scale
        self.state.x = self.viewport_width / 2 - wx * s
        self.state.y = self.viewport_height / 2 - wy * s
        self.clamp_pan()
