"""Unit tests for the canvas world and the viewport engine."""

import pytest

from element_cloner.canvas.viewport import CanvasEngine, ViewportLimits
from element_cloner.canvas.world import EMPTY_BOUNDS, CanvasWorld
from element_cloner.utils.geometry import Rect

from conftest import fragment


def make_engine(width=1000, height=800, limits=None):
    world = CanvasWorld()
    world.add(fragment(width=100, height=50), 100, 100)
    return CanvasEngine(world, width, height, limits)


class TestCanvasWorld:
    """Test bounds, layout, and hit testing."""

    def setup_method(self):
        self.world = CanvasWorld()

    def test_empty_world_has_default_bounds(self):
        assert self.world.recompute() == EMPTY_BOUNDS

    def test_bounds_are_padded_union(self):
        self.world.add(fragment(width=100, height=50), 100, 100)
        self.world.add(fragment(width=10, height=10), 300, 0)

        assert self.world.paper == Rect(100, 0, 210, 150)
        assert self.world.bounds == Rect(50, -50, 310, 250)

    def test_bounds_listeners_are_notified(self):
        seen = []
        self.world.subscribe(seen.append)
        self.world.add(fragment(), 0, 0)
        assert seen == [self.world.bounds]

    def test_layout_column_stacks_with_gap(self):
        first = fragment(height=50)
        second = fragment(height=30)
        self.world.layout_column([first, second])

        assert first.offset_rect().top == 40
        assert first.offset_rect().left == 40
        assert second.offset_rect().top == 110

        third = fragment(height=10)
        self.world.layout_column([third])
        assert third.offset_rect().top == 160

    def test_hit_stack_prefers_nested_placed_children(self):
        outer = self.world.add(fragment(width=100, height=100), 200, 0)
        inner = outer.append(fragment(left=10, top=10, width=20, height=20))

        assert self.world.absolute_rect(inner) == Rect(210, 10, 20, 20)
        assert self.world.hit_stack(215, 15) == [inner, outer]
        assert self.world.hit_test(250, 80) is outer
        assert self.world.hit_test(215, 15, exclude=outer) is None
        assert self.world.hit_test(5, 5) is None

    def test_contains_excludes_root(self):
        node = self.world.add(fragment(), 0, 0)
        assert node in self.world
        assert self.world.root not in self.world

        self.world.clear()
        assert node not in self.world
        assert len(self.world) == 0


class TestZoom:

    def test_scale_is_clamped(self):
        engine = make_engine()

        assert engine.set_zoom(0.01) == 0.1
        assert engine.set_zoom(50) == 5.0

    def test_custom_limits(self):
        engine = make_engine(limits=ViewportLimits(min_scale=0.5, max_scale=2.0))
        assert engine.set_zoom(0.1) == 0.5
        assert engine.zoom_by(10) == 2.0

    def test_wheel_up_zooms_in(self):
        engine = make_engine()
        engine.wheel(-100)
        assert engine.state.scale == pytest.approx(1.1)

    def test_fit_is_capped(self):
        engine = make_engine()
        assert engine.fit_to_screen() == 1.5

    def test_fit_shrinks_large_worlds(self):
        world = CanvasWorld(padding=0)
        world.add(fragment(width=4000, height=1000), 0, 0)
        engine = CanvasEngine(world, 1000, 800)

        assert engine.fit_to_screen() == pytest.approx(0.225)
        left, top = engine.state.to_screen(0, 0)
        right, _ = engine.state.to_screen(4000, 1000)
        assert left == pytest.approx(50)
        assert right == pytest.approx(950)


class TestPanClamp:
    """Test that the world bounds always stay reachable."""

    @pytest.mark.parametrize("scale", [0.1, 0.5, 1.0, 3.0, 5.0])
    @pytest.mark.parametrize("dx,dy", [(1e6, 1e6), (-1e6, -1e6), (1e6, -1e6), (-1e6, 1e6)])
    def test_bounds_overlap_viewport(self, scale, dx, dy):
        engine = make_engine()
        engine.set_zoom(scale)
        engine.pan_by(dx, dy)

        assert engine.visible_world().intersects(engine.world.bounds)
        assert engine.limits.min_scale <= engine.state.scale <= engine.limits.max_scale

    def test_drag_pan(self):
        engine = make_engine()
        engine.fit_to_screen()
        x, y = engine.state.x, engine.state.y

        engine.begin_pan(500, 400)
        engine.pan_to(490, 395)
        engine.end_pan()

        assert engine.state.x <= x
        assert not engine.state.is_panning
        engine.pan_to(0, 0)
        assert engine.visible_world().intersects(engine.world.bounds)

    def test_world_center_round_trips(self):
        engine = make_engine()
        engine.fit_to_screen()
        wx, wy = engine.world_center()
        assert engine.state.to_screen(wx, wy) == pytest.approx((500, 400))


class TestCrop:
    """Test crop drag commit rules."""

    def setup_method(self):
        self.engine = make_engine()

    def drag(self, size):
        self.engine.begin_crop(0, 0)
        self.engine.update_crop(size, size)
        return self.engine.end_crop()

    def test_small_crop_is_discarded(self):
        assert self.drag(20) is False
        assert self.engine.crop.rect is None
        assert self.engine.state.scale == 1.0

    def test_crop_above_minimum_is_zoomed(self):
        assert self.drag(25) is True
        assert self.engine.crop.rect == Rect(0, 0, 25, 25)
        assert self.engine.state.scale == 2.0

    def test_update_without_begin_is_ignored(self):
        assert self.engine.update_crop(10, 10) is None
        assert self.engine.end_crop() is False

    def test_reverse_drag_is_normalized(self):
        self.engine.begin_crop(100, 100)
        rect = self.engine.update_crop(40, 30)
        assert rect == Rect(40, 30, 60, 70)


class TestMinimap:

    def test_projection(self):
        engine = make_engine()
        projection = engine.minimap()

        assert projection.context == Rect(-50, -25, 400, 300)
        assert projection.scale == 0.5
        assert projection.viewport.width >= 2

    def test_click_centres_view(self):
        engine = make_engine()
        engine.set_zoom(1.0)
        engine.center_on_minimap(100, 75)

        assert engine.world_center() == pytest.approx((150, 125))
