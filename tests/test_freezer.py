"""Unit tests for style-snapshot freezing and iframe sanitization."""

import pytest
from bs4 import BeautifulSoup

from element_cloner.snapshot.assets import AssetCache
from element_cloner.snapshot.freezer import StyleFreezer
from element_cloner.snapshot.markers import MarkerOverlay
from element_cloner.snapshot.sanitize import sanitize_iframe_tag, sanitize_sandbox
from element_cloner.utils.constants import MARKER_CAPTURED, MARKER_HIGHLIGHT, MARKER_SELECTED

from conftest import FakeFetch, element, text


BASE = "https://example.com/page"
PNG = "data:image/png;base64,UE5H"


class TestStyleTransfer:
    """Test computed style inlining."""

    def setup_method(self):
        self.freezer = StyleFreezer(AssetCache(FakeFetch()), base_url=BASE)

    def test_copies_allow_listed_values(self):
        node = element("a", "div", style={"color": "rgb(1, 2, 3)", "font-size": "14px", "not-listed": "x"})
        clone = self.freezer.freeze(node)

        assert clone.style["color"] == "rgb(1, 2, 3)"
        assert clone.style["font-size"] == "14px"
        assert "not-listed" not in clone.style

    def test_skips_sentinels_and_marker_colors(self):
        node = element("a", "div", style={
            "display": "none",
            "transform": "initial",
            "box-shadow": "rgba(0, 255, 136, 0.5) 0px 0px 10px",
            "background-color": "rgb(255, 255, 255)",
        })
        clone = self.freezer.freeze(node)

        assert "display" not in clone.style
        assert "transform" not in clone.style
        assert "box-shadow" not in clone.style
        assert clone.style["background-color"] == "rgb(255, 255, 255)"

    @pytest.mark.parametrize("value", [
        "rgb(10, 255, 136)",
        "rgba(100, 255, 1360, 1)",
        "rgb(198, 100, 167)",
    ])
    def test_page_colors_near_marker_colors_are_kept(self, value):
        node = element("a", "div", style={"color": value})
        clone = self.freezer.freeze(node)

        assert clone.style["color"] == value

    def test_overflow_is_opened_up_and_box_sizing_forced(self):
        node = element("a", "div", style={"overflow": "auto hidden", "box-sizing": "content-box"})
        clone = self.freezer.freeze(node)

        assert clone.style["overflow"] == "visible hidden"
        assert clone.style["box-sizing"] == "border-box"

    def test_styles_follow_ids_not_positions(self):
        node = element(
            "root", "ul",
            element("ec-overlay", "div", attributes={"id": "ec-overlay"}),
            element("li1", "li", text("one"), style={"color": "red"}),
            element("li2", "li", text("two"), style={"color": "blue"}),
        )
        clone = self.freezer.freeze(node)

        items = clone.element_children
        assert [i.source_id for i in items] == ["li1", "li2"]
        assert items[0].style["color"] == "red"
        assert items[1].style["color"] == "blue"

    def test_marker_classes_are_stripped(self):
        node = element("a", "div", attributes={"class": "card mb-highlight"})
        clone = self.freezer.freeze(node)
        assert clone.attributes["class"] == "card"

    def test_source_is_not_modified(self):
        node = element("a", "div", text("hi"), style={"color": "red"})
        clone = self.freezer.freeze(node)
        clone.style["color"] = "blue"
        clone.children[0].text = "changed"

        assert node.style["color"] == "red"
        assert node.text_content == "hi"

    def test_natural_size_comes_from_rect(self):
        clone = self.freezer.freeze(element("a", "div", rect=(5, 5, 320, 240)))
        assert clone.natural_size == (320, 240)


class TestPseudoContent:

    def setup_method(self):
        self.freezer = StyleFreezer(AssetCache(FakeFetch()))

    def test_before_and_after_become_spans(self):
        node = element("a", "p", text("body"), pseudo={
            "before": {"content": '"★"', "color": "gold"},
            "after": {"content": '"!"'},
        })
        clone = self.freezer.freeze(node)

        first, last = clone.children[0], clone.children[-1]
        assert first.tag == "span" and first.children[0].text == "★"
        assert first.style["color"] == "gold"
        assert first.style["pointer-events"] == "none"
        assert last.tag == "span" and last.children[0].text == "!"

    def test_empty_content_is_ignored(self):
        node = element("a", "p", text("body"), pseudo={"before": {"content": "none"}})
        clone = self.freezer.freeze(node)
        assert [c.tag for c in clone.children] == ["#text"]


class TestImages:
    """Test image and background reference handling."""

    def setup_method(self):
        self.fetch = FakeFetch({
            "https://example.com/img/a.png": PNG,
            "https://example.com/bg.jpg": PNG,
        })
        self.freezer = StyleFreezer(AssetCache(self.fetch), base_url=BASE)

    def test_without_loop_keeps_absolute_url(self):
        node = element("i", "img", attributes={"src": "img/a.png", "loading": "lazy"})
        clone = self.freezer.freeze(node)

        assert clone.attributes["src"] == "https://example.com/img/a.png"
        assert clone.attributes["data-original-src"] == "https://example.com/img/a.png"
        assert "loading" not in clone.attributes
        assert self.fetch.calls == []

    def test_current_src_wins_over_src(self):
        node = element("i", "img", attributes={"src": "small.png"}, current_src="https://example.com/img/a.png")
        clone = self.freezer.freeze(node)
        assert clone.attributes["src"] == "https://example.com/img/a.png"

    def test_lazy_placeholder_is_replaced(self):
        node = element("i", "img", attributes={
            "src": "data:image/gif;base64,R0lG",
            "data-src": "/img/a.png",
            "data-srcset": "/img/a.png 1x",
        })
        clone = self.freezer.freeze(node)

        assert clone.attributes["src"] == "https://example.com/img/a.png"
        assert clone.attributes["srcset"] == "/img/a.png 1x"

    def test_real_src_beats_lazy_attribute(self):
        node = element("i", "img", attributes={"src": "/img/real.png", "data-src": "/img/lazy.png"})
        clone = self.freezer.freeze(node)
        assert clone.attributes["src"] == "https://example.com/img/real.png"

    @pytest.mark.asyncio
    async def test_embed_upgrades_clone_in_place(self):
        node = element("i", "img", attributes={"src": "img/a.png", "srcset": "img/a.png 2x"})
        clone = self.freezer.freeze(node)

        assert clone.attributes["src"].startswith("https://")
        await self.freezer.drain()

        assert clone.attributes["src"] == PNG
        assert "srcset" not in clone.attributes

    @pytest.mark.asyncio
    async def test_background_image_is_absolutized_and_embedded(self):
        node = element("d", "div", style={"background-image": 'url("../bg.jpg")'})
        clone = self.freezer.freeze(node)

        assert clone.style["background-image"] == 'url("https://example.com/bg.jpg")'
        assert clone.attributes["data-original-bg"] == "https://example.com/bg.jpg"

        await self.freezer.drain()
        assert clone.style["background-image"] == f'url("{PNG}")'

    @pytest.mark.asyncio
    async def test_failed_embed_keeps_absolute_url(self):
        node = element("i", "img", attributes={"src": "https://other.test/x.png"})
        clone = self.freezer.freeze(node)
        await self.freezer.drain()

        assert clone.attributes["src"] == "https://other.test/x.png"


class TestFreezePurity:
    """Test that freezing never leaves marker state changed."""

    def setup_method(self):
        self.markers = MarkerOverlay()
        self.freezer = StyleFreezer(AssetCache(FakeFetch()), self.markers, base_url=BASE)
        self.node = element("a", "div", element("b", "img", attributes={"src": "https://x.test/a.png"}))
        self.markers.add("a", MARKER_HIGHLIGHT)
        self.markers.add("b", MARKER_SELECTED)
        self.markers.add("b", MARKER_CAPTURED)

    def _state(self):
        return {key: self.markers.markers_of(key) for key in ("a", "b")}

    def test_markers_are_stripped_during_freeze(self):
        seen = {}
        original = self.freezer._apply_computed

        def spy(source, target):
            seen[source.node_id] = self.markers.markers_of(source.node_id)
            original(source, target)

        self.freezer._apply_computed = spy
        self.freezer.freeze(self.node)

        assert seen == {"a": frozenset(), "b": frozenset()}

    def test_markers_restored_after_freeze(self):
        before = self._state()
        self.freezer.freeze(self.node)
        assert self._state() == before

    def test_markers_restored_when_freeze_raises(self):
        before = self._state()

        def explode(source, target):
            raise RuntimeError("host went away")

        self.freezer._apply_computed = explode
        with pytest.raises(RuntimeError):
            self.freezer.freeze(self.node)

        assert self._state() == before

    @pytest.mark.asyncio
    async def test_markers_restored_when_embedding_fails(self):
        before = self._state()
        self.freezer.freeze(self.node)
        await self.freezer.drain()
        assert self._state() == before


class TestSanitize:
    """Test iframe re-sandboxing."""

    def test_missing_sandbox_gets_default(self):
        assert sanitize_sandbox(None) == "allow-same-origin"

    def test_scripts_plus_same_origin_loses_scripts(self):
        assert sanitize_sandbox("allow-scripts allow-same-origin allow-forms") == "allow-same-origin allow-forms"

    def test_other_sandboxes_unchanged(self):
        assert sanitize_sandbox("allow-scripts") == "allow-scripts"
        assert sanitize_sandbox("") == ""

    def test_freeze_sanitizes_iframes(self):
        freezer = StyleFreezer(AssetCache(FakeFetch()))
        node = element("f", "div", element("i", "iframe", attributes={"src": "https://x.test"}))
        clone = freezer.freeze(node)
        assert clone.element_children[0].attributes["sandbox"] == "allow-same-origin"

    def test_tag_sanitizer(self):
        soup = BeautifulSoup('<iframe sandbox="allow-same-origin allow-scripts"></iframe>', "html.parser")
        tag = soup.find("iframe")

        assert sanitize_iframe_tag(tag) is True
        assert tag["sandbox"] == "allow-same-origin"
        assert sanitize_iframe_tag(tag) is False
