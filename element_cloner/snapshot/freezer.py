"""
Style-snapshot cloning.

Turns a live VisualNode subtree into a FragmentNode tree whose resolved
presentation is written out as inline declarations, so the copy renders
the same with no access to the source page's stylesheets.
"""

import asyncio
import re
from typing import Callable, Dict, Iterable, Optional, Set

from .assets import AssetCache
from .markers import MarkerOverlay
from .nodes import FragmentNode, VisualNode
from .sanitize import sanitize_iframe
from ..utils.log import get_logger
from ..utils.paths import css_url, ensure_absolute, extract_css_url
from ..utils.constants import (
    FROZEN_STYLE_PROPERTIES,
    MARKER_CLASSES,
    MARKER_COLORS,
    PSEUDO_STYLE_PROPERTIES,
    STYLE_SENTINELS,
    UI_ID_PREFIX,
)


# Generated content that produces nothing visible
EMPTY_PSEUDO_CONTENT = frozenset({'', 'none', 'normal', '""', "''"})

_QUOTE_EDGES = re.compile(r'^"|"$')


# rgb/rgba channels matching a marker colour exactly
_MARKER_COLOR_RE = re.compile(
    r"rgba?\(\s*(?:" + "|".join(re.escape(c) for c in MARKER_COLORS) + r")\s*[,)]"
)


def _has_marker_color(value: str) -> bool:
    return _MARKER_COLOR_RE.search(value) is not None


def _normalize_overflow(value: str) -> str:
    return ' '.join('visible' if v in ('auto', 'scroll') else v for v in value.split())


class StyleFreezer:
    """
    Produces self-contained copies of live nodes.

    External images are rewritten to absolute URLs right away and upgraded
    to embedded data URLs in the background once the AssetCache resolves
    them. Freezing never waits on the network.
    """

    def __init__(
        self,
        assets: AssetCache,
        markers: Optional[MarkerOverlay] = None,
        base_url: str = "",
        properties: Iterable[str] = FROZEN_STYLE_PROPERTIES
    ):
        """
        Initialize the freezer.

        Args:
            assets: Session asset cache
            markers: Marker overlay of the live page, stripped while freezing
            base_url: URL of the page, used to absolutize references
            properties: Resolved style properties copied onto the clone
        """
        self.assets = assets
        self.markers = markers
        self.base_url = base_url
        self.properties = tuple(properties)
        self.logger = get_logger("freezer")

        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_embeds(self) -> int:
        return len(self._pending)

    def freeze(self, node: VisualNode) -> FragmentNode:
        """
        Freeze a live node into a style-complete fragment.

        Args:
            node: Snapshot of the live subtree

        Returns:
            The frozen copy
        """
        if self.markers is not None:
            keys = [n.node_id for n in node.iter_elements()]
            with self.markers.suspended(keys):
                clone = self._freeze(node)
        else:
            clone = self._freeze(node)
        return clone

    def _freeze(self, node: VisualNode) -> FragmentNode:
        index: Dict[str, FragmentNode] = {}
        clone = self._clone(node, index)

        for source in node.iter_elements():
            target = index.get(source.node_id)
            if target is None:
                continue
            self._apply_computed(source, target)

        for element in clone.iter_elements():
            sanitize_iframe(element)

        self.logger.debug(f"Froze <{node.tag}> ({len(index)} elements)")
        return clone

    def _clone(self, node: VisualNode, index: Dict[str, FragmentNode]) -> FragmentNode:
        attributes = dict(node.attributes)
        if 'class' in attributes:
            classes = [c for c in attributes['class'].split() if c not in MARKER_CLASSES]
            if classes:
                attributes['class'] = ' '.join(classes)
            else:
                del attributes['class']

        fragment = FragmentNode(
            tag=node.tag,
            attributes=attributes,
            source_id=node.node_id,
            natural_size=(node.rect.width, node.rect.height),
        )
        index[node.node_id] = fragment

        for child in node.children:
            if child.is_text:
                fragment.append(FragmentNode.text_node(child.text or ''))
            elif not child.id.startswith(UI_ID_PREFIX):
                fragment.append(self._clone(child, index))
        return fragment

    def _apply_computed(self, source: VisualNode, target: FragmentNode) -> None:
        style = source.style
        for prop in self.properties:
            value = style.get(prop)
            if value is None or _has_marker_color(value):
                continue
            if prop.startswith('overflow'):
                value = _normalize_overflow(value)
            if value.strip() in STYLE_SENTINELS:
                continue
            target.style[prop] = value

        target.style['box-sizing'] = 'border-box'
        self._process_assets(source, target)
        self._mirror_pseudo(source, target)

    # --- assets -------------------------------------------------------------

    def _process_assets(self, source: VisualNode, target: FragmentNode) -> None:
        if target.tag == 'img':
            displayed = source.current_src or source.attributes.get('src', '')
            src = ensure_absolute(displayed, self.base_url)

            lazy_src = source.attributes.get('data-src')
            if lazy_src and (not displayed or displayed.startswith('data:')):
                src = ensure_absolute(lazy_src, self.base_url)

            target.attributes.pop('loading', None)
            if 'data-srcset' in source.attributes:
                target.attributes['srcset'] = source.attributes['data-srcset']

            if src:
                target.attributes['src'] = src
                target.attributes['data-original-src'] = src

                def set_src(data: str, img: FragmentNode = target) -> None:
                    img.attributes['src'] = data
                    img.attributes.pop('srcset', None)

                self._embed(src, set_src)

        url = extract_css_url(style_value(source, 'background-image'))
        if url:
            absolute = ensure_absolute(url, self.base_url)
            target.style['background-image'] = css_url(absolute)
            target.attributes['data-original-bg'] = absolute

            def set_background(data: str, node: FragmentNode = target) -> None:
                node.style['background-image'] = css_url(data)

            self._embed(absolute, set_background)

    def _embed(self, url: str, apply: Callable[[str], None]) -> None:
        if not url or url.startswith('data:'):
            return

        cached = self.assets.peek(url)
        if cached:
            apply(cached)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the export pass embeds whatever is still remote
            return

        task = loop.create_task(self._embed_later(url, apply))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _embed_later(self, url: str, apply: Callable[[str], None]) -> None:
        data = await self.assets.get_or_fetch(url)
        if data:
            apply(data)

    async def drain(self) -> None:
        """Wait until every scheduled embed has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    # --- generated content --------------------------------------------------

    def _mirror_pseudo(self, source: VisualNode, target: FragmentNode) -> None:
        for kind in ('before', 'after'):
            pseudo = source.pseudo.get(kind)
            if not pseudo:
                continue
            content = (pseudo.get('content') or '').strip()
            if content in EMPTY_PSEUDO_CONTENT:
                continue

            span = FragmentNode(tag='span')
            span.append(FragmentNode.text_node(_QUOTE_EDGES.sub('', content)))
            for prop in PSEUDO_STYLE_PROPERTIES:
                value = pseudo.get(prop)
                if value is None:
                    continue
                if prop == 'background' and _has_marker_color(value):
                    continue
                span.style[prop] = value
            span.style['pointer-events'] = 'none'

            if kind == 'before':
                target.prepend(span)
            else:
                target.append(span)


def style_value(node: VisualNode, prop: str) -> Optional[str]:
    value = node.style.get(prop)
    if value is None or value in STYLE_SENTINELS:
        return None
    return value
