"""
Standalone HTML export.

Three document shapes share the title and attribution footer:
the editor composition (optionally cropped or limited to a selection),
the captured item list, and the direct element export of picked
elements. Every shape runs the same final pass that inlines remaining
remote images and re-sandboxes iframes.
"""

import asyncio
from string import Template
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup, Tag

from ..exceptions import ExportError
from ..snapshot.assets import AssetCache
from ..snapshot.nodes import FragmentNode, format_style, parse_style, px
from ..snapshot.sanitize import sanitize_iframe_tag
from ..status import StatusBus
from ..utils.log import get_logger
from ..utils.geometry import Rect, union
from ..utils.paths import css_url, extract_css_url, is_remote_reference, write_export
from ..utils.constants import EXPORT_ATTRIBUTION, EXPORT_TITLE


COMPOSITION_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>$title</title>
    <style>
        body { margin: 0; padding: 40px; background: #f0f0f0; display: flex; flex-direction: column; align-items: center; min-height: 100vh; font-family: system-ui, sans-serif; }
    </style>
</head>
<body>
    $content
    <div style="margin-top: 40px; padding-top: 20px; border-top: 1px solid #ccc; width: 100%; max-width: 600px; text-align: center; color: #666; font-weight: bold;">
        $attribution
    </div>
</body>
</html>""")

ITEMS_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>$title</title>
    <style>
        body { margin: 0; padding: 40px; background: #f8f9fa; min-height: 100vh; font-family: -apple-system, system-ui, sans-serif; }
        .export-container { max-width: 1200px; margin: 0 auto; }
        .branding { margin-top: 60px; padding-top: 30px; border-top: 1px solid #eee; text-align: center; color: #888; font-weight: 600; letter-spacing: 0.5px; }
    </style>
</head>
<body>
    <div class="export-container">
        $content
    </div>
    <div class="branding">$attribution</div>
</body>
</html>""")

ELEMENTS_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>$title</title>
    <style>
        body { margin: 0; padding: 40px; background: #f8f9fa; min-height: 100vh; font-family: -apple-system, system-ui, sans-serif; }
        .branding { margin-top: 60px; padding-top: 30px; border-top: 1px solid #eee; text-align: center; color: #888; font-weight: 600; letter-spacing: 0.5px; }
    </style>
</head>
<body>
    $content
    <div class="branding">$attribution</div>
</body>
</html>""")

COMPOSITION_WRAPPER_STYLE = (
    "position: relative; width: {width}; height: {height}; background: white; "
    "overflow: hidden; margin: 0 auto; box-shadow: 0 0 50px rgba(0,0,0,0.1);"
)

COMPOSITION_CONTENT_STYLE = "position: absolute; left: {left}; top: {top}; width: 100%; height: 100%;"

ELEMENTS_WRAPPER_STYLE = (
    "display: flex; flex-direction: column; gap: 40px; padding: 60px; background: white; "
    "max-width: 1200px; margin: 0 auto; box-shadow: 0 10px 40px rgba(0,0,0,0.1); border-radius: 12px;"
)

# Output file name prefixes
COMPOSITION_PREFIX = "universal-export"
ELEMENTS_PREFIX = "element-export"


def render(template: Template, content: str) -> str:
    return template.substitute(title=EXPORT_TITLE, attribution=EXPORT_ATTRIBUTION, content=content)


class Exporter:
    """
    Builds export documents and optionally writes them to disk.
    """

    def __init__(self, assets: AssetCache, status: StatusBus, output_dir: Optional[str] = None):
        """
        Initialize the exporter.

        Args:
            assets: Session asset cache used by the embedding pass
            status: Status bus for progress messages
            output_dir: Directory exports are written to (None keeps them in memory)
        """
        self.assets = assets
        self.status = status
        self.output_dir = output_dir
        self.logger = get_logger("exporter")

        self.last_export: Optional[str] = None
        self.last_path: Optional[str] = None

    # --- embedding pass -----------------------------------------------------

    async def embed_assets(self, root: Tag) -> int:
        """
        Inline remote images and sanitize iframes under a tag.

        Failed fetches leave the URL in place.

        Returns:
            Number of references replaced with embedded data
        """
        tags = [root] + root.find_all(True)
        for tag in tags:
            sanitize_iframe_tag(tag)
        results = await asyncio.gather(*(self._embed_tag(tag) for tag in tags))
        return sum(results)

    async def _embed_tag(self, tag: Tag) -> int:
        replaced = 0

        if tag.name == 'img':
            src = tag.get('src')
            if is_remote_reference(src):
                data = await self.assets.get_or_fetch(src)
                if data:
                    tag['src'] = data
                    if 'srcset' in tag.attrs:
                        del tag['srcset']
                    replaced += 1

        style = parse_style(tag.get('style'))
        background = style.get('background-image')
        url = extract_css_url(background)
        if is_remote_reference(url):
            data = await self.assets.get_or_fetch(url)
            if data:
                style['background-image'] = css_url(data)
                tag['style'] = format_style(style)
                replaced += 1

        return replaced

    # --- composition --------------------------------------------------------

    @staticmethod
    def live_selection(editor) -> List[FragmentNode]:
        """Export selection still present in the world, in document order."""
        selected = set(editor.export_selection)
        return [f for f in editor.world.root.iter_elements() if f in selected and f is not editor.world.root]

    def export_area(self, editor, only_selection: bool = False) -> Optional[Rect]:
        """
        Area of the world covered by a composition export.

        Selection union when exporting the selection, else the committed
        crop, else the world bounds.
        """
        if only_selection:
            return union(editor.world.absolute_rect(f) for f in self.live_selection(editor))
        if editor.engine.crop.rect is not None:
            return editor.engine.crop.rect
        return editor.world.recompute()

    async def export_composition(self, editor, only_selection: bool = False) -> Optional[str]:
        """
        Export the editor composition.

        Selected fragments nested inside other selected fragments are lifted
        out of their ancestor and placed on their own.

        Args:
            editor: Open EditorSession
            only_selection: Keep only the export selection

        Returns:
            The document, or None when the selection is empty
        """
        selection = self.live_selection(editor)
        if only_selection and not selection:
            self.status.status("No elements selected for export.", False)
            return None

        self.status.status("Preparing export... Embedding images...", True)
        area = self.export_area(editor, only_selection)

        soup = BeautifulSoup('', 'html.parser')
        wrapper = soup.new_tag('div', attrs={
            'style': COMPOSITION_WRAPPER_STYLE.format(width=px(area.width), height=px(area.height))
        })
        content = soup.new_tag('div', attrs={
            'style': COMPOSITION_CONTENT_STYLE.format(left=px(-area.left), top=px(-area.top))
        })
        wrapper.append(content)

        if only_selection:
            for fragment in selection:
                rect = editor.world.absolute_rect(fragment)
                content.append(self._placed_tag(soup, fragment, rect, selection))
        else:
            for fragment in editor.world.fragments:
                content.append(fragment.to_soup(soup))

        embedded = await self.embed_assets(wrapper)
        self.logger.debug(f"Embedded {embedded} assets into composition export")

        html = render(COMPOSITION_TEMPLATE, str(wrapper))
        self._finish(html, COMPOSITION_PREFIX)
        return html

    def _placed_tag(self, soup: BeautifulSoup, fragment: FragmentNode, rect: Rect,
                    lifted: Iterable[FragmentNode] = ()) -> Tag:
        # Selected fragments keep their world position even when nested
        tag = fragment.to_soup(soup, skip=[f for f in lifted if f is not fragment])
        style = parse_style(tag.get('style'))
        style['position'] = 'absolute'
        style['left'] = px(rect.left)
        style['top'] = px(rect.top)
        tag['style'] = format_style(style)
        return tag

    # --- captured items -----------------------------------------------------

    async def export_items(self, items: Iterable) -> Optional[str]:
        """
        Export captured items, de-duplicated by fingerprint in order.

        Args:
            items: CapturedItem sequence

        Returns:
            The document, or None when there is nothing to export
        """
        seen = set()
        unique: List[str] = []
        for item in items:
            if item.fingerprint in seen:
                continue
            seen.add(item.fingerprint)
            unique.append(item.html)

        if not unique:
            self.status.status("Nothing captured yet.", False)
            return None

        soup = BeautifulSoup('\n'.join(unique), 'html.parser')
        container = soup.new_tag('div')
        for node in list(soup.contents):
            container.append(node.extract())

        await self.embed_assets(container)
        html = render(ITEMS_TEMPLATE, container.decode_contents())
        self._finish(html, COMPOSITION_PREFIX)
        return html

    # --- direct element export ----------------------------------------------

    async def export_fragments(self, fragments: Iterable[FragmentNode]) -> Optional[str]:
        """
        Export frozen picks stacked in a padded column.

        Returns:
            The document, or None when nothing was picked
        """
        fragments = list(fragments)
        if not fragments:
            self.status.status("No elements selected for export.", False)
            return None

        self.status.status("Preparing direct element export...", True)
        soup = BeautifulSoup('', 'html.parser')
        wrapper = soup.new_tag('div', attrs={'style': ELEMENTS_WRAPPER_STYLE})
        for fragment in fragments:
            wrapper.append(fragment.to_soup(soup))

        await self.embed_assets(wrapper)
        html = render(ELEMENTS_TEMPLATE, str(wrapper))
        self._finish(html, ELEMENTS_PREFIX)
        return html

    def _finish(self, html: str, prefix: str) -> None:
        self.last_export = html
        self.last_path = None
        if self.output_dir:
            try:
                self.last_path = write_export(html, self.output_dir, prefix)
            except OSError as e:
                raise ExportError(f"Could not write export to {self.output_dir}: {e}") from e
            self.logger.info(f"Export written to {self.last_path}")
        self.status.status("Export complete!", False)
