"""
Browser host binding.

The core never touches a live document directly; it asks a CaptureHost
for read-only VisualNode snapshots and for a handful of page actions
(scrolling, hit testing, observing insertions, painting markers).
PlaywrightHost implements that contract on a headless Chromium page.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeout,
)

from .markers import MarkerOverlay
from .nodes import VisualNode
from ..exceptions import HostError
from ..utils.log import get_logger
from ..utils.constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_VIEWPORT_WIDTH,
    DEFAULT_VIEWPORT_HEIGHT,
    FROZEN_STYLE_PROPERTIES,
    GUIDED_MIN_OVERFLOW,
    PSEUDO_STYLE_PROPERTIES,
    UI_ID_PREFIX,
)


InsertCallback = Callable[[VisualNode], Any]


@dataclass
class ViewportMetrics:
    """Window scroll offset and size, in CSS pixels."""
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    width: float = DEFAULT_VIEWPORT_WIDTH
    height: float = DEFAULT_VIEWPORT_HEIGHT


@dataclass
class ScrollerMetrics:
    """Scroll state of the window or of one scroll container."""
    name: str
    scroll_top: float
    client_height: float
    scroll_height: float

    @property
    def progress(self) -> float:
        """Percentage of the content that has been scrolled into view."""
        if self.scroll_height <= 0:
            return 100.0
        return min((self.scroll_top + self.client_height) / self.scroll_height * 100, 100.0)


class CaptureHost(ABC):
    """
    Contract between the core and the live document.

    Node ids are opaque strings assigned by the host and stable for the
    lifetime of the element.
    """

    url: str = ""

    @abstractmethod
    async def resolve(self, selector: str) -> Optional[str]:
        """Return the node id of the first element matching a CSS selector."""

    @abstractmethod
    async def snapshot(self, node_id: str, depth: Optional[int] = None) -> Optional[VisualNode]:
        """
        Snapshot a live subtree.

        Args:
            node_id: Root of the subtree
            depth: Levels of children to include (None for all)

        Returns:
            The snapshot, or None when the element is gone
        """

    @abstractmethod
    async def depth_stack(self, x: float, y: float) -> List[VisualNode]:
        """Shallow snapshots of the elements under a viewport point, topmost first."""

    @abstractmethod
    async def scroll_by(self, node_id: Optional[str], dy: float) -> None:
        """Scroll the nearest scrollable ancestor of a node, or the window."""

    @abstractmethod
    async def viewport(self) -> ViewportMetrics:
        """Current window scroll offset and size."""

    @abstractmethod
    async def scrollers(self, min_overflow: int = GUIDED_MIN_OVERFLOW) -> List[ScrollerMetrics]:
        """The window followed by every scroll container with hidden content."""

    @abstractmethod
    async def observe(self, node_id: str, callback: InsertCallback) -> None:
        """Report elements inserted anywhere below a node."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Stop reporting insertions."""

    async def fetch_blob(self, url: str) -> Optional[str]:
        """Read a page-local blob: URL as a data URL."""
        return None

    def attach_markers(self, markers: MarkerOverlay) -> None:
        """Start mirroring an overlay onto the page."""

    async def close(self) -> None:
        """Release the page."""


# Installed into every document before page scripts run. Only the
# ec-marker-layer element is ever added to the page.
HELPER_SCRIPT = """
(() => {
  if (window.__ec) return;
  const PREFIX = '%(prefix)s';
  const ids = new WeakMap();
  const refs = new Map();
  let next = 1;
  let observer = null;

  const idOf = (el) => {
    let id = ids.get(el);
    if (!id) {
      id = 'n' + (next++);
      ids.set(el, id);
      refs.set(id, new WeakRef(el));
    }
    return id;
  };
  const byId = (id) => {
    const ref = refs.get(id);
    return ref ? (ref.deref() || null) : null;
  };
  const isUi = (el) => !!(el.id && el.id.startsWith(PREFIX)) || !!(el.closest && el.closest('[id^="' + PREFIX + '"]'));

  const rectOf = (el) => {
    const r = el.getBoundingClientRect();
    return {
      left: r.left + window.scrollX,
      top: r.top + window.scrollY,
      width: ('offsetWidth' in el) ? el.offsetWidth : r.width,
      height: ('offsetHeight' in el) ? el.offsetHeight : r.height,
    };
  };
  const styleOf = (el, props) => {
    const c = getComputedStyle(el);
    const out = {};
    for (const p of props) {
      const v = c.getPropertyValue(p);
      if (v !== '') out[p] = v;
    }
    return out;
  };
  const pseudoOf = (el, props) => {
    const out = {};
    for (const kind of ['before', 'after']) {
      const c = getComputedStyle(el, '::' + kind);
      const content = c.getPropertyValue('content');
      if (!content || content === 'none' || content === 'normal') continue;
      const s = { content };
      for (const p of props) s[p] = c.getPropertyValue(p);
      out[kind] = s;
    }
    return out;
  };
  const ancestorsOf = (el) => {
    const out = [];
    for (let p = el.parentElement; p; p = p.parentElement) out.push(idOf(p));
    return out;
  };

  const snap = (el, depth, opts) => {
    const node = {
      id: idOf(el),
      tag: el.tagName.toLowerCase(),
      attributes: {},
      children: [],
      rect: rectOf(el),
      text: (el.innerText !== undefined ? el.innerText : el.textContent) || '',
    };
    for (const a of el.attributes) node.attributes[a.name] = a.value;
    if (el.tagName === 'IMG') node.currentSrc = el.currentSrc || el.src || '';
    if (depth === 0) {
      for (const child of el.children) {
        if (!isUi(child)) node.children.push({ id: idOf(child), tag: child.tagName.toLowerCase() });
      }
      return node;
    }
    node.style = styleOf(el, opts.props);
    node.pseudo = pseudoOf(el, opts.pseudoProps);
    for (const child of el.childNodes) {
      if (child.nodeType === 3) {
        node.children.push({ tag: '#text', text: child.data });
      } else if (child.nodeType === 1 && !isUi(child)) {
        node.children.push(snap(child, depth === null ? null : depth - 1, opts));
      }
    }
    return node;
  };

  const scrollerOf = (el) => {
    for (let p = el; p; p = p.parentElement) {
      if (p.scrollHeight > p.clientHeight) {
        const s = getComputedStyle(p);
        if (/(auto|scroll)/.test(s.overflow + s.overflowY)) return p;
      }
    }
    return null;
  };

  window.__ec = {
    resolve: (selector) => {
      const el = document.querySelector(selector);
      return el ? idOf(el) : null;
    },
    snapshot: (id, depth, opts) => {
      const el = byId(id);
      if (!el) return null;
      const node = snap(el, depth, opts);
      node.ancestors = ancestorsOf(el);
      return node;
    },
    stack: (x, y) => document.elementsFromPoint(x, y)
      .filter((el) => !isUi(el))
      .map((el) => {
        const node = snap(el, 0, null);
        node.ancestors = ancestorsOf(el);
        return node;
      }),
    scrollBy: (id, dy) => {
      const el = id ? byId(id) : null;
      const s = el ? scrollerOf(el) : null;
      (s || window).scrollBy({ top: dy, behavior: 'smooth' });
    },
    viewport: () => ({
      scrollX: window.scrollX, scrollY: window.scrollY,
      width: window.innerWidth, height: window.innerHeight,
    }),
    scrollers: (minOverflow) => {
      const found = Array.from(document.querySelectorAll('*')).filter((el) => {
        if (isUi(el)) return false;
        const s = getComputedStyle(el);
        const scrollable = ['auto', 'scroll'].includes(s.overflow) || ['auto', 'scroll'].includes(s.overflowY);
        return scrollable && el.scrollHeight > el.clientHeight + minOverflow;
      });
      const out = [{
        name: 'Main Window', top: window.scrollY, client: window.innerHeight,
        height: document.documentElement.scrollHeight,
      }];
      found.forEach((el, i) => out.push({
        name: el.tagName.toLowerCase() + '#' + (el.id || (i + 1)),
        top: el.scrollTop, client: el.clientHeight, height: el.scrollHeight,
      }));
      return out;
    },
    observe: (id, opts) => {
      const el = byId(id);
      if (!el) return false;
      if (observer) observer.disconnect();
      observer = new MutationObserver((mutations) => {
        for (const m of mutations) {
          for (const added of m.addedNodes) {
            if (added.nodeType !== 1 || isUi(added)) continue;
            const node = snap(added, null, opts);
            node.ancestors = ancestorsOf(added);
            window.__ecInserted(node);
          }
        }
      });
      observer.observe(el, { childList: true, subtree: true });
      return true;
    },
    disconnect: () => {
      if (observer) observer.disconnect();
      observer = null;
    },
    paint: (entries, colors) => {
      let layer = document.getElementById(PREFIX + 'marker-layer');
      if (!layer) {
        layer = document.createElement('div');
        layer.id = PREFIX + 'marker-layer';
        layer.style.cssText = 'position:absolute;left:0;top:0;width:0;height:0;pointer-events:none;z-index:2147483647;';
        document.documentElement.appendChild(layer);
      }
      for (const [key, markers] of Object.entries(entries)) {
        const boxId = PREFIX + 'm-' + key;
        let box = document.getElementById(boxId);
        const el = byId(key);
        if (!el || markers.length === 0) {
          if (box) box.remove();
          continue;
        }
        if (!box) {
          box = document.createElement('div');
          box.id = boxId;
          layer.appendChild(box);
        }
        const r = rectOf(el);
        const color = colors[markers.find((m) => colors[m]) || ''] || colors['highlight'];
        box.style.cssText = 'position:absolute;box-sizing:border-box;pointer-events:none;' +
          'left:' + r.left + 'px;top:' + r.top + 'px;width:' + r.width + 'px;height:' + r.height + 'px;' +
          'outline:2px solid rgb(' + color + ');background:rgba(' + color + ',0.12);';
      }
    },
    fetchBlob: async (url) => {
      try {
        const response = await fetch(url);
        if (!response.ok) return null;
        const blob = await response.blob();
        return await new Promise((resolve) => {
          const reader = new FileReader();
          reader.onloadend = () => resolve(reader.result);
          reader.onerror = () => resolve(null);
          reader.readAsDataURL(blob);
        });
      } catch (e) {
        return null;
      }
    },
  };
})();
""" % {'prefix': UI_ID_PREFIX}


# Marker precedence for the painted layer, first match wins
MARKER_PAINT_COLORS = {
    'delete-selected': '239, 68, 68',
    'export-selected': '34, 197, 94',
    'selected': '0, 81, 195',
    'highlight': '98, 100, 167',
    'captured': '0, 255, 136',
}


class PlaywrightHost(CaptureHost):
    """
    CaptureHost backed by a Playwright Chromium page.
    """

    def __init__(
        self,
        timeout: int = DEFAULT_PAGE_TIMEOUT,
        wait_until: str = "networkidle",
        headless: bool = True,
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
        user_agent: Optional[str] = None
    ):
        """
        Initialize the host.

        Args:
            timeout: Page load timeout in milliseconds
            wait_until: Event to wait for ('load', 'domcontentloaded', 'networkidle')
            headless: Run browser in headless mode
            viewport_width: Browser viewport width
            viewport_height: Browser viewport height
            user_agent: Optional custom user agent
        """
        self.timeout = timeout
        self.wait_until = wait_until
        self.headless = headless
        self.viewport_size = {"width": viewport_width, "height": viewport_height}
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.logger = get_logger("host")

        self.url = ""
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

        self._on_insert: Optional[InsertCallback] = None
        self._dirty_markers: Dict[str, FrozenSet[str]] = {}
        self._paint_task: Optional[asyncio.Task] = None
        self._style_options = {
            'props': list(FROZEN_STYLE_PROPERTIES),
            'pseudoProps': list(PSEUDO_STYLE_PROPERTIES),
        }

    @property
    def page(self) -> Page:
        if self._page is None:
            raise HostError("No page is open")
        return self._page

    async def start(self) -> None:
        """
        Start the Playwright browser instance.
        """
        self.logger.info("Starting Playwright browser...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                '--disable-blink-features=AutomationControlled',
                '--no-sandbox',
                '--disable-setuid-sandbox',
                '--disable-dev-shm-usage',
            ]
        )
        self.logger.info("Browser started successfully")

    async def open(self, url: str) -> None:
        """
        Open a page and install the snapshot helpers.

        Args:
            url: URL to open

        Raises:
            HostError: If the page cannot be loaded
        """
        if not self._browser:
            await self.start()

        try:
            self._context = await self._browser.new_context(
                user_agent=self.user_agent,
                viewport=self.viewport_size,
                ignore_https_errors=True,
            )
            self._page = await self._context.new_page()
            await self._page.expose_function('__ecInserted', self._handle_inserted)
            await self._page.add_init_script(HELPER_SCRIPT)

            self.logger.debug(f"Opening: {url}")
            response = await self._page.goto(url, wait_until=self.wait_until, timeout=self.timeout)
            if response is not None and response.status >= 400:
                await self.close()
                raise HostError(f"HTTP {response.status} for {url}")

            # Wait for any additional dynamic content
            await asyncio.sleep(1)
            self.url = self._page.url
            self.logger.info(f"Opened {self.url}")

        except PlaywrightTimeout as e:
            await self.close()
            raise HostError(f"Timeout opening {url}") from e
        except PlaywrightError as e:
            await self.close()
            raise HostError(f"Error opening {url}: {e}") from e

    async def close(self) -> None:
        """
        Close the page and stop the browser.
        """
        if self._page is not None:
            await self._page.close()
            self._page = None
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.logger.info("Browser stopped")

    async def _evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise HostError(f"Page evaluation failed: {e}") from e

    async def resolve(self, selector: str) -> Optional[str]:
        return await self._evaluate("s => window.__ec.resolve(s)", selector)

    async def snapshot(self, node_id: str, depth: Optional[int] = None) -> Optional[VisualNode]:
        data = await self._evaluate(
            "([id, depth, opts]) => window.__ec.snapshot(id, depth, opts)",
            [node_id, depth, self._style_options],
        )
        return VisualNode.from_dict(data) if data else None

    async def depth_stack(self, x: float, y: float) -> List[VisualNode]:
        data = await self._evaluate("([x, y]) => window.__ec.stack(x, y)", [x, y])
        return [VisualNode.from_dict(d) for d in data or []]

    async def scroll_by(self, node_id: Optional[str], dy: float) -> None:
        await self._evaluate("([id, dy]) => window.__ec.scrollBy(id, dy)", [node_id, dy])

    async def viewport(self) -> ViewportMetrics:
        data = await self._evaluate("() => window.__ec.viewport()")
        return ViewportMetrics(data['scrollX'], data['scrollY'], data['width'], data['height'])

    async def scrollers(self, min_overflow: int = GUIDED_MIN_OVERFLOW) -> List[ScrollerMetrics]:
        data = await self._evaluate("m => window.__ec.scrollers(m)", min_overflow)
        return [
            ScrollerMetrics(d['name'], d['top'], d['client'], d['height'])
            for d in data or []
        ]

    async def observe(self, node_id: str, callback: InsertCallback) -> None:
        self._on_insert = callback
        await self._evaluate(
            "([id, opts]) => window.__ec.observe(id, opts)",
            [node_id, self._style_options],
        )

    async def disconnect(self) -> None:
        self._on_insert = None
        if self._page is not None:
            await self._evaluate("() => window.__ec.disconnect()")

    async def _handle_inserted(self, data: Dict[str, Any]) -> None:
        if self._on_insert is None or not data:
            return
        result = self._on_insert(VisualNode.from_dict(data))
        if inspect.isawaitable(result):
            await result

    async def fetch_blob(self, url: str) -> Optional[str]:
        try:
            return await self._evaluate("u => window.__ec.fetchBlob(u)", url)
        except HostError as e:
            self.logger.debug(f"Blob fetch failed for {url}: {e}")
            return None

    # --- marker layer -------------------------------------------------------

    def attach_markers(self, markers: MarkerOverlay) -> None:
        markers.subscribe(self._on_marker_change)

    def _on_marker_change(self, key: str, markers: FrozenSet[str]) -> None:
        self._dirty_markers[key] = markers
        if self._paint_task is not None and not self._paint_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._paint_task = loop.create_task(self._flush_markers())

    async def _flush_markers(self) -> None:
        # Coalesce changes made in the same tick
        await asyncio.sleep(0)
        # Changes arriving during a paint are picked up by the next round
        while self._dirty_markers and self._page is not None:
            dirty, self._dirty_markers = self._dirty_markers, {}
            entries = {key: sorted(m, key=_paint_rank) for key, m in dirty.items()}
            try:
                await self._evaluate(
                    "([entries, colors]) => window.__ec.paint(entries, colors)",
                    [entries, MARKER_PAINT_COLORS],
                )
            except HostError as e:
                self.logger.debug(f"Marker paint failed: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _paint_rank(marker: str) -> int:
    order = list(MARKER_PAINT_COLORS)
    return order.index(marker) if marker in order else len(order)
