"""
Cloner session: one explicit lifecycle around a live page.

A ClonerSession owns the asset cache, the marker overlay, the picker,
the capture controller, guided capture, the editor and the exporter,
and routes the closed set of inbound actions to them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .canvas.editor import EDIT_MODES, MODE_ALIASES, EditorSession
from .canvas.exporter import Exporter
from .canvas.viewport import ViewportLimits
from .capture.controller import CaptureController
from .capture.guided import GuidedCapture
from .capture.picker import Picker
from .exceptions import CommandError, ElementClonerError
from .snapshot.assets import AssetCache, AssetFetcher, FetchFn
from .snapshot.freezer import StyleFreezer
from .snapshot.host import CaptureHost
from .snapshot.markers import MarkerOverlay
from .snapshot.nodes import FragmentNode
from .status import StatusBus, event_to_dict
from .utils.log import get_logger
from .utils.constants import (
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    SCROLL_STEP,
    SETTLE_INTERVAL,
)


class Action(str, Enum):
    START_SCRAPE = "START_SCRAPE"
    STOP_SCRAPE = "STOP_SCRAPE"
    START_MULTI_CAPTURE = "START_MULTI_CAPTURE"
    FINISH_PICKING = "FINISH_PICKING"
    CANCEL_CAPTURE = "CANCEL_CAPTURE"
    FULL_PAGE_FILTER = "FULL_PAGE_FILTER"
    CANCEL_GUIDED = "CANCEL_GUIDED"
    OPEN_SIDE_EDITOR = "OPEN_SIDE_EDITOR"
    TOGGLE_EDIT_MODE = "TOGGLE_EDIT_MODE"
    UNDO_ACTION = "UNDO_ACTION"
    REDO_ACTION = "REDO_ACTION"
    SAVE_FINAL = "SAVE_FINAL"
    EXIT_FILTER_MODE = "EXIT_FILTER_MODE"
    EXPORT_ELEMENTS_START = "EXPORT_ELEMENTS_START"
    EXPORT_ELEMENTS = "EXPORT_ELEMENTS"
    PICK_ADDITIONAL_ELEMENT = "PICK_ADDITIONAL_ELEMENT"
    FINISH_ADDITIONAL_ELEMENT = "FINISH_ADDITIONAL_ELEMENT"


POINTER_EVENTS = ('down', 'move', 'up', 'click', 'wheel')


@dataclass
class Ack:
    """Acknowledgment returned for every dispatched action."""
    success: bool = True
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'success': self.success}
        if self.error is not None:
            result['error'] = self.error
        if self.data:
            result['data'] = self.data
        return result


def _number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool):
        raise CommandError(f"Invalid {key}: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise CommandError(f"Invalid {key}: {value!r}") from e


class ClonerSession:
    """
    Capture, compose, and export session over one CaptureHost.
    """

    def __init__(
        self,
        host: CaptureHost,
        fetch: Optional[FetchFn] = None,
        status: Optional[StatusBus] = None,
        output_dir: Optional[str] = None,
        viewport_width: float = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: float = DEFAULT_VIEWPORT_HEIGHT,
        limits: Optional[ViewportLimits] = None,
        scroll_step: int = SCROLL_STEP,
        settle_interval: float = SETTLE_INTERVAL,
        animate: bool = True
    ):
        """
        Initialize the session.

        Args:
            host: Live page to capture from
            fetch: Asset fetch coroutine (defaults to an aiohttp AssetFetcher)
            status: Status bus (a new one when None)
            output_dir: Directory exports are written to
            viewport_width: Editor viewport width
            viewport_height: Editor viewport height
            limits: Editor zoom limits
            scroll_step: Pixels scrolled per capture pass
            settle_interval: Seconds to wait after each scroll
            animate: Run the reveal feedback loop while scraping
        """
        self.host = host
        self.status = status or StatusBus()
        self.logger = get_logger("session")

        self.markers = MarkerOverlay()
        host.attach_markers(self.markers)

        self.fetcher: Optional[AssetFetcher] = None
        if fetch is None:
            self.fetcher = AssetFetcher(blob_resolver=host.fetch_blob)
            fetch = self.fetcher
        self.assets = AssetCache(fetch)

        self.freezer = StyleFreezer(self.assets, self.markers, base_url=host.url)
        self.capture = CaptureController(
            host, self.freezer, self.markers, self.status,
            scroll_step=scroll_step,
            settle_interval=settle_interval,
            animate=animate,
        )
        self.picker = Picker(host, self.markers, self.status)
        self.guided = GuidedCapture(host, self.status)
        self.editor = EditorSession(self.status, viewport_width, viewport_height, limits)
        self.exporter = Exporter(self.assets, self.status, output_dir)

        self.closed = False
        self._handlers: Dict[Action, Callable[[Dict[str, Any]], Awaitable[Optional[Dict[str, Any]]]]] = {
            Action.START_SCRAPE: self._start_scrape,
            Action.STOP_SCRAPE: self._stop_scrape,
            Action.START_MULTI_CAPTURE: self._start_multi_capture,
            Action.FINISH_PICKING: self._finish_picking,
            Action.CANCEL_CAPTURE: self._cancel_capture,
            Action.FULL_PAGE_FILTER: self._full_page_filter,
            Action.CANCEL_GUIDED: self._cancel_guided,
            Action.OPEN_SIDE_EDITOR: self._open_editor,
            Action.TOGGLE_EDIT_MODE: self._toggle_edit_mode,
            Action.UNDO_ACTION: self._undo,
            Action.REDO_ACTION: self._redo,
            Action.SAVE_FINAL: self._save_final,
            Action.EXIT_FILTER_MODE: self._exit_editor,
            Action.EXPORT_ELEMENTS_START: self._export_elements_start,
            Action.EXPORT_ELEMENTS: self._export_elements,
            Action.PICK_ADDITIONAL_ELEMENT: self._pick_additional,
            Action.FINISH_ADDITIONAL_ELEMENT: self._finish_additional,
        }

    # --- dispatch -----------------------------------------------------------

    async def dispatch(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Ack:
        """
        Run one inbound action.

        Args:
            action: Action name
            payload: Action arguments

        Returns:
            Acknowledgment; failures carry ``success=False`` and an error string
        """
        try:
            action = Action(action)
        except ValueError:
            self.logger.warning(f"Rejected unknown action: {action}")
            return Ack(False, f"Unknown action: {action}")

        if self.closed:
            return Ack(False, "Session is closed")

        try:
            data = await self._handlers[action](payload or {})
        except ElementClonerError as e:
            self.logger.warning(f"{action.value} failed: {e}")
            return Ack(False, str(e))

        return Ack(True, data=data or {})

    # --- capture ------------------------------------------------------------

    async def _start_scrape(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        speed = _number(payload, 'speed', 1)
        if speed < 0:
            raise CommandError(f"Invalid speed: {speed:g}")
        direction = payload.get('direction') or 'down'
        if direction not in ('up', 'down'):
            raise CommandError(f"Invalid direction: {direction!r}")

        self.freezer.base_url = self.host.url
        await self.capture.start(self.picker.target_id, speed, direction)
        return {'target': self.capture.target_id}

    async def _stop_scrape(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        await self.capture.stop()
        return {'count': len(self.capture.items)}

    async def _start_multi_capture(self, payload: Dict[str, Any]) -> None:
        self.picker.start_multi()

    async def _finish_picking(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.picker.disable(clean=False)
        return {'selected': len(self.picker.queue)}

    async def _cancel_capture(self, payload: Dict[str, Any]) -> None:
        self.picker.disable(clean=True)
        self.picker.target_id = None

    async def _full_page_filter(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        await self.guided.begin()
        return {'progress': self.guided.last.progress if self.guided.last else 0}

    async def _cancel_guided(self, payload: Dict[str, Any]) -> None:
        await self.guided.cancel()

    async def freeze_node(self, node_id: str) -> Optional[FragmentNode]:
        """Snapshot and freeze one live element."""
        node = await self.host.snapshot(node_id)
        if node is None:
            self.logger.debug(f"Element {node_id} is no longer in the document")
            return None
        return self.freezer.freeze(node)

    async def freeze_queue(self) -> List[FragmentNode]:
        """Freeze the picker queue in selection order."""
        self.freezer.base_url = self.host.url
        fragments = []
        for node_id in self.picker.queue:
            fragment = await self.freeze_node(node_id)
            if fragment is not None:
                fragments.append(fragment)
        return fragments

    # --- editor -------------------------------------------------------------

    async def _open_editor(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.capture.scraping:
            await self.capture.stop()

        fragments = await self.freeze_queue()
        for item in self.capture.items:
            fragment = FragmentNode.from_html(item.html)
            if fragment is not None:
                fragment.natural_size = item.fragment.natural_size
                fragments.append(fragment)

        if not fragments and self.guided.active:
            body_id = await self.host.resolve('body')
            if body_id is not None:
                body = await self.freeze_node(body_id)
                if body is not None:
                    fragments.append(body)

        if not fragments:
            self.status.status("Nothing to edit. Pick elements first.", False)
            return {'opened': False}

        self.picker.disable(clean=True)
        self.picker.target_id = None
        await self.guided.cancel()
        self.capture.clear()

        self.editor.open(fragments)
        return {'opened': True, 'fragments': len(fragments)}

    def _require_editor(self) -> None:
        if not self.editor.active:
            raise CommandError("Editor is not open")

    async def _toggle_edit_mode(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._require_editor()
        mode = payload.get('mode') or 'pan'
        if MODE_ALIASES.get(mode, mode) not in EDIT_MODES:
            raise CommandError(f"Unknown edit mode: {mode!r}")
        return {'mode': self.editor.toggle_mode(mode)}

    async def _undo(self, payload: Dict[str, Any]) -> None:
        if self.editor.active:
            self.editor.undo()

    async def _redo(self, payload: Dict[str, Any]) -> None:
        if self.editor.active:
            self.editor.redo()

    async def _save_final(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._require_editor()
        only_selection = bool(payload.get('only_selection', payload.get('onlySelection', False)))
        html = await self.exporter.export_composition(self.editor, only_selection)
        return {'exported': html is not None, 'path': self.exporter.last_path}

    async def _exit_editor(self, payload: Dict[str, Any]) -> None:
        self.editor.exit()

    async def _pick_additional(self, payload: Dict[str, Any]) -> None:
        self._require_editor()
        self.picker.target_id = None
        self.picker.enable('single')

    async def _finish_additional(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._require_editor()
        added = False
        if self.picker.target_id is not None:
            self.freezer.base_url = self.host.url
            fragment = await self.freeze_node(self.picker.target_id)
            if fragment is not None:
                self.editor.add_fragment(fragment)
                added = True

        self.picker.disable(clean=True)
        self.picker.target_id = None
        self.editor.sync_state()
        return {'added': added}

    # --- direct element export ----------------------------------------------

    async def _export_elements_start(self, payload: Dict[str, Any]) -> None:
        self.picker.enable('multi')
        self.status.status("Click elements to export (Shift+Scroll to cycle depth)", True)

    async def _export_elements(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.picker.queue:
            self.status.status("No elements selected for export.", False)
            return {'exported': False}

        fragments = await self.freeze_queue()
        html = await self.exporter.export_fragments(fragments)

        self.picker.disable(clean=True)
        self.picker.target_id = None
        return {'exported': html is not None, 'path': self.exporter.last_path}

    async def export_captured(self) -> Optional[str]:
        """Export the captured items as one document."""
        await self.freezer.drain()
        return await self.exporter.export_items(self.capture.items)

    @property
    def last_export(self) -> Optional[str]:
        return self.exporter.last_export

    # --- pointer input ------------------------------------------------------

    async def pointer(
        self,
        event: str,
        x: float,
        y: float,
        delta_y: float = 0.0,
        shift: bool = False
    ) -> Dict[str, Any]:
        """
        Route pointer input to the picker (while picking) or the editor.

        Coordinates are viewport pixels of the page or of the editor canvas.
        """
        if event not in POINTER_EVENTS:
            raise CommandError(f"Unknown pointer event: {event!r}")

        if self.picker.active:
            if event == 'move':
                await self.picker.hover(x, y)
            elif event == 'wheel' and shift:
                self.picker.cycle(delta_y)
            elif event == 'click':
                self.picker.click()
            highlighted = self.picker.highlighted
            return {
                'target': 'picker',
                'highlighted': highlighted.node_id if highlighted else None,
                'selected': list(self.picker.queue),
            }

        if not self.editor.active:
            return {'target': None}

        if event == 'down':
            self.editor.pointer_down(x, y)
        elif event == 'move':
            self.editor.pointer_move(x, y)
        elif event == 'up':
            self.editor.pointer_up(x, y)
        elif event == 'click':
            self.editor.click(x, y)
        else:
            self.editor.wheel(delta_y, shift)

        state = self.editor.engine.state
        return {
            'target': 'editor',
            'mode': self.editor.mode,
            'viewport': {'x': state.x, 'y': state.y, 'scale': state.scale},
        }

    # --- reporting ----------------------------------------------------------

    def describe(self) -> Dict[str, Any]:
        """Current state plus recent status events, for polling transports."""
        editor = self.editor.state()
        return {
            'url': self.host.url,
            'scraping': self.capture.scraping,
            'captured': len(self.capture.items),
            'picking': self.picker.active,
            'selected': len(self.picker.queue),
            'guided': self.guided.active,
            'editor': {
                'active': self.editor.active,
                'mode': editor.mode,
                'can_undo': editor.can_undo,
                'can_redo': editor.can_redo,
                'fragments': len(self.editor.world),
            },
            'events': [event_to_dict(e) for e in self.status.recent],
        }

    # --- lifecycle ----------------------------------------------------------

    async def close(self) -> None:
        """End the session; the asset cache is dropped."""
        if self.closed:
            return
        self.closed = True

        await self.capture.stop()
        await self.guided.cancel()
        self.picker.disable(clean=True)
        self.editor.exit()
        self.freezer.cancel_pending()
        self.assets.clear()
        if self.fetcher is not None:
            await self.fetcher.close()
        await self.host.close()
        self.logger.info("Session closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
