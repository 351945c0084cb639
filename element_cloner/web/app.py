"""
Flask web application for the element cloner.

Exposes one cloner session over HTTP. The session lives on a dedicated
asyncio event loop running in a background thread; request handlers
submit coroutines to it and wait for the result.
"""

import asyncio
import threading
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlparse

from flask import Flask, Response, jsonify, request

from ..exceptions import CommandError, HostError
from ..session import ClonerSession
from ..utils.log import get_logger
from ..utils.constants import DEFAULT_PAGE_TIMEOUT


SessionFactory = Callable[[str, Dict[str, Any]], Awaitable[ClonerSession]]

# Seconds a request waits for the session loop
REQUEST_TIMEOUT = 120


class LoopThread:
    """An asyncio event loop running forever in a daemon thread."""

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro, timeout: Optional[float] = REQUEST_TIMEOUT):
        """Run a coroutine on the loop and return its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def stop(self):
        self.loop.call_soon_threadsafe(self.loop.stop)


async def open_playwright_session(url: str, options: Dict[str, Any]) -> ClonerSession:
    """Default session factory: open the URL in a Playwright page."""
    from ..snapshot.host import PlaywrightHost

    host = PlaywrightHost(
        timeout=int(options.get('timeout', DEFAULT_PAGE_TIMEOUT)),
        headless=bool(options.get('headless', True)),
    )
    await host.open(url)
    return ClonerSession(host, output_dir=options.get('outputDir'))


def create_app(session_factory: Optional[SessionFactory] = None):
    """
    Create and configure the Flask application.

    Args:
        session_factory: Coroutine function ``(url, options) -> ClonerSession``
    """
    app = Flask(__name__)
    logger = get_logger("web")

    app.session_factory = session_factory or open_playwright_session
    app.session: Optional[ClonerSession] = None
    app.session_lock = threading.Lock()
    app.runner = LoopThread()

    def current_session():
        if app.session is None or app.session.closed:
            return None
        return app.session

    @app.route('/api/session', methods=['POST'])
    def open_session():
        """Open a page and start a session on it."""
        try:
            data = request.get_json(silent=True)
            if not data:
                return jsonify({'error': 'No JSON data provided'}), 400

            url = data.get('url', '').strip()
            if not url:
                return jsonify({'error': 'URL is required'}), 400

            # Validate URL
            if not url.startswith(('http://', 'https://', 'file://')):
                url = 'https://' + url

            parsed = urlparse(url)
            if not parsed.netloc and parsed.scheme != 'file':
                return jsonify({'error': 'Invalid URL format'}), 400

            with app.session_lock:
                if app.session is not None:
                    app.runner.run(app.session.close())
                    app.session = None
                app.session = app.runner.run(app.session_factory(url, data))

            logger.info(f"Session opened for {url}")
            return jsonify({'message': 'Session opened', 'url': app.session.host.url or url})

        except HostError as e:
            logger.error(f"Failed to open {data.get('url')}: {e}")
            return jsonify({'error': str(e)}), 502
        except ValueError as e:
            return jsonify({'error': f'Invalid parameter value: {str(e)}'}), 400
        except Exception as e:
            logger.exception("Failed to open session")
            return jsonify({'error': f'Failed to open session: {str(e)}'}), 500

    @app.route('/api/session', methods=['DELETE'])
    def close_session():
        """Close the current session."""
        with app.session_lock:
            session = current_session()
            if session is None:
                return jsonify({'error': 'No active session'}), 404
            app.runner.run(session.close())
            app.session = None
        return jsonify({'message': 'Session closed'})

    @app.route('/api/command', methods=['POST'])
    def command():
        """Dispatch one action to the session."""
        session = current_session()
        if session is None:
            return jsonify({'error': 'No active session'}), 404

        data = request.get_json(silent=True) or {}
        action = data.pop('action', None)
        if not action:
            return jsonify({'error': 'Action is required'}), 400

        try:
            ack = app.runner.run(session.dispatch(action, data))
        except Exception as e:
            logger.exception(f"Action {action} crashed")
            return jsonify({'success': False, 'error': str(e)}), 500

        return jsonify(ack.to_dict()), (200 if ack.success else 400)

    @app.route('/api/pointer', methods=['POST'])
    def pointer():
        """Forward pointer input to the picker or the editor."""
        session = current_session()
        if session is None:
            return jsonify({'error': 'No active session'}), 404

        data = request.get_json(silent=True) or {}
        try:
            result = app.runner.run(session.pointer(
                data.get('event', ''),
                float(data.get('x', 0)),
                float(data.get('y', 0)),
                delta_y=float(data.get('deltaY', 0)),
                shift=bool(data.get('shift', False)),
            ))
        except (CommandError, ValueError, TypeError) as e:
            return jsonify({'error': str(e)}), 400
        except HostError as e:
            return jsonify({'error': str(e)}), 502

        return jsonify(result)

    @app.route('/api/status')
    def status():
        """Recent status events and the current edit state."""
        session = current_session()
        if session is None:
            return jsonify({'error': 'No active session'}), 404
        return jsonify(session.describe())

    @app.route('/api/export/latest')
    def latest_export():
        """The most recently exported document."""
        session = current_session()
        if session is None:
            return jsonify({'error': 'No active session'}), 404
        if not session.last_export:
            return jsonify({'error': 'Nothing exported yet'}), 404
        return Response(session.last_export, mimetype='text/html')

    return app


def run_app(host: str = '127.0.0.1', port: int = 5000, debug: bool = False):
    """Run the Flask web application."""
    app = create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == '__main__':
    run_app()
