"""Tests for the Flask transport using a session over an in-memory page."""

import pytest

from element_cloner.exceptions import HostError
from element_cloner.session import ClonerSession
from element_cloner.status import StatusBus
from element_cloner.web.app import create_app

from conftest import FakeFetch, InMemoryHost, feed_tree


class TestWebApp:
    """Test the HTTP routes end to end."""

    def setup_method(self):
        self.opened = []

        async def factory(url, options):
            if url == "https://down.example":
                raise HostError("Page load failed")
            session = ClonerSession(
                InMemoryHost(feed_tree(), url=url),
                fetch=FakeFetch(),
                status=StatusBus(log_events=False),
                settle_interval=0,
                animate=False,
            )
            self.opened.append(session)
            return session

        self.app = create_app(session_factory=factory)
        self.app.config['TESTING'] = True
        self.client = self.app.test_client()

    def teardown_method(self):
        self.app.runner.stop()

    def open(self, url="example.com"):
        return self.client.post('/api/session', json={'url': url})

    def command(self, action, **payload):
        return self.client.post('/api/command', json=dict(payload, action=action))

    def test_routes_need_a_session(self):
        assert self.client.get('/api/status').status_code == 404
        assert self.command('UNDO_ACTION').status_code == 404
        assert self.client.post('/api/pointer', json={'event': 'move'}).status_code == 404
        assert self.client.delete('/api/session').status_code == 404

    def test_open_requires_url(self):
        assert self.client.post('/api/session', json={}).status_code == 400
        assert self.client.post('/api/session', json={'url': '  '}).status_code == 400

    def test_open_normalizes_url(self):
        response = self.open()

        assert response.status_code == 200
        assert response.get_json() == {'message': 'Session opened', 'url': 'https://example.com'}

    def test_open_failure_is_bad_gateway(self):
        response = self.open("https://down.example")

        assert response.status_code == 502
        assert response.get_json()['error'] == "Page load failed"

    def test_reopening_closes_previous_session(self):
        self.open()
        self.open("example.org")

        assert self.opened[0].closed
        assert not self.opened[1].closed

    def test_command_acknowledgments(self):
        self.open()

        response = self.command('SELF_DESTRUCT')
        assert response.status_code == 400
        assert response.get_json() == {'success': False, 'error': 'Unknown action: SELF_DESTRUCT'}

        assert self.client.post('/api/command', json={}).status_code == 400

        response = self.command('START_SCRAPE', speed=0)
        assert response.status_code == 200
        assert response.get_json() == {'success': True, 'data': {'target': 'body'}}

    def test_pointer_route(self):
        self.open()

        response = self.client.post('/api/pointer', json={'event': 'move', 'x': 1, 'y': 1})
        assert response.get_json() == {'target': None}

        response = self.client.post('/api/pointer', json={'event': 'hover'})
        assert response.status_code == 400

        response = self.client.post('/api/pointer', json={'event': 'move', 'x': 'left'})
        assert response.status_code == 400

    def test_export_and_download(self):
        self.open()
        assert self.client.get('/api/export/latest').status_code == 404

        session = self.opened[0]
        self.app.runner.run(session.picker.select('.card'))
        response = self.command('EXPORT_ELEMENTS')
        assert response.get_json()['data']['exported'] is True

        response = self.client.get('/api/export/latest')
        assert response.status_code == 200
        assert response.mimetype == 'text/html'
        assert b"First" in response.data

    def test_status_and_close(self):
        self.open()
        self.command('EXPORT_ELEMENTS_START')

        info = self.client.get('/api/status').get_json()
        assert info['picking'] is True
        assert info['events'][-1]['action'] == 'STATUS_UPDATE'

        assert self.client.delete('/api/session').status_code == 200
        assert self.opened[0].closed
        assert self.client.get('/api/status').status_code == 404
