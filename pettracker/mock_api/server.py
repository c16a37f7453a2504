"""
Mock proxy and remote API server for local development and testing.

Plays both the proxy (destination in the ``url`` query parameter, optional
``token`` parameter) and the remote API behind it, keeping pages in memory.
Use this for local development without a real remote workspace.

Usage:
    python -m pettracker.mock_api.server

The server will listen on port 8080. Point ``proxy_url`` at
``http://localhost:8080/`` and use any non-empty credential.
"""

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)


def _remote_timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


def _with_plain_text(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Add ``plain_text`` to title and rich text items, as the real API returns them."""
    result = {}
    for name, value in properties.items():
        value = dict(value)
        for kind in ('title', 'rich_text'):
            if kind in value:
                value[kind] = [
                    dict(item, plain_text=(item.get('text') or {}).get('content', ''))
                    for item in value[kind] or []
                ]
        result[name] = value
    return result


class MockRemoteState:
    """In-memory pages plus knobs for simulating failures."""

    def __init__(self, proxy_token: str = "", page_size: int = 100):
        self.proxy_token = proxy_token
        self.page_size = page_size
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.requests: List[Tuple[str, str]] = []
        self._rate_limited = 0
        self._retry_after = 1
        self._lock = threading.Lock()

    def rate_limit_next(self, count: int, retry_after: int = 1) -> None:
        """Answer the next ``count`` requests with 429."""
        with self._lock:
            self._rate_limited = count
            self._retry_after = retry_after

    def take_rate_limit(self) -> Optional[int]:
        with self._lock:
            if self._rate_limited <= 0:
                return None
            self._rate_limited -= 1
            return self._retry_after

    def add_page(self, data_source_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        now = _remote_timestamp()
        page = {
            'object': 'page',
            'id': str(uuid.uuid4()),
            'created_time': now,
            'last_edited_time': now,
            'archived': False,
            'in_trash': False,
            'parent': {'type': 'data_source_id', 'data_source_id': data_source_id},
            'properties': _with_plain_text(properties),
        }
        with self._lock:
            self.pages[page['id']] = page
        return page

    def update_page(self, page_id: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            page = self.pages.get(page_id)
            if page is None:
                return None
            if 'properties' in body:
                page['properties'].update(_with_plain_text(body['properties']))
            if 'archived' in body:
                page['archived'] = page['in_trash'] = bool(body['archived'])
            page['last_edited_time'] = _remote_timestamp()
            return page

    def query(self, data_source_id: str, start_cursor: Optional[str], page_size: int) -> Dict[str, Any]:
        with self._lock:
            matching = [
                p for p in self.pages.values()
                if p['parent']['data_source_id'] == data_source_id
            ]
        start = int(start_cursor or 0)
        end = start + page_size
        has_more = end < len(matching)
        return {
            'object': 'list',
            'results': matching[start:end],
            'has_more': has_more,
            'next_cursor': str(end) if has_more else None,
        }


class MockAPIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the mock proxy."""

    @property
    def state(self) -> MockRemoteState:
        return self.server.state

    def _send_json_response(self, status_code: int, data: dict, headers: Optional[Dict[str, str]] = None):
        """Send a JSON response."""
        self.send_response(status_code)
        self.send_header('Content-Type', 'application/json')
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(json.dumps(data).encode('utf-8'))

    def _send_error(self, status_code: int, message: str):
        self._send_json_response(status_code, {'object': 'error', 'status': status_code, 'message': message})

    def _read_json(self) -> Dict[str, Any]:
        content_length = int(self.headers.get('Content-Length', 0))
        if not content_length:
            return {}
        body = self.rfile.read(content_length)
        if not self.headers.get('Content-Type', '').startswith('application/json'):
            return {}
        return json.loads(body.decode('utf-8'))

    def _destination(self) -> Optional[str]:
        """Path of the proxied request below the API version prefix, e.g. ``/pages``."""
        query = parse_qs(urlparse(self.path).query)
        if self.state.proxy_token and query.get('token', [''])[0] != self.state.proxy_token:
            self._send_error(401, 'Invalid proxy token')
            return None
        if not self.headers.get('Authorization', '').startswith('Bearer '):
            self._send_error(401, 'API token is invalid.')
            return None
        target = query.get('url', [''])[0]
        if not target:
            self._send_error(400, 'Missing url parameter')
            return None
        path = urlparse(target).path
        return path[len('/v1'):] if path.startswith('/v1/') else path

    def _handle(self, method: str):
        path = self._destination()
        if path is None:
            return
        self.state.requests.append((method, path))

        retry_after = self.state.take_rate_limit()
        if retry_after is not None:
            self._send_json_response(
                429,
                {'object': 'error', 'status': 429, 'message': 'Rate limited'},
                headers={'Retry-After': str(retry_after)},
            )
            return

        try:
            body = self._read_json()
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON: {e}")
            self._send_error(400, 'Invalid JSON')
            return

        parts = [p for p in path.split('/') if p]
        logger.info(f"{method} {path}")

        if method == 'GET' and parts == ['users', 'me']:
            self._send_json_response(200, {'object': 'user', 'id': 'mock-user', 'type': 'bot'})
        elif method == 'POST' and parts == ['pages']:
            data_source_id = (body.get('parent') or {}).get('data_source_id')
            if not data_source_id:
                self._send_error(400, 'parent.data_source_id is required')
                return
            self._send_json_response(200, self.state.add_page(data_source_id, body.get('properties') or {}))
        elif len(parts) == 2 and parts[0] == 'pages' and method in ('GET', 'PATCH'):
            if method == 'GET':
                page = self.state.pages.get(parts[1])
            else:
                page = self.state.update_page(parts[1], body)
            if page is None:
                self._send_error(404, f'Could not find page with ID: {parts[1]}')
                return
            self._send_json_response(200, page)
        elif method == 'POST' and len(parts) == 3 and parts[0] == 'data_sources' and parts[2] == 'query':
            page_size = int(body.get('page_size') or self.state.page_size)
            self._send_json_response(200, self.state.query(parts[1], body.get('start_cursor'), page_size))
        elif method == 'POST' and parts == ['file_uploads']:
            self._send_json_response(200, {'object': 'file_upload', 'id': str(uuid.uuid4()), 'status': 'uploaded'})
        else:
            self._send_error(404, 'Not found')

    def do_GET(self):
        """Handle GET requests."""
        self._handle('GET')

    def do_POST(self):
        """Handle POST requests."""
        self._handle('POST')

    def do_PATCH(self):
        """Handle PATCH requests."""
        self._handle('PATCH')

    def log_message(self, format, *args):
        """Override to use Python logging instead of stderr."""
        logger.debug(f"{self.address_string()} - {format % args}")


def create_server(host: str = '127.0.0.1', port: int = 0, state: Optional[MockRemoteState] = None) -> HTTPServer:
    """Create a server bound to ``host:port`` (port 0 picks a free one)."""
    httpd = HTTPServer((host, port), MockAPIHandler)
    httpd.state = state or MockRemoteState()
    return httpd


def run_server(host: str = '0.0.0.0', port: int = 8080):
    """Run the mock API server."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    httpd = create_server(host, port)
    logger.info(f"Mock remote API running on http://{host}:{port}")
    logger.info("Proxied endpoints (pass the destination as ?url=...):")
    logger.info("  GET   /users/me                  - Verify credential")
    logger.info("  POST  /pages                     - Create a page")
    logger.info("  PATCH /pages/<id>                - Update or archive a page")
    logger.info("  POST  /data_sources/<id>/query   - Query pages")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
        httpd.server_close()


if __name__ == '__main__':
    run_server()
