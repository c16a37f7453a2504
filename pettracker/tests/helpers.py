"""
Test doubles shared by the sync engine tests.
"""
import json
from typing import Any, Dict, List, Optional

import requests

from pettracker.errors import RemoteError


def make_response(
    status_code: int = 200,
    json_body: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    if json_body is not None:
        response._content = json.dumps(json_body).encode('utf-8')
    else:
        response._content = (text or "").encode('utf-8')
    response.encoding = 'utf-8'
    response.headers.update(headers or {})
    return response


class FakeGateway:
    """In-memory stand-in for RemoteGateway recording every page verb."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.archived: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self._next_id = 0

    def _check(self, verb: str) -> None:
        error = self.failures.get(verb)
        if error is not None:
            raise error

    def create_page(self, data_source_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(('create', data_source_id, properties))
        self._check('create')
        self._next_id += 1
        page_id = f"page-{self._next_id}"
        self.pages[page_id] = properties
        return {'id': page_id}

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(('update', page_id, properties))
        self._check('update')
        if page_id not in self.pages:
            raise RemoteError(f"Could not find page with ID: {page_id}", status=404)
        self.pages[page_id] = properties
        return {'id': page_id}

    def archive_page(self, page_id: str) -> Dict[str, Any]:
        self.calls.append(('archive', page_id))
        self._check('archive')
        self.archived.append(page_id)
        return {'id': page_id, 'archived': True}

    def verbs(self) -> List[str]:
        return [call[0] for call in self.calls]

