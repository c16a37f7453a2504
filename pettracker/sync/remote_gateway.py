"""
Remote gateway for the record-oriented API.

Every call goes through a proxy: the real destination travels as the ``url``
query parameter and the proxy token (if any) as ``token``. The gateway:
- Attaches the bearer credential and the API version header
- Paces requests to stay under the remote rate limit
- Classifies 429 responses as RateLimitError and other failures as RemoteError
- Retries rate-limited calls with exponential backoff
"""

import json
import logging
import threading
import time
from typing import Any, Dict, List, Optional

import requests

from pettracker.config.app_config import RemoteConfig
from pettracker.errors import RateLimitError, RemoteError, RemoteUnavailableError

logger = logging.getLogger(__name__)


class RemoteGateway:
    """
    HTTP client for the remote API behind the proxy.

    This class provides:
    - One ``call`` per request with response classification
    - ``call_with_retry`` for rate-limit aware retries
    - The page verbs used by the sync processor
    """

    USER_AGENT = "PetTrackerSync/0.1"
    DEFAULT_MAX_ATTEMPTS = 3
    MAX_ERROR_TEXT = 100

    def __init__(
        self,
        config: RemoteConfig,
        session: Optional[requests.Session] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """
        Initialize the gateway.

        Args:
            config: Proxy URL, credentials and pacing settings
            session: Optional requests session (a new one is created if None)
            max_attempts: Attempts per call when the API keeps answering 429
        """
        self.config = config
        self.max_attempts = max_attempts
        self.session = session or requests.Session()
        self._pace_lock = threading.Lock()
        self._last_request_at = 0.0

    def _build_headers(self, json_body: bool = True) -> Dict[str, str]:
        """Build HTTP headers for the request."""
        headers = {
            "Authorization": f"Bearer {self.config.remote_credential.strip()}",
            "Notion-Version": self.config.api_version,
            "User-Agent": self.USER_AGENT,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _build_params(self, path: str) -> Dict[str, str]:
        params = {"url": f"{self.config.api_base_url.rstrip('/')}{path}"}
        if self.config.proxy_token.strip():
            params["token"] = self.config.proxy_token.strip()
        return params

    def _wait_for_pacing(self) -> None:
        """Space requests at least ``min_request_interval`` seconds apart."""
        with self._pace_lock:
            elapsed = time.monotonic() - self._last_request_at
            if elapsed < self.config.min_request_interval:
                time.sleep(self.config.min_request_interval - elapsed)
            self._last_request_at = time.monotonic()

    def call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send a single request to the remote API.

        Args:
            method: HTTP method
            path: API path below the base URL, e.g. ``/pages``
            body: JSON body (ignored when ``files`` is given)
            files: Multipart file fields, for uploads

        Returns:
            The decoded response body

        Raises:
            ConfigurationError: Proxy URL or credential missing
            RateLimitError: The API answered 429
            RemoteError: Any other non-2xx answer
            RemoteUnavailableError: No answer at all
        """
        self.config.validate()
        self._wait_for_pacing()

        kwargs: Dict[str, Any] = {
            "params": self._build_params(path),
            "timeout": self.config.timeout,
        }
        if files is not None:
            kwargs["headers"] = self._build_headers(json_body=False)
            kwargs["files"] = files
        else:
            kwargs["headers"] = self._build_headers()
            if body is not None:
                kwargs["data"] = json.dumps(body)

        try:
            response = self.session.request(method, self.config.proxy_url.strip().rstrip('/'), **kwargs)
        except requests.RequestException as e:
            logger.error(f"Request error on {method} {path}: {e}")
            raise RemoteUnavailableError(f"Request failed: {e}") from e

        if response.status_code == 429:
            retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(f"Rate limited on {method} {path}, retry after {retry_after}s")
            raise RateLimitError(retry_after)

        if not 200 <= response.status_code < 300:
            message = self._error_message(response)
            logger.error(f"HTTP error on {method} {path}: {message}")
            raise RemoteError(message, status=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Undecodable body on {method} {path}: {response.text[:self.MAX_ERROR_TEXT]!r}")
            raise RemoteError(
                f"Invalid JSON in response: {e}", status=response.status_code
            ) from e

    def call_with_retry(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        max_attempts: Optional[int] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send a request, retrying only on rate-limit answers.

        After the i-th rate-limited attempt the gateway waits
        ``retry_after * 2 ** (i - 1)`` seconds before trying again. Other
        errors are raised immediately. No wait follows the last
        attempt: its RateLimitError is raised straight away.

        Raises:
            RateLimitError: Every attempt was rate limited
        """
        if max_attempts is None:
            max_attempts = self.max_attempts
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        last_error: Optional[RateLimitError] = None
        for attempt in range(1, max_attempts + 1):
            try:
                result = self.call(method, path, body, files=files)
                if attempt > 1:
                    logger.info(f"Successfully sent after {attempt} attempts")
                return result
            except RateLimitError as e:
                last_error = e
                if attempt < max_attempts:
                    delay = e.retry_after * 2 ** (attempt - 1)
                    logger.info(f"Rate limited, waiting {delay}s before retry {attempt}/{max_attempts - 1}")
                    time.sleep(delay)
        raise last_error

    @staticmethod
    def _parse_retry_after(value: Optional[str]) -> float:
        try:
            retry_after = float(value) if value else 1.0
        except ValueError:
            return 1.0
        return retry_after if retry_after > 0 else 1.0

    def _error_message(self, response: requests.Response) -> str:
        """Best-available message from an error response."""
        message = f"API Error {response.status_code}"
        text = response.text or ""
        try:
            data = json.loads(text)
        except ValueError:
            if text:
                message += f": {text[:self.MAX_ERROR_TEXT]}"
            return message
        if isinstance(data, dict):
            error = data.get("error")
            if data.get("message"):
                return str(data["message"])
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return message

    # Page verbs

    def verify_connection(self) -> Dict[str, Any]:
        return self.call_with_retry("GET", "/users/me")

    def query_data_source(
        self,
        data_source_id: str,
        query_filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        start_cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Query one page of records from a data source."""
        body: Dict[str, Any] = {}
        if query_filter:
            body["filter"] = query_filter
        if sorts:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor
        return self.call_with_retry("POST", f"/data_sources/{data_source_id}/query", body)

    def create_page(self, data_source_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        body = {
            "parent": {"type": "data_source_id", "data_source_id": data_source_id},
            "properties": properties,
        }
        return self.call_with_retry("POST", "/pages", body)

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        return self.call_with_retry("PATCH", f"/pages/{page_id}", {"properties": properties})

    def archive_page(self, page_id: str) -> Dict[str, Any]:
        """Soft-delete a page."""
        return self.call_with_retry("PATCH", f"/pages/{page_id}", {"archived": True})

    def get_page(self, page_id: str) -> Dict[str, Any]:
        return self.call_with_retry("GET", f"/pages/{page_id}")

    def upload_file(self, name: str, content: bytes, content_type: str) -> Dict[str, Any]:
        """Upload a file as a multipart body."""
        files = {"file": (name, content, content_type)}
        return self.call_with_retry("POST", "/file_uploads", files=files)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
        logger.debug("Remote gateway closed")
