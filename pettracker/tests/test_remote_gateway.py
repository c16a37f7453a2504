"""
Tests for RemoteGateway.

This module covers:
- Proxy URL, query parameters and headers
- Response classification (429, other errors, transport failures)
- Rate-limit retry with exponential backoff
- Page verbs and request pacing
"""
import json
from unittest.mock import call, patch

import pytest
import requests

from pettracker.config.app_config import RemoteConfig
from pettracker.errors import ConfigurationError, RateLimitError, RemoteError, RemoteUnavailableError
from pettracker.sync.remote_gateway import RemoteGateway

from .helpers import make_response


@pytest.fixture
def client(remote_config, mock_session):
    gateway = RemoteGateway(remote_config, session=mock_session)
    yield gateway
    gateway.close()


class TestRequestShape:
    """Test cases for what goes on the wire."""

    @pytest.mark.unit
    def test_destination_travels_as_query_parameter(self, client, mock_session):
        client.call("GET", "/users/me")

        args, kwargs = mock_session.request.call_args
        assert args == ("GET", "https://proxy.example.com")
        assert kwargs["params"] == {
            "url": "https://api.notion.com/v1/users/me",
            "token": "proxy-secret",
        }

    @pytest.mark.unit
    def test_token_parameter_omitted_when_empty(self, remote_config, mock_session):
        remote_config.proxy_token = ""
        RemoteGateway(remote_config, session=mock_session).call("GET", "/users/me")

        assert "token" not in mock_session.request.call_args.kwargs["params"]

    @pytest.mark.unit
    def test_headers(self, client, mock_session):
        client.call("POST", "/pages", {"a": 1})

        headers = mock_session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer secret_abc"
        assert headers["Notion-Version"] == "2025-09-03"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.unit
    def test_body_is_json_encoded(self, client, mock_session):
        client.call("POST", "/pages", {"properties": {"Name": "Fido"}})

        data = mock_session.request.call_args.kwargs["data"]
        assert json.loads(data) == {"properties": {"Name": "Fido"}}

    @pytest.mark.unit
    def test_upload_uses_multipart(self, client, mock_session):
        client.upload_file("photo.jpg", b"\xff\xd8", "image/jpeg")

        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["files"] == {"file": ("photo.jpg", b"\xff\xd8", "image/jpeg")}
        assert "data" not in kwargs
        assert "Content-Type" not in kwargs["headers"]

    @pytest.mark.unit
    def test_missing_proxy_url_is_configuration_error(self, remote_config, mock_session):
        remote_config.proxy_url = ""
        gateway = RemoteGateway(remote_config, session=mock_session)

        with pytest.raises(ConfigurationError):
            gateway.call("GET", "/users/me")
        mock_session.request.assert_not_called()

    @pytest.mark.unit
    def test_missing_credential_is_configuration_error(self, mock_session):
        gateway = RemoteGateway(RemoteConfig(proxy_url="https://proxy.example.com"), session=mock_session)

        with pytest.raises(ConfigurationError):
            gateway.call("GET", "/users/me")
        mock_session.request.assert_not_called()


class TestResponseClassification:
    """Test cases for turning responses into results or errors."""

    @pytest.mark.unit
    def test_success_returns_decoded_body(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {"id": "page-1"})
        assert client.call("GET", "/pages/page-1") == {"id": "page-1"}

    @pytest.mark.unit
    def test_empty_success_body(self, client, mock_session):
        mock_session.request.return_value = make_response(204)
        assert client.call("PATCH", "/pages/page-1", {}) == {}

    @pytest.mark.unit
    def test_429_carries_retry_after(self, client, mock_session):
        mock_session.request.return_value = make_response(429, {"message": "slow down"}, headers={"Retry-After": "7"})

        with pytest.raises(RateLimitError) as exc_info:
            client.call("GET", "/users/me")
        assert exc_info.value.retry_after == 7
        assert exc_info.value.status == 429

    @pytest.mark.unit
    def test_429_without_header_defaults_to_one_second(self, client, mock_session):
        mock_session.request.return_value = make_response(429)

        with pytest.raises(RateLimitError) as exc_info:
            client.call("GET", "/users/me")
        assert exc_info.value.retry_after == 1

    @pytest.mark.unit
    def test_error_message_from_body(self, client, mock_session):
        mock_session.request.return_value = make_response(
            400, {"object": "error", "message": "body failed validation"}
        )

        with pytest.raises(RemoteError) as exc_info:
            client.call("POST", "/pages", {})
        assert exc_info.value.message == "body failed validation"
        assert exc_info.value.status == 400

    @pytest.mark.unit
    def test_nested_error_message(self, client, mock_session):
        mock_session.request.return_value = make_response(401, {"error": {"message": "Invalid token"}})

        with pytest.raises(RemoteError) as exc_info:
            client.call("GET", "/users/me")
        assert exc_info.value.message == "Invalid token"

    @pytest.mark.unit
    def test_raw_text_is_truncated(self, client, mock_session):
        mock_session.request.return_value = make_response(502, text="x" * 500)

        with pytest.raises(RemoteError) as exc_info:
            client.call("GET", "/users/me")
        assert exc_info.value.message == "API Error 502: " + "x" * 100

    @pytest.mark.unit
    def test_undecodable_success_body(self, client, mock_session):
        mock_session.request.return_value = make_response(200, text="<html>ok</html>")

        with pytest.raises(RemoteError) as exc_info:
            client.call("POST", "/pages", {})
        assert exc_info.value.status == 200
        assert "Invalid JSON" in exc_info.value.message

    @pytest.mark.unit
    def test_transport_failure(self, client, mock_session):
        mock_session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(RemoteUnavailableError):
            client.call("GET", "/users/me")

    @pytest.mark.unit
    def test_rate_limit_is_a_remote_error(self):
        assert issubclass(RateLimitError, RemoteError)
        assert issubclass(RemoteUnavailableError, RemoteError)


class TestCallWithRetry:
    """Test cases for rate-limit retry and backoff."""

    @pytest.mark.unit
    def test_always_rate_limited_fails_after_three_attempts(self, client, mock_session, no_sleep):
        """Test the backoff schedule retry_after * 2 ** (i - 1)."""
        mock_session.request.return_value = make_response(429, headers={"Retry-After": "2"})

        with pytest.raises(RateLimitError):
            client.call_with_retry("GET", "/users/me")

        assert mock_session.request.call_count == 3
        assert no_sleep.call_args_list == [call(2.0), call(4.0)]

    @pytest.mark.unit
    def test_succeeds_after_rate_limit(self, client, mock_session, no_sleep):
        mock_session.request.side_effect = [
            make_response(429),
            make_response(200, {"ok": True}),
        ]

        assert client.call_with_retry("GET", "/users/me") == {"ok": True}
        no_sleep.assert_called_once_with(1.0)

    @pytest.mark.unit
    def test_other_errors_are_not_retried(self, client, mock_session, no_sleep):
        mock_session.request.return_value = make_response(500, {"message": "internal"})

        with pytest.raises(RemoteError):
            client.call_with_retry("GET", "/users/me")

        assert mock_session.request.call_count == 1
        no_sleep.assert_not_called()

    @pytest.mark.unit
    def test_custom_max_attempts(self, client, mock_session, no_sleep):
        mock_session.request.return_value = make_response(429)

        with pytest.raises(RateLimitError):
            client.call_with_retry("GET", "/users/me", max_attempts=5)

        assert mock_session.request.call_count == 5
        assert no_sleep.call_args_list == [call(1.0), call(2.0), call(4.0), call(8.0)]

    @pytest.mark.unit
    def test_max_attempts_must_be_positive(self, client):
        with pytest.raises(ValueError):
            client.call_with_retry("GET", "/users/me", max_attempts=0)


class TestPageVerbs:
    """Test cases for the page verbs."""

    @pytest.mark.unit
    def test_create_page(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {"id": "page-1"})

        assert client.create_page("ds-pets", {"Name": {}}) == {"id": "page-1"}

        args, kwargs = mock_session.request.call_args
        assert args[0] == "POST"
        assert kwargs["params"]["url"].endswith("/pages")
        assert json.loads(kwargs["data"]) == {
            "parent": {"type": "data_source_id", "data_source_id": "ds-pets"},
            "properties": {"Name": {}},
        }

    @pytest.mark.unit
    def test_update_page(self, client, mock_session):
        client.update_page("page-1", {"Name": {}})

        args, kwargs = mock_session.request.call_args
        assert args[0] == "PATCH"
        assert kwargs["params"]["url"].endswith("/pages/page-1")
        assert json.loads(kwargs["data"]) == {"properties": {"Name": {}}}

    @pytest.mark.unit
    def test_archive_page(self, client, mock_session):
        client.archive_page("page-1")

        args, kwargs = mock_session.request.call_args
        assert args[0] == "PATCH"
        assert json.loads(kwargs["data"]) == {"archived": True}

    @pytest.mark.unit
    def test_query_data_source_with_cursor(self, client, mock_session):
        client.query_data_source("ds-events", start_cursor="abc")

        args, kwargs = mock_session.request.call_args
        assert args[0] == "POST"
        assert kwargs["params"]["url"].endswith("/data_sources/ds-events/query")
        assert json.loads(kwargs["data"]) == {"start_cursor": "abc"}


class TestPacing:
    """Test cases for client-side request spacing."""

    @pytest.mark.unit
    def test_requests_are_spaced(self, remote_config, mock_session, no_sleep):
        remote_config.min_request_interval = 0.35
        gateway = RemoteGateway(remote_config, session=mock_session)

        with patch('pettracker.sync.remote_gateway.time.monotonic', side_effect=[100.0, 100.0, 100.1, 100.1]):
            gateway.call("GET", "/users/me")
            gateway.call("GET", "/users/me")

        no_sleep.assert_called_once()
        assert no_sleep.call_args.args[0] == pytest.approx(0.25)
