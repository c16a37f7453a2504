"""
Pytest configuration and shared fixtures for the sync engine tests.
"""
from unittest.mock import Mock, patch

import pytest
import requests

from pettracker.config.app_config import RemoteConfig, SyncConfig
from pettracker.database.local_store import LocalStore
from pettracker.database.record_locks import RecordLocks
from pettracker.models.records import COLLECTION_MODELS
from pettracker.services.service_registry import ServiceRegistry
from pettracker.sync.sync_processor import SyncProcessor
from pettracker.sync.sync_queue import SyncQueue

from .helpers import FakeGateway, make_response


@pytest.fixture
def store():
    """Create an in-memory local store."""
    local_store = LocalStore(":memory:")
    yield local_store
    local_store.close()


@pytest.fixture
def queue():
    """Create an in-memory sync queue."""
    sync_queue = SyncQueue(":memory:")
    yield sync_queue
    sync_queue.close()


@pytest.fixture
def locks():
    return RecordLocks()


@pytest.fixture
def remote_config():
    """Remote configuration with every collection mapped and no pacing delay."""
    return RemoteConfig(
        proxy_url="https://proxy.example.com/",
        proxy_token="proxy-secret",
        remote_credential="secret_abc",
        min_request_interval=0,
        data_sources={collection: f"ds-{collection}" for collection in COLLECTION_MODELS},
    )


@pytest.fixture
def sync_config():
    return SyncConfig(max_entry_attempts=3)


@pytest.fixture
def mock_session():
    """A requests.Session whose request method is a Mock."""
    session = Mock(spec=requests.Session)
    session.request.return_value = make_response(200, {})
    return session


@pytest.fixture
def no_sleep():
    """Patch the gateway's sleep so backoff delays can be asserted without waiting."""
    with patch('pettracker.sync.remote_gateway.time.sleep') as mock_sleep:
        yield mock_sleep


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def services(store, queue, locks):
    return ServiceRegistry(store, queue, locks)


@pytest.fixture
def processor(store, queue, gateway, remote_config, sync_config, locks):
    return SyncProcessor(store, queue, gateway, remote_config, sync_config, locks)
