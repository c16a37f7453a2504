"""
Main application class for the pet tracker sync engine.
"""
import logging
from typing import Any, Dict, Optional

import requests

from pettracker.config.app_config import AppConfig
from pettracker.config.settings_store import SettingsStore
from pettracker.database.local_store import LocalStore
from pettracker.database.record_locks import RecordLocks
from pettracker.services.service_registry import ServiceRegistry
from pettracker.services.stamp_debouncer import StampDebouncer
from pettracker.sync.remote_gateway import RemoteGateway
from pettracker.sync.sync_processor import SyncProcessor, SyncResult
from pettracker.sync.sync_queue import SyncQueue

logger = logging.getLogger(__name__)


class SyncApplication:
    """
    Owns every component of the sync engine.

    This class wires together:
    - The local store, the sync queue and the per-record locks
    - The remote gateway and the sync processor
    - The record services and the stamp debouncer
    Components are built once here and handed to each other explicitly.
    """

    def __init__(
        self,
        config: AppConfig,
        settings: Optional[SettingsStore] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the application.

        Args:
            config: Application configuration
            settings: Settings collection used to record the last sync time
            session: Optional HTTP session for the remote gateway
        """
        self.config = config
        self.settings = settings
        self.locks = RecordLocks()
        self.store = LocalStore(config.storage.path)
        self.queue = SyncQueue(config.storage.path)
        self.gateway = RemoteGateway(
            config.remote,
            session=session,
            max_attempts=config.sync.max_rate_limit_attempts,
        )
        self.processor = SyncProcessor(
            self.store,
            self.queue,
            self.gateway,
            config.remote,
            config.sync,
            self.locks,
        )
        self.services = ServiceRegistry(self.store, self.queue, self.locks)
        self.debouncer = StampDebouncer(self.services.events, delay=config.sync.stamp_debounce)
        logger.debug(f"Sync application initialised with storage at {config.storage.path}")

    @classmethod
    def from_settings(cls, db_path: str, session: Optional[requests.Session] = None) -> 'SyncApplication':
        """Build the application from the settings persisted next to the records."""
        settings = SettingsStore(db_path)
        return cls(AppConfig.from_settings(settings, db_path), settings=settings, session=session)

    def run_sync(self, stop_event=None) -> Optional[SyncResult]:
        """
        Run one sync cycle and record its time in the settings.

        Returns:
            The cycle outcome, or None when a cycle was already running
        """
        result = self.processor.sync(stop_event)
        if result is not None and self.settings is not None and not result.drain.cancelled:
            self.settings.set_last_sync()
        return result

    def status(self) -> Dict[str, Any]:
        """Summary for status indicators."""
        return {
            'configured': self.config.remote.is_configured,
            'pending': self.queue.count_pending(),
            'failed': self.queue.count_failed(),
            'last_sync': self.settings.get_last_sync() if self.settings else None,
        }

    def close(self) -> None:
        """Release every resource held by the application."""
        logger.debug("Shutting down sync application")
        self.debouncer.cancel_all()
        self.gateway.close()
        self.queue.close()
        self.store.close()
        if self.settings is not None:
            self.settings.close()
