"""
Background sync service.

Runs sync cycles on a timer, or immediately when triggered (connectivity
regained, manual sync request), and tracks status for indicators.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional

from pettracker.app.sync_application import SyncApplication
from pettracker.errors import SyncError

MAX_RECENT_FAILURES = 10


class SyncStatus(Enum):
    """Lifecycle of the background sync thread."""
    STARTING = "starting"
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass
class CycleFailure:
    at: datetime
    error: str


@dataclass
class SyncState:
    """What status indicators show about the sync engine."""
    status: SyncStatus = SyncStatus.STOPPED
    message: str = ""
    last_sync: Optional[datetime] = None
    pending_operations: int = 0
    failed_operations: int = 0
    failure_count: int = 0
    recent_failures: Deque[CycleFailure] = field(
        default_factory=lambda: deque(maxlen=MAX_RECENT_FAILURES)
    )


class SyncService:
    """
    Background thread driving SyncApplication.

    A cycle is started every ``interval`` seconds or as soon as ``trigger()``
    is called. Stopping sets the drain's stop event, so a running drain ends
    between two queue entries, never in the middle of one.
    """

    def __init__(
        self,
        app: SyncApplication,
        interval: Optional[float] = None,
        on_status_change: Optional[Callable[[SyncState], None]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            app: The application whose processor is driven
            interval: Seconds between cycles (defaults to the configured drain interval)
            on_status_change: Called with the state after every status change
            logger: Logger to use instead of the module logger
        """
        self.app = app
        self.interval = app.config.sync.drain_interval if interval is None else interval
        self.on_status_change = on_status_change
        self.logger = logger or logging.getLogger(__name__)

        self._state = SyncState()
        self._state_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._wake = threading.Event()

    @property
    def state(self) -> SyncState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return bool(self._worker and self._worker.is_alive())

    def _set_status(self, status: SyncStatus, message: str = "", failure: Optional[Exception] = None) -> None:
        with self._state_lock:
            self._state.status = status
            self._state.message = message
            if failure is not None:
                self._state.failure_count += 1
                self._state.recent_failures.append(CycleFailure(at=datetime.now(), error=str(failure)))

        self.logger.info(f"Sync {status.value}: {message}" if message else f"Sync {status.value}")
        if self.on_status_change is None:
            return
        try:
            self.on_status_change(self._state)
        except Exception as e:
            self.logger.error(f"Status listener raised: {e}")

    def _refresh_counts(self) -> None:
        pending = self.app.queue.count_pending()
        failed = self.app.queue.count_failed()
        with self._state_lock:
            self._state.pending_operations = pending
            self._state.failed_operations = failed

    def run_cycle(self) -> None:
        """Run one sync cycle, recording the outcome in the service state."""
        self._set_status(SyncStatus.SYNCING, "Syncing...")
        try:
            result = self.app.run_sync(self._stopping)
        except SyncError as e:
            self.logger.warning(f"Sync cycle failed: {e}")
            self._set_status(SyncStatus.ERROR, str(e), failure=e)
        except Exception as e:
            self.logger.exception(f"Unexpected error in sync cycle: {e}")
            self._set_status(SyncStatus.ERROR, str(e), failure=e)
        else:
            if result is None:
                self._set_status(SyncStatus.IDLE, "Another sync was already running")
            else:
                with self._state_lock:
                    self._state.last_sync = datetime.now()
                drain = result.drain
                self._set_status(
                    SyncStatus.IDLE,
                    f"{drain.succeeded} sent, {drain.failed} failed, {drain.skipped} skipped",
                )
        finally:
            self._refresh_counts()

    def _loop(self) -> None:
        self._set_status(SyncStatus.STARTING, "Starting sync service...")
        while not self._stopping.is_set():
            self.run_cycle()
            self._wake.wait(timeout=self.interval)
            self._wake.clear()
        self._set_status(SyncStatus.STOPPED, "Sync service stopped")

    def trigger(self) -> None:
        """Ask for a sync cycle now instead of at the next interval."""
        self._wake.set()

    def start(self) -> bool:
        """
        Start cycling in a daemon thread.

        Returns:
            False when the service was already running
        """
        if self.is_running:
            self.logger.warning("Sync service already running")
            return False

        self._stopping.clear()
        self._wake.clear()
        self._worker = threading.Thread(target=self._loop, name="SyncService", daemon=True)
        self._worker.start()
        return True

    def stop(self, timeout: float = 10.0) -> bool:
        """
        Stop after the current queue entry and wait for the thread.

        Returns:
            False when the thread was still alive after ``timeout`` seconds
        """
        if not self.is_running:
            return True

        self.logger.info("Stopping sync service...")
        self._stopping.set()
        self._wake.set()
        self._worker.join(timeout=timeout)
        if self._worker.is_alive():
            self.logger.warning(f"Sync service still running after {timeout}s")
            return False
        return True

    def get_status_summary(self) -> Dict[str, Any]:
        """Plain-dict view of the state for status indicators and the CLI."""
        state = self.state
        return {
            'status': state.status.value,
            'message': state.message,
            'running': self.is_running,
            'last_sync': state.last_sync.isoformat() if state.last_sync else None,
            'pending_operations': state.pending_operations,
            'failed_operations': state.failed_operations,
            'failure_count': state.failure_count,
            'recent_failures': [
                {'at': failure.at.isoformat(), 'error': failure.error}
                for failure in list(state.recent_failures)[-3:]
            ],
        }
