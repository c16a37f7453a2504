"""
Tests for the background sync service.
"""
import threading
from unittest.mock import Mock

import pytest

from pettracker.app.sync_service import SyncService, SyncStatus
from pettracker.errors import RemoteUnavailableError
from pettracker.sync.sync_processor import DrainResult, SyncResult


@pytest.fixture
def app():
    """A Mock application with an empty queue."""
    application = Mock()
    application.config.sync.drain_interval = 60.0
    application.queue.count_pending.return_value = 0
    application.queue.count_failed.return_value = 0
    application.run_sync.return_value = SyncResult(drain=DrainResult(processed=2, succeeded=2))
    return application


class TestRunCycle:
    """Test cases for a single sync cycle."""

    @pytest.mark.unit
    def test_successful_cycle(self, app):
        service = SyncService(app)
        service.run_cycle()

        state = service.state
        assert state.status == SyncStatus.IDLE
        assert state.message == "2 sent, 0 failed, 0 skipped"
        assert state.last_sync is not None
        assert state.failure_count == 0

    @pytest.mark.unit
    def test_queue_counts_refreshed(self, app):
        app.queue.count_pending.return_value = 4
        app.queue.count_failed.return_value = 1

        service = SyncService(app)
        service.run_cycle()

        assert service.state.pending_operations == 4
        assert service.state.failed_operations == 1

    @pytest.mark.unit
    def test_busy_cycle(self, app):
        app.run_sync.return_value = None

        service = SyncService(app)
        service.run_cycle()

        assert service.state.status == SyncStatus.IDLE
        assert service.state.last_sync is None

    @pytest.mark.unit
    def test_sync_error_sets_error_status(self, app):
        app.run_sync.side_effect = RemoteUnavailableError("Request failed: offline")

        service = SyncService(app)
        service.run_cycle()

        assert service.state.status == SyncStatus.ERROR
        assert service.state.failure_count == 1
        assert service.state.recent_failures[0].error == "Request failed: offline"

    @pytest.mark.unit
    def test_unexpected_error_is_contained(self, app):
        app.run_sync.side_effect = RuntimeError("boom")

        service = SyncService(app)
        service.run_cycle()

        assert service.state.status == SyncStatus.ERROR

    @pytest.mark.unit
    def test_errors_are_capped(self, app):
        app.run_sync.side_effect = RuntimeError("boom")

        service = SyncService(app)
        for _ in range(15):
            service.run_cycle()

        assert service.state.failure_count == 15
        assert len(service.state.recent_failures) == 10

    @pytest.mark.unit
    def test_status_callback(self, app):
        callback = Mock()
        service = SyncService(app, on_status_change=callback)
        service.run_cycle()

        statuses = [call.args[0].status for call in callback.call_args_list]
        assert SyncStatus.IDLE in statuses

    @pytest.mark.unit
    def test_failing_callback_does_not_break_cycle(self, app):
        service = SyncService(app, on_status_change=Mock(side_effect=ValueError("bad")))
        service.run_cycle()
        assert service.state.status == SyncStatus.IDLE

    @pytest.mark.unit
    def test_summary(self, app):
        service = SyncService(app)
        service.run_cycle()

        summary = service.get_status_summary()
        assert summary['status'] == "idle"
        assert summary['running'] is False
        assert summary['last_sync'] is not None
        assert summary["recent_failures"] == []


class TestLifecycle:
    """Test cases for start, trigger and stop."""

    @pytest.mark.unit
    def test_interval_defaults_to_config(self, app):
        assert SyncService(app).interval == 60.0
        assert SyncService(app, interval=5).interval == 5

    @pytest.mark.unit
    def test_start_trigger_stop(self, app):
        second_cycle = threading.Event()

        def run_sync(stop_event):
            if app.run_sync.call_count >= 2:
                second_cycle.set()
            return SyncResult(drain=DrainResult())

        app.run_sync.side_effect = run_sync
        service = SyncService(app, interval=60)

        assert service.start() is True
        assert service.start() is False
        service.trigger()
        assert second_cycle.wait(timeout=5)

        assert service.stop() is True
        assert service.is_running is False
        assert service.state.status == SyncStatus.STOPPED

    @pytest.mark.unit
    def test_stop_when_not_running(self, app):
        assert SyncService(app).stop() is True
