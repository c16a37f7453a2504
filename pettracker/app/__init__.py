from .sync_application import SyncApplication
from .sync_service import CycleFailure, SyncService, SyncState, SyncStatus

__all__ = ['SyncApplication', 'SyncService', 'SyncState', 'SyncStatus', 'CycleFailure']
