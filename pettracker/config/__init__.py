from .app_config import AppConfig, RemoteConfig, StorageConfig, SyncConfig
from .settings_store import SettingsStore

__all__ = ['AppConfig', 'RemoteConfig', 'StorageConfig', 'SyncConfig', 'SettingsStore']
