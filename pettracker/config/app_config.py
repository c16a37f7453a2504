"""
Application configuration for the pet tracker sync engine.
"""
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from pettracker.errors import ConfigurationError

if TYPE_CHECKING:
    from pettracker.config.settings_store import SettingsStore

DEFAULT_API_BASE_URL = "https://api.notion.com/v1"
DEFAULT_API_VERSION = "2025-09-03"


@dataclass
class StorageConfig:
    """Local database configuration."""
    path: str = "pettracker.db"


@dataclass
class RemoteConfig:
    """Remote API access through the proxy."""
    proxy_url: str = ""
    proxy_token: str = ""
    remote_credential: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0
    min_request_interval: float = 0.35
    data_sources: Dict[str, str] = field(default_factory=dict)

    @property
    def is_configured(self) -> bool:
        return bool(self.proxy_url.strip() and self.remote_credential.strip())

    def validate(self) -> None:
        """Raise ConfigurationError when a remote call cannot be made."""
        if not self.proxy_url.strip():
            raise ConfigurationError("Proxy URL not configured")
        if not self.remote_credential.strip():
            raise ConfigurationError("Remote credential not configured")

    def data_source_for(self, collection: str) -> str:
        data_source_id = self.data_sources.get(collection)
        if not data_source_id:
            raise ConfigurationError(f"No data source configured for {collection}")
        return data_source_id


@dataclass
class SyncConfig:
    """Drain and retry behaviour."""
    max_rate_limit_attempts: int = 3
    max_entry_attempts: int = 10
    drain_interval: float = 60.0
    pull_enabled: bool = True
    stamp_debounce: float = 0.1


@dataclass
class AppConfig:
    """Main application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def from_settings(cls, settings: 'SettingsStore', db_path: Optional[str] = None) -> 'AppConfig':
        """Create configuration from the persisted settings collection."""
        values = settings.get()
        return cls(
            storage=StorageConfig(path=db_path or settings.db_path),
            remote=RemoteConfig(
                proxy_url=values['proxy_url'],
                proxy_token=values['proxy_token'],
                remote_credential=values['remote_credential'],
                data_sources=dict(values['data_sources']),
            ),
            sync=SyncConfig(drain_interval=float(values['drain_interval'])),
        )

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from PETTRACKER_* environment variables."""
        data_sources = {}
        for collection, var in (
            ('pets', 'PETTRACKER_DS_PETS'),
            ('events', 'PETTRACKER_DS_EVENTS'),
            ('eventTypes', 'PETTRACKER_DS_EVENT_TYPES'),
            ('contacts', 'PETTRACKER_DS_CONTACTS'),
            ('careItems', 'PETTRACKER_DS_CARE_ITEMS'),
        ):
            if os.environ.get(var):
                data_sources[collection] = os.environ[var]
        return cls(
            storage=StorageConfig(path=os.environ.get('PETTRACKER_DB', 'pettracker.db')),
            remote=RemoteConfig(
                proxy_url=os.environ.get('PETTRACKER_PROXY_URL', ''),
                proxy_token=os.environ.get('PETTRACKER_PROXY_TOKEN', ''),
                remote_credential=os.environ.get('PETTRACKER_TOKEN', ''),
                data_sources=data_sources,
            ),
        )
