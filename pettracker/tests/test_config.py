"""
Tests for configuration and the persisted settings collection.
"""
import pytest

from pettracker.config.app_config import AppConfig, RemoteConfig, SyncConfig
from pettracker.config.settings_store import SettingsStore
from pettracker.errors import ConfigurationError


@pytest.fixture
def settings():
    store = SettingsStore(":memory:")
    yield store
    store.close()


class TestRemoteConfig:
    """Test cases for RemoteConfig."""

    @pytest.mark.unit
    def test_defaults(self):
        config = RemoteConfig()

        assert config.api_version == "2025-09-03"
        assert config.is_configured is False
        assert config.data_sources == {}

    @pytest.mark.unit
    def test_validate_requires_proxy_url(self):
        config = RemoteConfig(remote_credential="secret")
        with pytest.raises(ConfigurationError, match="Proxy URL"):
            config.validate()

    @pytest.mark.unit
    def test_validate_requires_credential(self):
        config = RemoteConfig(proxy_url="https://proxy.example.com", remote_credential="   ")
        with pytest.raises(ConfigurationError, match="credential"):
            config.validate()

    @pytest.mark.unit
    def test_configured(self, remote_config):
        remote_config.validate()
        assert remote_config.is_configured is True

    @pytest.mark.unit
    def test_data_source_for(self, remote_config):
        assert remote_config.data_source_for("pets") == "ds-pets"

        remote_config.data_sources["pets"] = ""
        with pytest.raises(ConfigurationError, match="pets"):
            remote_config.data_source_for("pets")


class TestAppConfig:
    """Test cases for building AppConfig."""

    @pytest.mark.unit
    def test_sync_defaults(self):
        config = SyncConfig()

        assert config.max_rate_limit_attempts == 3
        assert config.max_entry_attempts == 10
        assert config.pull_enabled is True

    @pytest.mark.unit
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PETTRACKER_DB", "/tmp/pets.db")
        monkeypatch.setenv("PETTRACKER_PROXY_URL", "https://proxy.example.com")
        monkeypatch.setenv("PETTRACKER_PROXY_TOKEN", "proxy-secret")
        monkeypatch.setenv("PETTRACKER_TOKEN", "secret_abc")
        monkeypatch.setenv("PETTRACKER_DS_PETS", "ds-1")
        monkeypatch.setenv("PETTRACKER_DS_EVENT_TYPES", "ds-2")
        monkeypatch.delenv("PETTRACKER_DS_EVENTS", raising=False)

        config = AppConfig.from_env()

        assert config.storage.path == "/tmp/pets.db"
        assert config.remote.proxy_token == "proxy-secret"
        assert config.remote.is_configured is True
        assert config.remote.data_sources["pets"] == "ds-1"
        assert config.remote.data_sources["eventTypes"] == "ds-2"
        assert "events" not in config.remote.data_sources

    @pytest.mark.unit
    def test_from_settings(self, settings):
        settings.set(
            proxy_url="https://proxy.example.com",
            remote_credential="secret_abc",
            data_sources={"pets": "ds-1"},
            drain_interval=15,
        )

        config = AppConfig.from_settings(settings, db_path="records.db")

        assert config.storage.path == "records.db"
        assert config.remote.proxy_url == "https://proxy.example.com"
        assert config.remote.data_source_for("pets") == "ds-1"
        assert config.sync.drain_interval == 15.0


class TestSettingsStore:
    """Test cases for SettingsStore."""

    @pytest.mark.unit
    def test_defaults_when_empty(self, settings):
        values = settings.get()

        assert values["proxy_url"] == ""
        assert set(values["data_sources"]) == {"pets", "events", "eventTypes", "contacts", "careItems"}
        assert settings.is_connected() is False

    @pytest.mark.unit
    def test_set_merges(self, settings):
        settings.set(proxy_url="https://proxy.example.com")
        values = settings.set(remote_credential="secret_abc")

        assert values["proxy_url"] == "https://proxy.example.com"
        assert values["remote_credential"] == "secret_abc"
        assert settings.is_connected() is True

    @pytest.mark.unit
    def test_defaults_are_not_shared(self, settings):
        settings.get()["data_sources"]["pets"] = "changed"
        assert settings.get()["data_sources"]["pets"] == ""

    @pytest.mark.unit
    def test_last_sync(self, settings):
        assert settings.get_last_sync() is None

        stamp = settings.set_last_sync("2024-01-01T00:00:00+00:00")

        assert settings.get_last_sync() == stamp
        assert "last_sync" not in settings.get()

    @pytest.mark.unit
    def test_clear(self, settings):
        settings.set(proxy_url="https://proxy.example.com")
        settings.set_last_sync()
        settings.clear()

        assert settings.get()["proxy_url"] == ""
        assert settings.get_last_sync() is None

    @pytest.mark.unit
    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "settings.db")
        first = SettingsStore(path)
        first.set(proxy_token="proxy-secret")
        first.close()

        second = SettingsStore(path)
        try:
            assert second.get()["proxy_token"] == "proxy-secret"
        finally:
            second.close()
