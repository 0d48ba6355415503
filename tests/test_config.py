"""Tests for configuration management."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from linknotes.config import ConfigError, ConfigManager
from linknotes.models.config import AppConfig, EnvSettings
from linknotes.models.sync import SyncSettings, SyncState


@pytest.fixture
def config_dir():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir) / ".linknotes"


class TestAppConfig:
    """Test AppConfig model."""

    def test_default_config(self):
        """Test default configuration values."""
        config = AppConfig()
        assert config.host == "127.0.0.1"
        assert config.port is None
        assert config.sync_debounce_seconds == 3.0
        assert config.fetch_timeout_seconds == 8.0
        assert config.import_batch_size == 5
        assert config.import_batch_pause_seconds == 0.2
        assert config.gist_filename == "bookmarks.json"

    def test_log_level_normalized(self):
        assert AppConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            AppConfig(log_level="chatty")

    def test_batch_size_bounds(self):
        with pytest.raises(ValueError):
            AppConfig(import_batch_size=0)


class TestEnvSettings:
    """Test EnvSettings loading."""

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("LINKNOTES_GITHUB_TOKEN", "env-token")
        assert EnvSettings().github_token == "env-token"

    def test_token_optional(self, monkeypatch):
        monkeypatch.delenv("LINKNOTES_GITHUB_TOKEN", raising=False)
        assert EnvSettings(_env_file=None).github_token is None


class TestConfigManager:
    """Test ConfigManager file handling."""

    def test_config_dir_from_environment(self, monkeypatch, config_dir):
        monkeypatch.setenv("LINKNOTES_CONFIG_DIR", str(config_dir))
        assert ConfigManager().config_dir == config_dir

    def test_save_and_load_app_config(self, config_dir):
        cm = ConfigManager(config_dir)
        cm.save_app_config(AppConfig(port=9000, sync_debounce_seconds=1.5))

        loaded = cm.load_app_config()

        assert loaded.port == 9000
        assert loaded.sync_debounce_seconds == 1.5

    def test_missing_config_file(self, config_dir):
        with pytest.raises(ConfigError, match="linknotes init"):
            ConfigManager(config_dir).load_app_config()

    def test_invalid_config_file(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "config.yaml").write_text(yaml.safe_dump({"import_batch_size": -1}))

        with pytest.raises(ConfigError, match="Failed to load config"):
            ConfigManager(config_dir).load_app_config()

    def test_malformed_yaml(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "config.yaml").write_text("port: [1,")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigManager(config_dir).load_app_config()

    def test_create_env_file(self, config_dir, monkeypatch):
        monkeypatch.delenv("LINKNOTES_GITHUB_TOKEN", raising=False)
        cm = ConfigManager(config_dir)

        cm.create_env_file("secret-token")

        assert "LINKNOTES_GITHUB_TOKEN=secret-token" in cm.env_file.read_text()
        if os.name != "nt":
            assert oct(cm.env_file.stat().st_mode & 0o777) == "0o600"

    def test_resolve_store_path(self, config_dir):
        cm = ConfigManager(config_dir)

        assert cm.resolve_store_path(AppConfig()) == config_dir / "bookmarks.yaml"
        assert cm.resolve_store_path(AppConfig(store_path="/data/b.yaml")) == Path("/data/b.yaml")

    def test_validate_store_access(self, config_dir):
        cm = ConfigManager(config_dir)

        with pytest.raises(ConfigError, match="does not exist"):
            cm.validate_store_access(config_dir / "bookmarks.yaml")

        config_dir.mkdir(parents=True)
        cm.validate_store_access(config_dir / "bookmarks.yaml")

    def test_sync_state_round_trip(self, config_dir):
        cm = ConfigManager(config_dir)
        assert cm.load_sync_state() == SyncState()

        state = SyncState(access_token="tok", remote_document_id="gist1")
        cm.save_sync_state(state)

        assert cm.load_sync_state() == state
        if os.name != "nt":
            assert oct(cm.sync_state_file.stat().st_mode & 0o777) == "0o600"

    def test_sync_settings_round_trip(self, config_dir):
        cm = ConfigManager(config_dir)
        assert cm.load_sync_settings().auto_sync_enabled is True

        cm.save_sync_settings(SyncSettings(auto_sync_enabled=False))

        assert cm.load_sync_settings().auto_sync_enabled is False
