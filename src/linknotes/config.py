"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .models.config import AppConfig, EnvSettings
from .models.sync import SyncSettings, SyncState


class ConfigError(Exception):
    """Configuration-related error."""

    pass


class ConfigManager:
    """Manages configuration (.env, config.yaml) and small persisted state files."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Configuration directory path. Defaults to ~/.linknotes
        """
        if config_dir is None:
            env_config_dir = os.environ.get("LINKNOTES_CONFIG_DIR")
            if env_config_dir:
                config_dir = Path(env_config_dir)
            else:
                config_dir = Path.home() / '.linknotes'

        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / 'config.yaml'
        self.env_file = self.config_dir / '.env'
        self.sync_state_file = self.config_dir / 'sync_state.yaml'
        self.settings_file = self.config_dir / 'settings.yaml'

    def load_env_settings(self) -> EnvSettings:
        """Load environment settings, reading the .env file when present.

        Returns:
            EnvSettings instance

        Raises:
            ConfigError: If the settings are invalid
        """
        if self.env_file.exists():
            load_dotenv(self.env_file)

        try:
            return EnvSettings()
        except ValidationError as e:
            raise ConfigError(f"Invalid .env file: {e}") from e

    def load_app_config(self) -> AppConfig:
        """Load application configuration from config.yaml.

        Returns:
            AppConfig instance

        Raises:
            ConfigError: If config file is missing or invalid
        """
        if not self.config_file.exists():
            raise ConfigError(
                f"Config file not found at {self.config_file}. "
                f"Run 'linknotes init' to create configuration."
            )

        data = self._read_yaml(self.config_file)

        try:
            return AppConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Failed to load config: {e}") from e

    def save_app_config(self, config: AppConfig) -> None:
        """Save application configuration to config.yaml.

        Raises:
            ConfigError: If save fails
        """
        self._write_yaml(self.config_file, config.model_dump(mode='json', exclude_none=True))

    def create_env_file(self, github_token: Optional[str] = None) -> None:
        """Create .env file holding the optional GitHub token.

        Raises:
            ConfigError: If file creation fails
        """
        token_line = (
            f"LINKNOTES_GITHUB_TOKEN={github_token}"
            if github_token
            else "# LINKNOTES_GITHUB_TOKEN=your-github-token-with-gist-scope"
        )
        env_content = f"""# linknotes secrets
# Personal access token used for gist sync when none has been connected yet.
{token_line}
"""

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.env_file, 'w', encoding='utf-8') as f:
                f.write(env_content)

            # Set restrictive permissions on Unix-like systems
            if os.name != 'nt':
                os.chmod(self.env_file, 0o600)

        except OSError as e:
            raise ConfigError(f"Failed to create .env file: {e}") from e

    def resolve_store_path(self, config: AppConfig) -> Path:
        """Path of the persisted store document."""
        if config.store_path:
            return Path(config.store_path).expanduser()
        return self.config_dir / 'bookmarks.yaml'

    def validate_store_access(self, store_path: Path) -> None:
        """Validate the store document's directory is usable.

        Raises:
            ConfigError: If the directory is not accessible
        """
        directory = store_path.parent

        if not directory.exists():
            raise ConfigError(f"Store directory does not exist: {directory}")

        if not directory.is_dir():
            raise ConfigError(f"Store directory is not a directory: {directory}")

        if not os.access(directory, os.W_OK):
            raise ConfigError(f"Store directory is not writable: {directory}")

        if store_path.exists() and not os.access(store_path, os.R_OK):
            raise ConfigError(f"Store document is not readable: {store_path}")

    def load_sync_state(self) -> SyncState:
        """Load token, remote document id and last sync time."""
        if not self.sync_state_file.exists():
            return SyncState()

        try:
            return SyncState(**self._read_yaml(self.sync_state_file))
        except ValidationError as e:
            raise ConfigError(f"Invalid sync state file: {e}") from e

    def save_sync_state(self, state: SyncState) -> None:
        """Persist sync state; the file holds a secret so it is owner-only."""
        self._write_yaml(self.sync_state_file, state.model_dump(mode='json'))

        if os.name != 'nt':
            os.chmod(self.sync_state_file, 0o600)

    def load_sync_settings(self) -> SyncSettings:
        if not self.settings_file.exists():
            return SyncSettings()

        try:
            return SyncSettings(**self._read_yaml(self.settings_file))
        except ValidationError as e:
            raise ConfigError(f"Invalid settings file: {e}") from e

    def save_sync_settings(self, settings: SyncSettings) -> None:
        self._write_yaml(self.settings_file, settings.model_dump(mode='json'))

    def _read_yaml(self, path: Path) -> dict:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path.name}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {path.name}")

        return data

    def _write_yaml(self, path: Path, data: dict) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to save {path.name}: {e}") from e
