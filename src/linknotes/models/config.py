"""Configuration models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvSettings(BaseSettings):
    """Settings loaded from .env file (secrets and credentials)."""

    github_token: Optional[str] = Field(
        None, description="GitHub token with gist scope, used when none is stored"
    )

    model_config = SettingsConfigDict(
        env_prefix="LINKNOTES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class AppConfig(BaseModel):
    """Application configuration from config.yaml."""

    # Server settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: Optional[int] = Field(None, description="Server port (auto-select if None)")

    # Store
    store_path: Optional[str] = Field(
        None,
        description="Path of the persisted store document (default: <config_dir>/bookmarks.yaml)",
    )

    # Remote sync
    github_api_base: str = Field(default="https://api.github.com")
    gist_filename: str = Field(default="bookmarks.json")
    remote_timeout_seconds: float = Field(default=15.0, gt=0, le=120)
    sync_debounce_seconds: float = Field(
        default=3.0, ge=0, le=300, description="Delay before an automatic push"
    )

    # Metadata fetching
    fetch_timeout_seconds: float = Field(default=8.0, gt=0, le=60)
    max_response_size: int = Field(
        default=10 * 1024 * 1024, ge=1024, description="Largest page body parsed, in bytes"
    )
    user_agent: str = Field(default="Mozilla/5.0 (compatible; linknotes/0.1)")

    # Batch import
    import_batch_size: int = Field(default=5, ge=1, le=50)
    import_batch_pause_seconds: float = Field(default=0.2, ge=0, le=10)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "host": "127.0.0.1",
            "port": 8080,
            "store_path": "/home/user/.linknotes/bookmarks.yaml",
            "sync_debounce_seconds": 3.0,
            "fetch_timeout_seconds": 8.0,
            "import_batch_size": 5,
            "import_batch_pause_seconds": 0.2,
            "log_level": "INFO",
        }
    })

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")

        return level
