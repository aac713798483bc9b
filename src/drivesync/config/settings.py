"""Process-level settings read from the environment and ``.env``."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RcloneSettings(BaseSettings):
    """External sync tool configuration."""

    path: str = Field(default="rclone", description="rclone executable name or path")
    timeout_seconds: Optional[float] = Field(
        default=None, description="Kill a bisync run after this many seconds (None = no limit)"
    )

    model_config = SettingsConfigDict(env_prefix="RCLONE_")


class WatcherSettings(BaseSettings):
    """Local change watcher configuration."""

    poll_interval_seconds: float = Field(default=2.0, description="Filesystem polling interval")
    check_interval_seconds: int = Field(default=10, description="How often pending changes are checked")

    model_config = SettingsConfigDict(env_prefix="WATCHER_")


class ServerSettings(BaseSettings):
    """Command surface HTTP server configuration."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class StorageSettings(BaseSettings):
    """Where user configuration and tokens are kept."""

    config_file: str = Field(default="~/.config/drivesync/config.yaml")
    token_file: str = Field(default="~/.config/drivesync/tokens.json")

    model_config = SettingsConfigDict(env_prefix="STORAGE_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default="~/.config/drivesync/logs/drivesync.log")

    model_config = SettingsConfigDict(env_prefix="LOG_")


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="Drive Sync")
    version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    rclone: RcloneSettings = RcloneSettings()
    watcher: WatcherSettings = WatcherSettings()
    server: ServerSettings = ServerSettings()
    storage: StorageSettings = StorageSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_prefix="DRIVESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings
