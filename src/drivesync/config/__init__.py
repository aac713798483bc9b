"""Configuration package for the drive sync agent."""

from .settings import (
    RcloneSettings,
    WatcherSettings,
    ServerSettings,
    StorageSettings,
    LoggingSettings,
    AppSettings,
    get_settings
)

from .schema import DriveConfig

from .loader import ConfigLoader, ConfigurationError

from .manager import ConfigManager

__all__ = [
    # Process settings
    "RcloneSettings",
    "WatcherSettings",
    "ServerSettings",
    "StorageSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",

    # User configuration
    "DriveConfig",
    "ConfigLoader",
    "ConfigurationError",
    "ConfigManager"
]
