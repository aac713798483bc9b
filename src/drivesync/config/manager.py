"""Configuration manager holding the live user configuration."""

import threading
from pathlib import Path
from typing import Optional, Union

from .schema import DriveConfig
from .loader import ConfigLoader, ConfigurationError
from ..utils.logging import get_logger


class ConfigManager:
    """Keeps the current :class:`DriveConfig` and persists every change.

    Readers always receive a copy, so callers can hold on to a config for the
    length of a sync run while the user edits settings concurrently.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_file: Optional configuration file path; when omitted the
                configuration lives in memory only
        """
        self.config_file = Path(config_file).expanduser() if config_file else None
        self.loader = ConfigLoader()
        self.logger = get_logger(self.__class__.__name__)

        self._lock = threading.Lock()
        self._config = DriveConfig()

    def load_config(self) -> DriveConfig:
        """Load configuration from file, falling back to defaults.

        Returns:
            Loaded configuration
        """
        if self.config_file and self.config_file.exists():
            config = self.loader.load_from_file(self.config_file)
        else:
            self.logger.info("No configuration file found, using defaults", config_file=str(self.config_file))
            config = DriveConfig()

        with self._lock:
            self._config = config

        self.logger.info(
            "Configuration loaded",
            configured=config.is_configured(),
            personal_sync_path=str(config.personal_sync_path),
            shared_sync_path=str(config.shared_sync_path)
        )
        return config.model_copy()

    def get_config(self) -> DriveConfig:
        """Return a copy of the current configuration."""
        with self._lock:
            return self._config.model_copy()

    def update_config(self, config: DriveConfig) -> DriveConfig:
        """Replace the configuration and persist it.

        Raises:
            ConfigurationError: If the configuration cannot be saved
        """
        if self.config_file:
            self.loader.save_to_file(config, self.config_file)

        with self._lock:
            self._config = config.model_copy()

        self.logger.info("Configuration updated", configured=config.is_configured())
        return config

    def update_account(self, server_url: str, user_email: str, tenant_id: str) -> DriveConfig:
        """Store the account fields returned by a successful login."""
        current = self.get_config()
        try:
            updated = DriveConfig(**{
                **current.model_dump(),
                "server_url": server_url,
                "user_email": user_email,
                "tenant_id": tenant_id,
            })
        except ValueError as e:
            raise ConfigurationError(f"Invalid account settings: {e}")
        return self.update_config(updated)

    def reset(self) -> DriveConfig:
        """Reset to the default configuration (used on logout)."""
        return self.update_config(DriveConfig())
