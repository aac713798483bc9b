"""Configuration loader for JSON/YAML files."""

import json
import yaml
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import ValidationError

from .schema import DriveConfig
from ..utils.logging import get_logger


class ConfigurationError(Exception):
    """Raised when configuration loading or saving fails."""
    pass


class ConfigLoader:
    """Loads, validates and saves :class:`DriveConfig` files."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, file_path: Union[str, Path]) -> DriveConfig:
        """Load configuration from a JSON or YAML file.

        Args:
            file_path: Path to configuration file

        Returns:
            Validated DriveConfig object

        Raises:
            ConfigurationError: If file cannot be loaded or validated
        """
        file_path = Path(file_path).expanduser()

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f) or {}
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration: {e}")

        return self.load_from_dict(data)

    def load_from_dict(self, data: Dict[str, Any]) -> DriveConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration data as dictionary

        Returns:
            Validated DriveConfig object
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        try:
            return DriveConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def save_to_file(self, config: DriveConfig, file_path: Union[str, Path]):
        """Save configuration to file, choosing the format from the suffix.

        Args:
            config: Configuration to save
            file_path: Output file path (.yaml, .yml or .json)
        """
        file_path = Path(file_path).expanduser()
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.to_dict()
        suffix = file_path.suffix.lower()

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if suffix in ['.yaml', '.yml']:
                    yaml.safe_dump(data, f, default_flow_style=False, indent=2, allow_unicode=True)
                elif suffix == '.json':
                    json.dump(data, f, indent=2)
                else:
                    raise ConfigurationError(f"Unsupported format: {suffix}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")

        self.logger.info("Configuration saved successfully", file_path=str(file_path))
