"""Configuration loading from YAML files.

The loader returns a ``Config``; nothing is cached at module level. Callers
hand the result to ``AppContext``.

Search order when no explicit path is given:
1. ``./pipeline-sync.yaml``
2. ``PIPELINE_SYNC_CONFIG`` (a file, or a directory holding the file)
3. ``~/.pipeline-sync/``
4. ``/etc/pipeline-sync/``
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationFileError, ConfigurationValidationError
from .models import Config

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "pipeline-sync.yaml"
CONFIG_PATH_ENV_VAR = "PIPELINE_SYNC_CONFIG"


class ConfigurationLoader:
    """Loads and validates configuration from YAML or plain dictionaries."""

    def __init__(self, filename: str = DEFAULT_CONFIG_FILENAME) -> None:
        self.filename = filename
        self.config_file_path: Path | None = None

    def load_from_file(self, config_path: str | Path) -> Config:
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigurationFileError: If file cannot be read or parsed
            ConfigurationValidationError: If configuration validation fails
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigurationFileError(
                f"Configuration file not found: {config_path}",
                file_path=str(config_path),
            )
        if not config_path.is_file():
            raise ConfigurationFileError(
                f"Configuration path is not a file: {config_path}",
                file_path=str(config_path),
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationFileError(
                f"Failed to parse YAML configuration: {e}", file_path=str(config_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read configuration file: {e}", file_path=str(config_path)
            ) from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigurationFileError(
                "Configuration root must be a mapping", file_path=str(config_path)
            )

        config = self.load_from_dict(config_data)
        self.config_file_path = config_path.resolve()
        logger.info(f"Loaded configuration from {self.config_file_path}")
        return config

    def load_from_dict(self, config_data: dict[str, Any]) -> Config:
        """Validate a configuration dictionary.

        Raises:
            ConfigurationValidationError: If configuration validation fails
        """
        try:
            return Config.model_validate(config_data)
        except ValidationError as e:
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}",
                validation_errors=e.errors(include_url=False),
            ) from e

    def find_config_file(self) -> Path | None:
        """Find the configuration file in the standard locations."""
        search_paths = [Path.cwd() / self.filename]

        env_path_str = os.getenv(CONFIG_PATH_ENV_VAR)
        if env_path_str:
            env_path = Path(env_path_str)
            if env_path.is_file():
                search_paths.append(env_path)
            else:
                search_paths.append(env_path / self.filename)

        search_paths.append(Path.home() / ".pipeline-sync" / self.filename)
        search_paths.append(Path("/etc/pipeline-sync") / self.filename)

        for path in search_paths:
            if path.exists() and path.is_file():
                return path
        return None

    def load(self, config_path: str | Path | None = None) -> Config:
        """Load from ``config_path`` if given, else from the standard locations.

        Raises:
            ConfigurationFileError: If no configuration file is found
            ConfigurationValidationError: If configuration validation fails
        """
        if config_path is not None:
            return self.load_from_file(config_path)

        found = self.find_config_file()
        if found is None:
            raise ConfigurationFileError(
                f"No configuration file '{self.filename}' found in standard locations"
            )
        return self.load_from_file(found)
