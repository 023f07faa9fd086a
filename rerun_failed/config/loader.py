"""Configuration loading.

The loading hierarchy is:
1. Default values from the Pydantic models
2. Configuration file (YAML), given by ``--config`` or ``$RERUN_FAILED_CONFIG``
3. Command-line flags, merged by ``build_options``
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationFileError, ConfigurationValidationError
from .models import Config, RerunOptions

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RERUN_FAILED_CONFIG"


class ConfigurationLoader:
    """Loads and validates ``Config`` from YAML files or dictionaries."""

    def __init__(self) -> None:
        self._config: Config | None = None
        self._config_file_path: Path | None = None

    @property
    def config_file_path(self) -> Path | None:
        return self._config_file_path

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
        config_path = Path(config_path).expanduser()

        if not config_path.exists():
            raise ConfigurationFileError(
                f"Configuration file not found: {config_path}", str(config_path)
            )
        if not config_path.is_file():
            raise ConfigurationFileError(
                f"Configuration path is not a file: {config_path}", str(config_path)
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationFileError(
                f"Failed to parse YAML configuration: {e}", str(config_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read configuration file: {e}", str(config_path)
            ) from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigurationFileError(
                "Configuration file must contain a mapping", str(config_path)
            )

        config = self.load_from_dict(config_data)
        self._config_file_path = config_path.resolve()
        logger.debug(f"Loaded configuration from {self._config_file_path}")
        return config

    def load_from_dict(self, config_data: dict[str, Any]) -> Config:
        """Load configuration from a dictionary.

        Raises:
            ConfigurationValidationError: If configuration validation fails
        """
        try:
            self._config = Config(**config_data)
        except (ValidationError, ValueError) as e:
            errors = e.errors() if isinstance(e, ValidationError) else [str(e)]
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}", validation_errors=errors
            ) from e
        return self._config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from ``config_path``, ``$RERUN_FAILED_CONFIG`` or defaults."""
    path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Config()
    return ConfigurationLoader().load_from_file(path)


def build_options(config: Config, overrides: dict[str, Any]) -> RerunOptions:
    """Layer command-line overrides on top of the configured defaults.

    Keys whose value is None are treated as "not given on the command line".

    Raises:
        ConfigurationValidationError: If the merged options are invalid
    """
    values = config.defaults.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return RerunOptions(**values)
    except (ValidationError, ValueError) as e:
        errors = e.errors() if isinstance(e, ValidationError) else [str(e)]
        raise ConfigurationValidationError(
            f"Invalid options: {e}", validation_errors=errors
        ) from e
