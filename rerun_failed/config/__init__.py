"""Configuration for the rerunner.

Example usage:
    from rerun_failed.config import build_options, load_config

    config = load_config("rerun-failed.yaml")
    options = build_options(config, {"branch": "main", "dry_run": True})
"""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
    RepositoryResolutionError,
)
from .loader import ConfigurationLoader, build_options, load_config
from .models import (
    Config,
    GitHubSettings,
    LoggingSettings,
    LogLevel,
    RerunOptions,
)
from .utils import RepositoryRef, parse_duration, parse_repository, resolve_repository

__all__ = [
    "Config",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationValidationError",
    "GitHubSettings",
    "LogLevel",
    "LoggingSettings",
    "RepositoryRef",
    "RepositoryResolutionError",
    "RerunOptions",
    "build_options",
    "load_config",
    "parse_duration",
    "parse_repository",
    "resolve_repository",
]
