"""Pydantic configuration models for the rerunner.

``RerunOptions`` is the selection criteria for one invocation. It is built
once from the command line (on top of any defaults from the config file)
and passed explicitly to the components that need it.

The optional YAML config file maps onto ``Config``. String values may
reference environment variables as ``${VAR_NAME}`` or
``${VAR_NAME:default_value}``.
"""

import os
import re
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import parse_duration

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any) -> Any:
        """Substitute environment variables in string values.

        Supports formats:
        - ${VAR_NAME} - Required environment variable
        - ${VAR_NAME:default} - Optional with default value

        Raises:
            ValueError: If required environment variable is missing
        """
        if not isinstance(values, dict):
            return values

        def replacer(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Required environment variable '{var_name}' not found")

        def substitute_value(value: Any) -> Any:
            if isinstance(value, str):
                return _ENV_PATTERN.sub(replacer, value)
            if isinstance(value, dict):
                return {k: substitute_value(v) for k, v in value.items()}
            if isinstance(value, list):
                return [substitute_value(item) for item in value]
            return value

        return {key: substitute_value(value) for key, value in values.items()}


class GitHubSettings(BaseConfigModel):
    """Transport settings for the GitHub client."""

    base_url: str | None = Field(
        default=None,
        description="REST API root; derived from the repository host when unset",
    )

    graphql_url: str | None = Field(
        default=None,
        description="GraphQL endpoint; derived from the repository host when unset",
    )

    timeout: int = Field(
        default=30, ge=1, le=600, description="Per-request timeout in seconds"
    )

    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries for idempotent reads"
    )

    retry_backoff_factor: float = Field(
        default=2.0, ge=1.0, le=10.0, description="Exponential backoff base"
    )

    user_agent: str = Field(default="gh-rerun-failed/0.3")

    max_concurrent_requests: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Upper bound on in-flight HTTP requests across all stages",
    )


class LoggingSettings(BaseConfigModel):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.WARNING)


class RerunOptions(BaseConfigModel):
    """What to select and what to do with it."""

    repo: str | None = Field(
        default=None, description="Repository in [HOST/]OWNER/REPO format"
    )

    branch: str | None = Field(default=None, description="Only runs on this branch")

    limit: int = Field(
        default=0, description="Maximum runs to process; 0 or less means no limit"
    )

    since: timedelta | None = Field(
        default=None, description="Only runs created within this lookback window"
    )

    pr_number: int = Field(default=0, ge=0, description="Target a single PR")

    all_open_prs: bool = Field(default=False, description="Scan every open PR")

    dry_run: bool = Field(default=False, description="Report without rerunning")

    failed_only: bool = Field(
        default=True, description="Rerun only the failed jobs of each run"
    )

    include_drafts: bool = False
    include_cancelled: bool = False
    include_timed_out: bool = False

    @field_validator("since", mode="before")
    @classmethod
    def parse_since(cls, value: Any) -> Any:
        """Accept Go-style duration strings and treat zero as unset."""
        if value is None or value == "":
            return None
        if isinstance(value, str):
            value = parse_duration(value)
        if isinstance(value, timedelta) and value <= timedelta(0):
            return None
        return value

    @field_validator("limit")
    @classmethod
    def non_positive_limit_as_unset(cls, value: int) -> int:
        return max(value, 0)

    @field_validator("branch", "repo", mode="before")
    @classmethod
    def empty_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def statuses(self) -> list[str]:
        """Conclusions to search for, ``failure`` always first."""
        statuses = ["failure"]
        if self.include_cancelled:
            statuses.append("cancelled")
        if self.include_timed_out:
            statuses.append("timed_out")
        return statuses


class Config(BaseConfigModel):
    """Root of the optional configuration file."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    defaults: RerunOptions = Field(
        default_factory=RerunOptions,
        description="Default option values; command-line flags override them",
    )
