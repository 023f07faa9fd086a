"""GitHub API rate limit tracking."""

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .exceptions import GitHubRateLimitError


@dataclass(frozen=True)
class RateLimitInfo:
    """Snapshot of one rate limit resource."""

    limit: int
    remaining: int
    reset: int
    used: int = 0
    resource: str = "core"

    @classmethod
    def from_api(cls, data: dict[str, Any], resource: str = "core") -> "RateLimitInfo":
        """Build from one entry of the ``/rate_limit`` ``resources`` object."""
        return cls(
            limit=int(data.get("limit", 0)),
            remaining=int(data.get("remaining", 0)),
            reset=int(data.get("reset", 0)),
            used=int(data.get("used", 0)),
            resource=resource,
        )

    @property
    def reset_datetime(self) -> datetime:
        """Get reset time as a local datetime."""
        return datetime.fromtimestamp(self.reset)

    @property
    def seconds_until_reset(self) -> float:
        """Get seconds until the budget resets."""
        return max(0, self.reset - time.time())

    @property
    def is_exceeded(self) -> bool:
        """Check if the budget is spent."""
        return self.remaining <= 0


@dataclass
class RateLimitManager:
    """Tracks the rate limit headers GitHub returns on every response.

    Tracking is passive. The only refusal is for a resource whose budget is
    already spent and has not reset yet, since GitHub would reject the call.
    """

    _rate_limits: dict[str, RateLimitInfo] = field(default_factory=dict)

    def get_rate_limit(self, resource: str = "core") -> RateLimitInfo | None:
        """Get the last seen rate limit for a resource."""
        return self._rate_limits.get(resource)

    def update_rate_limit(self, headers: Mapping[str, str]) -> None:
        """Update rate limit info from response headers.

        Header names are matched case-insensitively; api.github.com sends
        them in lowercase.

        Args:
            headers: HTTP response headers from GitHub API
        """
        values = {name.lower(): value for name, value in headers.items()}
        if "x-ratelimit-limit" not in values:
            return

        try:
            rate_limit = RateLimitInfo(
                limit=int(values.get("x-ratelimit-limit", 5000)),
                remaining=int(values.get("x-ratelimit-remaining", 0)),
                reset=int(values.get("x-ratelimit-reset", 0)),
                used=int(values.get("x-ratelimit-used", 0)),
                resource=values.get("x-ratelimit-resource", "core"),
            )
        except (ValueError, TypeError):
            return
        self._rate_limits[rate_limit.resource] = rate_limit

    def check_rate_limit(self, resource: str = "core") -> None:
        """Refuse a request when the budget for ``resource`` is spent.

        Raises:
            GitHubRateLimitError: If no calls remain before the reset
        """
        rate_limit = self.get_rate_limit(resource)
        if not rate_limit:
            return

        if rate_limit.is_exceeded and rate_limit.seconds_until_reset > 0:
            raise GitHubRateLimitError(
                f"Rate limit exhausted for {resource}, "
                f"resets at {rate_limit.reset_datetime:%H:%M:%S}",
                reset_time=rate_limit.reset,
                remaining=rate_limit.remaining,
                limit=rate_limit.limit,
            )
