"""Data objects for the GitHub Actions resources the rerunner works with.

All objects are immutable snapshots of an API response. They live for the
duration of one invocation and are never persisted.
"""

import enum
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


class RunConclusion(str, enum.Enum):
    """Workflow run conclusion enum."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    NEUTRAL = "neutral"
    SKIPPED = "skipped"
    ACTION_REQUIRED = "action_required"
    STALE = "stale"


class RunStatus(str, enum.Enum):
    """Workflow run status enum."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WAITING = "waiting"
    REQUESTED = "requested"
    PENDING = "pending"


def parse_timestamp(value: str | None) -> datetime:
    """Parse a GitHub ISO 8601 timestamp into an aware UTC datetime."""
    if not value:
        return datetime.fromtimestamp(0, tz=UTC)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


@dataclass(frozen=True)
class WorkflowRun:
    """A single GitHub Actions workflow run."""

    id: int
    run_number: int
    run_attempt: int
    name: str
    head_branch: str
    head_sha: str
    conclusion: str | None
    status: str
    created_at: datetime
    html_url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WorkflowRun":
        """Convert an entry of ``workflow_runs`` from the REST API."""
        return cls(
            id=int(data["id"]),
            run_number=int(data.get("run_number", 0)),
            run_attempt=int(data.get("run_attempt", 1)),
            name=data.get("name") or "",
            head_branch=data.get("head_branch") or "",
            head_sha=data.get("head_sha") or "",
            conclusion=data.get("conclusion"),
            status=data.get("status") or "",
            created_at=parse_timestamp(data.get("created_at")),
            html_url=data.get("html_url") or "",
        )

    @property
    def short_sha(self) -> str:
        return self.head_sha[:7]


@dataclass(frozen=True)
class PullRequest:
    """Pull request snapshot used to resolve a head commit."""

    number: int
    head_sha: str
    is_draft: bool
    title: str

    @classmethod
    def from_graphql(cls, data: dict[str, Any]) -> "PullRequest":
        """Convert a GraphQL ``PullRequest`` node."""
        return cls(
            number=int(data["number"]),
            head_sha=data.get("headRefOid") or "",
            is_draft=bool(data.get("isDraft", False)),
            title=data.get("title") or "",
        )


@dataclass(frozen=True)
class Commit:
    """Commit hash and message."""

    sha: str
    message: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Commit":
        """Convert a REST commit object (``{"sha": ..., "commit": {...}}``)."""
        return cls(
            sha=data["sha"],
            message=(data.get("commit") or {}).get("message") or "",
        )

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class WorkflowJob:
    """Job within a workflow run."""

    id: int
    name: str
    conclusion: str | None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WorkflowJob":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            conclusion=data.get("conclusion"),
        )

    @property
    def is_failed(self) -> bool:
        return self.conclusion == RunConclusion.FAILURE.value
