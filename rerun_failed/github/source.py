"""The remote source the rerunner reads runs from and triggers reruns on.

``RunSource`` is the whole capability set the core depends on. The
production implementation, ``GitHubRunSource``, maps each operation onto
one or more GitHub REST or GraphQL calls. Tests provide their own
subclass.
"""

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from rerun_failed.config.utils import RepositoryRef

from .client import GitHubClient
from .exceptions import GitHubNotFoundError, GitHubResponseError
from .models import Commit, PullRequest, WorkflowJob, WorkflowRun
from .pagination import MAX_PER_PAGE, PageNumberPaginator, WorkflowRunsPage
from .rate_limiting import RateLimitInfo

logger = logging.getLogger(__name__)

COMMIT_MAX_PAGES = 5

F = TypeVar("F", bound=Callable[..., Any])

# Raised by model constructors on payloads with missing or mistyped fields.
PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def parses_response(func: F) -> F:
    """Report a malformed response body as ``GitHubResponseError``."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except PAYLOAD_ERRORS as e:
            raise GitHubResponseError(
                f"unexpected response from GitHub in {func.__name__}: {e!r}"
            ) from e

    return wrapper  # type: ignore[return-value]


PULL_REQUEST_QUERY = """
query GetPR($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      number
      headRefOid
      isDraft
      title
    }
  }
}
"""

OPEN_PULL_REQUESTS_QUERY = """
query ListPRs($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    pullRequests(first: 100, states: OPEN, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        number
        headRefOid
        isDraft
        title
      }
    }
  }
}
"""


class RunSource(ABC):
    """Operations the rerunner needs from the remote service.

    Every operation is a network call that may raise.
    """

    repository: RepositoryRef

    @abstractmethod
    async def list_runs(
        self,
        branch: str | None,
        status: str,
        since: datetime | None,
        per_page: int,
        page: int,
    ) -> WorkflowRunsPage:
        """Fetch one page of runs in the repository.

        Args:
            branch: Only runs on this branch, or all branches when None
            status: Status or conclusion filter (e.g. ``failure``)
            since: Hint to narrow the query to runs created at or after it
            per_page: Page size, at most 100
            page: 1-based page number
        """

    @abstractmethod
    async def list_runs_for_commit(
        self, sha: str, status: str, limit: int
    ) -> list[WorkflowRun]:
        """Fetch the runs for one head commit, at most ``limit`` when > 0."""

    @abstractmethod
    async def get_pull_request(self, number: int) -> PullRequest:
        """Fetch a single pull request."""

    @abstractmethod
    async def list_open_pull_requests(self) -> list[PullRequest]:
        """List open pull requests, newest created first."""

    @abstractmethod
    async def list_commits(self, branch: str | None, count: int) -> list[Commit]:
        """List the most recent commits on a branch, tip first."""

    @abstractmethod
    async def get_commit(self, sha: str) -> Commit:
        """Fetch a single commit."""

    @abstractmethod
    async def list_jobs_for_run(self, run_id: int) -> list[WorkflowJob]:
        """List the jobs of the latest attempt of a run."""

    @abstractmethod
    async def trigger_rerun(self, run_id: int, failed_only: bool) -> None:
        """Rerun a workflow run, or only its failed jobs."""

    @abstractmethod
    async def get_rate_limit(self) -> RateLimitInfo:
        """Sample the core rate limit."""


class GitHubRunSource(RunSource):
    """``RunSource`` backed by the GitHub REST and GraphQL APIs."""

    def __init__(self, client: GitHubClient, repository: RepositoryRef):
        self.client = client
        self.repository = repository

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.repository.owner}/{self.repository.name}"

    def _graphql_vars(self, **extra: Any) -> dict[str, Any]:
        return {
            "owner": self.repository.owner,
            "name": self.repository.name,
            **extra,
        }

    @parses_response
    async def list_runs(
        self,
        branch: str | None,
        status: str,
        since: datetime | None,
        per_page: int,
        page: int,
    ) -> WorkflowRunsPage:
        params: dict[str, Any] = {
            "status": status,
            "per_page": min(per_page, MAX_PER_PAGE),
            "page": page,
        }
        if branch:
            params["branch"] = branch
        if since is not None:
            params["created"] = f">={since.strftime('%Y-%m-%dT%H:%M:%SZ')}"

        logger.info(f"Fetching page {page} for runs with status {status}")
        data = await self.client.get(f"{self._repo_path}/actions/runs", params)
        return WorkflowRunsPage.from_api(data or {}, page=page, per_page=per_page)

    @parses_response
    async def list_runs_for_commit(
        self, sha: str, status: str, limit: int
    ) -> list[WorkflowRun]:
        async def fetch_page(page: int) -> WorkflowRunsPage:
            params: dict[str, Any] = {
                "head_sha": sha,
                "per_page": MAX_PER_PAGE,
                "page": page,
            }
            if status:
                params["status"] = status
            logger.info(
                f"Fetching page {page} for runs with SHA {sha[:7]} and status {status}"
            )
            data = await self.client.get(f"{self._repo_path}/actions/runs", params)
            return WorkflowRunsPage.from_api(data or {}, page=page)

        paginator = PageNumberPaginator(
            fetch_page, max_pages=COMMIT_MAX_PAGES, limit=limit
        )
        return await paginator.collect_all()

    @parses_response
    async def get_pull_request(self, number: int) -> PullRequest:
        data = await self.client.graphql(
            PULL_REQUEST_QUERY, self._graphql_vars(number=number)
        )
        node = (data.get("repository") or {}).get("pullRequest")
        if not node:
            raise GitHubNotFoundError(f"pull request #{number} not found", 404)
        return PullRequest.from_graphql(node)

    @parses_response
    async def list_open_pull_requests(self) -> list[PullRequest]:
        data = await self.client.graphql(
            OPEN_PULL_REQUESTS_QUERY, self._graphql_vars()
        )
        nodes = ((data.get("repository") or {}).get("pullRequests") or {}).get(
            "nodes"
        ) or []
        return [PullRequest.from_graphql(node) for node in nodes if node]

    @parses_response
    async def list_commits(self, branch: str | None, count: int) -> list[Commit]:
        params: dict[str, Any] = {"per_page": count}
        if branch:
            params["sha"] = branch
        data = await self.client.get(f"{self._repo_path}/commits", params)
        return [Commit.from_api(item) for item in data or []]

    @parses_response
    async def get_commit(self, sha: str) -> Commit:
        data = await self.client.get(f"{self._repo_path}/commits/{sha}")
        return Commit.from_api(data)

    @parses_response
    async def list_jobs_for_run(self, run_id: int) -> list[WorkflowJob]:
        data = await self.client.get(
            f"{self._repo_path}/actions/runs/{run_id}/jobs",
            {"per_page": MAX_PER_PAGE},
        )
        return [WorkflowJob.from_api(job) for job in (data or {}).get("jobs", [])]

    async def trigger_rerun(self, run_id: int, failed_only: bool) -> None:
        endpoint = "rerun-failed-jobs" if failed_only else "rerun"
        await self.client.post(f"{self._repo_path}/actions/runs/{run_id}/{endpoint}")

    @parses_response
    async def get_rate_limit(self) -> RateLimitInfo:
        data = await self.client.get_rate_limit()
        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        return RateLimitInfo.from_api(core)
