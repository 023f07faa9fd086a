"""Secondary lookups that annotate the selected runs for display."""

import asyncio
import logging

from rerun_failed.github.exceptions import GitHubError
from rerun_failed.github.models import WorkflowRun
from rerun_failed.github.source import RunSource

from .pool import BoundedPool

logger = logging.getLogger(__name__)

JOB_FETCH_CONCURRENCY = 10
COMMIT_LOOKUP_DEPTH = 50


async def collect_failed_jobs(
    source: RunSource,
    runs: list[WorkflowRun],
    concurrency: int = JOB_FETCH_CONCURRENCY,
) -> dict[int, list[str]]:
    """Map run id to the names of its failed jobs.

    Runs without failed jobs, and runs whose job listing could not be
    fetched, are absent from the result.
    """
    if not runs:
        return {}

    async def failed_job_names(run: WorkflowRun) -> list[str]:
        try:
            jobs = await source.list_jobs_for_run(run.id)
        except GitHubError as e:
            logger.debug(f"Could not list jobs for run {run.id}: {e}")
            return []
        return [job.name for job in jobs if job.is_failed]

    outcomes = await BoundedPool(concurrency).map(failed_job_names, runs)
    failed_jobs: dict[int, list[str]] = {}
    for outcome in outcomes:
        if not outcome.ok:
            logger.debug(f"Job lookup for run {outcome.item.id} failed: {outcome.error}")
        elif outcome.result:
            failed_jobs[outcome.item.id] = outcome.result
    return failed_jobs


class CommitMessages:
    """Commit summaries and distance from the branch tip, by SHA.

    Primed once from the most recent commits of the branch. SHAs outside
    that window are looked up one at a time on demand and cached.
    """

    def __init__(self, source: RunSource):
        self.source = source
        self._messages: dict[str, str] = {}
        self._distances: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def prime(self, branch: str | None, count: int = COMMIT_LOOKUP_DEPTH) -> None:
        """Load the newest ``count`` commits of ``branch`` (default branch if None)."""
        try:
            commits = await self.source.list_commits(branch, count)
        except GitHubError as e:
            logger.warning(f"Could not list recent commits: {e}")
            return

        async with self._lock:
            for distance, commit in enumerate(commits):
                self._distances.setdefault(commit.sha, distance)
                self._messages[commit.sha] = commit.summary
        logger.debug(f"Primed commit lookup with {len(commits)} commits")

    def distance(self, sha: str) -> int | None:
        return self._distances.get(sha)

    def distance_label(self, sha: str) -> str:
        """``HEAD``, ``HEAD^N``, or ``HEAD^?`` when the SHA is not near the tip."""
        distance = self._distances.get(sha)
        if distance is None:
            return "HEAD^?"
        if distance == 0:
            return "HEAD"
        return f"HEAD^{distance}"

    async def message_for(self, sha: str) -> str | None:
        """Summary line for ``sha``, fetching the commit on a cache miss."""
        async with self._lock:
            if sha in self._messages:
                return self._messages[sha]

        try:
            commit = await self.source.get_commit(sha)
        except GitHubError as e:
            logger.debug(f"Could not fetch commit {sha}: {e}")
            return None

        async with self._lock:
            self._messages[sha] = commit.summary
        return commit.summary
