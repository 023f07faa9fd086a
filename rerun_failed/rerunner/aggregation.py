"""Concurrent aggregation of workflow runs across statuses and pages.

Repository-wide listings fan out one task per status, and each of those
fetches page 1 first and then the remaining pages concurrently. Any
failure in a repository-wide listing fails the aggregation. Commit-scoped
listings fan out per status too, but a failing status is only logged and
skipped.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from rerun_failed.config.models import RerunOptions
from rerun_failed.github.exceptions import GitHubError
from rerun_failed.github.models import WorkflowRun
from rerun_failed.github.source import RunSource

from .exceptions import RerunError
from .pool import BoundedPool, first_error

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
CONTEXT_MAX_PAGES = 10

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def newest_first(runs: list[WorkflowRun]) -> list[WorkflowRun]:
    """Stable sort by creation time, newest first."""
    return sorted(runs, key=lambda run: run.created_at, reverse=True)


@dataclass(frozen=True)
class AggregationResult:
    """Final ordered selection plus the count found before truncation."""

    runs: list[WorkflowRun]
    total_found: int

    @property
    def truncated(self) -> bool:
        return self.total_found > len(self.runs)


class AggregationEngine:
    """Fetches, merges and orders runs for the configured statuses."""

    def __init__(
        self,
        source: RunSource,
        options: RerunOptions,
        clock: Clock = utc_now,
    ):
        self.source = source
        self.options = options
        self.clock = clock

    def cutoff(self) -> datetime | None:
        """Oldest creation time still inside the lookback window."""
        if self.options.since is None:
            return None
        return self.clock() - self.options.since

    async def fetch_paginated(
        self,
        status: str,
        cutoff: datetime | None,
        limit: int = 0,
        max_pages: int = CONTEXT_MAX_PAGES,
    ) -> list[WorkflowRun]:
        """Fetch every page of runs for one status in the repository.

        Page 1 is fetched on its own to learn ``total_count`` and whether
        more pages are needed. The rest are then fetched concurrently.

        Args:
            status: Status or conclusion to list
            cutoff: Drop runs created at or before this time
            limit: Stop once this many runs are collected; 0 means no limit
            max_pages: Hard cap on the number of pages requested

        Raises:
            GitHubError: If any page request fails
        """
        branch = self.options.branch

        def keep(runs: list[WorkflowRun]) -> list[WorkflowRun]:
            if cutoff is None:
                return list(runs)
            return [run for run in runs if run.created_at > cutoff]

        def capped(runs: list[WorkflowRun]) -> list[WorkflowRun]:
            return runs[:limit] if limit > 0 else runs

        first = await self.source.list_runs(branch, status, cutoff, PAGE_SIZE, 1)
        runs = keep(first.runs)

        # Pages are newest first; an old run on page 1 means nothing later counts.
        reached_cutoff = (
            cutoff is not None
            and first.oldest is not None
            and first.oldest.created_at <= cutoff
        )
        if (
            reached_cutoff
            or first.is_last_page
            or (limit > 0 and len(runs) >= limit)
        ):
            return capped(runs)

        pages = min(math.ceil(first.total_count / PAGE_SIZE), max_pages)
        if limit > 0:
            pages = min(pages, math.ceil(limit / PAGE_SIZE))
        if pages <= 1:
            return capped(runs)

        async def fetch_page(page: int) -> list[WorkflowRun]:
            result = await self.source.list_runs(
                branch, status, cutoff, PAGE_SIZE, page
            )
            return keep(result.runs)

        outcomes = await BoundedPool(max_pages).map(fetch_page, range(2, pages + 1))
        for outcome in outcomes:
            runs.extend(outcome.unwrap() or [])

        if limit > 0 and len(runs) > limit:
            runs = newest_first(runs)[:limit]
        return runs

    async def fetch_context_runs(self) -> list[WorkflowRun]:
        """Fetch matching runs across the repository, optionally per branch.

        Raises:
            RerunError: If the listing for any status fails
        """
        cutoff = self.cutoff()
        statuses = self.options.statuses

        async def fetch_status(status: str) -> list[WorkflowRun]:
            return await self.fetch_paginated(status, cutoff, self.options.limit)

        outcomes = await BoundedPool(len(statuses)).map(fetch_status, statuses)
        failed = first_error(outcomes)
        if failed is not None:
            raise RerunError(
                f"failed to fetch {failed.item} runs: {failed.error}"
            ) from failed.error

        merged: list[WorkflowRun] = []
        for outcome in outcomes:
            merged.extend(outcome.result or [])
        logger.debug(f"Fetched {len(merged)} runs across statuses {statuses}")
        return merged

    async def fetch_commit_runs(self, sha: str) -> list[WorkflowRun]:
        """Fetch matching runs for one head commit.

        A status whose listing fails is logged and skipped.
        """
        statuses = self.options.statuses

        async def fetch_status(status: str) -> list[WorkflowRun]:
            return await self.source.list_runs_for_commit(
                sha, status, self.options.limit
            )

        outcomes = await BoundedPool(len(statuses)).map(fetch_status, statuses)

        merged: list[WorkflowRun] = []
        for outcome in outcomes:
            if isinstance(outcome.error, GitHubError):
                logger.warning(
                    f"failed to fetch {outcome.item} runs for sha {sha}: "
                    f"{outcome.error}"
                )
                continue
            merged.extend(outcome.unwrap() or [])

        cutoff = self.cutoff()
        if cutoff is not None:
            merged = [run for run in merged if run.created_at > cutoff]
        return merged

    @staticmethod
    def finalize(runs: list[WorkflowRun], limit: int) -> AggregationResult:
        """Deduplicate by run id, order newest first and apply the cap."""
        seen: set[int] = set()
        unique: list[WorkflowRun] = []
        for run in runs:
            if run.id in seen:
                continue
            seen.add(run.id)
            unique.append(run)

        ordered = newest_first(unique)
        total_found = len(ordered)
        if limit > 0:
            ordered = ordered[:limit]
        return AggregationResult(runs=ordered, total_found=total_found)
