"""Decide which runs to evaluate from the selection criteria."""

import enum
import logging

from rerun_failed.config.models import RerunOptions
from rerun_failed.github.exceptions import GitHubError
from rerun_failed.github.models import WorkflowRun
from rerun_failed.github.source import RunSource

from .aggregation import AggregationEngine
from .exceptions import RerunError

logger = logging.getLogger(__name__)

# Consecutive open PRs without recent failures before the scan gives up.
EARLY_EXIT_EMPTY_PRS = 5


class SelectionMode(enum.Enum):
    """How the target runs are selected."""

    PULL_REQUEST = "pull_request"
    ALL_OPEN_PULL_REQUESTS = "all_open_pull_requests"
    REPOSITORY = "repository"


class SelectionResolver:
    """Resolves ``RerunOptions`` into the unordered list of candidate runs."""

    def __init__(
        self, source: RunSource, options: RerunOptions, engine: AggregationEngine
    ):
        self.source = source
        self.options = options
        self.engine = engine

    @property
    def mode(self) -> SelectionMode:
        if self.options.pr_number > 0:
            return SelectionMode.PULL_REQUEST
        if self.options.all_open_prs:
            return SelectionMode.ALL_OPEN_PULL_REQUESTS
        return SelectionMode.REPOSITORY

    async def resolve(self) -> list[WorkflowRun]:
        """Collect candidate runs for the selected mode.

        Raises:
            RerunError: If the target cannot be resolved
        """
        mode = self.mode
        logger.debug(f"Resolving runs in {mode.value} mode")
        if mode is SelectionMode.PULL_REQUEST:
            return await self.runs_for_pull_request(self.options.pr_number)
        if mode is SelectionMode.ALL_OPEN_PULL_REQUESTS:
            return await self.runs_for_open_pull_requests()
        return await self.engine.fetch_context_runs()

    async def runs_for_pull_request(self, number: int) -> list[WorkflowRun]:
        try:
            pr = await self.source.get_pull_request(number)
        except GitHubError as e:
            raise RerunError(f"failed to fetch PR #{number}: {e}") from e
        return await self.engine.fetch_commit_runs(pr.head_sha)

    async def runs_for_open_pull_requests(self) -> list[WorkflowRun]:
        """Scan open PRs newest first and gather runs at each head commit.

        With a lookback window set, the scan stops after
        ``EARLY_EXIT_EMPTY_PRS`` consecutive PRs without matching runs. Older
        PRs are assumed to be just as quiet. That can miss a genuine match
        further down the list.

        Per-status listing failures for a PR, malformed responses included,
        are logged and skipped by ``AggregationEngine.fetch_commit_runs``;
        only a failure to list the open PRs is fatal.
        """
        try:
            prs = await self.source.list_open_pull_requests()
        except GitHubError as e:
            raise RerunError(f"failed to fetch open PRs: {e}") from e

        runs: list[WorkflowRun] = []
        consecutive_empty = 0
        for pr in prs:
            if pr.is_draft and not self.options.include_drafts:
                continue

            pr_runs = await self.engine.fetch_commit_runs(pr.head_sha)
            if pr_runs:
                runs.extend(pr_runs)
                consecutive_empty = 0
            elif self.options.since is not None:
                consecutive_empty += 1
                if consecutive_empty >= EARLY_EXIT_EMPTY_PRS:
                    logger.info(
                        f"Stopping PR scan after {consecutive_empty} consecutive "
                        f"PRs with no recent failed runs"
                    )
                    break
        return runs
