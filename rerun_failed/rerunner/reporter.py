"""Terminal output: the dry-run table and the live rerun dispatcher."""

import logging
import shutil
from dataclasses import dataclass, field
from typing import TextIO

from rerun_failed.github.exceptions import GitHubError
from rerun_failed.github.models import WorkflowRun
from rerun_failed.github.source import RunSource

from .enrichment import CommitMessages
from .pool import BoundedPool

logger = logging.getLogger(__name__)

WORKFLOW_WIDTH = 40
ATTEMPT_WIDTH = 3
BRANCH_WIDTH = 20
SHA_WIDTH = 7
DATE_WIDTH = 19
MIN_URL_WIDTH = 3
MIN_MESSAGE_WIDTH = 20
SEPARATORS_WIDTH = 18  # six " | " separators
DEFAULT_TERMINAL_WIDTH = 120

RENDER_CONCURRENCY = 5
DISPATCH_CONCURRENCY = 5


def terminal_width(default: int = DEFAULT_TERMINAL_WIDTH) -> int:
    """Width of the attached terminal, or ``default`` when unknown."""
    columns = shutil.get_terminal_size(fallback=(0, 0)).columns
    return columns if columns > 0 else default


def truncate(text: str, width: int) -> str:
    """Fit ``text`` into ``width`` characters, marking cuts with ``...``."""
    if len(text) <= width:
        return text
    if width > 3:
        return text[: width - 3] + "..."
    return text[:width]


@dataclass(frozen=True)
class TableLayout:
    """Column widths for one dry-run table."""

    url_width: int
    message_width: int
    separator_length: int

    @classmethod
    def for_runs(cls, runs: list[WorkflowRun], width: int) -> "TableLayout":
        url_width = max([MIN_URL_WIDTH, *(len(run.html_url) for run in runs)])
        overhead = (
            SEPARATORS_WIDTH
            + WORKFLOW_WIDTH
            + ATTEMPT_WIDTH
            + BRANCH_WIDTH
            + SHA_WIDTH
            + DATE_WIDTH
            + url_width
        )
        message_width = max(width - overhead, MIN_MESSAGE_WIDTH)
        return cls(
            url_width=url_width,
            message_width=message_width,
            separator_length=min(overhead + message_width, width),
        )


class TableReporter:
    """Renders the selected runs as a fixed-column table.

    Rows are rendered concurrently, since a row may need a commit lookup,
    and printed in the order of ``runs`` once all of them are ready.
    """

    def __init__(
        self,
        commits: CommitMessages,
        out: TextIO,
        width: int = DEFAULT_TERMINAL_WIDTH,
        concurrency: int = RENDER_CONCURRENCY,
    ):
        self.commits = commits
        self.out = out
        self.width = width
        self.concurrency = concurrency

    def _print(self, line: str = "") -> None:
        print(line, file=self.out)

    def header(self, layout: TableLayout) -> str:
        return " | ".join(
            [
                f"{'Workflow (+Failed Jobs)':<{WORKFLOW_WIDTH}}",
                f"{'Att':<{ATTEMPT_WIDTH}}",
                f"{'Branch@Dist':<{BRANCH_WIDTH}}",
                f"{'SHA':<{SHA_WIDTH}}",
                f"{'Created At':<{DATE_WIDTH}}",
                f"{'URL':<{layout.url_width}}",
                "Message",
            ]
        )

    async def render_row(
        self, run: WorkflowRun, failed_jobs: list[str], layout: TableLayout
    ) -> str:
        name = run.name
        if failed_jobs:
            name = f"{name} ({', '.join(failed_jobs)})"

        branch = f"{run.head_branch} ({self.commits.distance_label(run.head_sha)})"
        message = await self.commits.message_for(run.head_sha) or "unknown"

        return " | ".join(
            [
                f"{truncate(name, WORKFLOW_WIDTH):<{WORKFLOW_WIDTH}}",
                f"{run.run_attempt:<{ATTEMPT_WIDTH}d}",
                f"{truncate(branch, BRANCH_WIDTH):<{BRANCH_WIDTH}}",
                f"{run.short_sha:<{SHA_WIDTH}}",
                f"{run.created_at:%Y-%m-%d %H:%M:%S}",
                f"{run.html_url:<{layout.url_width}}",
                truncate(message, layout.message_width),
            ]
        )

    async def report(
        self, runs: list[WorkflowRun], failed_jobs: dict[int, list[str]]
    ) -> list[str]:
        """Print the table and return the rendered rows."""
        layout = TableLayout.for_runs(runs, self.width)

        async def render(run: WorkflowRun) -> str:
            return await self.render_row(run, failed_jobs.get(run.id, []), layout)

        outcomes = await BoundedPool(self.concurrency).map(render, runs)
        rows = [outcome.unwrap() or "" for outcome in outcomes]

        self._print()
        self._print(self.header(layout))
        self._print("-" * layout.separator_length)
        for row in rows:
            self._print(row)
        self._print("Dry-run complete. No reruns were triggered.")
        return rows


@dataclass
class DispatchSummary:
    """Per-run result of a dispatch pass."""

    succeeded: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)


class RerunDispatcher:
    """Triggers one rerun per run with bounded concurrency.

    A failed trigger is reported and does not affect the others. Each run
    id is triggered at most once per dispatch.
    """

    def __init__(
        self,
        source: RunSource,
        out: TextIO,
        failed_only: bool = True,
        concurrency: int = DISPATCH_CONCURRENCY,
    ):
        self.source = source
        self.out = out
        self.failed_only = failed_only
        self.concurrency = concurrency

    def _print(self, line: str) -> None:
        print(line, file=self.out, flush=True)

    async def _rerun(self, run: WorkflowRun) -> None:
        try:
            await self.source.trigger_rerun(run.id, self.failed_only)
        except GitHubError as e:
            self._print(f"✗ Failed to rerun {run.id} ({run.name}): {e}")
            raise
        self._print(
            f"✓ Triggered rerun for: {run.name} ({run.head_branch}) | "
            f"#{run.run_number} (attempt {run.run_attempt}) | {run.short_sha}"
        )

    async def dispatch(self, runs: list[WorkflowRun]) -> DispatchSummary:
        seen: set[int] = set()
        unique: list[WorkflowRun] = []
        for run in runs:
            if run.id not in seen:
                seen.add(run.id)
                unique.append(run)

        outcomes = await BoundedPool(self.concurrency).map(self._rerun, unique)

        summary = DispatchSummary()
        for outcome in outcomes:
            run = outcome.item
            if outcome.ok:
                summary.succeeded.append(run.id)
                continue
            summary.failed[run.id] = str(outcome.error)
            if not isinstance(outcome.error, GitHubError):
                logger.error(f"Unexpected error rerunning {run.id}: {outcome.error!r}")
                self._print(f"✗ Failed to rerun {run.id} ({run.name}): {outcome.error}")
        return summary
