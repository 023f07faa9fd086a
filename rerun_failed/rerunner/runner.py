"""One complete rerun pass: resolve, aggregate, enrich, report or dispatch."""

import logging
import sys
from dataclasses import dataclass, field
from typing import TextIO

from rerun_failed.config.models import RerunOptions
from rerun_failed.github.exceptions import GitHubError
from rerun_failed.github.models import WorkflowRun
from rerun_failed.github.rate_limiting import RateLimitInfo
from rerun_failed.github.source import RunSource

from .aggregation import AggregationEngine, Clock, utc_now
from .enrichment import COMMIT_LOOKUP_DEPTH, CommitMessages, collect_failed_jobs
from .reporter import DispatchSummary, RerunDispatcher, TableReporter, terminal_width
from .resolver import SelectionResolver

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """What a pass selected and what it did with it."""

    runs: list[WorkflowRun] = field(default_factory=list)
    total_found: int = 0
    failed_jobs: dict[int, list[str]] = field(default_factory=dict)
    rows: list[str] = field(default_factory=list)
    dispatch: DispatchSummary | None = None


class Rerunner:
    """Runs a single pass for one set of options against one source."""

    def __init__(
        self,
        source: RunSource,
        options: RerunOptions,
        out: TextIO | None = None,
        clock: Clock = utc_now,
        width: int | None = None,
    ):
        """Initialize rerunner.

        Args:
            source: Where runs are read from and reruns are triggered
            options: Selection criteria for this pass
            out: Stream for the report; stdout by default
            clock: Current time, used for the lookback window
            width: Terminal width; detected when None
        """
        self.source = source
        self.options = options
        self.out = out or sys.stdout
        self.clock = clock
        self.width = width or terminal_width()

        self.engine = AggregationEngine(source, options, clock)
        self.resolver = SelectionResolver(source, options, self.engine)
        self.commits = CommitMessages(source)

    def _print(self, line: str) -> None:
        print(line, file=self.out, flush=True)

    async def _sample_rate_limit(self, when: str) -> RateLimitInfo | None:
        try:
            return await self.source.get_rate_limit()
        except GitHubError as e:
            logger.warning(f"Could not fetch {when} rate limit: {e}")
            return None

    async def run(self) -> RunReport:
        """Execute the pass.

        Raises:
            RerunError: If the target runs cannot be resolved
        """
        options = self.options
        self._print(f"Targeting repository: {self.source.repository}")

        start_rate = await self._sample_rate_limit("start")
        if start_rate is not None:
            self._print(
                f"[Trace] Rate limit at start: {start_rate.remaining}/"
                f"{start_rate.limit} (resets at {start_rate.reset_datetime:%H:%M:%S})"
            )

        if options.branch or options.pr_number == 0:
            await self.commits.prime(options.branch, COMMIT_LOOKUP_DEPTH)

        candidates = await self.resolver.resolve()
        result = AggregationEngine.finalize(candidates, options.limit)
        report = RunReport(runs=result.runs, total_found=result.total_found)

        if not result.runs:
            self._print("No failed workflow runs found matching the criteria.")
            return report

        summary = (
            f"Found {result.total_found} failed/cancelled workflow runs "
            f"(processed {len(result.runs)})."
        )
        self._print(summary if options.dry_run else f"{summary} Starting reruns...")

        report.failed_jobs = await collect_failed_jobs(self.source, result.runs)

        if options.dry_run:
            reporter = TableReporter(self.commits, self.out, self.width)
            report.rows = await reporter.report(result.runs, report.failed_jobs)
            return report

        dispatcher = RerunDispatcher(self.source, self.out, options.failed_only)
        report.dispatch = await dispatcher.dispatch(result.runs)

        end_rate = await self._sample_rate_limit("end")
        if end_rate is not None:
            spent = start_rate.remaining - end_rate.remaining if start_rate else 0
            self._print(
                f"[Trace] Rate limit at end: {end_rate.remaining}/{end_rate.limit} "
                f"(spent {spent})"
            )

        self._print("Done triggering reruns.")
        return report
