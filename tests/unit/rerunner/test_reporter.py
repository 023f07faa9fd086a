"""
Unit tests for the dry-run table and the rerun dispatcher.

Why: The table is the only output of a dry run, and the dispatcher is the
     only place that changes anything on GitHub.

What: Tests truncation, column layout, row order and contents, dispatcher
      failure isolation and duplicate suppression.

How: Renders into a StringIO and drives FakeRunSource.
"""

from datetime import UTC, datetime

import pytest

from rerun_failed.github.exceptions import GitHubServerError, GitHubValidationError
from rerun_failed.github.models import Commit
from rerun_failed.rerunner.enrichment import CommitMessages
from rerun_failed.rerunner.reporter import (
    MIN_MESSAGE_WIDTH,
    RerunDispatcher,
    TableLayout,
    TableReporter,
    truncate,
)
from tests.fixtures.fake_source import FakeRunSource, make_run, make_runs


class TestTruncate:
    """Test truncate."""

    @pytest.mark.parametrize(
        "text,width,expected",
        [
            ("short", 10, "short"),
            ("exactly10!", 10, "exactly10!"),
            ("this is too long", 10, "this is..."),
            ("abcdef", 3, "abc"),
            ("abcdef", 2, "ab"),
        ],
    )
    def test_truncate(self, text: str, width: int, expected: str) -> None:
        assert truncate(text, width) == expected


class TestTableLayout:
    """Test TableLayout.for_runs."""

    def test_message_width_has_floor(self) -> None:
        runs = [make_run(1)]
        url_len = len(runs[0].html_url)

        layout = TableLayout.for_runs(runs, width=120)

        assert layout.url_width == url_len
        assert layout.message_width == MIN_MESSAGE_WIDTH
        assert layout.separator_length == 120

    def test_wide_terminal_gives_message_the_rest(self) -> None:
        runs = [make_run(1, url="https://x/1")]

        layout = TableLayout.for_runs(runs, width=200)

        # 18 separators + 40 + 3 + 20 + 7 + 19 + 11 url
        assert layout.message_width == 200 - 118
        assert layout.separator_length == 200

    def test_url_width_floor(self) -> None:
        layout = TableLayout.for_runs([make_run(1, url="u")], width=120)

        assert layout.url_width == 3


class TestTableReporter:
    """Test TableReporter.report."""

    @pytest.fixture
    def commits(self) -> CommitMessages:
        source = FakeRunSource(
            single_commits={
                "a" * 40: Commit(sha="a" * 40, message="Fix flaky test\n\ndetails"),
            }
        )
        return CommitMessages(source)

    async def test_rows_in_input_order(self, commits, output) -> None:
        """
        Why: Rows render concurrently but must print in the selection order
        What: Three runs produce rows in the order given, between header and footer
        How: Renders into a buffer and inspects each printed line
        """
        runs = make_runs(3)
        reporter = TableReporter(commits, output, width=150)

        rows = await reporter.report(runs, {})

        lines = output.getvalue().splitlines()
        assert lines[0] == ""
        assert lines[1].startswith("Workflow (+Failed Jobs)")
        assert set(lines[2]) == {"-"}
        assert lines[3:6] == rows
        assert [row.split(" | ")[0].strip() for row in rows] == [
            "Workflow 1",
            "Workflow 2",
            "Workflow 3",
        ]
        assert lines[6] == "Dry-run complete. No reruns were triggered."

    async def test_row_contents(self, commits, output) -> None:
        run = make_run(
            7,
            datetime(2025, 12, 18, 9, 30, 5, tzinfo=UTC),
            name="CI",
            branch="main",
            sha="a" * 40,
            attempt=2,
        )
        reporter = TableReporter(commits, output, width=160)

        rows = await reporter.report([run], {7: ["unit", "lint"]})

        columns = [column.strip() for column in rows[0].split(" | ")]
        assert columns[0] == "CI (unit, lint)"
        assert columns[1] == "2"
        assert columns[2] == "main (HEAD^?)"
        assert columns[3] == "aaaaaaa"
        assert columns[4] == "2025-12-18 09:30:05"
        assert columns[5] == run.html_url
        assert columns[6] == "Fix flaky test"

    async def test_unknown_message(self, commits, output) -> None:
        reporter = TableReporter(commits, output, width=160)

        rows = await reporter.report([make_run(1)], {})

        assert rows[0].endswith("unknown")

    async def test_long_workflow_name_is_truncated(self, commits, output) -> None:
        run = make_run(1, name="x" * 60)
        reporter = TableReporter(commits, output, width=160)

        rows = await reporter.report([run], {})

        assert rows[0].split(" | ")[0] == "x" * 37 + "..."


class TestRerunDispatcher:
    """Test RerunDispatcher.dispatch."""

    async def test_failure_is_isolated(self, output) -> None:
        """
        Why: One rejected rerun must not stop the rest
        What: Run 2 of 3 fails; runs 1 and 3 are still triggered and reported
        How: FakeRunSource raises a validation error for run 2
        """
        source = FakeRunSource(
            rerun_errors={2: GitHubValidationError("already running", 422)}
        )
        dispatcher = RerunDispatcher(source, output)

        summary = await dispatcher.dispatch(make_runs(3))

        assert sorted(summary.succeeded) == [1, 3]
        assert list(summary.failed) == [2]
        assert summary.attempted == 3
        text = output.getvalue()
        assert "✓ Triggered rerun for: Workflow 1 (main) | #1 (attempt 1)" in text
        assert "✗ Failed to rerun 2 (Workflow 2): already running" in text
        assert "✓ Triggered rerun for: Workflow 3" in text

    async def test_each_run_triggered_once(self, output) -> None:
        source = FakeRunSource()
        runs = make_runs(2)

        summary = await RerunDispatcher(source, output).dispatch(runs + runs)

        assert sorted(run_id for run_id, _ in source.reruns) == [1, 2]
        assert summary.attempted == 2

    @pytest.mark.parametrize("failed_only", [True, False])
    async def test_failed_only_passed_through(self, output, failed_only) -> None:
        source = FakeRunSource()

        await RerunDispatcher(source, output, failed_only=failed_only).dispatch(
            make_runs(1)
        )

        assert source.reruns == [(1, failed_only)]

    async def test_bounded_concurrency(self, output) -> None:
        source = FakeRunSource(delay=0.005)

        await RerunDispatcher(source, output, concurrency=5).dispatch(make_runs(20))

        assert source.max_in_flight <= 5
        assert len(source.reruns) == 20

    async def test_server_error_reported(self, output) -> None:
        source = FakeRunSource(rerun_errors={1: GitHubServerError("boom", 500)})

        summary = await RerunDispatcher(source, output).dispatch(make_runs(1))

        assert summary.succeeded == []
        assert summary.failed == {1: "boom"}
