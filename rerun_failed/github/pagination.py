"""Page-number pagination for the workflow runs endpoints.

The Actions runs endpoints report ``total_count`` on every page, so callers
can decide up front how many pages exist instead of following Link headers.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from .models import WorkflowRun

MAX_PER_PAGE = 100


class WorkflowRunsPage:
    """One page of a ``/actions/runs`` listing."""

    def __init__(
        self,
        runs: list[WorkflowRun],
        total_count: int,
        page: int = 1,
        per_page: int = MAX_PER_PAGE,
    ):
        """Initialize runs page.

        Args:
            runs: Runs on this page, newest first
            total_count: Total matching runs reported by GitHub
            page: 1-based page number
            per_page: Page size the page was requested with
        """
        self.runs = runs
        self.total_count = total_count
        self.page = page
        self.per_page = per_page

    @classmethod
    def from_api(
        cls, data: dict[str, Any], page: int = 1, per_page: int = MAX_PER_PAGE
    ) -> "WorkflowRunsPage":
        runs = [WorkflowRun.from_api(item) for item in data.get("workflow_runs", [])]
        return cls(
            runs=runs,
            total_count=int(data.get("total_count", len(runs))),
            page=page,
            per_page=per_page,
        )

    @property
    def is_last_page(self) -> bool:
        """A short page means there is nothing after it."""
        return len(self.runs) < self.per_page

    @property
    def oldest(self) -> WorkflowRun | None:
        """Oldest run on the page (pages are ordered newest first)."""
        return self.runs[-1] if self.runs else None

    def __len__(self) -> int:
        return len(self.runs)


PageFetcher = Callable[[int], Awaitable[WorkflowRunsPage]]


class PageNumberPaginator:
    """Sequential iterator over numbered pages of workflow runs.

    Iteration stops at the first of: an empty or short page, the
    accumulated count reaching ``total_count``, ``limit`` runs yielded
    (even mid-page), or ``max_pages`` pages fetched.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        per_page: int = MAX_PER_PAGE,
        max_pages: int | None = None,
        limit: int = 0,
    ):
        """Initialize paginator.

        Args:
            fetch_page: Coroutine function returning the page for a number
            per_page: Items per page (max 100 for GitHub)
            max_pages: Maximum number of pages to fetch
            limit: Stop after this many runs; 0 means no limit
        """
        self.fetch_page = fetch_page
        self.per_page = min(per_page, MAX_PER_PAGE)
        self.max_pages = max_pages
        self.limit = limit
        self.pages_fetched = 0

    async def __aiter__(self) -> AsyncIterator[WorkflowRun]:
        yielded = 0
        page_number = 1
        while self.max_pages is None or self.pages_fetched < self.max_pages:
            page = await self.fetch_page(page_number)
            self.pages_fetched += 1

            if not page.runs:
                return

            for run in page.runs:
                yield run
                yielded += 1
                if self.limit > 0 and yielded >= self.limit:
                    return

            if yielded >= page.total_count or len(page.runs) < self.per_page:
                return
            page_number += 1

    async def collect_all(self) -> list[WorkflowRun]:
        """Collect every run the stop rules allow."""
        return [run async for run in self]
