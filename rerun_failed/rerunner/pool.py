"""Bounded-concurrency fan-out.

Every stage of the pipeline fans out one coroutine per item under a fixed
in-flight cap, waits for all of them, and then looks at the outcomes. A
failing task never cancels its siblings; whether a failure is fatal is up
to the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class TaskOutcome(Generic[T, R]):
    """Result of running the pool function on one item."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> R | None:
        """Return the result, re-raising the error of a failed task."""
        if self.error is not None:
            raise self.error
        return self.result


class BoundedPool:
    """Runs a coroutine function over items with at most ``limit`` in flight."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("pool limit must be at least 1")
        self.limit = limit

    async def map(
        self, func: Callable[[T], Awaitable[R]], items: Iterable[T]
    ) -> list[TaskOutcome[T, R]]:
        """Apply ``func`` to every item and return outcomes in input order."""
        items = list(items)
        semaphore = asyncio.Semaphore(self.limit)

        async def run(item: T) -> R:
            async with semaphore:
                return await func(item)

        results = await asyncio.gather(
            *(run(item) for item in items), return_exceptions=True
        )

        outcomes: list[TaskOutcome[T, R]] = []
        for item, result in zip(items, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                outcomes.append(TaskOutcome(item=item, error=result))
            else:
                outcomes.append(TaskOutcome(item=item, result=result))
        return outcomes


def first_error(outcomes: Iterable[TaskOutcome[T, R]]) -> TaskOutcome[T, R] | None:
    """Return the first failed outcome, in input order."""
    for outcome in outcomes:
        if not outcome.ok:
            return outcome
    return None
