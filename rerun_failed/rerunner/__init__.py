"""Find failed workflow runs and rerun them."""

from .aggregation import AggregationEngine, AggregationResult
from .enrichment import CommitMessages, collect_failed_jobs
from .exceptions import RerunError
from .pool import BoundedPool, TaskOutcome
from .reporter import DispatchSummary, RerunDispatcher, TableReporter, truncate
from .resolver import SelectionMode, SelectionResolver
from .runner import Rerunner, RunReport

__all__ = [
    "AggregationEngine",
    "AggregationResult",
    "BoundedPool",
    "CommitMessages",
    "DispatchSummary",
    "RerunDispatcher",
    "RerunError",
    "Rerunner",
    "RunReport",
    "SelectionMode",
    "SelectionResolver",
    "TableReporter",
    "TaskOutcome",
    "collect_failed_jobs",
    "truncate",
]
