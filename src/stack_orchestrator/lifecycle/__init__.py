"""Index lifecycle: ingestion server client and per-model coordinator."""

from .client import IngestionClient, RetryPolicy, TaskClient, TaskSnapshot, parse_task_status
from .coordinator import IndexLifecycleCoordinator, LifecycleJob

__all__ = [
    "IndexLifecycleCoordinator",
    "IngestionClient",
    "LifecycleJob",
    "RetryPolicy",
    "TaskClient",
    "TaskSnapshot",
    "parse_task_status",
]
