"""Bounded-concurrency asyncio task scheduling.

``Scheduler`` admits submitted work in arrival order with at most
``concurrency_limit`` tasks in flight, re-queues failed tasks while retries
remain and drains on ``close()``. ``WorkerPool`` layers the same scheduler over
a thread or process executor; ``retry`` is the standalone backoff helper.
"""

from jobqueue.backoff import RetryBackoff, retry
from jobqueue.config import PoolSettings, SchedulerSettings, Settings
from jobqueue.errors import (
    InvalidArgumentError,
    JobQueueError,
    OwnershipError,
    QueueClosedError,
    RetryAbortedError,
)
from jobqueue.models import (
    EventType,
    RetryPlacement,
    SchedulerStats,
    TaskEvent,
    TaskStatus,
)
from jobqueue.ownership import Transfer
from jobqueue.pool import WorkerPool
from jobqueue.scheduler import Scheduler, create

__version__ = "0.1.0"

__all__ = [
    "EventType",
    "InvalidArgumentError",
    "JobQueueError",
    "OwnershipError",
    "PoolSettings",
    "QueueClosedError",
    "RetryAbortedError",
    "RetryBackoff",
    "RetryPlacement",
    "Scheduler",
    "SchedulerSettings",
    "SchedulerStats",
    "Settings",
    "TaskEvent",
    "TaskStatus",
    "Transfer",
    "WorkerPool",
    "__version__",
    "create",
    "retry",
]
