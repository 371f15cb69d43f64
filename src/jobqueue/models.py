"""Domain models for scheduled tasks and their lifecycle events."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


_TERMINAL_STATUSES = {
    TaskStatus.SUCCEEDED,
    TaskStatus.FAILED,
    TaskStatus.CANCELED,
}


class RetryPlacement(str, Enum):
    """Where a retried task re-enters the backlog."""

    TAIL = "tail"
    HEAD = "head"


class EventType(str, Enum):
    """Events published to scheduler listeners."""

    START = "start"
    RETRY = "retry"
    SUCCESS = "success"
    FAILURE = "failure"
    CANCEL = "cancel"
    DRAIN = "drain"


@dataclass(slots=True, eq=False)
class Task:
    """One submitted unit of work tracked by the scheduler."""

    task_id: int
    work: Callable[[], Any]
    future: asyncio.Future[Any]
    attempts_remaining: int
    attempt: int = 0
    status: TaskStatus = TaskStatus.QUEUED

    @property
    def settled(self) -> bool:
        return self.status in _TERMINAL_STATUSES


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """Lifecycle notification delivered to listeners.

    ``task_id`` and ``attempt`` are ``None`` for the scheduler-level
    ``drain`` event.
    """

    event_type: EventType
    task_id: int | None = None
    attempt: int | None = None
    value: Any = None
    error: BaseException | None = None


@dataclass(slots=True)
class SchedulerStats:
    """Aggregate scheduler counters."""

    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    canceled: int = 0

    @property
    def settled(self) -> int:
        return self.succeeded + self.failed + self.canceled
