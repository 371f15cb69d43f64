"""Bounded-concurrency asyncio scheduler with a FIFO backlog and retries.

At most ``concurrency_limit`` tasks run at once. Excess work waits in the
backlog and is admitted strictly in arrival order whenever a running task
settles. A failing task with retries left re-enters the backlog (at the tail
by default) instead of being retried in place.

All state is touched only from the event loop thread, so no locks are needed.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, TypeVar

from jobqueue.backoff import RetryBackoff, ShouldRetry
from jobqueue.config import SchedulerSettings
from jobqueue.errors import InvalidArgumentError, QueueClosedError
from jobqueue.models import (
    EventType,
    RetryPlacement,
    SchedulerStats,
    Task,
    TaskEvent,
    TaskStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[TaskEvent], None]


class Scheduler:
    """Runs submitted work with bounded concurrency."""

    def __init__(
        self,
        concurrency_limit: int,
        *,
        retries: int = 0,
        retry_placement: RetryPlacement | str = RetryPlacement.TAIL,
        backoff: RetryBackoff | None = None,
        should_retry: ShouldRetry | None = None,
    ) -> None:
        if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int):
            raise InvalidArgumentError(
                f"concurrency_limit must be an integer, got {concurrency_limit!r}.",
            )
        if concurrency_limit < 1:
            raise InvalidArgumentError(
                f"concurrency_limit must be >= 1, got {concurrency_limit}.",
            )
        if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
            raise InvalidArgumentError(f"retries must be a non-negative integer, got {retries!r}.")
        try:
            placement = RetryPlacement(retry_placement)
        except ValueError as error:
            raise InvalidArgumentError(f"Unknown retry placement: {retry_placement!r}") from error

        self._limit = concurrency_limit
        self._retries = retries
        self._retry_placement = placement
        self._backoff = backoff
        self._should_retry = should_retry
        self._random = random.Random()  # noqa: S311
        self._ids = itertools.count(1)
        self._backlog: deque[Task] = deque()
        self._delayed: dict[Task, asyncio.TimerHandle] = {}
        self._running: dict[Task, asyncio.Task[None]] = {}
        self._active_count = 0
        self._closed = False
        self._drained: asyncio.Future[None] | None = None
        self._listeners: list[Listener] = []
        self._stats = SchedulerStats()

    @classmethod
    def from_settings(cls, settings: SchedulerSettings) -> Scheduler:
        """Build a scheduler from validated settings."""

        settings.validate()
        backoff = None
        if settings.retry_base_seconds > 0:
            backoff = RetryBackoff(
                base_seconds=settings.retry_base_seconds,
                max_seconds=settings.retry_max_seconds,
                jitter=settings.retry_jitter,
            )
        return cls(
            settings.concurrency_limit,
            retries=settings.retries,
            retry_placement=settings.retry_placement,
            backoff=backoff,
        )

    @property
    def concurrency_limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        """Number of tasks currently running."""

        return self._active_count

    @property
    def pending(self) -> int:
        """Number of tasks waiting in the backlog."""

        return len(self._backlog)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def submit(self, work: Callable[[], Awaitable[T] | T]) -> asyncio.Future[T]:
        """Accept ``work`` and return a future for its eventual result.

        ``work`` is a zero-argument callable returning an awaitable or a plain
        value. With retries configured it may be called more than once.
        Must be called from a running event loop.
        """

        if self._closed:
            raise QueueClosedError("Scheduler is closed; submission rejected.")
        if not callable(work):
            raise TypeError(f"work must be callable, got {type(work).__name__}.")

        loop = asyncio.get_running_loop()
        task = Task(
            task_id=next(self._ids),
            work=work,
            future=loop.create_future(),
            attempts_remaining=self._retries,
        )
        task.future.add_done_callback(partial(self._on_future_done, task))
        self._stats.submitted += 1

        if self._active_count < self._limit and not self._backlog:
            self._start(task)
        else:
            self._backlog.append(task)
            logger.debug(
                "Task %d queued (backlog %d, active %d/%d)",
                task.task_id,
                len(self._backlog),
                self._active_count,
                self._limit,
            )
        return task.future

    def close(self) -> asyncio.Future[None]:
        """Stop accepting work; the returned future resolves once drained.

        Repeated calls return the same future.
        """

        if self._drained is None:
            self._closed = True
            self._drained = asyncio.get_running_loop().create_future()
            logger.debug(
                "Scheduler closing (active %d, backlog %d, delayed %d)",
                self._active_count,
                len(self._backlog),
                len(self._delayed),
            )
            self._check_drain()
        return self._drained

    async def __aenter__(self) -> Scheduler:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # -- dispatcher -----------------------------------------------------------

    def _admit(self) -> None:
        while self._active_count < self._limit and self._backlog:
            task = self._backlog.popleft()
            if task.future.done():
                self._finish_canceled(task)
                continue
            self._start(task)

    def _start(self, task: Task) -> None:
        self._active_count += 1
        task.attempt += 1
        task.status = TaskStatus.RUNNING
        logger.debug(
            "Task %d started (attempt %d, active %d/%d)",
            task.task_id,
            task.attempt,
            self._active_count,
            self._limit,
        )
        self._emit(EventType.START, task)
        runner = asyncio.get_running_loop().create_task(
            self._run(task),
            name=f"jobqueue-task-{task.task_id}",
        )
        self._running[task] = runner

    async def _run(self, task: Task) -> None:
        try:
            value = task.work()
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            self._release(task)
            self._finish_canceled(task)
            self._after_settlement()
            raise
        except Exception as error:  # noqa: BLE001
            self._release(task)
            self._finish_failure(task, error)
        else:
            self._release(task)
            self._finish_success(task, value)
        self._after_settlement()

    def _release(self, task: Task) -> None:
        self._running.pop(task, None)
        self._active_count -= 1

    def _after_settlement(self) -> None:
        self._admit()
        self._check_drain()

    def _finish_success(self, task: Task, value: Any) -> None:
        if task.future.done():
            self._finish_canceled(task)
            return
        task.status = TaskStatus.SUCCEEDED
        self._stats.succeeded += 1
        task.future.set_result(value)
        logger.debug("Task %d succeeded on attempt %d", task.task_id, task.attempt)
        self._emit(EventType.SUCCESS, task, value=value)

    def _finish_failure(self, task: Task, error: Exception) -> None:
        if task.future.done():
            self._finish_canceled(task)
            return
        if self._retry_allowed(task, error):
            task.attempts_remaining -= 1
            self._stats.retried += 1
            logger.warning(
                "Task %d failed on attempt %d, %d retries left: %s",
                task.task_id,
                task.attempt,
                task.attempts_remaining,
                error,
            )
            self._emit(EventType.RETRY, task, error=error)
            self._schedule_retry(task)
            return

        task.status = TaskStatus.FAILED
        self._stats.failed += 1
        task.future.set_exception(error)
        logger.warning(
            "Task %d failed after %d attempt(s): %s",
            task.task_id,
            task.attempt,
            error,
        )
        self._emit(EventType.FAILURE, task, error=error)

    def _finish_canceled(self, task: Task) -> None:
        if task.settled:
            return
        task.status = TaskStatus.CANCELED
        self._stats.canceled += 1
        if not task.future.done():
            task.future.cancel()
        logger.debug("Task %d canceled", task.task_id)
        self._emit(EventType.CANCEL, task)

    def _retry_allowed(self, task: Task, error: Exception) -> bool:
        if task.attempts_remaining <= 0:
            return False
        if self._should_retry is None:
            return True
        try:
            return bool(self._should_retry(error, task.attempt))
        except Exception:
            logger.exception("should_retry failed for task %d; not retrying", task.task_id)
            return False

    def _schedule_retry(self, task: Task) -> None:
        delay_seconds = 0.0
        if self._backoff is not None:
            retry_number = self._retries - task.attempts_remaining
            delay_seconds = self._backoff.delay(retry_number, self._random)
        if delay_seconds <= 0:
            self._enqueue_retry(task)
            return
        task.status = TaskStatus.RETRY_SCHEDULED
        self._delayed[task] = asyncio.get_running_loop().call_later(
            delay_seconds,
            self._requeue_delayed,
            task,
        )

    def _requeue_delayed(self, task: Task) -> None:
        self._delayed.pop(task, None)
        if task.future.done():
            self._finish_canceled(task)
            self._check_drain()
            return
        self._enqueue_retry(task)
        self._after_settlement()

    def _enqueue_retry(self, task: Task) -> None:
        task.status = TaskStatus.QUEUED
        if self._retry_placement is RetryPlacement.HEAD:
            self._backlog.appendleft(task)
        else:
            self._backlog.append(task)

    def _on_future_done(self, task: Task, future: asyncio.Future[Any]) -> None:
        if task.settled:
            return
        if task.status is TaskStatus.QUEUED:
            self._backlog.remove(task)
        elif task.status is TaskStatus.RETRY_SCHEDULED:
            handle = self._delayed.pop(task, None)
            if handle is not None:
                handle.cancel()
        else:
            # Running work is never interrupted; its outcome is discarded when it ends.
            return
        self._finish_canceled(task)
        self._check_drain()

    def _check_drain(self) -> None:
        if self._drained is None or self._drained.done():
            return
        if self._active_count or self._backlog or self._delayed:
            return
        self._drained.set_result(None)
        logger.info(
            "Scheduler drained: submitted=%d succeeded=%d failed=%d retried=%d canceled=%d",
            self._stats.submitted,
            self._stats.succeeded,
            self._stats.failed,
            self._stats.retried,
            self._stats.canceled,
        )
        self._emit(EventType.DRAIN)

    def _emit(
        self,
        event_type: EventType,
        task: Task | None = None,
        *,
        value: Any = None,
        error: BaseException | None = None,
    ) -> None:
        if not self._listeners:
            return
        event = TaskEvent(
            event_type=event_type,
            task_id=task.task_id if task is not None else None,
            attempt=task.attempt if task is not None else None,
            value=value,
            error=error,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed on %s event", listener, event_type.value)


def create(concurrency_limit: int, *, retries: int = 0, **options: Any) -> Scheduler:
    """Create a scheduler; raises ``InvalidArgumentError`` for a limit below 1."""

    return Scheduler(concurrency_limit, retries=retries, **options)
