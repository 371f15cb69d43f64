"""Worker pool running callables in a thread or process executor.

The pool puts a :class:`~jobqueue.scheduler.Scheduler` in front of a
``concurrent.futures`` executor, so callers get the same FIFO admission,
retry and drain semantics with true parallelism underneath.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, TypeVar

from jobqueue.config import EXECUTOR_KINDS, PoolSettings
from jobqueue.errors import InvalidArgumentError, QueueClosedError
from jobqueue.ownership import Transfer
from jobqueue.scheduler import Scheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")
B = TypeVar("B")


@dataclass(slots=True)
class _TransferState:
    buffer: Any
    in_flight: bool = False
    restored: bool = False


def _call_with_buffer(fn: Callable[[B], T], buffer: B) -> tuple[T, B]:
    # Module-level so process executors can pickle it; returns the worker's
    # copy of the buffer alongside the result.
    return fn(buffer), buffer


class WorkerPool:
    """Bounded pool of executor workers fed through a scheduler."""

    def __init__(self, max_workers: int, *, executor: str = "thread", retries: int = 0) -> None:
        if executor not in EXECUTOR_KINDS:
            raise InvalidArgumentError(
                f"executor must be one of {list(EXECUTOR_KINDS)}, got {executor!r}.",
            )
        self._scheduler = Scheduler(max_workers, retries=retries)
        self._executor_kind = executor
        self._executor: Executor
        if executor == "process":
            self._executor = ProcessPoolExecutor(max_workers=max_workers)
        else:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="jobqueue-worker",
            )

    @classmethod
    def from_settings(cls, settings: PoolSettings) -> WorkerPool:
        settings.validate()
        return cls(settings.max_workers, executor=settings.executor, retries=settings.retries)

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def max_workers(self) -> int:
        return self._scheduler.concurrency_limit

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> asyncio.Future[T]:
        """Run ``fn(*args, **kwargs)`` on a worker."""

        call = partial(fn, *args, **kwargs)

        def work() -> asyncio.Future[T]:
            return asyncio.get_running_loop().run_in_executor(self._executor, call)

        return self._scheduler.submit(work)

    def submit_transfer(self, fn: Callable[[B], T], transfer: Transfer[B]) -> asyncio.Future[T]:
        """Run ``fn(buffer)`` on a worker that owns the buffer for the call.

        The buffer is moved out of ``transfer`` now and moved back into it
        when the returned future settles. A call cancelled mid-flight hands
        the buffer back only once the worker is done with it.
        """

        state = _TransferState(buffer=transfer.take())

        async def work() -> T:
            state.in_flight = True
            try:
                result, state.buffer = await asyncio.get_running_loop().run_in_executor(
                    self._executor,
                    partial(_call_with_buffer, fn, state.buffer),
                )
            finally:
                state.in_flight = False
                if future.done():
                    _hand_back()
            return result

        def _hand_back() -> None:
            if state.restored:
                return
            state.restored = True
            transfer.restore(state.buffer)

        def _on_done(_: asyncio.Future[T]) -> None:
            # A worker still holding the buffer hands it back when it returns.
            if not state.in_flight:
                _hand_back()

        try:
            future = self._scheduler.submit(work)
        except QueueClosedError:
            transfer.restore(state.buffer)
            raise
        future.add_done_callback(_on_done)
        return future

    async def close(self) -> None:
        """Drain queued work, then shut the executor down."""

        await self._scheduler.close()
        await asyncio.to_thread(self._executor.shutdown, True)
        logger.info("Worker pool shut down (%s executor)", self._executor_kind)

    async def __aenter__(self) -> WorkerPool:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
