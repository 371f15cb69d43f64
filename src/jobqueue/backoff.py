"""Retry backoff policy and a standalone async retry helper."""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from jobqueue.errors import InvalidArgumentError, RetryAbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ShouldRetry = Callable[[BaseException, int], bool]


@dataclass(frozen=True, slots=True)
class RetryBackoff:
    """Capped exponential backoff, optionally with full jitter."""

    base_seconds: float = 0.05
    max_seconds: float = 30.0
    factor: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.base_seconds < 0:
            raise InvalidArgumentError("Backoff base_seconds must be >= 0.")
        if self.max_seconds < 0:
            raise InvalidArgumentError("Backoff max_seconds must be >= 0.")
        if self.factor < 1:
            raise InvalidArgumentError("Backoff factor must be >= 1.")

    def delay(self, retry_number: int, rng: random.Random | None = None) -> float:
        """Seconds to wait before retry number ``retry_number`` (1-based)."""

        max_delay = min(
            self.max_seconds,
            self.base_seconds * (self.factor ** max(retry_number - 1, 0)),
        )
        if not self.jitter or max_delay <= 0:
            return max_delay
        return (rng or random).uniform(0, max_delay)


async def retry(
    fn: Callable[[], Awaitable[T] | T],
    *,
    retries: int = 3,
    backoff: RetryBackoff | None = None,
    should_retry: ShouldRetry | None = None,
    stop_event: asyncio.Event | None = None,
) -> T:
    """Call ``fn`` until it succeeds or ``retries + 1`` attempts have failed.

    The last error is re-raised unchanged. ``should_retry(error, attempt)``
    returning false re-raises immediately. Setting ``stop_event`` before or
    during a backoff sleep raises :class:`RetryAbortedError`.
    """

    if retries < 0:
        raise InvalidArgumentError("retries must be >= 0.")
    policy = backoff or RetryBackoff()
    attempt = 0
    while True:
        attempt += 1
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
        except Exception as error:
            if attempt > retries:
                raise
            if should_retry is not None and not should_retry(error, attempt):
                raise
            delay_seconds = policy.delay(attempt)
            logger.warning(
                "Attempt %d failed, retrying in %.3fs: %s",
                attempt,
                delay_seconds,
                error,
            )
            await _sleep_unless_stopped(delay_seconds, stop_event)
        else:
            return result


async def _sleep_unless_stopped(seconds: float, stop_event: asyncio.Event | None) -> None:
    if stop_event is None:
        await asyncio.sleep(seconds)
        return
    if stop_event.is_set():
        raise RetryAbortedError("Retry aborted before backoff sleep.")
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except TimeoutError:
        return
    raise RetryAbortedError("Retry aborted during backoff sleep.")
