"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import pytest

_ENV_KEYS = (
    "JOBQUEUE_CONCURRENCY",
    "JOBQUEUE_RETRIES",
    "JOBQUEUE_RETRY_PLACEMENT",
    "JOBQUEUE_RETRY_BASE_SECONDS",
    "JOBQUEUE_RETRY_MAX_SECONDS",
    "JOBQUEUE_RETRY_JITTER",
    "JOBQUEUE_POOL_MAX_WORKERS",
    "JOBQUEUE_POOL_EXECUTOR",
    "JOBQUEUE_POOL_RETRIES",
)


@dataclass(slots=True)
class ConcurrencyTracker:
    """Builds jobs that record start order and peak in-flight count."""

    current: int = 0
    peak: int = 0
    started: list[str] = field(default_factory=list)

    def job(
        self,
        name: str,
        *,
        delay: float = 0.01,
        error: Exception | None = None,
    ) -> Callable[[], Awaitable[str]]:
        async def _work() -> str:
            self.started.append(name)
            self.current += 1
            self.peak = max(self.peak, self.current)
            try:
                await asyncio.sleep(delay)
            finally:
                self.current -= 1
            if error is not None:
                raise error
            return name

        return _work


@pytest.fixture()
def tracker() -> ConcurrencyTracker:
    return ConcurrencyTracker()


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove JOBQUEUE_* variables so defaults apply."""

    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
