"""Runtime configuration for the scheduler and worker pool."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from jobqueue.errors import InvalidArgumentError
from jobqueue.models import RetryPlacement

EXECUTOR_KINDS: tuple[str, ...] = ("thread", "process")


@dataclass(slots=True)
class SchedulerSettings:
    """Bounded-concurrency scheduler settings."""

    concurrency_limit: int = 4
    retries: int = 0
    retry_placement: str = RetryPlacement.TAIL.value
    retry_base_seconds: float = 0.0
    retry_max_seconds: float = 30.0
    retry_jitter: bool = True

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        _require_int("JOBQUEUE_CONCURRENCY", self.concurrency_limit, minimum=1)
        _require_int("JOBQUEUE_RETRIES", self.retries, minimum=0)
        if self.retry_placement not in {placement.value for placement in RetryPlacement}:
            raise InvalidArgumentError(
                "JOBQUEUE_RETRY_PLACEMENT must be one of "
                f"{[placement.value for placement in RetryPlacement]}, "
                f"got {self.retry_placement!r}.",
            )
        if self.retry_base_seconds < 0:
            raise InvalidArgumentError("JOBQUEUE_RETRY_BASE_SECONDS must be >= 0.")
        if self.retry_max_seconds < 0:
            raise InvalidArgumentError("JOBQUEUE_RETRY_MAX_SECONDS must be >= 0.")


@dataclass(slots=True)
class PoolSettings:
    """Executor-backed worker pool settings."""

    max_workers: int = 4
    executor: str = "thread"
    retries: int = 0

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        _require_int("JOBQUEUE_POOL_MAX_WORKERS", self.max_workers, minimum=1)
        _require_int("JOBQUEUE_POOL_RETRIES", self.retries, minimum=0)
        if self.executor not in EXECUTOR_KINDS:
            raise InvalidArgumentError(
                f"JOBQUEUE_POOL_EXECUTOR must be one of {list(EXECUTOR_KINDS)}, "
                f"got {self.executor!r}.",
            )


@dataclass(slots=True)
class Settings:
    """Library settings grouped by component."""

    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    pool: PoolSettings = field(default_factory=PoolSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suitable for local use."""

        settings = cls(
            scheduler=SchedulerSettings(
                concurrency_limit=_env_int("JOBQUEUE_CONCURRENCY", 4),
                retries=_env_int("JOBQUEUE_RETRIES", 0),
                retry_placement=os.getenv("JOBQUEUE_RETRY_PLACEMENT", "tail").strip().lower(),
                retry_base_seconds=_env_float("JOBQUEUE_RETRY_BASE_SECONDS", 0.0),
                retry_max_seconds=_env_float("JOBQUEUE_RETRY_MAX_SECONDS", 30.0),
                retry_jitter=_env_bool("JOBQUEUE_RETRY_JITTER", default=True),
            ),
            pool=PoolSettings(
                max_workers=_env_int("JOBQUEUE_POOL_MAX_WORKERS", 4),
                executor=os.getenv("JOBQUEUE_POOL_EXECUTOR", "thread").strip().lower(),
                retries=_env_int("JOBQUEUE_POOL_RETRIES", 0),
            ),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        self.scheduler.validate()
        self.pool.validate()


def _require_int(name: str, value: object, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}.")
    if value < minimum:
        raise InvalidArgumentError(f"{name} must be >= {minimum}, got {value}.")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as error:
        raise InvalidArgumentError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as error:
        raise InvalidArgumentError(f"Invalid number value for {name}: {raw!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise InvalidArgumentError(f"Invalid boolean value for {name}: {value!r}")
