from __future__ import annotations

import allure
import pytest

from jobqueue import (
    InvalidArgumentError,
    PoolSettings,
    RetryPlacement,
    Scheduler,
    SchedulerSettings,
    Settings,
    WorkerPool,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings From Environment"),
]


def test_from_env_uses_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = Settings.from_env()
    assert settings.scheduler == SchedulerSettings()
    assert settings.pool == PoolSettings()
    assert settings.scheduler.retry_placement == RetryPlacement.TAIL.value


def test_from_env_parses_scheduler_values(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("JOBQUEUE_CONCURRENCY", "8")
    clean_env.setenv("JOBQUEUE_RETRIES", "2")
    clean_env.setenv("JOBQUEUE_RETRY_PLACEMENT", " HEAD ")
    clean_env.setenv("JOBQUEUE_RETRY_BASE_SECONDS", "0.25")
    clean_env.setenv("JOBQUEUE_RETRY_MAX_SECONDS", "5")
    clean_env.setenv("JOBQUEUE_RETRY_JITTER", "off")

    scheduler = Settings.from_env().scheduler
    assert scheduler.concurrency_limit == 8
    assert scheduler.retries == 2
    assert scheduler.retry_placement == "head"
    assert scheduler.retry_base_seconds == 0.25
    assert scheduler.retry_max_seconds == 5.0
    assert scheduler.retry_jitter is False


def test_from_env_parses_pool_values(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("JOBQUEUE_POOL_MAX_WORKERS", "3")
    clean_env.setenv("JOBQUEUE_POOL_EXECUTOR", "Process")
    clean_env.setenv("JOBQUEUE_POOL_RETRIES", "1")

    pool = Settings.from_env().pool
    assert pool == PoolSettings(max_workers=3, executor="process", retries=1)


@pytest.mark.parametrize(
    ("key", "value", "message"),
    [
        ("JOBQUEUE_CONCURRENCY", "0", "JOBQUEUE_CONCURRENCY must be >= 1"),
        ("JOBQUEUE_CONCURRENCY", "many", "Invalid integer value for JOBQUEUE_CONCURRENCY"),
        ("JOBQUEUE_RETRIES", "-1", "JOBQUEUE_RETRIES must be >= 0"),
        ("JOBQUEUE_RETRY_PLACEMENT", "middle", "JOBQUEUE_RETRY_PLACEMENT must be one of"),
        ("JOBQUEUE_RETRY_BASE_SECONDS", "-0.1", "JOBQUEUE_RETRY_BASE_SECONDS"),
        ("JOBQUEUE_RETRY_MAX_SECONDS", "soon", "Invalid number value"),
        ("JOBQUEUE_RETRY_JITTER", "maybe", "Invalid boolean value"),
        ("JOBQUEUE_POOL_MAX_WORKERS", "0", "JOBQUEUE_POOL_MAX_WORKERS must be >= 1"),
        ("JOBQUEUE_POOL_EXECUTOR", "fiber", "JOBQUEUE_POOL_EXECUTOR must be one of"),
    ],
)
def test_from_env_rejects_invalid_values(
    clean_env: pytest.MonkeyPatch,
    key: str,
    value: str,
    message: str,
) -> None:
    clean_env.setenv(key, value)
    with pytest.raises(InvalidArgumentError, match=message):
        Settings.from_env()


def test_validate_rejects_boolean_concurrency() -> None:
    with pytest.raises(InvalidArgumentError, match="must be an integer"):
        SchedulerSettings(concurrency_limit=True).validate()


def test_scheduler_from_settings_applies_values() -> None:
    scheduler = Scheduler.from_settings(
        SchedulerSettings(
            concurrency_limit=5,
            retries=2,
            retry_placement="head",
            retry_base_seconds=0.5,
            retry_max_seconds=2.0,
            retry_jitter=False,
        ),
    )
    assert scheduler.concurrency_limit == 5
    assert scheduler._retries == 2
    assert scheduler._retry_placement is RetryPlacement.HEAD
    assert scheduler._backoff is not None
    assert scheduler._backoff.delay(3) == 2.0


def test_scheduler_from_settings_without_base_delay_has_no_backoff() -> None:
    scheduler = Scheduler.from_settings(SchedulerSettings(concurrency_limit=1))
    assert scheduler._backoff is None


def test_scheduler_from_settings_validates() -> None:
    with pytest.raises(InvalidArgumentError):
        Scheduler.from_settings(SchedulerSettings(concurrency_limit=0))


@pytest.mark.asyncio
async def test_pool_from_settings() -> None:
    pool = WorkerPool.from_settings(PoolSettings(max_workers=2, retries=1))
    assert pool.max_workers == 2
    await pool.close()
