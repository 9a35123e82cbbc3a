"""Tests for SchedulerSettings."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from lease_scheduler import ExponentialBackoff, FixedBackoff, SchedulerSettings
from lease_scheduler.config import default_holder_id


@pytest.fixture(autouse=True)
def _isolated_cwd(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)


def test_defaults() -> None:
    settings = SchedulerSettings()

    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.key_prefix == ""
    assert settings.poll_interval == 1.0
    assert settings.max_concurrency == 10
    assert settings.lease_ttl == 300.0
    assert settings.heartbeat_interval == 5.0
    assert settings.default_max_retries == 3
    assert settings.backoff == "fixed"
    assert settings.backoff_seconds == 60.0
    assert settings.task_modules == []
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCHEDULER_REDIS_URL", "redis://redis:6379/2")
    monkeypatch.setenv("SCHEDULER_HOLDER_ID", "replica-7")
    monkeypatch.setenv("SCHEDULER_MAX_CONCURRENCY", "4")
    monkeypatch.setenv("SCHEDULER_TASK_MODULES", '["app.tasks", "app.reports"]')
    monkeypatch.setenv("SCHEDULER_LOG_LEVEL", "debug")

    settings = SchedulerSettings()

    assert settings.redis_url == "redis://redis:6379/2"
    assert settings.holder_id == "replica-7"
    assert settings.max_concurrency == 4
    assert settings.task_modules == ["app.tasks", "app.reports"]
    assert settings.log_level == "DEBUG"


def test_holder_ids_are_unique_per_instance() -> None:
    assert SchedulerSettings().holder_id != SchedulerSettings().holder_id
    assert default_holder_id().count(":") >= 2


@pytest.mark.parametrize(
    "field, value",
    [
        ("poll_interval", 0),
        ("max_concurrency", 0),
        ("lease_ttl", -1),
        ("default_max_retries", -1),
        ("backoff", "linear"),
    ],
)
def test_invalid_values_rejected(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        SchedulerSettings(**{field: value})  # type: ignore[arg-type]


def test_fixed_backoff_policy() -> None:
    policy = SchedulerSettings(backoff_seconds=15).backoff_policy()

    assert isinstance(policy, FixedBackoff)
    assert policy.delay(3) == timedelta(seconds=15)


def test_exponential_backoff_policy() -> None:
    policy = SchedulerSettings(
        backoff="exponential", backoff_seconds=10, backoff_max_seconds=30
    ).backoff_policy()

    assert isinstance(policy, ExponentialBackoff)
    assert policy.delay(1) == timedelta(seconds=10)
    assert policy.delay(5) == timedelta(seconds=30)
