from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from lease_scheduler import (
    Dispatcher,
    ExecutionEngine,
    FixedBackoff,
    InMemoryStore,
    JobService,
    SchedulerContext,
    SchedulerSettings,
    TaskRegistry,
)


class FakeClock:
    """Shared manual clock: drives store TTLs and job timestamps together."""

    def __init__(self, start: datetime | None = None) -> None:
        self.start = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.elapsed = 0.0

    def monotonic(self) -> float:
        return self.elapsed

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds


def build_settings(**overrides: object) -> SchedulerSettings:
    values: dict[str, object] = {
        "holder_id": "replica-a",
        "redis_url": "redis://localhost:6379/0",
        "lease_ttl": 30.0,
        "heartbeat_interval": None,
        "poll_interval": 0.01,
        "max_concurrency": 10,
        "backoff_seconds": 60.0,
    }
    values.update(overrides)
    return SchedulerSettings(**values)  # type: ignore[arg-type]


@pytest.fixture
def settings_factory() -> Callable[..., SchedulerSettings]:
    return build_settings


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(clock=clock.monotonic)


@pytest.fixture
def tasks() -> TaskRegistry:
    registry = TaskRegistry()

    async def noop(job: object) -> None:
        return None

    registry.register("noop", noop)
    return registry


@pytest.fixture
def context(store: InMemoryStore, tasks: TaskRegistry) -> SchedulerContext:
    return SchedulerContext(
        store=store,
        settings=build_settings(),
        tasks=tasks,
        backoff=FixedBackoff(seconds=60),
    )


@pytest.fixture
def engine(context: SchedulerContext, clock: FakeClock) -> ExecutionEngine:
    return ExecutionEngine(context, clock=clock.now)


@pytest.fixture
def dispatcher(
    context: SchedulerContext, engine: ExecutionEngine, clock: FakeClock
) -> Dispatcher:
    return Dispatcher(context, engine, clock=clock.now)


@pytest.fixture
def service(context: SchedulerContext, engine: ExecutionEngine) -> JobService:
    return JobService(context, engine)
