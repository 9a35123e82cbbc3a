"""SchedulerContext — the explicit bundle of collaborators for one replica.

Built once at startup and passed to the job service, the execution engine
and the dispatcher. Nothing in the package keeps a module-level store
client or service singleton.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .config import SchedulerSettings
from .locking import LeaseManager
from .registry import TaskRegistry
from .repository import JobRepository

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .domain.backoff import BackoffPolicy
    from .ports.store import IKeyValueStore

logger = logging.getLogger("lease_scheduler.context")


@dataclass
class SchedulerContext:
    """Store, repository, leases, handlers and policies of one replica."""

    store: IKeyValueStore
    settings: SchedulerSettings = field(default_factory=SchedulerSettings)
    tasks: TaskRegistry = field(default_factory=TaskRegistry)
    backoff: BackoffPolicy | None = None
    repository: JobRepository = field(init=False)
    leases: LeaseManager = field(init=False)

    def __post_init__(self) -> None:
        prefix = self.settings.key_prefix
        self.repository = JobRepository(self.store, key_prefix=prefix)
        self.leases = LeaseManager(self.store, key_prefix=prefix)
        if self.backoff is None:
            self.backoff = self.settings.backoff_policy()

    @property
    def holder_id(self) -> str:
        return self.settings.holder_id

    @property
    def backoff_policy(self) -> BackoffPolicy:
        assert self.backoff is not None  # set in __post_init__
        return self.backoff

    @classmethod
    def from_settings(
        cls,
        settings: SchedulerSettings,
        tasks: TaskRegistry | None = None,
    ) -> SchedulerContext:
        """Connect to Redis at ``settings.redis_url`` and load task modules."""
        from .adapters.redis import RedisStore

        registry = tasks or TaskRegistry()
        load_task_modules(registry, settings.task_modules)
        return cls(
            store=RedisStore.from_url(settings.redis_url),
            settings=settings,
            tasks=registry,
        )

    async def close(self) -> None:
        await self.store.close()


def load_task_modules(registry: TaskRegistry, module_names: Iterable[str]) -> None:
    """Import each module and call its ``register(registry)`` function."""
    for name in module_names:
        module = importlib.import_module(name)
        register = getattr(module, "register", None)
        if register is None:
            raise ImportError(
                f"Task module {name!r} must define register(registry: TaskRegistry)"
            )
        register(registry)
        logger.info("Loaded task module %s", name)


__all__ = ["SchedulerContext", "load_task_modules"]
