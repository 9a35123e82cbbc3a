"""SchedulerRuntime — wires one replica together and runs its dispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .context import SchedulerContext
from .dispatcher import Dispatcher
from .engine import ExecutionEngine
from .service import JobService

if TYPE_CHECKING:
    from types import TracebackType

    from .config import SchedulerSettings
    from .registry import TaskRegistry

logger = logging.getLogger("lease_scheduler.runtime")


class SchedulerRuntime:
    """Async context manager owning a replica's context, engine and dispatcher.

    Usage::

        async with SchedulerRuntime.from_settings(settings, tasks) as runtime:
            job = await runtime.jobs.create_job("A", "*/5 * * * *", "noop")
            await runtime.wait_closed()
    """

    def __init__(self, context: SchedulerContext) -> None:
        self.context = context
        self.engine = ExecutionEngine.from_context(context)
        self.dispatcher = Dispatcher(context, self.engine)
        self.jobs = JobService(context, self.engine)
        self._stopped = asyncio.Event()

    @classmethod
    def from_settings(
        cls, settings: SchedulerSettings, tasks: TaskRegistry | None = None
    ) -> SchedulerRuntime:
        return cls(SchedulerContext.from_settings(settings, tasks))

    async def start(self) -> None:
        if not await self.context.store.ping():
            logger.warning("Coordination store is not reachable yet; will keep polling")
        logger.info(
            "Starting replica %s with tasks: %s",
            self.context.holder_id,
            ", ".join(self.context.tasks.task_refs()) or "(none)",
        )
        await self.dispatcher.start()

    async def stop(self) -> None:
        await self.dispatcher.stop()
        await self.context.close()
        self._stopped.set()

    def request_stop(self) -> None:
        """Signal-safe shutdown request; :meth:`wait_closed` returns after it."""
        self._stopped.set()

    async def wait_closed(self) -> None:
        await self._stopped.wait()

    async def __aenter__(self) -> SchedulerRuntime:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


__all__ = ["SchedulerRuntime"]
