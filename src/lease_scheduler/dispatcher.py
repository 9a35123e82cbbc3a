"""Dispatcher — polling background worker that submits ready jobs.

Every replica runs its own dispatcher against the shared store. There is
no coordination between dispatchers: duplicate scans are expected and the
per-job lease decides who actually runs a job.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, cast

from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from collections.abc import Callable

    from .context import SchedulerContext
    from .domain.job import Job
    from .engine import ExecutionEngine

logger = logging.getLogger("lease_scheduler.dispatcher")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dispatcher:
    """Reactive worker that scans the pending index and executes ready jobs.

    Uses trigger + polling fallback. Call :meth:`trigger` to wake immediately
    (e.g. right after a job is created); otherwise scans every
    ``poll_interval`` seconds.

    Each tick:

    1. recovers RUNNING jobs whose lease has expired (crashed holders)
    2. loads every job in the pending index and keeps those that are ready
    3. orders them by ``(next_run_at, id)``, earliest due first
    4. starts at most ``max_concurrency`` executions in this process;
       jobs already executing here are skipped

    Executions run as independent asyncio tasks, so a slow task never
    delays the next scan. An error in one execution is logged and does not
    affect the others.
    """

    def __init__(
        self,
        context: SchedulerContext,
        engine: ExecutionEngine,
        *,
        poll_interval: float | None = None,
        max_concurrency: int | None = None,
        recover_orphans: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ctx = context
        self._engine = engine
        self._poll_interval = poll_interval or context.settings.poll_interval
        self._max_concurrency = max_concurrency or context.settings.max_concurrency
        self._recover_orphans = recover_orphans
        self._clock = clock or _utcnow
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._trigger = asyncio.Event()
        self._inflight: dict[str, asyncio.Task[None]] = {}

    @property
    def in_flight(self) -> set[str]:
        """Ids of jobs currently executing in this process."""
        return set(self._inflight)

    def trigger(self) -> None:
        """Wake the dispatcher immediately."""
        self._trigger.set()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Dispatcher started (holder=%s, poll_interval=%.1fs, max_concurrency=%d)",
            self._ctx.holder_id,
            self._poll_interval,
            self._max_concurrency,
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop scanning and wait up to *timeout* for in-flight executions.

        Executions are never cancelled; any still running after *timeout*
        keep going and are logged.
        """
        self._running = False
        self._trigger.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._task, timeout=5.0)
        if self._inflight:
            _, pending = await asyncio.wait(
                list(self._inflight.values()), timeout=timeout
            )
            if pending:
                logger.warning(
                    "Dispatcher stopped with %d executions still running", len(pending)
                )
        logger.info("Dispatcher stopped")

    async def run_once(self) -> int:
        """Execute a single scan (useful in tests). Returns jobs submitted."""
        registry = get_hook_registry()
        return cast(
            "int",
            await registry.execute_all(
                "dispatcher.tick",
                {
                    "lease.holder": self._ctx.holder_id,
                    "dispatcher.in_flight": len(self._inflight),
                },
                self._tick,
            ),
        )

    async def drain(self) -> None:
        """Wait until every execution started by this dispatcher has finished."""
        while self._inflight:
            await asyncio.gather(*self._inflight.values(), return_exceptions=True)

    async def _run_loop(self) -> None:
        while self._running:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(
                    self._trigger.wait(), timeout=self._poll_interval
                )
            self._trigger.clear()
            try:
                await self.run_once()
            except Exception:
                logger.exception("Dispatcher tick failed")

    # -- scanning ---------------------------------------------------------

    async def _tick(self) -> int:
        if self._recover_orphans:
            await self._recover()

        ready = await self._find_ready(self._clock())
        capacity = self._max_concurrency - len(self._inflight)
        if capacity <= 0:
            if ready:
                logger.debug(
                    "Concurrency limit reached; %d ready jobs deferred", len(ready)
                )
            return 0

        for job in ready[:capacity]:
            self._submit(job)
        if len(ready) > capacity:
            logger.debug(
                "Submitted %d jobs, %d deferred to next tick",
                capacity,
                len(ready) - capacity,
            )
        return min(len(ready), capacity)

    async def _find_ready(self, now: datetime) -> list[Job]:
        repository = self._ctx.repository
        ready: list[Job] = []
        for job_id in sorted(await repository.pending_ids()):
            if job_id in self._inflight:
                continue
            try:
                job = await repository.get(job_id)
                if job is None:
                    logger.warning("Dropping dangling index entry for job %s", job_id)
                    await repository.forget(job_id)
                    continue
            except Exception:
                logger.exception("Failed to load job %s", job_id)
                continue
            if job.is_ready(now):
                ready.append(job)
        ready.sort(key=lambda j: (j.next_run_at or now, j.id))
        return ready

    async def _recover(self) -> int:
        recovered = 0
        for job_id in await self._ctx.repository.running_ids():
            if job_id in self._inflight:
                continue
            try:
                if await self._ctx.leases.is_held(job_id):
                    continue
                if await self._engine.recover(job_id):
                    recovered += 1
            except Exception:
                logger.exception("Failed to recover job %s", job_id)
        return recovered

    # -- submission -------------------------------------------------------

    def _submit(self, job: Job) -> None:
        task = asyncio.create_task(self._execute(job), name=f"job-{job.id}")
        self._inflight[job.id] = task

        def _done(_: asyncio.Task[None], job_id: str = job.id) -> None:
            self._inflight.pop(job_id, None)

        task.add_done_callback(_done)

    async def _execute(self, job: Job) -> None:
        try:
            outcome = await self._engine.execute(job)
            logger.debug("Job %s: %s", job.id, outcome.value)
        except Exception:
            logger.exception("Execution of job %s (%s) failed", job.id, job.name)


__all__ = ["Dispatcher"]
