"""ExecutionEngine — runs one job under its lease and applies the retry policy."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

from .domain.job import Job, JobStatus
from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from .context import SchedulerContext

logger = logging.getLogger("lease_scheduler.engine")


class ExecutionOutcome(str, Enum):
    """Non-error results of :meth:`ExecutionEngine.execute`.

    Task failures are not an outcome: they are re-raised to the caller.
    """

    COMPLETED = "completed"
    NOT_ACQUIRED = "not_acquired"
    STALE = "stale"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_current(snapshot: Job, current: Job | None) -> bool:
    """True if *current* is still the PENDING run the caller saw."""
    return (
        current is not None
        and current.status == JobStatus.PENDING
        and current.next_run_at == snapshot.next_run_at
        and current.retry_count == snapshot.retry_count
    )


def _copy_state(target: Job, source: Job) -> None:
    for name in Job.model_fields:
        setattr(target, name, getattr(source, name))


class ExecutionEngine:
    """Executes jobs with lease-scoped exclusivity.

    ``execute`` acquires the job's lease, re-reads the record, marks it
    RUNNING, awaits the registered handler, persists the resulting
    transition and releases the lease on every exit path. A second caller
    racing for the same job gets ``NOT_ACQUIRED``; a caller holding a
    snapshot that another replica already ran gets ``STALE``.

    When ``heartbeat_interval`` is set, the lease is extended periodically
    while the handler runs. The heartbeat never cancels the handler.
    """

    def __init__(
        self,
        context: SchedulerContext,
        *,
        lease_ttl: float | None = None,
        heartbeat_interval: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ctx = context
        self._lease_ttl = lease_ttl or context.settings.lease_ttl
        self._heartbeat_interval = heartbeat_interval
        self._clock = clock or _utcnow

    @classmethod
    def from_context(cls, context: SchedulerContext) -> ExecutionEngine:
        """Engine configured entirely from ``context.settings``."""
        return cls(context, heartbeat_interval=context.settings.heartbeat_interval)

    # -- execution --------------------------------------------------------

    async def execute(self, job: Job, holder_id: str | None = None) -> ExecutionOutcome:
        """Run *job* once if this holder can take its lease.

        On success or failure *job* is updated in place with the persisted
        state.

        Raises:
            Exception: Whatever the task raised, after the failure
                transition has been persisted and the lease released.
            StoreError: If persisting a transition failed; the durable
                state of the job is then unknown.
        """
        holder = holder_id or self._ctx.holder_id
        registry = get_hook_registry()
        return cast(
            "ExecutionOutcome",
            await registry.execute_all(
                f"job.execute.{job.task_ref}",
                {
                    "job.id": job.id,
                    "job.name": job.name,
                    "job.task_ref": job.task_ref,
                    "lease.holder": holder,
                },
                lambda: self._execute_internal(job, holder),
            ),
        )

    async def _execute_internal(self, job: Job, holder_id: str) -> ExecutionOutcome:
        leases = self._ctx.leases
        repository = self._ctx.repository

        if not await leases.acquire(job.id, holder_id, self._lease_ttl):
            return ExecutionOutcome.NOT_ACQUIRED

        try:
            current = await repository.get(job.id)
            if not _is_current(job, current):
                logger.info(
                    "Skipping job %s: record changed since it was read", job.id
                )
                return ExecutionOutcome.STALE
            assert current is not None

            current.start(holder_id)
            await repository.save(current)
            _copy_state(job, current)
            logger.info(
                "Running job %s (%s) as %s", current.id, current.name, holder_id
            )

            try:
                async with self._heartbeat(current.id, holder_id):
                    await self._invoke(current)
            except Exception as exc:
                delay = self._ctx.backoff_policy.delay(current.retry_count + 1)
                terminal = current.fail(delay, now=self._clock())
                await repository.save(current)
                _copy_state(job, current)
                if terminal:
                    logger.error(
                        "Job %s failed permanently after %d attempts: %s",
                        current.id,
                        current.retry_count,
                        exc,
                    )
                else:
                    logger.warning(
                        "Job %s failed (attempt %d/%d), retrying at %s: %s",
                        current.id,
                        current.retry_count,
                        current.max_retries,
                        current.next_run_at.isoformat() if current.next_run_at else "-",
                        exc,
                    )
                raise

            current.complete(now=self._clock())
            await repository.save(current)
            _copy_state(job, current)
            logger.info(
                "Job %s completed (next run: %s)",
                current.id,
                current.next_run_at.isoformat() if current.next_run_at else "none",
            )
            return ExecutionOutcome.COMPLETED
        finally:
            await leases.release(job.id, holder_id)

    async def _invoke(self, job: Job) -> Any:
        handler = self._ctx.tasks.resolve(job.task_ref)
        result = handler(job.model_copy())
        if inspect.isawaitable(result):
            result = await result
        return result

    @contextlib.asynccontextmanager
    async def _heartbeat(self, job_id: str, holder_id: str) -> AsyncIterator[None]:
        interval = self._heartbeat_interval
        if not interval:
            yield
            return

        async def beat() -> None:
            while True:
                await asyncio.sleep(interval)
                extended = await self._ctx.leases.extend(
                    job_id, holder_id, self._lease_ttl
                )
                if not extended:
                    logger.warning(
                        "Heartbeat lost lease for job %s (holder %s)", job_id, holder_id
                    )
                    return

        task = asyncio.create_task(beat())
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # -- crash recovery ---------------------------------------------------

    async def recover(self, job_id: str, holder_id: str | None = None) -> bool:
        """Fail over a RUNNING job whose holder lost its lease.

        The orphaned run counts as a failed attempt, so the job is either
        re-queued with backoff or marked FAILED.

        Returns:
            True if the job was recovered.
        """
        holder = holder_id or self._ctx.holder_id
        registry = get_hook_registry()
        return cast(
            "bool",
            await registry.execute_all(
                "lease.recover",
                {"job.id": job_id, "lease.holder": holder},
                lambda: self._recover_internal(job_id, holder),
            ),
        )

    async def _recover_internal(self, job_id: str, holder_id: str) -> bool:
        leases = self._ctx.leases
        repository = self._ctx.repository

        if not await leases.acquire(job_id, holder_id, self._lease_ttl):
            return False
        try:
            job = await repository.get(job_id)
            if job is None:
                await repository.forget(job_id)
                return False
            if job.status != JobStatus.RUNNING:
                return False

            previous_owner = job.owner_id
            delay = self._ctx.backoff_policy.delay(job.retry_count + 1)
            terminal = job.fail(delay, now=self._clock())
            await repository.save(job)
            logger.warning(
                "Recovered job %s abandoned by %s (status now %s)",
                job_id,
                previous_owner,
                job.status.value,
            )
            if terminal:
                logger.error("Job %s failed permanently during recovery", job_id)
            return True
        finally:
            await leases.release(job_id, holder_id)


__all__ = ["ExecutionEngine", "ExecutionOutcome"]
