"""JobService — creation, lookup and removal of jobs.

This is the surface an HTTP layer (``POST /jobs``, ``GET /jobs/{id}``)
would call. It receives plain creation parameters, validates them and
returns :class:`Job` entities or raises scheduler errors; it never sees a
request object.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .domain.job import Job
from .exceptions import JobNotFoundError, ValidationError
from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from datetime import datetime

    from .context import SchedulerContext
    from .engine import ExecutionEngine, ExecutionOutcome

logger = logging.getLogger("lease_scheduler.service")


class JobSubmission(BaseModel):
    """Creation parameters, accepted in snake_case or camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    name: str = Field(min_length=1)
    schedule: Any = None
    task_ref: str = Field(min_length=1)
    max_retries: int | None = Field(default=None, ge=0)


def _validation_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ("__root__",)))
        msg = error.get("msg", "validation error")
        errors.setdefault(loc, []).append(msg)
    return errors


class JobService:
    """Front door for job management.

    Creation is the only write that happens without a lease: the record
    and its pending index entry are written together, and only after the
    parameters and schedule have been validated.
    """

    def __init__(
        self,
        context: SchedulerContext,
        engine: ExecutionEngine | None = None,
    ) -> None:
        self._ctx = context
        self._engine = engine

    # -- commands ---------------------------------------------------------

    async def create_job(
        self,
        name: str,
        schedule: str | datetime,
        task_ref: str,
        max_retries: int | None = None,
        *,
        now: datetime | None = None,
    ) -> Job:
        """Validate, build and persist a new PENDING job.

        Raises:
            ValidationError: Missing/blank name or task_ref, negative
                max_retries.
            InvalidScheduleError: Unparseable schedule.
        """
        return await self.submit(
            {
                "name": name,
                "schedule": schedule,
                "task_ref": task_ref,
                "max_retries": max_retries,
            },
            now=now,
        )

    async def submit(
        self, payload: dict[str, Any], *, now: datetime | None = None
    ) -> Job:
        """Create a job from a raw payload such as a ``POST /jobs`` body."""
        try:
            submission = JobSubmission.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(_validation_errors(exc)) from exc

        max_retries = (
            submission.max_retries
            if submission.max_retries is not None
            else self._ctx.settings.default_max_retries
        )
        job = Job.create(
            submission.name,
            submission.schedule,
            submission.task_ref,
            max_retries=max_retries,
            now=now,
        )

        registry = get_hook_registry()
        return cast(
            "Job",
            await registry.execute_all(
                "job.create",
                {
                    "job.id": job.id,
                    "job.name": job.name,
                    "job.task_ref": job.task_ref,
                    "job.schedule_kind": job.schedule_kind.value,
                },
                lambda: self._persist_new(job),
            ),
        )

    async def _persist_new(self, job: Job) -> Job:
        await self._ctx.repository.save(job)
        logger.info(
            "Job created: %s (%s, schedule=%r, next run %s)",
            job.id,
            job.name,
            job.schedule,
            job.next_run_at.isoformat() if job.next_run_at else "none",
        )
        return job

    async def remove_job(self, job_id: str) -> bool:
        """Delete the record and its index entries. Returns False if absent."""
        return await self._ctx.repository.delete(job_id)

    async def run_job(
        self, job_id: str, holder_id: str | None = None
    ) -> ExecutionOutcome:
        """Execute a job now, regardless of its next run time.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        if self._engine is None:
            raise RuntimeError("JobService was built without an ExecutionEngine")
        job = await self.require_job(job_id)
        return await self._engine.execute(job, holder_id)

    # -- queries ----------------------------------------------------------

    async def get_job(self, job_id: str) -> Job | None:
        return await self._ctx.repository.get(job_id)

    async def require_job(self, job_id: str) -> Job:
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def list_pending(self) -> list[Job]:
        return await self._ctx.repository.list_pending()


__all__ = ["JobService", "JobSubmission"]
