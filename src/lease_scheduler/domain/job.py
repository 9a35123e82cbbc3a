"""Job — the persisted unit of scheduled work and its state machine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..exceptions import JobStateError
from .schedule import Schedule, ScheduleKind, as_utc, next_run, parse_schedule

if TYPE_CHECKING:
    from datetime import timedelta

DEFAULT_MAX_RETRIES = 3


class JobStatus(str, Enum):
    """Lifecycle states for a scheduled job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """A named task bound to a schedule.

    Status transitions::

        PENDING  → RUNNING    (start)
        RUNNING  → COMPLETED  (complete, no further run time)
        RUNNING  → PENDING    (complete of a recurring job, re-armed)
        RUNNING  → PENDING    (fail, retries remain)
        RUNNING  → FAILED     (fail, retries exhausted; terminal)

    The external representation (``to_external``) uses camelCase keys and
    is the same structure that is persisted in the store.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    schedule: str
    task_ref: str
    status: JobStatus = JobStatus.PENDING
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_count: int = Field(default=0, ge=0)
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None
    owner_id: str | None = None

    # -- factory ----------------------------------------------------------

    @classmethod
    def create(
        cls,
        name: str,
        schedule: str | datetime,
        task_ref: str,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        job_id: str | None = None,
        now: datetime | None = None,
    ) -> Job:
        """Parse *schedule* and compute the first run time.

        Raises:
            InvalidScheduleError: If the schedule cannot be parsed.
        """
        parsed = parse_schedule(schedule)
        data: dict[str, Any] = {
            "name": name,
            "schedule": parsed.normalized,
            "task_ref": task_ref,
            "max_retries": max_retries,
            "next_run_at": next_run(parsed, now or _utcnow()),
        }
        if job_id is not None:
            data["id"] = job_id
        return cls(**data)

    # -- schedule ---------------------------------------------------------

    @property
    def parsed_schedule(self) -> Schedule:
        return parse_schedule(self.schedule)

    @property
    def schedule_kind(self) -> ScheduleKind:
        return self.parsed_schedule.kind

    # -- queries ----------------------------------------------------------

    def is_ready(self, now: datetime | None = None) -> bool:
        """True if the job is PENDING, due, and still has attempts left."""
        return (
            self.status == JobStatus.PENDING
            and self.next_run_at is not None
            and as_utc(self.next_run_at) <= as_utc(now or _utcnow())
            and self.retry_count < self.max_retries
        )

    @property
    def is_terminal(self) -> bool:
        """FAILED, or COMPLETED with nothing left to run."""
        if self.status == JobStatus.FAILED:
            return True
        return self.status == JobStatus.COMPLETED and self.next_run_at is None

    # -- transitions ------------------------------------------------------

    def start(self, owner_id: str) -> None:
        """PENDING → RUNNING under the lease held by *owner_id*."""
        if self.status != JobStatus.PENDING:
            raise JobStateError(f"Cannot start job in {self.status.value} state")
        self.status = JobStatus.RUNNING
        self.owner_id = owner_id

    def complete(self, now: datetime | None = None) -> None:
        """RUNNING → COMPLETED, re-armed to PENDING if the schedule recurs."""
        if self.status != JobStatus.RUNNING:
            raise JobStateError(f"Cannot complete job in {self.status.value} state")
        finished_at = as_utc(now or _utcnow())
        self.last_run_at = finished_at
        self.retry_count = 0
        self.owner_id = None
        if self.schedule_kind is ScheduleKind.RECURRING:
            self.next_run_at = next_run(self.parsed_schedule, finished_at)
        else:
            self.next_run_at = None
        self.status = (
            JobStatus.PENDING if self.next_run_at is not None else JobStatus.COMPLETED
        )

    def fail(self, delay: timedelta, now: datetime | None = None) -> bool:
        """RUNNING → PENDING (retry after *delay*) or FAILED (exhausted).

        Returns:
            True if the job reached the terminal FAILED state.
        """
        if self.status != JobStatus.RUNNING:
            raise JobStateError(f"Cannot fail job in {self.status.value} state")
        failed_at = as_utc(now or _utcnow())
        self.last_run_at = failed_at
        self.owner_id = None
        self.retry_count += 1
        if self.retry_count < self.max_retries:
            self.status = JobStatus.PENDING
            self.next_run_at = failed_at + delay
            return False
        self.status = JobStatus.FAILED
        self.next_run_at = None
        return True

    # -- representation ---------------------------------------------------

    def to_external(self) -> dict[str, Any]:
        """camelCase JSON-compatible dict, as persisted and returned to callers."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_external(cls, data: dict[str, Any] | str | bytes) -> Job:
        if isinstance(data, dict):
            return cls.model_validate(data)
        return cls.model_validate_json(data)


__all__ = ["DEFAULT_MAX_RETRIES", "Job", "JobStatus"]
