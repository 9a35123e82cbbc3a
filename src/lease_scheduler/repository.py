"""JobRepository — job records and status indexes on top of the store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from .domain.job import Job, JobStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .ports.store import IKeyValueStore

logger = logging.getLogger("lease_scheduler.repository")

PENDING_INDEX = "pending_jobs"
RUNNING_INDEX = "running_jobs"


class JobRepository:
    """Persists jobs as single JSON documents under ``job:{id}``.

    Every write keeps two sets in step with the record's status:

    - ``pending_jobs`` holds ids whose status is PENDING (dispatcher input)
    - ``running_jobs`` holds ids whose status is RUNNING (crash recovery input)

    Record and index changes are sent in one store transaction.
    """

    def __init__(self, store: IKeyValueStore, key_prefix: str = "") -> None:
        self._store = store
        self._prefix = key_prefix
        self.pending_index = f"{key_prefix}{PENDING_INDEX}"
        self.running_index = f"{key_prefix}{RUNNING_INDEX}"

    def job_key(self, job_id: str) -> str:
        return f"{self._prefix}job:{job_id}"

    def _index_changes(self, status: JobStatus) -> tuple[list[str], list[str]]:
        """Return (add_to, remove_from) for a record with *status*."""
        if status == JobStatus.PENDING:
            return [self.pending_index], [self.running_index]
        if status == JobStatus.RUNNING:
            return [self.running_index], [self.pending_index]
        return [], [self.pending_index, self.running_index]

    # -- commands ---------------------------------------------------------

    async def save(self, job: Job) -> None:
        """Write the record and update index membership for its status."""
        add_to, remove_from = self._index_changes(job.status)
        await self._store.write_indexed(
            self.job_key(job.id),
            job.to_json(),
            member=job.id,
            add_to=add_to,
            remove_from=remove_from,
        )
        logger.debug("Saved job %s (status=%s)", job.id, job.status.value)

    async def delete(self, job_id: str) -> bool:
        """Delete the record and drop the id from every index."""
        deleted = await self._store.delete_indexed(
            self.job_key(job_id),
            member=job_id,
            remove_from=[self.pending_index, self.running_index],
        )
        if deleted:
            logger.info("Removed job %s", job_id)
        return deleted

    async def forget(self, job_id: str) -> None:
        """Drop a dangling id (record already gone) from every index."""
        await self._store.srem(self.pending_index, job_id)
        await self._store.srem(self.running_index, job_id)

    # -- queries ----------------------------------------------------------

    async def get(self, job_id: str) -> Job | None:
        raw = await self._store.get(self.job_key(job_id))
        if raw is None:
            return None
        try:
            return Job.from_external(raw)
        except PydanticValidationError as exc:
            logger.error("Unreadable record for job %s: %s", job_id, exc)
            return None

    async def get_many(self, job_ids: Iterable[str]) -> list[Job]:
        jobs: list[Job] = []
        for job_id in job_ids:
            job = await self.get(job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    async def pending_ids(self) -> set[str]:
        return await self._store.smembers(self.pending_index)

    async def running_ids(self) -> set[str]:
        return await self._store.smembers(self.running_index)

    async def list_pending(self) -> list[Job]:
        return await self.get_many(sorted(await self.pending_ids()))


__all__ = ["PENDING_INDEX", "RUNNING_INDEX", "JobRepository"]
