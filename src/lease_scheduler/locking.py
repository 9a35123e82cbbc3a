"""Per-job leases — time-bounded, single-holder exclusivity tokens.

A lease is a store key ``job:{id}:lock`` whose value is the holder token
and which expires after ``ttl`` seconds. Expiry is a liveness mechanism: it
lets another replica pick up a job whose holder crashed. It does not cancel
a slow holder, so a holder that outlives its lease may overlap with the
next one. Long tasks should keep the lease alive with :meth:`extend`.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .ports.store import IKeyValueStore

logger = logging.getLogger("lease_scheduler.locking")

DEFAULT_LEASE_TTL_SECONDS: float = 300.0


class LeaseManager:
    """Acquire and release job leases through the store's atomic primitives.

    Example::

        leases = LeaseManager(store)

        if await leases.acquire(job.id, "replica-a", ttl=60):
            try:
                ...
            finally:
                await leases.release(job.id, "replica-a")
    """

    def __init__(self, store: IKeyValueStore, key_prefix: str = "") -> None:
        self._store = store
        self._prefix = key_prefix

    def lease_key(self, job_id: str) -> str:
        return f"{self._prefix}job:{job_id}:lock"

    async def acquire(
        self,
        job_id: str,
        holder_id: str,
        ttl: float = DEFAULT_LEASE_TTL_SECONDS,
    ) -> bool:
        """Create the lease if no live lease exists.

        Returns:
            True if *holder_id* now holds the lease, False if another holder
            already does.
        """
        acquired = await self._store.set_if_absent(
            self.lease_key(job_id), holder_id, ttl=ttl
        )
        if acquired:
            logger.debug(
                "Lease acquired: job=%s holder=%s ttl=%.1fs", job_id, holder_id, ttl
            )
        else:
            logger.debug("Lease busy: job=%s", job_id)
        return acquired

    async def release(self, job_id: str, holder_id: str) -> bool:
        """Delete the lease only if *holder_id* still holds it.

        Returns:
            True if released, False if the lease expired or belongs to
            someone else.
        """
        released = await self._store.compare_and_delete(
            self.lease_key(job_id), holder_id
        )
        if released:
            logger.debug("Lease released: job=%s holder=%s", job_id, holder_id)
        else:
            logger.warning(
                "Lease for job %s no longer held by %s at release "
                "(expired or taken over)",
                job_id,
                holder_id,
            )
        return released

    async def extend(self, job_id: str, holder_id: str, ttl: float) -> bool:
        """Reset the lease expiry to *ttl* from now if *holder_id* holds it."""
        return await self._store.compare_and_expire(
            self.lease_key(job_id), holder_id, ttl=ttl
        )

    async def holder(self, job_id: str) -> str | None:
        """Return the current holder token, or None if no live lease exists."""
        return await self._store.get(self.lease_key(job_id))

    async def is_held(self, job_id: str) -> bool:
        return await self.holder(job_id) is not None

    @contextlib.asynccontextmanager
    async def hold(
        self,
        job_id: str,
        holder_id: str,
        ttl: float = DEFAULT_LEASE_TTL_SECONDS,
    ) -> AsyncIterator[bool]:
        """Scoped acquisition: yields whether the lease was obtained.

        The lease, when obtained, is released on every exit path.
        """
        acquired = await self.acquire(job_id, holder_id, ttl)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(job_id, holder_id)


__all__ = ["DEFAULT_LEASE_TTL_SECONDS", "LeaseManager"]
