"""IKeyValueStore — protocol for the shared coordination store.

The scheduler never talks to Redis directly; everything goes through this
port so the lock manager and repository can be exercised against the
in-memory adapter in tests and against ``redis.asyncio`` in production.

Expiry values are expressed in seconds (float) and converted to
milliseconds by adapters that need it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class IKeyValueStore(Protocol):
    """
    Key/value and set primitives consumed by the scheduler core.

    Implementations must make :meth:`set_if_absent`,
    :meth:`compare_and_delete` and :meth:`compare_and_expire` atomic with
    respect to every other client of the same store.

    Example:
        ```python
        store = RedisStore(Redis.from_url("redis://localhost:6379/0"))

        if await store.set_if_absent("job:42:lock", "replica-a", ttl=300):
            try:
                ...
            finally:
                await store.compare_and_delete("job:42:lock", "replica-a")
        ```
    """

    async def get(self, key: str) -> str | None:
        """Return the value stored under *key*, or ``None``."""
        ...

    async def set(self, key: str, value: str, *, ttl: float | None = None) -> None:
        """Unconditionally store *value* under *key*, optionally expiring."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete *key*. Returns True if something was deleted."""
        ...

    async def set_if_absent(self, key: str, value: str, *, ttl: float) -> bool:
        """
        Create *key* with *value* only if no live value exists.

        Equivalent to ``SET key value NX PX ttl``.

        Returns:
            True if the key was created, False if a live value already exists.
        """
        ...

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        """Delete *key* only if its current value equals *expected*."""
        ...

    async def compare_and_expire(self, key: str, expected: str, *, ttl: float) -> bool:
        """Reset the expiry of *key* only if its current value equals *expected*."""
        ...

    async def sadd(self, set_key: str, member: str) -> None:
        """Add *member* to the set stored at *set_key*."""
        ...

    async def srem(self, set_key: str, member: str) -> None:
        """Remove *member* from the set stored at *set_key*."""
        ...

    async def smembers(self, set_key: str) -> set[str]:
        """Return all members of the set stored at *set_key*."""
        ...

    async def write_indexed(
        self,
        key: str,
        value: str,
        *,
        member: str,
        add_to: Sequence[str] = (),
        remove_from: Sequence[str] = (),
    ) -> None:
        """
        Store a record and update set memberships in one transaction.

        Args:
            key: Record key.
            value: Serialized record.
            member: Set member to add/remove (usually the record id).
            add_to: Sets that must contain *member* after the write.
            remove_from: Sets that must not contain *member* after the write.
        """
        ...

    async def delete_indexed(
        self, key: str, *, member: str, remove_from: Sequence[str] = ()
    ) -> bool:
        """Delete a record and drop *member* from the given sets atomically."""
        ...

    async def ping(self) -> bool:
        """Return True if the store is reachable."""
        ...

    async def close(self) -> None:
        """Release connections held by the adapter."""
        ...
