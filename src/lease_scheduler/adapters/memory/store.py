"""InMemoryStore — testing and single-process implementation of IKeyValueStore."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from ...ports.store import IKeyValueStore

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger("lease_scheduler.store.memory")


class InMemoryStore(IKeyValueStore):
    """
    In-memory implementation of IKeyValueStore with TTL expiry.

    Features:
    - Values expire lazily against an injectable monotonic ``clock``, so tests
      can advance time without sleeping
    - All operations run under a single ``asyncio.Lock``, which makes the
      conditional primitives atomic for every task sharing the instance
    - Several "replicas" in one test can share one instance to simulate a
      shared Redis server
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._values: dict[str, str] = {}
        self._expires: dict[str, float] = {}
        self._sets: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    # -- helpers ----------------------------------------------------------

    def _live(self, key: str) -> str | None:
        """Return the live value for *key*, evicting it if expired."""
        deadline = self._expires.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._values.pop(key, None)
            self._expires.pop(key, None)
            logger.debug("Expired key %s", key)
        return self._values.get(key)

    def _put(self, key: str, value: str, ttl: float | None) -> None:
        self._values[key] = value
        if ttl is None:
            self._expires.pop(key, None)
        else:
            self._expires[key] = self._clock() + ttl

    def _drop(self, key: str) -> bool:
        self._expires.pop(key, None)
        return self._values.pop(key, None) is not None

    # -- single keys ------------------------------------------------------

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._live(key)

    async def set(self, key: str, value: str, *, ttl: float | None = None) -> None:
        async with self._lock:
            self._put(key, value, ttl)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            self._live(key)
            return self._drop(key)

    async def set_if_absent(self, key: str, value: str, *, ttl: float) -> bool:
        async with self._lock:
            if self._live(key) is not None:
                return False
            self._put(key, value, ttl)
            return True

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        async with self._lock:
            if self._live(key) != expected:
                return False
            return self._drop(key)

    async def compare_and_expire(self, key: str, expected: str, *, ttl: float) -> bool:
        async with self._lock:
            if self._live(key) != expected:
                return False
            self._expires[key] = self._clock() + ttl
            return True

    # -- sets -------------------------------------------------------------

    async def sadd(self, set_key: str, member: str) -> None:
        async with self._lock:
            self._sets.setdefault(set_key, set()).add(member)

    async def srem(self, set_key: str, member: str) -> None:
        async with self._lock:
            self._sets.get(set_key, set()).discard(member)

    async def smembers(self, set_key: str) -> set[str]:
        async with self._lock:
            return set(self._sets.get(set_key, set()))

    # -- transactions -----------------------------------------------------

    async def write_indexed(
        self,
        key: str,
        value: str,
        *,
        member: str,
        add_to: Sequence[str] = (),
        remove_from: Sequence[str] = (),
    ) -> None:
        async with self._lock:
            self._put(key, value, None)
            for set_key in remove_from:
                self._sets.get(set_key, set()).discard(member)
            for set_key in add_to:
                self._sets.setdefault(set_key, set()).add(member)

    async def delete_indexed(
        self, key: str, *, member: str, remove_from: Sequence[str] = ()
    ) -> bool:
        async with self._lock:
            self._live(key)
            deleted = self._drop(key)
            for set_key in remove_from:
                self._sets.get(set_key, set()).discard(member)
            return deleted

    # -- lifecycle --------------------------------------------------------

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        """Nothing to release for the in-memory store."""

    def clear(self) -> None:
        """Drop every key and set (testing utility)."""
        self._values.clear()
        self._expires.clear()
        self._sets.clear()
