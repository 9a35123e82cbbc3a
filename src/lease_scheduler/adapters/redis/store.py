"""Redis implementation of the coordination store."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...exceptions import StoreConnectionError, StoreError
from ...ports.store import IKeyValueStore

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from redis.asyncio import Redis

logger = logging.getLogger("lease_scheduler.store.redis")

# KEYS[1] = key, ARGV[1] = expected value
COMPARE_AND_DELETE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""

# KEYS[1] = key, ARGV[1] = expected value, ARGV[2] = ttl in ms
COMPARE_AND_EXPIRE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("PEXPIRE", KEYS[1], ARGV[2])
end
return 0
"""


def _to_ms(ttl: float) -> int:
    return max(1, int(ttl * 1000))


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


@contextlib.contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    """Re-raise redis-py errors as scheduler infrastructure errors."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        logger.error("Redis %s failed for %s: %s", operation, key, exc)
        raise StoreConnectionError(
            f"Redis unavailable during {operation} on {key}: {exc}"
        ) from exc
    except RedisError as exc:
        logger.error("Redis %s failed for %s: %s", operation, key, exc)
        raise StoreError(f"Redis {operation} on {key} failed: {exc}") from exc


class RedisStore(IKeyValueStore):
    """
    Redis implementation of IKeyValueStore.

    Works with both ``decode_responses=True`` and bytes-returning clients.
    Conditional operations use ``SET NX PX`` and Lua scripts so they are
    atomic on the server; record + index writes use a ``MULTI/EXEC``
    pipeline.

    Example:
        ```python
        from redis.asyncio import Redis

        store = RedisStore(Redis.from_url("redis://localhost:6379/0"))
        await store.set_if_absent("job:42:lock", "replica-a", ttl=300)
        ```
    """

    def __init__(self, redis_client: Redis) -> None:  # type: ignore[type-arg]
        self._redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        """Build a store around a fresh ``redis.asyncio`` client."""
        from redis.asyncio import Redis

        return cls(Redis.from_url(url, decode_responses=True))

    # -- single keys ------------------------------------------------------

    async def get(self, key: str) -> str | None:
        with _translate_errors("GET", key):
            value = await self._redis.get(key)
        return None if value is None else _decode(value)

    async def set(self, key: str, value: str, *, ttl: float | None = None) -> None:
        with _translate_errors("SET", key):
            if ttl is None:
                await self._redis.set(key, value)
            else:
                await self._redis.set(key, value, px=_to_ms(ttl))

    async def delete(self, key: str) -> bool:
        with _translate_errors("DEL", key):
            return bool(await self._redis.delete(key))

    async def set_if_absent(self, key: str, value: str, *, ttl: float) -> bool:
        with _translate_errors("SET NX", key):
            return bool(await self._redis.set(key, value, nx=True, px=_to_ms(ttl)))

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        with _translate_errors("compare-and-delete", key):
            result = await self._redis.eval(  # type: ignore[no-untyped-call]
                COMPARE_AND_DELETE_SCRIPT, 1, key, expected
            )
        return int(result) == 1

    async def compare_and_expire(self, key: str, expected: str, *, ttl: float) -> bool:
        with _translate_errors("compare-and-expire", key):
            result = await self._redis.eval(  # type: ignore[no-untyped-call]
                COMPARE_AND_EXPIRE_SCRIPT, 1, key, expected, str(_to_ms(ttl))
            )
        return int(result) == 1

    # -- sets -------------------------------------------------------------

    async def sadd(self, set_key: str, member: str) -> None:
        with _translate_errors("SADD", set_key):
            await self._redis.sadd(set_key, member)

    async def srem(self, set_key: str, member: str) -> None:
        with _translate_errors("SREM", set_key):
            await self._redis.srem(set_key, member)

    async def smembers(self, set_key: str) -> set[str]:
        with _translate_errors("SMEMBERS", set_key):
            members = await self._redis.smembers(set_key)
        return {_decode(m) for m in members}

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
        with _translate_errors("MULTI/EXEC write", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, value)
                for set_key in remove_from:
                    pipe.srem(set_key, member)
                for set_key in add_to:
                    pipe.sadd(set_key, member)
                await pipe.execute()

    async def delete_indexed(
        self, key: str, *, member: str, remove_from: Sequence[str] = ()
    ) -> bool:
        with _translate_errors("MULTI/EXEC delete", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                for set_key in remove_from:
                    pipe.srem(set_key, member)
                results = await pipe.execute()
        return bool(results and results[0])

    # -- lifecycle --------------------------------------------------------

    async def ping(self) -> bool:
        """Verify Redis health."""
        try:
            await self._redis.ping()
            return True
        except RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def close(self) -> None:
        """Close the underlying Redis connection pool."""
        try:
            await self._redis.aclose()
        except RedisError as exc:
            logger.warning("Error closing Redis client: %s", exc)
