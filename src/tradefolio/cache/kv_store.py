"""Hot key-value stores behind a common async protocol."""

import time
from typing import Callable, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from tradefolio.core.exceptions import CacheError


class KeyValueStore(Protocol):
    """
    Best-effort string store with per-key TTL.

    Implementations raise CacheError on backend failures; callers decide
    whether that degrades to a miss.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local store used when no Redis URL is configured, and in tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisKeyValueStore:
    """Redis-backed store; keys expire server-side via SET EX."""

    def __init__(self, redis_url: str, client: Optional[aioredis.Redis] = None):
        self._redis_url = redis_url
        self._client = client or aioredis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise CacheError(f"Redis GET {key} failed: {exc}") from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise CacheError(f"Redis SET {key} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise CacheError(f"Redis DEL {key} failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


def build_store(redis_url: Optional[str]) -> KeyValueStore:
    """Redis when a URL is configured, otherwise the in-process store."""
    if redis_url:
        return RedisKeyValueStore(redis_url)
    return InMemoryKeyValueStore()
