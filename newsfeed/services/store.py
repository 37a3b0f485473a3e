from __future__ import annotations

import logging
from time import monotonic
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from newsfeed.core.config import Settings
from newsfeed.core.errors import StoreIOError

logger = logging.getLogger(__name__)


class Store(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def put_many(self, values: dict[str, bytes], ttl_seconds: int) -> None: ...


class RedisStore:
    """Store backed by Redis; ``put_many`` is a single MULTI/EXEC transaction."""

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(aioredis.from_url(url))

    async def get(self, key: str) -> bytes | None:
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise StoreIOError(f"Store read failed for {key}: {exc}") from exc

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise StoreIOError(f"Store write failed for {key}: {exc}") from exc

    async def put_many(self, values: dict[str, bytes], ttl_seconds: int) -> None:
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                for key, value in values.items():
                    pipe.set(key, value, ex=ttl_seconds)
                await pipe.execute()
        except RedisError as exc:
            raise StoreIOError(f"Store write failed for {sorted(values)}: {exc}") from exc

    async def close(self) -> None:
        await self.client.aclose()


class MemoryStore:
    """Process-local store for development and tests."""

    def __init__(self, clock=monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[bytes, float]] = {}

    async def get(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def put_many(self, values: dict[str, bytes], ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds
        self._data.update({key: (value, expires_at) for key, value in values.items()})

    async def close(self) -> None:
        self._data.clear()


def build_store(settings: Settings) -> RedisStore | MemoryStore:
    if settings.store_backend == "memory":
        logger.warning("Using process-local memory store; snapshots are lost on restart")
        return MemoryStore()
    return RedisStore.from_url(settings.redis_url)


class FeedKeys:
    def __init__(self, source: str) -> None:
        self.items = f"newsfeed:{source}:items"
        self.rss = f"newsfeed:{source}:rss"
        self.meta = f"newsfeed:{source}:meta"
