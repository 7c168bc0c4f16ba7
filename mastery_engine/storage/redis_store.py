"""
Redis-backed store.

Blobs are plain string keys; indexes are native sorted sets, so rank and
score queries are delegated directly to Redis.
"""
from __future__ import annotations

import redis.asyncio as redis
from loguru import logger


class RedisStore:
    """KeyValueStore over a ``redis.asyncio`` client."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str, max_connections: int = 20) -> RedisStore:
        """Build a store with its own connection pool."""
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=max_connections,
        )
        logger.info(f"Redis store configured: {url}")
        return cls(client)

    async def get(self, key: str) -> str | None:
        return await self.redis.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(key, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        return await self.redis.zadd(key, mapping)

    async def zrem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self.redis.zrem(key, *members)

    async def zrange(self, key: str, start: int, stop: int) -> list[str]:
        return await self.redis.zrange(key, start, stop)

    async def zrange_by_score(
        self,
        key: str,
        min_score: float,
        max_score: float,
        offset: int | None = None,
        count: int | None = None,
    ) -> list[str]:
        if count is None:
            return await self.redis.zrangebyscore(key, min_score, max_score)
        return await self.redis.zrangebyscore(
            key, min_score, max_score, start=offset or 0, num=count
        )

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        return await self.redis.zremrangebyrank(key, start, stop)

    async def zcard(self, key: str) -> int:
        return await self.redis.zcard(key)

    async def close(self) -> None:
        await self.redis.aclose()
