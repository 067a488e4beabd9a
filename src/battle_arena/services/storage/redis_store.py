"""Redis-backed ranking store."""

from __future__ import annotations

from collections.abc import Mapping

import redis.asyncio as aioredis
import structlog
from redis.exceptions import WatchError

from .store import RankingStore

logger = structlog.get_logger()


class RedisRankingStore(RankingStore):
    """Ranking store on a Redis server (or any Redis-protocol KV service).

    The client must be created with decode_responses=True so values come
    back as str.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisRankingStore:
        logger.info("redis_store_init", url=url.split("@")[-1])
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def hgetall(self, key: str) -> dict[str, str]:
        return await self._redis.hgetall(key)

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        await self._redis.hset(key, mapping=dict(mapping))

    async def sadd(self, key: str, *members: str) -> int:
        return await self._redis.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> int:
        return await self._redis.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        return set(await self._redis.smembers(key))

    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        return await self._redis.zadd(key, dict(mapping))

    async def zrem(self, key: str, *members: str) -> int:
        return await self._redis.zrem(key, *members)

    async def zrangebyscore(
        self, key: str, min_score: float, max_score: float
    ) -> list[tuple[str, float]]:
        rows = await self._redis.zrangebyscore(key, min_score, max_score, withscores=True)
        return [(member, float(score)) for member, score in rows]

    async def zrange(
        self, key: str, start: int, stop: int, desc: bool = False
    ) -> list[tuple[str, float]]:
        rows = await self._redis.zrange(key, start, stop, desc=desc, withscores=True)
        return [(member, float(score)) for member, score in rows]

    async def zrank(self, key: str, member: str, desc: bool = False) -> int | None:
        if desc:
            return await self._redis.zrevrank(key, member)
        return await self._redis.zrank(key, member)

    async def zscore(self, key: str, member: str) -> float | None:
        score = await self._redis.zscore(key, member)
        return None if score is None else float(score)

    async def zcard(self, key: str) -> int:
        return await self._redis.zcard(key)

    async def lpush(self, key: str, *values: str) -> int:
        return await self._redis.lpush(key, *values)

    async def lrange(self, key: str, start: int, stop: int) -> list[str]:
        return await self._redis.lrange(key, start, stop)

    async def lrem(self, key: str, value: str) -> int:
        return await self._redis.lrem(key, 0, value)

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._redis.set(key, value, ex=ttl_seconds)

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        """Optimistic WATCH/MULTI transaction on a single key."""
        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current != expected:
                    logger.debug("cas_conflict", key=key)
                    return False
                pipe.multi()
                pipe.set(key, value)
                await pipe.execute()
            except WatchError:
                logger.debug("cas_conflict", key=key, reason="watch")
                return False
        return True

    async def exists(self, key: str) -> bool:
        return bool(await self._redis.exists(key))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._redis.delete(*keys)

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self._redis.aclose()
