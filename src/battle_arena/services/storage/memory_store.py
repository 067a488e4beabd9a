"""In-process ranking store for tests, dry runs and single-instance use."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import Any

import structlog

from .store import RankingStore

logger = structlog.get_logger()


def _slice(items: list[Any], start: int, stop: int) -> list[Any]:
    """Redis-style inclusive range with negative indexes."""
    size = len(items)
    if start < 0:
        start = max(size + start, 0)
    if stop < 0:
        stop = size + stop
    if start > stop or start >= size:
        return []
    return items[start : stop + 1]


class MemoryRankingStore(RankingStore):
    """Ranking store backed by plain dicts.

    Operations never suspend, so each one is atomic with respect to other
    coroutines on the same event loop. compare_and_set still takes a lock
    to keep that true if the implementation ever awaits.
    """

    def __init__(self) -> None:
        self._hashes: dict[str, dict[str, str]] = {}
        self._sets: dict[str, set[str]] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._lists: dict[str, list[str]] = {}
        self._strings: dict[str, tuple[str, float | None]] = {}
        self._cas_lock = asyncio.Lock()

    def _sorted(self, key: str) -> list[tuple[str, float]]:
        zset = self._zsets.get(key, {})
        return sorted(zset.items(), key=lambda item: (item[1], item[0]))

    def _drop_if_empty(self, container: dict[str, Any], key: str) -> None:
        if key in container and not container[key]:
            del container[key]

    def _live_string(self, key: str) -> str | None:
        entry = self._strings.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._strings[key]
            return None
        return value

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        self._hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    async def sadd(self, key: str, *members: str) -> int:
        current = self._sets.setdefault(key, set())
        added = len(set(members) - current)
        current.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        current = self._sets.get(key, set())
        removed = len(current & set(members))
        current.difference_update(members)
        self._drop_if_empty(self._sets, key)
        return removed

    async def smembers(self, key: str) -> set[str]:
        return set(self._sets.get(key, set()))

    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        zset = self._zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrem(self, key: str, *members: str) -> int:
        zset = self._zsets.get(key, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        self._drop_if_empty(self._zsets, key)
        return removed

    async def zrangebyscore(
        self, key: str, min_score: float, max_score: float
    ) -> list[tuple[str, float]]:
        return [(m, s) for m, s in self._sorted(key) if min_score <= s <= max_score]

    async def zrange(
        self, key: str, start: int, stop: int, desc: bool = False
    ) -> list[tuple[str, float]]:
        entries = self._sorted(key)
        if desc:
            entries.reverse()
        return _slice(entries, start, stop)

    async def zrank(self, key: str, member: str, desc: bool = False) -> int | None:
        entries = self._sorted(key)
        if desc:
            entries.reverse()
        for rank, (candidate, _) in enumerate(entries):
            if candidate == member:
                return rank
        return None

    async def zscore(self, key: str, member: str) -> float | None:
        return self._zsets.get(key, {}).get(member)

    async def zcard(self, key: str) -> int:
        return len(self._zsets.get(key, {}))

    async def lpush(self, key: str, *values: str) -> int:
        items = self._lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def lrange(self, key: str, start: int, stop: int) -> list[str]:
        return list(_slice(self._lists.get(key, []), start, stop))

    async def lrem(self, key: str, value: str) -> int:
        items = self._lists.get(key, [])
        kept = [item for item in items if item != value]
        removed = len(items) - len(kept)
        if key in self._lists:
            self._lists[key] = kept
            self._drop_if_empty(self._lists, key)
        return removed

    async def get(self, key: str) -> str | None:
        return self._live_string(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        self._strings[key] = (str(value), expires_at)

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        async with self._cas_lock:
            if self._live_string(key) != expected:
                logger.debug("cas_conflict", key=key)
                return False
            self._strings[key] = (str(value), None)
            return True

    async def exists(self, key: str) -> bool:
        return (
            key in self._hashes
            or key in self._sets
            or key in self._zsets
            or key in self._lists
            or self._live_string(key) is not None
        )

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            found = False
            for container in (self._hashes, self._sets, self._zsets, self._lists, self._strings):
                if container.pop(key, None) is not None:
                    found = True
            deleted += int(found)
        return deleted
