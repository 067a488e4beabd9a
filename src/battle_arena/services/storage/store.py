"""Key-value ranking store interface.

Every call is an independent operation: there are no multi-key
transactions. compare_and_set is the only conditional write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping


class RankingStore(ABC):
    """Abstract base class for async ranking stores.

    Scores are floats on the wire. Members of sorted sets are returned as
    (member, score) tuples ordered by score, ties by member.
    """

    # Hashes

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, str]:
        """Return all fields of a hash, or an empty dict when it does not exist."""

    @abstractmethod
    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        """Set the given hash fields, keeping fields not mentioned."""

    # Sets

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def smembers(self, key: str) -> set[str]: ...

    # Sorted sets

    @abstractmethod
    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        """Add members or update their scores. Returns the number of new members."""

    @abstractmethod
    async def zrem(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def zrangebyscore(
        self, key: str, min_score: float, max_score: float
    ) -> list[tuple[str, float]]:
        """Members with min_score <= score <= max_score, ascending."""

    @abstractmethod
    async def zrange(
        self, key: str, start: int, stop: int, desc: bool = False
    ) -> list[tuple[str, float]]:
        """Members by rank, inclusive stop, negative indexes count from the end."""

    @abstractmethod
    async def zrank(self, key: str, member: str, desc: bool = False) -> int | None: ...

    @abstractmethod
    async def zscore(self, key: str, member: str) -> float | None: ...

    @abstractmethod
    async def zcard(self, key: str) -> int: ...

    # Lists

    @abstractmethod
    async def lpush(self, key: str, *values: str) -> int: ...

    @abstractmethod
    async def lrange(self, key: str, start: int, stop: int) -> list[str]: ...

    @abstractmethod
    async def lrem(self, key: str, value: str) -> int:
        """Remove every occurrence of value."""

    # Strings and keys

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        """Atomically set key to value if its current value equals expected.

        expected=None means the key must not exist.

        Returns:
            True if the write happened.
        """

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def delete(self, *keys: str) -> int: ...

    async def close(self) -> None:  # noqa: B027
        """Close any resources. Override if needed."""
