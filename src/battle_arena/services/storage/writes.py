"""Idempotent store writes that can be planned up front and applied in order."""

from __future__ import annotations

from dataclasses import dataclass, field

from .store import RankingStore


@dataclass(frozen=True)
class HashWrite:
    """Overwrite the fields of a record hash."""

    key: str
    fields: dict[str, str] = field(hash=False)

    @property
    def name(self) -> str:
        return f"hset {self.key}"

    async def apply(self, store: RankingStore) -> None:
        await store.hset(self.key, self.fields)


@dataclass(frozen=True)
class ScoreWrite:
    """Set the score of one member of a sorted set."""

    key: str
    member: str
    score: float

    @property
    def name(self) -> str:
        return f"zadd {self.key} {self.member}"

    async def apply(self, store: RankingStore) -> None:
        await store.zadd(self.key, {self.member: self.score})


@dataclass(frozen=True)
class ListPush:
    """Prepend a value to a list unless it is already there."""

    key: str
    value: str

    @property
    def name(self) -> str:
        return f"lpush {self.key}"

    async def apply(self, store: RankingStore) -> None:
        # lrem first keeps a replayed push from duplicating the entry.
        await store.lrem(self.key, self.value)
        await store.lpush(self.key, self.value)


StoreWrite = HashWrite | ScoreWrite | ListPush


def dedupe(writes: list[StoreWrite]) -> list[StoreWrite]:
    """Drop repeated writes to the same target, keeping the first one's position."""
    seen: set[str] = set()
    result: list[StoreWrite] = []
    for write in writes:
        if write.name in seen:
            continue
        seen.add(write.name)
        result.append(write)
    return result
