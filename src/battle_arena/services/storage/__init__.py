from battle_arena.core.config import StoreConfig

from .keys import StoreKeys
from .memory_store import MemoryRankingStore
from .redis_store import RedisRankingStore
from .repository import (
    ArenaRepository,
    LeaderboardEntry,
    OwnerRanking,
    RankingIndexView,
    ReconcileReport,
)
from .store import RankingStore
from .writes import HashWrite, ListPush, ScoreWrite, StoreWrite


def create_store(config: StoreConfig) -> RankingStore:
    """Create the ranking store selected by config."""
    if config.backend == "redis":
        return RedisRankingStore.from_url(config.resolve_redis_url())
    return MemoryRankingStore()


__all__ = [
    "ArenaRepository",
    "HashWrite",
    "LeaderboardEntry",
    "ListPush",
    "MemoryRankingStore",
    "OwnerRanking",
    "RankingIndexView",
    "RankingStore",
    "ReconcileReport",
    "RedisRankingStore",
    "ScoreWrite",
    "StoreKeys",
    "StoreWrite",
    "create_store",
]
