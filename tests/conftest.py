"""Shared fixtures for arena tests."""

import random
from collections.abc import Awaitable, Callable

import pytest

from battle_arena.core.config import BattleConfig, LeagueConfig
from battle_arena.models import Character
from battle_arena.services.storage import ArenaRepository, MemoryRankingStore, RankingStore

AddCharacter = Callable[..., Awaitable[Character]]


class SequenceRandom(random.Random):
    """Random source that replays fixed values from random()."""

    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


@pytest.fixture
def sequence_random() -> type[SequenceRandom]:
    return SequenceRandom


@pytest.fixture
def store() -> MemoryRankingStore:
    return MemoryRankingStore()


@pytest.fixture
def repository(store: RankingStore) -> ArenaRepository:
    return ArenaRepository(store, BattleConfig(), LeagueConfig())


@pytest.fixture
def add_character(repository: ArenaRepository) -> AddCharacter:
    """Insert a character record and its canonical index entries directly."""

    async def _add(
        character_id: str,
        owner: str,
        elo: int = 1000,
        league: str = "general",
        name: str | None = None,
        traits: str = "fast and strong",
        **counters: int,
    ) -> Character:
        character = Character(
            id=character_id,
            owner=owner,
            name=name or character_id.title(),
            traits=traits,
            elo=elo,
            league=league,
            created_at=1,
            **counters,
        )
        store = repository.store
        await store.hset(repository.keys.character(character.id), character.to_hash())
        await store.sadd(repository.keys.owner_characters(owner), character.id)
        for key in repository.canonical_indexes(character):
            await store.zadd(key, {character.id: elo})
        return character

    return _add
