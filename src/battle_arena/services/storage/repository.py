"""Typed access to characters, battles, cooldowns and ranking indexes."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from battle_arena.core.config import BattleConfig, LeagueConfig
from battle_arena.core.errors import (
    BattleNotFoundError,
    CharacterLimitError,
    CharacterNotFoundError,
    CooldownActiveError,
    NotOwnerError,
    PersistenceError,
    ValidationError,
)
from battle_arena.core.timeutils import remaining_seconds
from battle_arena.models import Battle, Character, normalize_owner
from battle_arena.ranking.elo import apply_trait_penalty

from .keys import StoreKeys
from .store import RankingStore
from .writes import StoreWrite

logger = structlog.get_logger()


class RankingIndexView:
    """Read-only view of one sorted-set ranking index."""

    def __init__(self, store: RankingStore, key: str) -> None:
        self._store = store
        self.key = key

    async def range_by_score(self, min_score: float, max_score: float) -> list[tuple[str, float]]:
        return await self._store.zrangebyscore(self.key, min_score, max_score)

    async def entries(self) -> list[tuple[str, float]]:
        """Every member, ascending by score."""
        return await self._store.zrange(self.key, 0, -1)


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    character: Character


@dataclass(frozen=True)
class OwnerRanking:
    """Best-placed character of an owner within one league."""

    character_id: str
    character_name: str
    rank: int
    elo: int


@dataclass
class ReconcileReport:
    """Outcome of a reconciliation pass.

    Attributes:
        checked: Character ids examined.
        rescored: Index entries whose score was rewritten.
        removed: Index entries dropped because the character no longer exists.
    """

    checked: int = 0
    rescored: int = 0
    removed: int = 0


class ArenaRepository:
    """Persist and query arena records on a RankingStore.

    Records are read through Character.from_hash / Battle.from_hash, which
    is the only place stored strings become typed values.
    """

    def __init__(
        self,
        store: RankingStore,
        battle_config: BattleConfig | None = None,
        league_config: LeagueConfig | None = None,
        keys: StoreKeys | None = None,
    ) -> None:
        self.store = store
        self.battle_config = battle_config or BattleConfig()
        self.league_config = league_config or LeagueConfig()
        self.keys = keys or StoreKeys()

    # ==================== Characters ====================

    async def get_character(self, character_id: str) -> Character | None:
        return Character.from_hash(await self.store.hgetall(self.keys.character(character_id)))

    async def require_character(self, character_id: str) -> Character:
        character = await self.get_character(character_id)
        if character is None:
            raise CharacterNotFoundError(character_id)
        return character

    async def require_owned_character(self, owner_id: str, character_id: str) -> Character:
        """Load a character and check the caller owns it.

        Raises:
            ValidationError: If character_id is empty.
            CharacterNotFoundError: If no such character exists.
            NotOwnerError: If it belongs to someone else.
        """
        if not character_id:
            raise ValidationError("Character ID is required")
        character = await self.require_character(character_id)
        if not character.owned_by(owner_id):
            raise NotOwnerError(character_id)
        return character

    async def owned_character_ids(self, owner_id: str) -> set[str]:
        return await self.store.smembers(self.keys.owner_characters(normalize_owner(owner_id)))

    async def list_owner_characters(self, owner_id: str) -> list[Character]:
        ids = sorted(await self.owned_character_ids(owner_id))
        characters = await asyncio.gather(*(self.get_character(cid) for cid in ids))
        return [c for c in characters if c is not None]

    def canonical_indexes(self, character: Character) -> list[str]:
        """Index keys every character must appear in: global, its league, general."""
        keys = [
            self.keys.global_ranking(),
            self.keys.league_ranking(character.league),
            self.keys.league_ranking(self.league_config.general),
        ]
        return list(dict.fromkeys(keys))

    def all_indexes(self) -> list[str]:
        keys = [self.keys.global_ranking()]
        keys.extend(self.keys.league_ranking(league) for league in self.league_config.leagues)
        return keys

    def global_index(self) -> RankingIndexView:
        return RankingIndexView(self.store, self.keys.global_ranking())

    async def create_character(
        self,
        owner_id: str,
        name: str,
        traits: str,
        now: int,
        league: str | None = None,
    ) -> Character:
        """Create a character and add it to its ranking indexes.

        Raises:
            ValidationError: If name or traits are blank or the league is unknown.
            CharacterLimitError: If the owner already has the maximum number.
        """
        if not name or not name.strip() or not traits or not traits.strip():
            raise ValidationError("Name and traits are required")
        league = league or self.league_config.general
        if not self.league_config.is_known(league):
            raise ValidationError(f"Unknown league: {league}")

        owner = normalize_owner(owner_id)
        existing = await self.owned_character_ids(owner)
        limit = self.battle_config.max_characters_per_owner
        if len(existing) >= limit:
            raise CharacterLimitError(limit)

        character = Character(
            id=f"{owner}_{now}",
            owner=owner,
            name=name.strip(),
            traits=traits.strip(),
            elo=self.battle_config.default_elo,
            league=league,
            created_at=now,
        )
        await self.store.hset(self.keys.character(character.id), character.to_hash())
        await self.store.sadd(self.keys.owner_characters(owner), character.id)
        for key in self.canonical_indexes(character):
            await self.store.zadd(key, {character.id: character.elo})

        logger.info("character_created", character_id=character.id, league=league)
        return character

    async def delete_character(self, owner_id: str, character_id: str) -> None:
        """Delete a character and every index, cooldown and history entry for it."""
        character = await self.require_owned_character(owner_id, character_id)

        for key in self.all_indexes():
            await self.store.zrem(key, character.id)
        owner_key = self.keys.owner_characters(normalize_owner(character.owner))
        await self.store.srem(owner_key, character.id)
        await self.store.delete(
            self.keys.character(character.id),
            self.keys.last_battle(character.id),
            self.keys.last_trait_update(character.id),
            self.keys.character_battles(character.id),
        )
        logger.info("character_deleted", character_id=character.id)

    async def update_traits(
        self, owner_id: str, character_id: str, traits: str, now: int
    ) -> tuple[Character, int]:
        """Rewrite a character's traits and apply the Elo penalty.

        Returns:
            Tuple of (updated_character, previous_elo).

        Raises:
            ValidationError: If traits are blank.
            CooldownActiveError: If traits were rewritten too recently.
        """
        character = await self.require_owned_character(owner_id, character_id)
        if not traits or not traits.strip():
            raise ValidationError("Valid traits are required")

        remaining = await self.trait_cooldown_remaining(character.id, now)
        if remaining > 0:
            raise CooldownActiveError(remaining, "Trait update cooldown active")

        previous_elo = character.elo
        updated = character.model_copy(
            update={
                "traits": traits.strip(),
                "elo": apply_trait_penalty(previous_elo, self.battle_config.trait_update_penalty),
            }
        )
        await self.store.hset(self.keys.character(updated.id), updated.to_hash())
        await self._rescore(updated)
        await self.store.set(self.keys.last_trait_update(updated.id), str(now))

        logger.info(
            "traits_updated",
            character_id=updated.id,
            previous_elo=previous_elo,
            new_elo=updated.elo,
        )
        return updated, previous_elo

    async def trait_cooldown_remaining(self, character_id: str, now: int) -> int:
        raw = await self.store.get(self.keys.last_trait_update(character_id))
        last = int(raw) if raw else None
        return remaining_seconds(last, self.battle_config.trait_update_cooldown_seconds, now)

    async def _rescore(self, character: Character) -> int:
        """Write the character's elo into every index it belongs to.

        Returns:
            Number of index entries whose score changed.
        """
        canonical = set(self.canonical_indexes(character))
        changed = 0
        for key in self.all_indexes():
            score = await self.store.zscore(key, character.id)
            if key not in canonical and score is None:
                continue
            if score != character.elo:
                await self.store.zadd(key, {character.id: character.elo})
                changed += 1
        return changed

    # ==================== Cooldowns ====================

    async def last_battle_raw(self, character_id: str) -> str | None:
        """Stored cooldown value, kept raw so it can be used for compare-and-set."""
        return await self.store.get(self.keys.last_battle(character_id))

    async def cooldown_remaining(self, character_id: str, now: int) -> int:
        raw = await self.last_battle_raw(character_id)
        last = int(raw) if raw else None
        return remaining_seconds(last, self.battle_config.cooldown_seconds, now)

    async def claim_cooldown(self, character_id: str, previous: str | None, now: int) -> bool:
        """Atomically move the cooldown from the value read earlier to now.

        Fails if another battle for the same character claimed it in between.
        """
        return await self.store.compare_and_set(
            self.keys.last_battle(character_id), previous, str(now)
        )

    # ==================== Battles ====================

    async def get_battle(self, battle_id: str) -> Battle | None:
        return Battle.from_hash(await self.store.hgetall(self.keys.battle(battle_id)))

    async def require_battle(self, battle_id: str) -> Battle:
        battle = await self.get_battle(battle_id)
        if battle is None:
            raise BattleNotFoundError(battle_id)
        return battle

    async def _battles_from_list(self, list_key: str, limit: int) -> list[Battle]:
        if limit <= 0:
            return []
        battle_ids = await self.store.lrange(list_key, 0, limit - 1)
        battles = await asyncio.gather(*(self.get_battle(bid) for bid in battle_ids))
        return [b for b in battles if b is not None]

    async def battles_for_character(self, character_id: str, limit: int = 20) -> list[Battle]:
        """Most recent battles of a character, newest first."""
        return await self._battles_from_list(self.keys.character_battles(character_id), limit)

    async def battles_for_owner(self, owner_id: str, limit: int = 20) -> list[Battle]:
        """Most recent battles an owner initiated, newest first."""
        key = self.keys.owner_battles(normalize_owner(owner_id))
        return await self._battles_from_list(key, limit)

    async def apply_writes(self, writes: Iterable[StoreWrite], context: str) -> None:
        """Apply planned writes in order, stopping at the first failure.

        Raises:
            PersistenceError: If any write fails. Earlier writes stay applied.
        """
        applied = 0
        for write in writes:
            try:
                await write.apply(self.store)
            except Exception as e:
                logger.error(
                    "persistence_failed",
                    context=context,
                    step=write.name,
                    applied=applied,
                    error=str(e),
                )
                raise PersistenceError(write.name) from e
            applied += 1
        logger.debug("writes_applied", context=context, count=applied)

    # ==================== Rankings ====================

    async def league_leaderboard(
        self, league: str, limit: int = 10, offset: int = 0
    ) -> tuple[list[LeaderboardEntry], int]:
        """Top characters of a league by score.

        Returns:
            Tuple of (entries, total_members). Entries carry the index score as elo.
        """
        key = self.keys.league_ranking(league)
        total = await self.store.zcard(key)
        if total == 0 or limit <= 0:
            return [], total

        rows = await self.store.zrange(key, offset, offset + limit - 1, desc=True)
        characters = await asyncio.gather(*(self.get_character(cid) for cid, _ in rows))

        entries = []
        for position, ((_, score), character) in enumerate(zip(rows, characters, strict=True)):
            if character is None:
                continue
            entries.append(
                LeaderboardEntry(
                    rank=offset + position + 1,
                    character=character.model_copy(update={"elo": int(score)}),
                )
            )
        return entries, total

    async def owner_ranking(self, owner_id: str, league: str) -> OwnerRanking | None:
        """The owner's best-ranked character in a league, or None."""
        key = self.keys.league_ranking(league)
        best: OwnerRanking | None = None
        for character in await self.list_owner_characters(owner_id):
            rank = await self.store.zrank(key, character.id, desc=True)
            if rank is None:
                continue
            if best is None or rank + 1 < best.rank:
                score = await self.store.zscore(key, character.id)
                best = OwnerRanking(
                    character_id=character.id,
                    character_name=character.name,
                    rank=rank + 1,
                    elo=int(score) if score is not None else character.elo,
                )
        return best

    async def reconcile(self) -> ReconcileReport:
        """Recompute every ranking index from the character hashes.

        Members whose hash is gone are removed from every index; every other
        member gets its stored elo as score in each index it belongs to.
        """
        report = ReconcileReport()
        member_ids: set[str] = set()
        for key in self.all_indexes():
            member_ids.update(member for member, _ in await self.store.zrange(key, 0, -1))

        for character_id in sorted(member_ids):
            report.checked += 1
            character = await self.get_character(character_id)
            if character is None:
                for key in self.all_indexes():
                    report.removed += await self.store.zrem(key, character_id)
                continue
            report.rescored += await self._rescore(character)

        logger.info(
            "reconcile_complete",
            checked=report.checked,
            rescored=report.rescored,
            removed=report.removed,
        )
        return report
