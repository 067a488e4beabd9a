"""Key naming for records and indexes in the ranking store."""

from __future__ import annotations

GLOBAL_RANKING = "characters:ranking"


class StoreKeys:
    """Build the store keys used by the repository."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def character(self, character_id: str) -> str:
        """Hash holding a character record."""
        return self._key(f"character:{character_id}")

    def character_battles(self, character_id: str) -> str:
        """List of battle ids for a character, newest first."""
        return self._key(f"character:{character_id}:battles")

    def last_battle(self, character_id: str) -> str:
        """Cooldown timestamp of a character's last battle."""
        return self._key(f"character:{character_id}:lastBattle")

    def last_trait_update(self, character_id: str) -> str:
        return self._key(f"character:{character_id}:lastTraitUpdate")

    def owner_characters(self, owner: str) -> str:
        """Set of character ids owned by a user."""
        return self._key(f"user:{owner}:characters")

    def owner_battles(self, owner: str) -> str:
        """List of battle ids a user initiated, newest first."""
        return self._key(f"user:{owner}:battles")

    def battle(self, battle_id: str) -> str:
        """Hash holding a battle record. Battle ids already carry the battle: prefix."""
        return self._key(battle_id)

    def global_ranking(self) -> str:
        return self._key(GLOBAL_RANKING)

    def league_ranking(self, league: str) -> str:
        return self._key(f"league:{league}:ranking")
