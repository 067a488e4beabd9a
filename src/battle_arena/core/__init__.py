"""Core configuration and errors for the battle arena."""

from battle_arena.core.config import (
    DEFAULT_LEAGUES,
    ArenaConfig,
    BattleConfig,
    LeagueConfig,
    OracleConfig,
    StoreConfig,
    load_config,
)
from battle_arena.core.errors import (
    APIKeyError,
    ArenaError,
    AuthenticationError,
    BattleNotFoundError,
    CharacterLimitError,
    CharacterNotFoundError,
    ConfigurationError,
    CooldownActiveError,
    NoOpponentError,
    NotFoundError,
    NotOwnerError,
    OracleError,
    PersistenceError,
    ValidationError,
)
from battle_arena.core.timeutils import now_ms, remaining_seconds

__all__ = [
    "DEFAULT_LEAGUES",
    "ArenaConfig",
    "BattleConfig",
    "LeagueConfig",
    "OracleConfig",
    "StoreConfig",
    "load_config",
    "now_ms",
    "remaining_seconds",
    "APIKeyError",
    "ArenaError",
    "AuthenticationError",
    "BattleNotFoundError",
    "CharacterLimitError",
    "CharacterNotFoundError",
    "ConfigurationError",
    "CooldownActiveError",
    "NoOpponentError",
    "NotFoundError",
    "NotOwnerError",
    "OracleError",
    "PersistenceError",
    "ValidationError",
]
