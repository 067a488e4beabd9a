"""Configuration schemas and loading for the battle arena."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from battle_arena.core.errors import APIKeyError

DEFAULT_LEAGUES = ["general", "veteran", "community", "morse"]


class BattleConfig(BaseModel):
    """Battle and character rules.

    Attributes:
        cooldown_seconds: Minimum interval between two battles of one character.
        k_factor: Elo K-factor.
        opponent_window: Half-width of the Elo window searched for opponents.
        default_elo: Rating of a newly created character.
        max_characters_per_owner: Character cap per owner.
        trait_update_cooldown_seconds: Minimum interval between trait rewrites.
        trait_update_penalty: Fraction of Elo lost when traits are rewritten.
    """

    cooldown_seconds: int = Field(default=180, ge=0)
    k_factor: int = Field(default=32, gt=0)
    opponent_window: int = Field(default=200, ge=0)
    default_elo: int = 1000
    max_characters_per_owner: int = Field(default=5, ge=1)
    trait_update_cooldown_seconds: int = Field(default=6 * 60 * 60, ge=0)
    trait_update_penalty: float = Field(default=0.25, ge=0.0, lt=1.0)


class LeagueConfig(BaseModel):
    """League partitions of the ranking index."""

    leagues: list[str] = Field(default_factory=lambda: list(DEFAULT_LEAGUES), min_length=1)
    general: str = "general"
    mirrored_league: str | None = "morse"

    @field_validator("leagues")
    @classmethod
    def validate_league_names(cls, v: list[str]) -> list[str]:
        for league in v:
            if not league or not league.strip():
                msg = "League names cannot be empty"
                raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_references(self) -> LeagueConfig:
        if self.general not in self.leagues:
            msg = f"General league '{self.general}' is not in leagues"
            raise ValueError(msg)
        if self.mirrored_league is not None and self.mirrored_league not in self.leagues:
            msg = f"Mirrored league '{self.mirrored_league}' is not in leagues"
            raise ValueError(msg)
        return self

    def is_known(self, league: str) -> bool:
        return league in self.leagues


class OracleConfig(BaseModel):
    """Outcome oracle settings.

    Attributes:
        model: Generative model name used in the endpoint path.
        temperature: Sampling temperature.
        top_p: Nucleus sampling mass.
        top_k: Top-k sampling cutoff.
        max_output_tokens: Generation cap.
        timeout_seconds: Upper bound on the whole oracle call before falling back.
        draw_band: Probability of a draw in the local fallback decision.
        advisory_divisor: Elo divisor for the win chance quoted in the prompt.
        fallback_divisor: Elo divisor for the local fallback decision.
        api_key: Oracle API key. Falls back to GEMINI_API_KEY.
    """

    model: str = "gemini-1.5-pro-latest"
    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 50
    max_output_tokens: int = 500
    timeout_seconds: float = Field(default=8.0, gt=0)
    draw_band: float = Field(default=0.15, ge=0.0, le=1.0)
    advisory_divisor: float = 1500.0
    fallback_divisor: float = 400.0
    api_key: str | None = None

    def resolve_api_key(self) -> str | None:
        """API key from config or environment, None when unset."""
        return self.api_key or os.environ.get("GEMINI_API_KEY") or None


class StoreConfig(BaseModel):
    """Ranking store backend selection."""

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str | None = None

    def resolve_redis_url(self) -> str:
        return self.redis_url or os.environ.get("REDIS_URL") or "redis://localhost:6379/0"


class ArenaConfig(BaseModel):
    """Complete arena configuration."""

    battle: BattleConfig = Field(default_factory=BattleConfig)
    leagues: LeagueConfig = Field(default_factory=LeagueConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    seed: int | None = None

    def get_api_key(self) -> str:
        """Get the oracle API key or fail.

        Raises:
            APIKeyError: If neither config nor environment provides one.
        """
        key = self.oracle.resolve_api_key()
        if not key:
            raise APIKeyError()
        return key


def load_config(path: str | Path) -> ArenaConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Validated ArenaConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open() as f:
        data = yaml.safe_load(f) or {}

    return ArenaConfig.model_validate(data)
