"""Rating engine for the battle arena."""

from battle_arena.ranking.elo import (
    DEFAULT_K_FACTOR,
    apply_trait_penalty,
    calculate_expected_win_chance,
    compute_updated_ratings,
    round_half_away_from_zero,
)

__all__ = [
    "DEFAULT_K_FACTOR",
    "apply_trait_penalty",
    "calculate_expected_win_chance",
    "compute_updated_ratings",
    "round_half_away_from_zero",
]
