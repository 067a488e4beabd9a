from .matchmaking import ScoredIndex, find_opponent
from .oracle import (
    BattleOutcome,
    Decoded,
    DecodeFailure,
    OracleVerdict,
    OutcomeOracle,
    decode_outcome,
    fallback_decision,
)
from .service import BattleResult, BattleService, new_battle_id
from .updates import RatingUpdate, build_rating_update, plan_battle_writes

__all__ = [
    "BattleOutcome",
    "BattleResult",
    "BattleService",
    "DecodeFailure",
    "Decoded",
    "OracleVerdict",
    "OutcomeOracle",
    "RatingUpdate",
    "ScoredIndex",
    "build_rating_update",
    "decode_outcome",
    "fallback_decision",
    "find_opponent",
    "new_battle_id",
    "plan_battle_writes",
]
