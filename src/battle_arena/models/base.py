"""Shared coercion for records stored as flat string hashes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from battle_arena.ranking.elo import round_half_away_from_zero

RecordT = TypeVar("RecordT", bound="HashRecord")


def coerce_int(value: Any) -> Any:
    """Coerce hash values like "1016", "1016.0" or 1016.0 to int.

    Values that are not numeric are returned untouched so pydantic reports them.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return round_half_away_from_zero(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                return round_half_away_from_zero(float(text))
            except ValueError:
                return value
    return value


def _hash_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class HashRecord(BaseModel):
    """A record persisted as a hash of camelCase string fields.

    Deserialization goes through from_hash only, which is where every
    numeric field is coerced.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_hash(cls: type[RecordT], data: Mapping[str, Any] | None) -> RecordT | None:
        """Build a record from a raw hash. Empty or missing hashes give None."""
        if not data:
            return None
        return cls.model_validate(dict(data))

    def to_hash(self) -> dict[str, str]:
        return {key: _hash_value(value) for key, value in self.to_public().items()}

    def to_public(self) -> dict[str, Any]:
        """camelCase dict for API responses."""
        return self.model_dump(by_alias=True)
