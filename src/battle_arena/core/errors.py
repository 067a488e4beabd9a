"""Custom exceptions for configuration errors and battle request failures."""

from __future__ import annotations

from typing import Any


class ConfigurationError(Exception):
    """Base exception for configuration errors with optional suggestions."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"[Configuration Error] {self.message}"
        if self.suggestion:
            msg += f"\n[Suggestion] {self.suggestion}"
        return msg


class APIKeyError(ConfigurationError):
    """Error when the oracle API key is missing."""

    def __init__(self) -> None:
        super().__init__(
            "API key required for real oracle calls",
            "Set GEMINI_API_KEY or add oracle.api_key to config.yaml.",
        )


class ArenaError(Exception):
    """Base class for errors returned to the caller of an arena operation.

    Attributes:
        status_code: HTTP status the error maps to.
        message: User-visible message.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        """Body returned to the client."""
        return {"error": self.message}


class ValidationError(ArenaError):
    """Request is malformed; nothing has been mutated."""

    status_code = 400


class AuthenticationError(ArenaError):
    """Request carries no caller identity."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__("Unauthorized")


class NotOwnerError(ValidationError):
    """Caller does not own the character."""

    status_code = 403

    def __init__(self, character_id: str) -> None:
        self.character_id = character_id
        super().__init__("Not authorized to use this character")


class CharacterLimitError(ValidationError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Maximum number of characters ({limit}) reached")


class NotFoundError(ArenaError):
    status_code = 404


class CharacterNotFoundError(NotFoundError):
    def __init__(self, character_id: str) -> None:
        self.character_id = character_id
        super().__init__("Character not found")


class NoOpponentError(NotFoundError):
    def __init__(self, character_id: str) -> None:
        self.character_id = character_id
        super().__init__("No opponents available")


class BattleNotFoundError(NotFoundError):
    def __init__(self, battle_id: str) -> None:
        self.battle_id = battle_id
        super().__init__("Battle not found")


class CooldownActiveError(ArenaError):
    """Character battled (or updated traits) too recently.

    Attributes:
        remaining_seconds: Whole seconds until the cooldown ends (rounded up).
    """

    status_code = 429

    def __init__(self, remaining_seconds: int, message: str = "Character is on cooldown") -> None:
        self.remaining_seconds = remaining_seconds
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        return {"error": self.message, "remainingTime": self.remaining_seconds}


class PersistenceError(ArenaError):
    """A store write failed partway through; earlier writes are kept.

    Attributes:
        step: Name of the write that failed. Logged, never sent to the client.
    """

    status_code = 500

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__("Internal server error")


class OracleError(Exception):
    """The external decision call failed. Always recovered by the fallback."""
