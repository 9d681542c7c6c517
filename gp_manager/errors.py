"""Exception hierarchy for the management simulation.

Integrity problems found while building a game are fatal and raised
immediately.  Blocked progression (advancing time in the post-season,
running a race weekend with no race) is *not* an error and is reported
through :class:`gp_manager.core.turn.BlockedResult` instead.
"""

from __future__ import annotations

from typing import Any


class GameError(Exception):
    """Base class for all simulation errors.

    Attributes:
        error_code: Stable identifier for the error family.
        message: Human-readable description.
        context: Extra key/value pairs useful when logging the failure.
    """

    error_code: str = "GP_ERR_001"

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.context: dict[str, Any] = context or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Structured form for JSON logging."""
        return {
            "error_code": self.error_code,
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }


class GameIntegrityError(GameError):
    """A cross-referenced entity is missing; the game cannot start."""

    error_code = "GP_ERR_100"


class ContentError(GameError, ValueError):
    """A content file is malformed or has out-of-range values."""

    error_code = "GP_ERR_200"


class NegotiationError(GameError):
    """An illegal player action was attempted on a negotiation."""

    error_code = "GP_ERR_300"
