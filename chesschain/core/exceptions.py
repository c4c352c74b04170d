"""
Custom exceptions shared by all layers.

Every error carries a `category` so the API layer can map it to a status code without inspecting messages.
"""


class GameError(Exception):
    """Top-level exception for anything that goes wrong while handling a game request."""

    category: str = "game_error"


class ValidationError(GameError):
    """Malformed or missing input. Nothing was written."""

    category = "validation_error"


class NotFoundError(GameError):
    """Unknown game ID or player address."""

    category = "not_found"


class InvalidStateError(GameError):
    """Operation is not allowed in the game's current status."""

    category = "invalid_state"


class TurnViolationError(GameError):
    """The caller is not the player who is allowed to act."""

    category = "turn_violation"


class NotParticipantError(TurnViolationError):
    """The caller is not one of the two players of this game."""

    category = "not_participant"


class IllegalMoveError(GameError):
    """Move is not legal in the current position."""

    category = "illegal_move"


class NoOfferError(GameError):
    """Attempt to accept a draw that was never offered (by the opponent)."""

    category = "no_offer"


class ConflictError(GameError):
    """
    Concurrent write or duplicate record.
    ----
    Retryable: reload the game and try again.
    """

    category = "conflict"
