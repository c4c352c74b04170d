"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class ResultTag(StrEnum):
    WHITE_WINS = "white_wins"
    BLACK_WINS = "black_wins"
    DRAW = "draw"


class Termination(StrEnum):
    """Why a game ended. Recorded next to the result."""

    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    THREEFOLD_REPETITION = "threefold_repetition"
    FIFTY_MOVES = "fifty_moves"
    RESIGNATION = "resignation"
    AGREEMENT = "agreement"


class WagerStatus(StrEnum):
    # NOTE declaration order is the only allowed direction of travel
    PENDING = "pending"
    FUNDED = "funded"
    COMPLETED = "completed"


class DrawAction(StrEnum):
    OFFER = "offer"
    ACCEPT = "accept"


class RecentOutcome(StrEnum):
    """Outcome of a finished game, seen from the creator's (player1) side."""

    VICTORY = "victory"
    DEFEAT = "defeat"
    DRAW = "draw"
