"""
Rules engine adapter.
----

All chess legality is delegated to python-chess. This module only translates between FEN strings / coordinate
moves (what the Game stores) and python-chess boards, and reports failures as values instead of exceptions
so the Game can branch on the kind of failure.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable, Optional, Sequence

import chess

from chesschain.core.exceptions import IllegalMoveError
from chesschain.core.models import STARTING_FEN
from chesschain.core.shared_types import Color, Termination
from chesschain.core.validation import MOVE_PATTERN

# board, side to move, castling rights, en passant square
_POSITION_FIELDS = 4


class FailureKind(StrEnum):
    MALFORMED = "malformed"
    ILLEGAL = "illegal"
    PROMOTION_REQUIRED = "promotion_required"
    INVALID_POSITION = "invalid_position"


@dataclass(frozen=True)
class MoveOutcome:
    """Either the position after the move (+ SAN of the move), or the reason it could not be played."""

    fen: Optional[str] = None
    san: Optional[str] = None
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def _board(fen: str) -> chess.Board:
    return chess.Board(fen)


def _position_key(fen: str) -> str:
    return " ".join(fen.split(" ")[:_POSITION_FIELDS])


def turn(fen: str) -> Color:
    return Color.WHITE if _board(fen).turn == chess.WHITE else Color.BLACK


def legal_moves(fen: str) -> dict[str, set[str]]:
    """Destination squares per source square for the side to move."""
    moves: dict[str, set[str]] = defaultdict(set)
    for move in _board(fen).legal_moves:
        moves[chess.square_name(move.from_square)].add(chess.square_name(move.to_square))
    return dict(moves)


def apply_move(fen: str, move: str) -> MoveOutcome:
    """
    Play `move` (coordinate notation) on the position described by `fen`.
    ----

    A pawn push onto the last rank without a promotion letter is reported as PROMOTION_REQUIRED:
    the engine never picks a piece on the caller's behalf.
    """
    if not MOVE_PATTERN.match(move):
        return MoveOutcome(failure=FailureKind.MALFORMED)
    try:
        board = _board(fen)
    except ValueError:
        return MoveOutcome(failure=FailureKind.INVALID_POSITION)

    try:
        candidate = chess.Move.from_uci(move)
    except ValueError:
        # e.g. from and to square are the same
        return MoveOutcome(failure=FailureKind.ILLEGAL)
    if not board.is_legal(candidate):
        if candidate.promotion is None:
            as_queen = chess.Move(candidate.from_square, candidate.to_square, promotion=chess.QUEEN)
            if board.is_legal(as_queen):
                return MoveOutcome(failure=FailureKind.PROMOTION_REQUIRED)
        return MoveOutcome(failure=FailureKind.ILLEGAL)
    if board.uci(candidate) != move:
        # king takes own rook: python-chess reads it as castling, the ledger only knows e1g1 / e1c1
        return MoveOutcome(failure=FailureKind.ILLEGAL)

    san = board.san(candidate)
    board.push(candidate)
    return MoveOutcome(fen=board.fen(), san=san)


def is_check(fen: str) -> bool:
    return _board(fen).is_check()


def is_checkmate(fen: str) -> bool:
    return _board(fen).is_checkmate()


def is_stalemate(fen: str) -> bool:
    return _board(fen).is_stalemate()


def is_repetition(fen: str, history: Iterable[str], count: int = 3) -> bool:
    """Same placement, side to move, castling rights and en passant square seen `count` times (current one included)."""
    key = _position_key(fen)
    seen = 1 + sum(1 for previous in history if _position_key(previous) == key)
    return seen >= count


def termination(fen: str, history: Sequence[str] = ()) -> Optional[Termination]:
    """
    Reason the game is over in this position, if it is.
    ----

    `history` holds the FENs of the positions before this one; it is only needed for the repetition rule.
    Checkmate takes precedence over every draw rule.
    """
    board = _board(fen)
    if board.is_checkmate():
        return Termination.CHECKMATE
    if board.is_stalemate():
        return Termination.STALEMATE
    if board.is_insufficient_material():
        return Termination.INSUFFICIENT_MATERIAL
    if is_repetition(fen, history):
        return Termination.THREEFOLD_REPETITION
    if board.halfmove_clock >= 100:
        return Termination.FIFTY_MOVES
    return None


def is_draw(fen: str, history: Sequence[str] = ()) -> bool:
    result = termination(fen, history)
    return result is not None and result != Termination.CHECKMATE


def replay(moves: Iterable[str], start_fen: str = STARTING_FEN) -> str:
    """Re-apply a sequence of recorded moves and return the resulting FEN. Used to audit a move ledger."""
    fen = start_fen
    for number, move in enumerate(moves, start=1):
        outcome = apply_move(fen, move)
        if not outcome.ok:
            raise IllegalMoveError(f"Recorded move #{number} {move!r} cannot be replayed: {outcome.failure}")
        assert outcome.fen is not None
        fen = outcome.fen
    return fen
