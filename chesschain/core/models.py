"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Hence, both the API layer (higher) and domain/db layers (lower) will use model(s) defined here to send to/receive from the Service
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from chesschain.core.shared_types import Color, Status, WagerStatus

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PlayerModel:
    """A wallet address and its display name."""

    id: int
    address: str
    username: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class WagerModel:
    """Opaque escrow metadata. Only checked for presence / basic format."""

    amount: str
    time_control: str
    contract_address: str
    transaction_hash: str
    network: str
    status: WagerStatus = WagerStatus.PENDING


@dataclass
class MoveModel:
    """One ledger entry. Never updated once stored."""

    game_id: int
    move_number: int
    player_id: int
    move: str
    san: str
    fen: str
    created_at: Optional[datetime] = None


@dataclass
class ResultModel:
    """Final outcome of a game. winner_id is None for a draw."""

    game_id: int
    winner_id: Optional[int]
    result: str
    termination: str
    ended_at: datetime
    created_at: Optional[datetime] = None


@dataclass
class GameModel:
    """Transport-safe representation of a chess game used between API, Service, DB, and Game layers."""

    id: Optional[int]
    player1: PlayerModel
    player2: Optional[PlayerModel]
    wager: WagerModel
    fen: str = STARTING_FEN
    current_turn: Color = Color.WHITE
    status: Status = Status.WAITING
    draw_offered: bool = False
    draw_offered_by: Optional[int] = None
    created_at: datetime = field(default_factory=utc_now)
    last_move_at: datetime = field(default_factory=utc_now)
    version: int = 0
    moves: list[MoveModel] = field(default_factory=list)
    result: Optional[ResultModel] = None
