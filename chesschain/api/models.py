"""Requests and Response models"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from chesschain.core.shared_types import (
    Color,
    DrawAction,
    RecentOutcome,
    ResultTag,
    Status,
    Termination,
    WagerStatus,
)
from chesschain.core.validation import (
    normalize_address,
    normalize_move,
    require_text,
    validate_time_control,
    validate_wager_amount,
)


# --- REQUEST MODELS ---
class RequestModel(BaseModel):
    """Bodies arrive in camelCase (player2Address, wagerAmount, ...); snake_case names are accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterPlayerRequest(RequestModel):
    address: str
    username: Optional[str] = None

    @field_validator("address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class RenamePlayerRequest(RequestModel):
    username: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        return require_text(value, "Username")


class CreateGameRequest(RequestModel):
    player1_address: str
    wager_amount: str
    time_control: str | int
    contract_address: str
    transaction_hash: str
    network: str

    @field_validator("player1_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("wager_amount")
    @classmethod
    def validate_wager_amount(cls, value: str) -> str:
        return validate_wager_amount(value)

    @field_validator("time_control")
    @classmethod
    def validate_time_control(cls, value: str | int) -> str:
        return validate_time_control(value)

    @field_validator(*["contract_address", "transaction_hash", "network"])
    @classmethod
    def validate_metadata(cls, value: str) -> str:
        return require_text(value, "Wager metadata")


class JoinGameRequest(RequestModel):
    player2_address: str

    @field_validator("player2_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return normalize_address(value)


class MoveRequest(RequestModel):
    move: str
    player_address: str

    @field_validator("move")
    @classmethod
    def validate_move(cls, value: str) -> str:
        return normalize_move(value)

    @field_validator("player_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return normalize_address(value)


class ResignRequest(RequestModel):
    player_address: str

    @field_validator("player_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return normalize_address(value)


class DrawRequest(RequestModel):
    player_address: str
    action: DrawAction

    @field_validator("player_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return normalize_address(value)


class WagerStatusRequest(RequestModel):
    wager_status: WagerStatus
    transaction_hash: Optional[str] = None


# --- RESPONSE MODELS ---
class PlayerResponse(BaseModel):
    id: int
    address: str
    username: str
    created_at: Optional[datetime] = None


class WagerResponse(BaseModel):
    amount: str
    time_control: str
    contract_address: str
    transaction_hash: str
    network: str
    status: WagerStatus


class MoveResponse(BaseModel):
    move_number: int
    player_id: int
    move: str
    san: str
    fen: str
    created_at: Optional[datetime] = None


class ResultResponse(BaseModel):
    winner_id: Optional[int]
    result: ResultTag
    termination: Termination
    ended_at: datetime


class GameResponse(BaseModel):
    game_id: int
    player1: PlayerResponse
    player2: Optional[PlayerResponse]
    wager: WagerResponse
    fen: str
    current_turn: Color
    status: Status
    draw_offered: bool
    draw_offered_by: Optional[int]
    created_at: datetime
    last_move_at: datetime
    moves: list[MoveResponse]
    result: Optional[ResultResponse]


class RecentGameResponse(BaseModel):
    """Summary of a finished game from the creator's point of view."""

    id: str
    opponent: str
    result: RecentOutcome
    timestamp: datetime
    amount: str


class LegalMovesResponse(BaseModel):
    game_id: int
    player_address: str
    color: Color
    legal_moves: dict[str, list[str]]
