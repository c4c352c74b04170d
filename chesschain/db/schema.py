"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, TypeDecorator, UniqueConstraint
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from chesschain.core.models import STARTING_FEN, utc_now
from chesschain.core.shared_types import Color, Status, WagerStatus


class UTCDateTime(TypeDecorator[datetime]):
    """
    Timestamps are stored and returned in UTC.
    ----
    SQLite drops the offset, so values read back are naive: mark them as UTC again.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    type_annotation_map = {datetime: UTCDateTime()}


class DBPlayer(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str]
    address: Mapped[str] = mapped_column(unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBGame(Base):
    __tablename__ = "games"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player1_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    player2_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    wager_amount: Mapped[str]
    time_control: Mapped[str]
    status: Mapped[str] = mapped_column(default=Status.WAITING, index=True)
    fen: Mapped[str] = mapped_column(default=STARTING_FEN)
    current_turn: Mapped[str] = mapped_column(default=Color.WHITE)
    draw_offered: Mapped[bool] = mapped_column(default=False)
    draw_offered_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    contract_address: Mapped[str]
    transaction_hash: Mapped[str]
    network: Mapped[str]
    wager_status: Mapped[str] = mapped_column(default=WagerStatus.PENDING)
    version: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    last_move_at: Mapped[datetime] = mapped_column(default=utc_now)


class DBMove(Base):
    __tablename__ = "game_history"
    __table_args__ = (UniqueConstraint("game_id", "move_number"),)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    move: Mapped[str]
    san: Mapped[str]
    fen: Mapped[str]
    move_number: Mapped[int]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)


class DBResult(Base):
    __tablename__ = "game_results"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), unique=True)
    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    result: Mapped[str]
    termination: Mapped[str]
    ended_at: Mapped[datetime]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
