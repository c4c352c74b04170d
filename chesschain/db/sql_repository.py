"""Implementation of (Game)Repository using SQLAlchemy"""

from dataclasses import replace

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chesschain.core.exceptions import ConflictError
from chesschain.core.models import (
    GameModel,
    MoveModel,
    PlayerModel,
    ResultModel,
    WagerModel,
    utc_now,
)
from chesschain.core.shared_types import Color, Status, WagerStatus
from chesschain.db.schema import DBGame, DBMove, DBPlayer, DBResult


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # -- players --
    def get_player_by_address(self, address: str) -> PlayerModel | None:
        player_db = self.db.scalar(select(DBPlayer).where(DBPlayer.address == address))
        if player_db:
            return self._player_to_model(player_db)
        return None

    def create_player(self, address: str, username: str) -> PlayerModel:
        player_db = DBPlayer(address=address, username=username)
        self.db.add(player_db)
        self._flush(f"Player with {address=} already exists.")
        return self._player_to_model(player_db)

    def update_player_username(self, address: str, username: str) -> PlayerModel | None:
        player_db = self.db.scalar(select(DBPlayer).where(DBPlayer.address == address))
        if not player_db:
            return None
        player_db.username = username
        player_db.updated_at = utc_now()
        self._flush(f"Could not rename player {address}.")
        return self._player_to_model(player_db)

    # -- games --
    def create_game(self, game: GameModel) -> GameModel:
        game_db = DBGame(
            player1_id=game.player1.id,
            player2_id=game.player2.id if game.player2 else None,
            wager_amount=game.wager.amount,
            time_control=game.wager.time_control,
            status=game.status,
            fen=game.fen,
            current_turn=game.current_turn,
            draw_offered=game.draw_offered,
            draw_offered_by=game.draw_offered_by,
            contract_address=game.wager.contract_address,
            transaction_hash=game.wager.transaction_hash,
            network=game.wager.network,
            wager_status=game.wager.status,
            version=0,
            created_at=game.created_at,
            last_move_at=game.last_move_at,
        )
        self.db.add(game_db)
        self._flush("Could not store new game.")
        return replace(game, id=game_db.id, version=0, moves=[], result=None)

    def load_game(self, game_id: int) -> GameModel | None:
        game_db = self.db.get(DBGame, game_id, populate_existing=True)
        if not game_db:
            return None
        return self._game_to_model(game_db)

    def update_game(self, game: GameModel) -> GameModel:
        stmt = (
            update(DBGame)
            .where(DBGame.id == game.id, DBGame.version == game.version)
            .values(
                player2_id=game.player2.id if game.player2 else None,
                status=game.status,
                fen=game.fen,
                current_turn=game.current_turn,
                draw_offered=game.draw_offered,
                draw_offered_by=game.draw_offered_by,
                wager_status=game.wager.status,
                transaction_hash=game.wager.transaction_hash,
                last_move_at=game.last_move_at,
                version=DBGame.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:  # type: ignore[attr-defined]
            raise ConflictError(
                f"Game {game.id} was changed by another request (expected version {game.version}). Reload and retry."
            )
        return replace(game, version=game.version + 1)

    def append_move(self, move: MoveModel) -> MoveModel:
        move_db = DBMove(
            game_id=move.game_id,
            player_id=move.player_id,
            move=move.move,
            san=move.san,
            fen=move.fen,
            move_number=move.move_number,
            created_at=move.created_at or utc_now(),
        )
        self.db.add(move_db)
        self._flush(f"Move number {move.move_number} already recorded for game {move.game_id}.")
        return self._move_to_model(move_db)

    def get_result(self, game_id: int) -> ResultModel | None:
        result_db = self.db.scalar(select(DBResult).where(DBResult.game_id == game_id))
        if result_db:
            return self._result_to_model(result_db)
        return None

    def write_result(self, result: ResultModel) -> ResultModel:
        result_db = DBResult(
            game_id=result.game_id,
            winner_id=result.winner_id,
            result=result.result,
            termination=result.termination,
            ended_at=result.ended_at,
        )
        self.db.add(result_db)
        self._flush(f"Game {result.game_id} already has a result.")
        return self._result_to_model(result_db)

    def list_active_games(self) -> list[GameModel]:
        query = (
            select(DBGame)
            .where(DBGame.status == Status.WAITING)
            .order_by(DBGame.created_at.desc(), DBGame.id.desc())
            .execution_options(populate_existing=True)
        )
        return [self._game_to_model(game_db) for game_db in self.db.scalars(query)]

    def list_recent_games(self, limit: int) -> list[GameModel]:
        query = (
            select(DBGame)
            .where(DBGame.status == Status.COMPLETED)
            .order_by(DBGame.last_move_at.desc(), DBGame.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [self._game_to_model(game_db) for game_db in self.db.scalars(query)]

    # -- unit of work --
    def commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as error:
            self.db.rollback()
            raise ConflictError(f"Could not commit changes: {error.orig}")

    def rollback(self) -> None:
        self.db.rollback()

    # -- Internal helpers --
    def _flush(self, conflict_message: str) -> None:
        """Push staged rows to the database (inside the open transaction) so constraint violations surface here."""
        try:
            self.db.flush()
        except IntegrityError:
            raise ConflictError(conflict_message)

    def _game_to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy rows (game + players + ledger + result) to data transfer model."""
        player1 = self.db.get(DBPlayer, game_db.player1_id)
        # for the type checker: foreign key guarantees the creator exists
        assert player1 is not None
        player2 = self.db.get(DBPlayer, game_db.player2_id) if game_db.player2_id else None
        moves = self.db.scalars(
            select(DBMove).where(DBMove.game_id == game_db.id).order_by(DBMove.move_number)
        )
        result_db = self.db.scalar(select(DBResult).where(DBResult.game_id == game_db.id))

        return GameModel(
            id=game_db.id,
            player1=self._player_to_model(player1),
            player2=self._player_to_model(player2) if player2 else None,
            wager=WagerModel(
                amount=game_db.wager_amount,
                time_control=game_db.time_control,
                contract_address=game_db.contract_address,
                transaction_hash=game_db.transaction_hash,
                network=game_db.network,
                status=WagerStatus(game_db.wager_status),
            ),
            fen=game_db.fen,
            current_turn=Color(game_db.current_turn),
            status=Status(game_db.status),
            draw_offered=game_db.draw_offered,
            draw_offered_by=game_db.draw_offered_by,
            created_at=game_db.created_at,
            last_move_at=game_db.last_move_at,
            version=game_db.version,
            moves=[self._move_to_model(move_db) for move_db in moves],
            result=self._result_to_model(result_db) if result_db else None,
        )

    def _player_to_model(self, player_db: DBPlayer) -> PlayerModel:
        return PlayerModel(
            id=player_db.id,
            address=player_db.address,
            username=player_db.username,
            created_at=player_db.created_at,
            updated_at=player_db.updated_at,
        )

    def _move_to_model(self, move_db: DBMove) -> MoveModel:
        return MoveModel(
            game_id=move_db.game_id,
            move_number=move_db.move_number,
            player_id=move_db.player_id,
            move=move_db.move,
            san=move_db.san,
            fen=move_db.fen,
            created_at=move_db.created_at,
        )

    def _result_to_model(self, result_db: DBResult) -> ResultModel:
        return ResultModel(
            game_id=result_db.game_id,
            winner_id=result_db.winner_id,
            result=result_db.result,
            termination=result_db.termination,
            ended_at=result_db.ended_at,
            created_at=result_db.created_at,
        )
