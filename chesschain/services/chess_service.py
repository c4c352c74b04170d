"""Orchestration of communication from API router to business logic and persistence layers (and the reverse direction)."""

from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from chesschain.api.models import (
    CreateGameRequest,
    DrawRequest,
    GameResponse,
    JoinGameRequest,
    LegalMovesResponse,
    MoveRequest,
    MoveResponse,
    PlayerResponse,
    RecentGameResponse,
    RegisterPlayerRequest,
    RenamePlayerRequest,
    ResignRequest,
    ResultResponse,
    WagerResponse,
    WagerStatusRequest,
)
from chesschain.chess.game import Game
from chesschain.core.exceptions import GameError, NotFoundError
from chesschain.core.models import GameModel, PlayerModel
from chesschain.core.shared_types import Color, DrawAction, RecentOutcome
from chesschain.core.validation import normalize_address, username_from_address
from chesschain.db.repository import GameRepository
from chesschain.services.result_recorder import ResultRecorder

logger = structlog.get_logger()

DEFAULT_RECENT_GAMES_LIMIT = 5


class ChessService:
    """Orchestration of layers for chess game."""

    def __init__(
        self,
        repository: GameRepository,
        recent_games_limit: int = DEFAULT_RECENT_GAMES_LIMIT,
    ) -> None:
        self.repo = repository
        self.results = ResultRecorder(repository)
        self.recent_games_limit = recent_games_limit

    # -- API routes logic ---
    def register_player(self, request: RegisterPlayerRequest) -> tuple[PlayerResponse, bool]:
        """Return the player for this address, creating it on first contact. Second value: was it created now?"""
        with self._unit_of_work("register_player", address=request.address):
            existing = self.repo.get_player_by_address(request.address)
            if existing:
                return self._player_response(existing), False
            player = self.repo.create_player(
                request.address, request.username or username_from_address(request.address)
            )
        logger.info("player registered", player_id=player.id, address=player.address)
        return self._player_response(player), True

    def rename_player(self, address: str, request: RenamePlayerRequest) -> PlayerResponse:
        """The username is the only thing about a player that may change."""
        address = normalize_address(address)
        with self._unit_of_work("rename_player", address=address):
            player = self.repo.update_player_username(address, request.username)
            if player is None:
                raise NotFoundError(f"Player with {address=} not found.")
        return self._player_response(player)

    def create_new_game(self, request: CreateGameRequest) -> GameResponse:
        """First player requested to create a new game."""
        with self._unit_of_work("create_game", address=request.player1_address):
            creator = self._resolve_player(request.player1_address)

            # Use info in CreateGameRequest to create a new Game, and convert into GameModel
            new_game = Game.new_game(
                creator=creator,
                wager_amount=request.wager_amount,
                time_control=request.time_control,
                contract_address=request.contract_address,
                transaction_hash=request.transaction_hash,
                network=request.network,
            )
            stored = self.repo.create_game(new_game.to_model())

        logger.info("game created", game_id=stored.id, player1=creator.address, wager=stored.wager.amount)
        return self._create_game_response(stored)

    def list_active_games(self) -> list[GameResponse]:
        """Open games, waiting for an opponent."""
        return [self._create_game_response(game) for game in self.repo.list_active_games()]

    def list_recent_games(self, limit: Optional[int] = None) -> list[RecentGameResponse]:
        """Most recently finished games, summarised from the creator's side."""
        games = self.repo.list_recent_games(limit or self.recent_games_limit)
        return [self._recent_game_response(game) for game in games]

    def get_game_state(self, game_id: int) -> GameResponse:
        """
        Retrieve current game state.
        ----
        Used in "polling" loop by frontend to check when it is the player's turn for instance.
        """
        return self._create_game_response(self._fetch_game(game_id))

    def join_game(self, game_id: int, request: JoinGameRequest) -> GameResponse:
        """Second player requested to join a game."""
        with self._unit_of_work("join_game", game_id=game_id, address=request.player2_address):
            game = Game.from_model(self._fetch_game(game_id))
            # NOTE: check before creating a player record for the joiner
            game.assert_joinable(request.player2_address)
            joiner = self._resolve_player(request.player2_address)
            game.join(joiner)
            self.repo.update_game(game.to_model())

        logger.info("player joined", game_id=game_id, player2=joiner.address)
        return self.get_game_state(game_id)

    def legal_moves(self, game_id: int, player_address: str) -> LegalMovesResponse:
        """retrieve legal moves (per source square) for the player to move."""
        player_address = normalize_address(player_address)
        game = Game.from_model(self._fetch_game(game_id))
        legal_moves = game.legal_moves(player_address)
        return LegalMovesResponse(
            game_id=game_id,
            player_address=player_address,
            color=game.current_turn,
            legal_moves=legal_moves,
        )

    def make_move(self, game_id: int, request: MoveRequest) -> GameResponse:
        """Make a move attempt."""
        with self._unit_of_work("make_move", game_id=game_id, address=request.player_address, move=request.move):
            game = Game.from_model(self._fetch_game(game_id))

            # Attempt the move (raises before anything gets written)
            new_move = game.make_move(request.player_address, request.move)

            # game row first: the version check is what serialises concurrent requests
            self.repo.update_game(game.to_model())
            self.repo.append_move(new_move)
            if game.result is not None:
                self.results.record(game.result)

        logger.info(
            "move applied",
            game_id=game_id,
            move_number=new_move.move_number,
            move=new_move.move,
            san=new_move.san,
            status=game.status,
        )
        return self.get_game_state(game_id)

    def resign(self, game_id: int, request: ResignRequest) -> GameResponse:
        with self._unit_of_work("resign", game_id=game_id, address=request.player_address):
            game = Game.from_model(self._fetch_game(game_id))
            result = game.resign(request.player_address)
            self.repo.update_game(game.to_model())
            self.results.record(result)

        logger.info("player resigned", game_id=game_id, address=request.player_address)
        return self.get_game_state(game_id)

    def handle_draw(self, game_id: int, request: DrawRequest) -> GameResponse:
        """Offer a draw, or accept the pending offer of the opponent."""
        with self._unit_of_work(
            "draw", game_id=game_id, address=request.player_address, action=request.action
        ):
            game = Game.from_model(self._fetch_game(game_id))
            if request.action == DrawAction.OFFER:
                game.offer_draw(request.player_address)
                self.repo.update_game(game.to_model())
            else:
                result = game.accept_draw(request.player_address)
                self.repo.update_game(game.to_model())
                self.results.record(result)

        logger.info("draw handled", game_id=game_id, action=request.action, status=game.status)
        return self.get_game_state(game_id)

    def update_wager_status(self, game_id: int, request: WagerStatusRequest) -> GameResponse:
        """Hook for the (external) escrow settlement to report funding / payout."""
        with self._unit_of_work("update_wager", game_id=game_id, wager_status=request.wager_status):
            game = Game.from_model(self._fetch_game(game_id))
            game.update_wager_status(request.wager_status, request.transaction_hash)
            self.repo.update_game(game.to_model())

        logger.info("wager status updated", game_id=game_id, wager_status=request.wager_status)
        return self.get_game_state(game_id)

    # -- Internal helpers --
    @contextmanager
    def _unit_of_work(self, operation: str, **context: object) -> Iterator[None]:
        """All writes inside the block are committed together, or rolled back together when anything raises."""
        try:
            yield
        except GameError as error:
            self.repo.rollback()
            logger.info("operation rejected", operation=operation, error=error.category, reason=str(error), **context)
            raise
        except Exception:
            self.repo.rollback()
            logger.exception("operation failed", operation=operation, **context)
            raise
        self.repo.commit()

    def _resolve_player(self, address: str) -> PlayerModel:
        """Players are created on first contact (game creation / joining)."""
        player = self.repo.get_player_by_address(address)
        if player is None:
            player = self.repo.create_player(address, username_from_address(address))
            logger.info("player registered", player_id=player.id, address=address)
        return player

    def _fetch_game(self, game_id: int) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.load_game(game_id)
        if game_model is None:
            raise NotFoundError(f"Game with {game_id=} not found.")
        return game_model

    def _player_response(self, player: PlayerModel) -> PlayerResponse:
        return PlayerResponse(
            id=player.id,
            address=player.address,
            username=player.username,
            created_at=player.created_at,
        )

    def _create_game_response(self, model: GameModel) -> GameResponse:
        """Convert info in GameModel to a GameResponse."""
        # for the type checker: only stored games are turned into responses
        assert model.id is not None
        return GameResponse(
            game_id=model.id,
            player1=self._player_response(model.player1),
            player2=self._player_response(model.player2) if model.player2 else None,
            wager=WagerResponse(
                amount=model.wager.amount,
                time_control=model.wager.time_control,
                contract_address=model.wager.contract_address,
                transaction_hash=model.wager.transaction_hash,
                network=model.wager.network,
                status=model.wager.status,
            ),
            fen=model.fen,
            current_turn=Color(model.current_turn),
            status=model.status,
            draw_offered=model.draw_offered,
            draw_offered_by=model.draw_offered_by,
            created_at=model.created_at,
            last_move_at=model.last_move_at,
            moves=[
                MoveResponse(
                    move_number=move.move_number,
                    player_id=move.player_id,
                    move=move.move,
                    san=move.san,
                    fen=move.fen,
                    created_at=move.created_at,
                )
                for move in model.moves
            ],
            result=(
                ResultResponse(
                    winner_id=model.result.winner_id,
                    result=model.result.result,
                    termination=model.result.termination,
                    ended_at=model.result.ended_at,
                )
                if model.result
                else None
            ),
        )

    def _recent_game_response(self, model: GameModel) -> RecentGameResponse:
        if model.result is None or model.result.winner_id is None:
            outcome = RecentOutcome.DRAW
        elif model.result.winner_id == model.player1.id:
            outcome = RecentOutcome.VICTORY
        else:
            outcome = RecentOutcome.DEFEAT
        return RecentGameResponse(
            id=str(model.id),
            opponent=model.player2.address if model.player2 else "Unknown",
            result=outcome,
            timestamp=model.last_move_at,
            amount=model.wager.amount,
        )
