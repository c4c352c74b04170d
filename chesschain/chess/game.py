"""
The Game class will be the entrypoint into the domain layer for the service layer.
It is responsible for orchestrating the business logic of a player intent (join, move, resign, offer/accept draw) -->
it mutates its own state and hands back the new ledger entry / result, which the service layer then persists.

Chess legality itself is not decided here: every position question is passed on to chesschain/chess/rules.py.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Self

from chesschain.chess import rules
from chesschain.chess.rules import FailureKind
from chesschain.core.exceptions import (
    ConflictError,
    IllegalMoveError,
    InvalidStateError,
    NoOfferError,
    NotParticipantError,
    TurnViolationError,
    ValidationError,
)
from chesschain.core.models import (
    STARTING_FEN,
    GameModel,
    MoveModel,
    PlayerModel,
    ResultModel,
    WagerModel,
    utc_now,
)
from chesschain.core.shared_types import (
    Color,
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

WAGER_STATUS_ORDER = list(WagerStatus)


@dataclass
class Game:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    id: Optional[int]
    player1: PlayerModel
    player2: Optional[PlayerModel]
    wager: WagerModel
    fen: str
    current_turn: Color
    status: Status
    draw_offered: bool
    draw_offered_by: Optional[int]
    created_at: datetime
    last_move_at: datetime
    version: int
    moves: list[MoveModel] = field(default_factory=list)
    result: Optional[ResultModel] = None

    @classmethod
    def from_model(cls, model: GameModel) -> Self:
        """Define how to construct a Game from the information the Service layer actually has"""
        if model.status not in set(Status):
            raise InvalidStateError(
                f"Invalid status code: {model.status!r}. \nPick one from {','.join(Status)}"
            )

        return cls(
            id=model.id,
            player1=model.player1,
            player2=model.player2,
            wager=model.wager,
            fen=model.fen,
            current_turn=Color(model.current_turn),
            status=Status(model.status),
            draw_offered=model.draw_offered,
            draw_offered_by=model.draw_offered_by,
            created_at=model.created_at,
            last_move_at=model.last_move_at,
            version=model.version,
            moves=sorted(model.moves, key=lambda move: move.move_number),
            result=model.result,
        )

    def to_model(self) -> GameModel:
        """Encode back into a format the Service layer uses"""
        return GameModel(
            id=self.id,
            player1=self.player1,
            player2=self.player2,
            wager=self.wager,
            fen=self.fen,
            current_turn=self.current_turn,
            status=self.status,
            draw_offered=self.draw_offered,
            draw_offered_by=self.draw_offered_by,
            created_at=self.created_at,
            last_move_at=self.last_move_at,
            version=self.version,
            moves=list(self.moves),
            result=self.result,
        )

    @classmethod
    def new_game(
        cls,
        creator: PlayerModel,
        wager_amount: str | None,
        time_control: str | int | None,
        contract_address: str | None,
        transaction_hash: str | None,
        network: str | None,
        now: Optional[datetime] = None,
    ) -> Self:
        """Open a game from the standard starting position. The creator plays white."""
        now = now or utc_now()
        wager = WagerModel(
            amount=validate_wager_amount(wager_amount),
            time_control=validate_time_control(time_control),
            contract_address=require_text(contract_address, "Contract address"),
            transaction_hash=require_text(transaction_hash, "Transaction hash"),
            network=require_text(network, "Network"),
        )
        return cls(
            id=None,
            player1=creator,
            player2=None,
            wager=wager,
            fen=STARTING_FEN,
            current_turn=Color.WHITE,
            status=Status.WAITING,
            draw_offered=False,
            draw_offered_by=None,
            created_at=now,
            last_move_at=now,
            version=0,
        )

    @property
    def winner(self) -> Optional[PlayerModel]:
        """None while the game is running, and for a draw."""
        if self.result is None or self.result.winner_id is None:
            return None
        if self.player2 is not None and self.result.winner_id == self.player2.id:
            return self.player2
        return self.player1

    def assert_joinable(self, address: str) -> None:
        if self.status != Status.WAITING:
            raise InvalidStateError(
                f"Cannot join this game. Game is not accepting new players. status: {self.status}"
            )
        if normalize_address(address) == self.player1.address:
            raise ConflictError("You cannot join your own game as the opponent.")

    def join(self, player: PlayerModel, now: Optional[datetime] = None) -> None:
        """Registering the 2nd player to an open game. They get the black pieces."""
        self.assert_joinable(player.address)

        self.player2 = player
        self.status = Status.IN_PROGRESS
        self.last_move_at = now or utc_now()

    def legal_moves(self, address: str) -> dict[str, list[str]]:
        """
        Legal destination squares per source square, for the player who is to move.
        ----
        Only meant to be displayed to the user. make_move() asks the rules engine again.
        """
        self._assert_in_progress()
        self._assert_your_turn(address)
        return {
            source: sorted(destinations)
            for source, destinations in rules.legal_moves(self.fen).items()
        }

    def make_move(
        self, address: str, move: str, now: Optional[datetime] = None
    ) -> MoveModel:
        """
        Attempt to make a move
        -----

        1. game must be in progress and it must be your turn
        2. the rules engine plays the move on the current FEN (nothing changes if it refuses)
        3. update FEN, turn, draw offer, timestamp
        4. append the ledger entry
        5. check if the new position ends the game
        """
        self._assert_in_progress()
        mover = self._assert_your_turn(address)
        move = normalize_move(move)

        outcome = rules.apply_move(self.fen, move)
        if not outcome.ok:
            self._raise_for_failure(move, outcome.failure)
        assert outcome.fen is not None and outcome.san is not None

        now = now or utc_now()
        history = self._fen_history()
        mover_color = self.current_turn

        new_move = MoveModel(
            game_id=self._require_id(),
            move_number=len(self.moves) + 1,
            player_id=mover.id,
            move=move,
            san=outcome.san,
            fen=outcome.fen,
            created_at=now,
        )
        self.fen = outcome.fen
        self.current_turn = rules.turn(outcome.fen)
        self.moves.append(new_move)
        self._clear_draw_offer()
        self.last_move_at = now

        # NOTE the side to move is now the opponent of the mover
        ending = rules.termination(self.fen, history)
        if ending == Termination.CHECKMATE:
            self._complete(mover_color, ending, now)
        elif ending is not None:
            self._complete(None, ending, now)

        return new_move

    def resign(self, address: str, now: Optional[datetime] = None) -> ResultModel:
        """The opponent of the resigning player wins."""
        self._assert_in_progress()
        color = self._participant_color(address)
        return self._complete(color.opponent, Termination.RESIGNATION, now or utc_now())

    def offer_draw(self, address: str, now: Optional[datetime] = None) -> None:
        """Stays pending until the opponent accepts it or the next move gets played."""
        self._assert_in_progress()
        color = self._participant_color(address)
        self.draw_offered = True
        self.draw_offered_by = self._player_of(color).id
        self.last_move_at = now or utc_now()

    def accept_draw(self, address: str, now: Optional[datetime] = None) -> ResultModel:
        self._assert_in_progress()
        color = self._participant_color(address)
        if not self.draw_offered:
            raise NoOfferError("No draw has been offered.")
        if self.draw_offered_by == self._player_of(color).id:
            raise NoOfferError("You cannot accept your own draw offer.")
        return self._complete(None, Termination.AGREEMENT, now or utc_now())

    def update_wager_status(
        self, status: WagerStatus | str, transaction_hash: Optional[str] = None
    ) -> None:
        """
        Report an escrow settlement event.
        ----
        Wager status only moves forward: pending -> funded -> completed. Completing a wager requires a finished game.
        """
        try:
            new_status = WagerStatus(status)
        except ValueError:
            raise ValidationError(
                f"Unknown wager status {status!r}. Pick one from {', '.join(WagerStatus)}"
            )
        current = WagerStatus(self.wager.status)
        if WAGER_STATUS_ORDER.index(new_status) <= WAGER_STATUS_ORDER.index(current):
            raise InvalidStateError(
                f"Cannot move wager status from {current} to {new_status}."
            )
        if new_status == WagerStatus.COMPLETED and self.status != Status.COMPLETED:
            raise InvalidStateError(
                f"Cannot settle the wager of a game that is not completed. status: {self.status}"
            )
        self.wager.status = new_status
        if transaction_hash is not None:
            self.wager.transaction_hash = require_text(transaction_hash, "Transaction hash")

    # -- PRIVATE HELPERS ---
    def _require_id(self) -> int:
        if self.id is None:
            raise InvalidStateError("Game has not been stored yet.")
        return self.id

    def _assert_in_progress(self) -> None:
        if self.status != Status.IN_PROGRESS:
            raise InvalidStateError(f"Game is not in progress. status: {self.status}")

    def _player_of(self, color: Color) -> PlayerModel:
        if color == Color.WHITE:
            return self.player1
        # for the type checker: only called once the game is in progress
        assert self.player2 is not None
        return self.player2

    def _participant_color(self, address: str) -> Color:
        address = normalize_address(address)
        if address == self.player1.address:
            return Color.WHITE
        if self.player2 is not None and address == self.player2.address:
            return Color.BLACK
        raise NotParticipantError(f"Player {address} is not playing in this game.")

    def _assert_your_turn(self, address: str) -> PlayerModel:
        """You must wait for your turn before calculating legal moves / making a move."""
        player_to_move = self._player_of(self.current_turn)
        if normalize_address(address) != player_to_move.address:
            raise TurnViolationError(
                f"It is not your turn. Waiting for player {player_to_move.address} to make a move first."
            )
        return player_to_move

    def _fen_history(self) -> list[str]:
        """Every position reached so far, oldest first. Called before the new move is appended."""
        return [STARTING_FEN] + [move.fen for move in self.moves]

    def _raise_for_failure(self, move: str, failure: Optional[FailureKind]) -> None:
        if failure == FailureKind.MALFORMED:
            raise ValidationError(f"Cannot interpret {move!r} as a move.")
        if failure == FailureKind.PROMOTION_REQUIRED:
            raise IllegalMoveError(f"Move {move!r} needs a promotion piece (q, r, b or n).")
        if failure == FailureKind.INVALID_POSITION:
            raise InvalidStateError(f"Stored position cannot be read: {self.fen!r}")
        raise IllegalMoveError(f"Move not allowed: {move}")

    def _clear_draw_offer(self) -> None:
        self.draw_offered = False
        self.draw_offered_by = None

    def _complete(
        self, winner_color: Optional[Color], termination: Termination, now: datetime
    ) -> ResultModel:
        """Single place where the game transitions into COMPLETED."""
        if winner_color is None:
            tag, winner_id = ResultTag.DRAW, None
        else:
            tag = ResultTag.WHITE_WINS if winner_color == Color.WHITE else ResultTag.BLACK_WINS
            winner_id = self._player_of(winner_color).id

        self.result = ResultModel(
            game_id=self._require_id(),
            winner_id=winner_id,
            result=tag,
            termination=termination,
            ended_at=now,
        )
        self.status = Status.COMPLETED
        self._clear_draw_offer()
        self.last_move_at = now
        return self.result
