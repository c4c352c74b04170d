"""Unit tests for chesschain/services/chess_service.py"""

from copy import deepcopy
from dataclasses import dataclass, field, replace
from itertools import count
from typing import Generator

import pytest

from chesschain.api.models import (
    CreateGameRequest,
    DrawRequest,
    GameResponse,
    JoinGameRequest,
    LegalMovesResponse,
    MoveRequest,
    RegisterPlayerRequest,
    RenamePlayerRequest,
    ResignRequest,
    WagerStatusRequest,
)
from chesschain.chess import rules
from chesschain.core.exceptions import (
    ConflictError,
    GameError,
    IllegalMoveError,
    InvalidStateError,
    NoOfferError,
    NotFoundError,
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
    utc_now,
)
from chesschain.core.shared_types import (
    Color,
    DrawAction,
    RecentOutcome,
    ResultTag,
    Status,
    Termination,
    WagerStatus,
)
from chesschain.services.chess_service import ChessService

WHITE_ADDRESS = "0xAbC0000000000000000000000000000000a11ce"
BLACK_ADDRESS = "0xdef0000000000000000000000000000000000b0b"
OUTSIDER_ADDRESS = "0x9990000000000000000000000000000000000eve"
FOOLS_MATE = ["f2f3", "e7e5", "g2g4", "d8h4"]


# --- MOCK DEPENDENCIES ----
@dataclass
class _Tables:
    players: dict[str, PlayerModel] = field(default_factory=dict)
    games: dict[int, GameModel] = field(default_factory=dict)
    moves: dict[int, list[MoveModel]] = field(default_factory=dict)
    results: dict[int, ResultModel] = field(default_factory=dict)


class MockRepository:
    """
    Mock the GameRepository using dictionaries.
    Writes go to a working copy; commit() publishes it, rollback() throws it away.
    """

    def __init__(self) -> None:
        self._committed = _Tables()
        self._working = _Tables()
        self._ids = count(1)
        self.commits = 0
        self.rollbacks = 0

    def get_player_by_address(self, address: str) -> PlayerModel | None:
        return deepcopy(self._working.players.get(address))

    def create_player(self, address: str, username: str) -> PlayerModel:
        if address in self._working.players:
            raise ConflictError(f"Player with {address=} already exists.")
        player = PlayerModel(id=next(self._ids), address=address, username=username, created_at=utc_now())
        self._working.players[address] = player
        return deepcopy(player)

    def update_player_username(self, address: str, username: str) -> PlayerModel | None:
        player = self._working.players.get(address)
        if player is None:
            return None
        player.username = username
        return deepcopy(player)

    def create_game(self, game: GameModel) -> GameModel:
        stored = replace(deepcopy(game), id=next(self._ids), version=0)
        self._working.games[stored.id] = stored  # type: ignore[index]
        self._working.moves[stored.id] = []  # type: ignore[index]
        return deepcopy(stored)

    def load_game(self, game_id: int) -> GameModel | None:
        game = self._working.games.get(game_id)
        if game is None:
            return None
        return replace(
            deepcopy(game),
            moves=deepcopy(self._working.moves[game_id]),
            result=deepcopy(self._working.results.get(game_id)),
        )

    def update_game(self, game: GameModel) -> GameModel:
        stored = self._working.games.get(game.id)  # type: ignore[arg-type]
        if stored is None or stored.version != game.version:
            raise ConflictError(f"Game {game.id} was changed by another request.")
        updated = replace(deepcopy(game), version=game.version + 1, moves=[], result=None)
        self._working.games[game.id] = updated  # type: ignore[index]
        return deepcopy(updated)

    def append_move(self, move: MoveModel) -> MoveModel:
        ledger = self._working.moves[move.game_id]
        if any(entry.move_number == move.move_number for entry in ledger):
            raise ConflictError("Move number taken.")
        ledger.append(deepcopy(move))
        return move

    def get_result(self, game_id: int) -> ResultModel | None:
        return deepcopy(self._working.results.get(game_id))

    def write_result(self, result: ResultModel) -> ResultModel:
        if result.game_id in self._working.results:
            raise ConflictError("Result exists.")
        self._working.results[result.game_id] = deepcopy(result)
        return result

    def list_active_games(self) -> list[GameModel]:
        waiting = [game_id for game_id, game in self._working.games.items() if game.status == Status.WAITING]
        return [self.load_game(game_id) for game_id in reversed(waiting)]  # type: ignore[misc]

    def list_recent_games(self, limit: int) -> list[GameModel]:
        done = [game for game in self._working.games.values() if game.status == Status.COMPLETED]
        done.sort(key=lambda game: game.last_move_at, reverse=True)
        return [self.load_game(game.id) for game in done[:limit]]  # type: ignore[misc,arg-type]

    def commit(self) -> None:
        self._committed = deepcopy(self._working)
        self.commits += 1

    def rollback(self) -> None:
        self._working = deepcopy(self._committed)
        self.rollbacks += 1


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    repo = MockRepository()
    yield repo


@pytest.fixture
def service(mock_repository: MockRepository) -> ChessService:
    return ChessService(mock_repository)


def _create_request(**overrides: object) -> CreateGameRequest:
    data: dict[str, object] = {
        "player1_address": WHITE_ADDRESS,
        "wager_amount": "0.01",
        "time_control": 600,
        "contract_address": "0xcontract",
        "transaction_hash": "0xtx",
        "network": "sepolia",
    }
    data.update(overrides)
    return CreateGameRequest(**data)  # type: ignore[arg-type]


def _started_game(service: ChessService) -> int:
    created = service.create_new_game(_create_request())
    service.join_game(created.game_id, JoinGameRequest(player2_address=BLACK_ADDRESS))
    return created.game_id


def _play(service: ChessService, game_id: int, moves: list[str]) -> GameResponse:
    response = service.get_game_state(game_id)
    for move in moves:
        mover = WHITE_ADDRESS if response.current_turn == Color.WHITE else BLACK_ADDRESS
        response = service.make_move(game_id, MoveRequest(move=move, player_address=mover))
    return response


# --- SERVICE - PLAYERS ----
def test_register_new_player(service: ChessService) -> None:
    player, created = service.register_player(RegisterPlayerRequest(address=WHITE_ADDRESS))
    assert created is True
    assert player.address == WHITE_ADDRESS.lower()
    assert player.username == "Player_0a11ce"


def test_register_existing_player(service: ChessService) -> None:
    first, _ = service.register_player(RegisterPlayerRequest(address=WHITE_ADDRESS, username="alice"))
    again, created = service.register_player(RegisterPlayerRequest(address=WHITE_ADDRESS.upper()))
    assert created is False
    assert again.id == first.id
    assert again.username == "alice"


def test_rename_player(service: ChessService) -> None:
    service.register_player(RegisterPlayerRequest(address=WHITE_ADDRESS))
    renamed = service.rename_player(WHITE_ADDRESS, RenamePlayerRequest(username="alice"))
    assert renamed.username == "alice"

    with pytest.raises(NotFoundError):
        service.rename_player(OUTSIDER_ADDRESS, RenamePlayerRequest(username="eve"))


# --- SERVICE - CREATE NEW GAME ----
def test_create_a_new_game(service: ChessService, mock_repository: MockRepository) -> None:
    """Check that new game is created, persisted in repo, and return has the appropriate information."""
    response = service.create_new_game(_create_request())

    # Check response structure
    assert isinstance(response, GameResponse)
    assert isinstance(response.game_id, int)

    # Check response data
    assert response.fen == STARTING_FEN
    assert response.current_turn == Color.WHITE
    assert response.status == Status.WAITING
    assert response.player1.address == WHITE_ADDRESS.lower()
    assert response.player2 is None
    assert response.moves == []
    assert response.result is None
    assert response.wager.amount == "0.01"
    assert response.wager.time_control == "600"
    assert response.wager.status == WagerStatus.PENDING

    # Check persisted data (creator got registered on the fly)
    assert mock_repository.get_player_by_address(WHITE_ADDRESS.lower()) is not None
    stored_game = mock_repository.load_game(response.game_id)
    assert stored_game is not None
    assert stored_game.status == Status.WAITING


def test_create_with_invalid_wager_writes_nothing(service: ChessService, mock_repository: MockRepository) -> None:
    """Domain validation fails after the creator was staged: the whole operation is rolled back."""
    request = _create_request()
    # assignment is not validated: mock a request that slipped past the API layer
    request.wager_amount = "lots"

    with pytest.raises(ValidationError):
        service.create_new_game(request)

    assert mock_repository.rollbacks == 1
    assert mock_repository.get_player_by_address(WHITE_ADDRESS.lower()) is None
    assert service.list_active_games() == []


# --- SERVICE - JOIN GAME ----
def test_second_player_joins_game(service: ChessService) -> None:
    created = service.create_new_game(_create_request())
    response = service.join_game(created.game_id, JoinGameRequest(player2_address=BLACK_ADDRESS))

    assert response.game_id == created.game_id
    assert response.status == Status.IN_PROGRESS
    assert response.player2 is not None
    assert response.player2.address == BLACK_ADDRESS
    assert response.last_move_at >= created.last_move_at


def test_cannot_join_unknown_game(service: ChessService) -> None:
    with pytest.raises(NotFoundError):
        service.join_game(999, JoinGameRequest(player2_address=BLACK_ADDRESS))


def test_cannot_join_running_game(service: ChessService, mock_repository: MockRepository) -> None:
    game_id = _started_game(service)
    with pytest.raises(InvalidStateError):
        service.join_game(game_id, JoinGameRequest(player2_address=OUTSIDER_ADDRESS))
    # no player record created for the rejected joiner
    assert mock_repository.get_player_by_address(OUTSIDER_ADDRESS) is None


def test_creator_cannot_join_own_game(service: ChessService) -> None:
    created = service.create_new_game(_create_request())
    with pytest.raises(ConflictError):
        service.join_game(created.game_id, JoinGameRequest(player2_address=WHITE_ADDRESS))
    assert service.get_game_state(created.game_id).status == Status.WAITING


# --- SERVICE - GET / LIST GAMES ----
def test_attempt_to_find_unknown_game(service: ChessService) -> None:
    with pytest.raises(GameError):
        service.get_game_state(12345)


def test_list_active_games(service: ChessService) -> None:
    first = service.create_new_game(_create_request())
    second = service.create_new_game(_create_request(player1_address=OUTSIDER_ADDRESS))
    started = _started_game(service)

    active = service.list_active_games()
    assert [game.game_id for game in active] == [second.game_id, first.game_id]
    assert started not in [game.game_id for game in active]
    assert all(game.player1 is not None for game in active)


def test_list_recent_games_summary(service: ChessService) -> None:
    won = _started_game(service)
    service.resign(won, ResignRequest(player_address=BLACK_ADDRESS))
    lost = _started_game(service)
    service.resign(lost, ResignRequest(player_address=WHITE_ADDRESS))
    drawn = _started_game(service)
    service.handle_draw(drawn, DrawRequest(player_address=WHITE_ADDRESS, action=DrawAction.OFFER))
    service.handle_draw(drawn, DrawRequest(player_address=BLACK_ADDRESS, action=DrawAction.ACCEPT))
    _started_game(service)

    summary = {int(game.id): game for game in service.list_recent_games()}
    assert set(summary) == {won, lost, drawn}
    assert summary[won].result == RecentOutcome.VICTORY
    assert summary[lost].result == RecentOutcome.DEFEAT
    assert summary[drawn].result == RecentOutcome.DRAW
    assert summary[won].opponent == BLACK_ADDRESS
    assert summary[won].amount == "0.01"


def test_list_recent_games_is_limited(mock_repository: MockRepository) -> None:
    service = ChessService(mock_repository, recent_games_limit=2)
    for _ in range(3):
        game_id = _started_game(service)
        service.resign(game_id, ResignRequest(player_address=WHITE_ADDRESS))
    assert len(service.list_recent_games()) == 2
    assert len(service.list_recent_games(limit=5)) == 3


# --- SERVICE - LEGAL MOVES ----
def test_getting_legal_moves(service: ChessService) -> None:
    game_id = _started_game(service)
    response = service.legal_moves(game_id, WHITE_ADDRESS)

    assert isinstance(response, LegalMovesResponse)
    assert response.color == Color.WHITE
    assert response.legal_moves["g1"] == ["f3", "h3"]

    with pytest.raises(TurnViolationError):
        service.legal_moves(game_id, BLACK_ADDRESS)


# --- SERVICE - MAKE MOVE ---
def test_make_legal_move(service: ChessService) -> None:
    """Create, join, 1. e4: black to move, one ledger entry."""
    game_id = _started_game(service)
    response = service.make_move(game_id, MoveRequest(move="e2e4", player_address=WHITE_ADDRESS))

    assert response.current_turn == Color.BLACK
    assert len(response.moves) == 1
    assert response.fen.startswith("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b")
    assert response.moves[0].move_number == 1
    assert response.moves[0].player_id == response.player1.id
    assert response.moves[0].fen == response.fen


def test_move_out_of_turn_changes_nothing(service: ChessService) -> None:
    game_id = _started_game(service)
    before = service.get_game_state(game_id)

    with pytest.raises(TurnViolationError):
        service.make_move(game_id, MoveRequest(move="e7e5", player_address=BLACK_ADDRESS))

    after = service.get_game_state(game_id)
    assert after.fen == before.fen
    assert after.status == before.status
    assert after.moves == before.moves


def test_attempt_illegal_move(service: ChessService) -> None:
    game_id = _started_game(service)
    with pytest.raises(IllegalMoveError):
        service.make_move(game_id, MoveRequest(move="d1h5", player_address=WHITE_ADDRESS))
    assert service.get_game_state(game_id).moves == []


def test_attempt_move_before_second_player(service: ChessService) -> None:
    created = service.create_new_game(_create_request())
    with pytest.raises(InvalidStateError):
        service.make_move(created.game_id, MoveRequest(move="e2e4", player_address=WHITE_ADDRESS))


def test_ledger_is_consistent_with_position(service: ChessService) -> None:
    """Numbering 1..n, turn parity, and replaying the ledger gives the stored FEN."""
    game_id = _started_game(service)
    moves = ["e2e4", "c7c5", "g1f3", "d7d6", "d2d4", "c5d4", "f3d4"]
    response = _play(service, game_id, moves)

    assert [move.move_number for move in response.moves] == list(range(1, len(moves) + 1))
    assert response.current_turn == (Color.WHITE if len(moves) % 2 == 0 else Color.BLACK)
    assert rules.replay([move.move for move in response.moves]) == response.fen


def test_fools_mate(service: ChessService) -> None:
    game_id = _started_game(service)
    response = _play(service, game_id, FOOLS_MATE)

    assert response.status == Status.COMPLETED
    assert response.result is not None
    assert response.result.result == ResultTag.BLACK_WINS
    assert response.result.termination == Termination.CHECKMATE
    assert response.player2 is not None
    assert response.result.winner_id == response.player2.id == response.moves[-1].player_id


def test_attempt_move_after_checkmate(service: ChessService) -> None:
    game_id = _started_game(service)
    _play(service, game_id, FOOLS_MATE)
    with pytest.raises(InvalidStateError):
        service.make_move(game_id, MoveRequest(move="a2a3", player_address=WHITE_ADDRESS))


# --- SERVICE - RESIGN ---
def test_resign(service: ChessService) -> None:
    game_id = _started_game(service)
    response = service.resign(game_id, ResignRequest(player_address=WHITE_ADDRESS))

    assert response.status == Status.COMPLETED
    assert response.result is not None
    assert response.result.result == ResultTag.BLACK_WINS
    assert response.player2 is not None
    assert response.result.winner_id == response.player2.id


def test_outsider_cannot_resign(service: ChessService) -> None:
    game_id = _started_game(service)
    with pytest.raises(NotParticipantError):
        service.resign(game_id, ResignRequest(player_address=OUTSIDER_ADDRESS))
    assert service.get_game_state(game_id).status == Status.IN_PROGRESS


def test_resign_unknown_game(service: ChessService) -> None:
    with pytest.raises(NotFoundError):
        service.resign(404, ResignRequest(player_address=WHITE_ADDRESS))


# --- SERVICE - DRAWS ---
def test_offer_then_accept_draw(service: ChessService) -> None:
    game_id = _started_game(service)
    offered = service.handle_draw(game_id, DrawRequest(player_address=WHITE_ADDRESS, action=DrawAction.OFFER))
    assert offered.draw_offered is True
    assert offered.draw_offered_by == offered.player1.id

    response = service.handle_draw(game_id, DrawRequest(player_address=BLACK_ADDRESS, action=DrawAction.ACCEPT))
    assert response.status == Status.COMPLETED
    assert response.draw_offered is False
    assert response.result is not None
    assert response.result.result == ResultTag.DRAW
    assert response.result.winner_id is None
    assert response.result.termination == Termination.AGREEMENT


def test_accept_without_offer(service: ChessService, mock_repository: MockRepository) -> None:
    game_id = _started_game(service)
    before = service.get_game_state(game_id)

    with pytest.raises(NoOfferError):
        service.handle_draw(game_id, DrawRequest(player_address=BLACK_ADDRESS, action=DrawAction.ACCEPT))

    after = service.get_game_state(game_id)
    assert after == before
    assert mock_repository.get_result(game_id) is None


def test_draw_offer_is_withdrawn_by_next_move(service: ChessService) -> None:
    game_id = _started_game(service)
    service.handle_draw(game_id, DrawRequest(player_address=BLACK_ADDRESS, action=DrawAction.OFFER))
    service.make_move(game_id, MoveRequest(move="e2e4", player_address=WHITE_ADDRESS))

    with pytest.raises(NoOfferError):
        service.handle_draw(game_id, DrawRequest(player_address=WHITE_ADDRESS, action=DrawAction.ACCEPT))


# --- SERVICE - RESULTS ---
def test_exactly_one_result_per_completed_game(service: ChessService, mock_repository: MockRepository) -> None:
    running = _started_game(service)
    waiting = service.create_new_game(_create_request()).game_id
    mated = _started_game(service)
    _play(service, mated, FOOLS_MATE)
    resigned = _started_game(service)
    service.resign(resigned, ResignRequest(player_address=BLACK_ADDRESS))

    for game_id in [running, waiting, mated, resigned]:
        game = service.get_game_state(game_id)
        has_result = mock_repository.get_result(game_id) is not None
        assert has_result == (game.status == Status.COMPLETED)


# --- SERVICE - WAGER ---
def test_wager_settlement(service: ChessService) -> None:
    game_id = _started_game(service)
    funded = service.update_wager_status(game_id, WagerStatusRequest(wager_status=WagerStatus.FUNDED))
    assert funded.wager.status == WagerStatus.FUNDED

    with pytest.raises(InvalidStateError):
        service.update_wager_status(game_id, WagerStatusRequest(wager_status=WagerStatus.COMPLETED))

    service.resign(game_id, ResignRequest(player_address=WHITE_ADDRESS))
    settled = service.update_wager_status(
        game_id,
        WagerStatusRequest(wager_status=WagerStatus.COMPLETED, transaction_hash="0xpayout"),
    )
    assert settled.wager.status == WagerStatus.COMPLETED
    assert settled.wager.transaction_hash == "0xpayout"
