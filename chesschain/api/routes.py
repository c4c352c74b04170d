"""HTTP routes. Thin: parse the request, call the ChessService, return its response model."""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from chesschain.api.models import (
    CreateGameRequest,
    DrawRequest,
    GameResponse,
    JoinGameRequest,
    LegalMovesResponse,
    MoveRequest,
    PlayerResponse,
    RecentGameResponse,
    RegisterPlayerRequest,
    RenamePlayerRequest,
    ResignRequest,
    WagerStatusRequest,
)
from chesschain.core.config import get_settings
from chesschain.core.exceptions import (
    ConflictError,
    GameError,
    IllegalMoveError,
    InvalidStateError,
    NoOfferError,
    NotFoundError,
    TurnViolationError,
    ValidationError,
)
from chesschain.db.database import get_db
from chesschain.db.sql_repository import SQLGameRepository
from chesschain.services.chess_service import ChessService

router = APIRouter(prefix="/api")

# most specific first: NotParticipantError is matched through TurnViolationError
ERROR_STATUS_CODES: list[tuple[type[GameError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (TurnViolationError, status.HTTP_403_FORBIDDEN),
    (IllegalMoveError, 422),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (NoOfferError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def status_code_for(error: GameError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def game_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, GameError)
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"error": exc.category, "detail": str(exc)},
    )


async def request_validation_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Missing / mistyped fields are reported in the same shape as every other ValidationError."""
    assert isinstance(exc, RequestValidationError)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": ValidationError.category, "detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]


def get_chess_service(db: Session = Depends(get_db)) -> ChessService:
    return ChessService(
        SQLGameRepository(db), recent_games_limit=get_settings().recent_games_limit
    )


# --- players ---
@router.post("/users/register", response_model=PlayerResponse)
def register_player(
    request: RegisterPlayerRequest,
    response: Response,
    service: ChessService = Depends(get_chess_service),
) -> PlayerResponse:
    player, created = service.register_player(request)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return player


@router.patch("/users/{address}", response_model=PlayerResponse)
def rename_player(
    address: str,
    request: RenamePlayerRequest,
    service: ChessService = Depends(get_chess_service),
) -> PlayerResponse:
    return service.rename_player(address, request)


# --- games ---
@router.post("/games", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
def create_game(
    request: CreateGameRequest, service: ChessService = Depends(get_chess_service)
) -> GameResponse:
    return service.create_new_game(request)


@router.get("/games/active", response_model=list[GameResponse])
def list_active_games(
    service: ChessService = Depends(get_chess_service),
) -> list[GameResponse]:
    return service.list_active_games()


@router.get("/games/recent", response_model=list[RecentGameResponse])
def list_recent_games(
    service: ChessService = Depends(get_chess_service),
) -> list[RecentGameResponse]:
    return service.list_recent_games()


@router.get("/games/{game_id}", response_model=GameResponse)
def get_game(
    game_id: int, service: ChessService = Depends(get_chess_service)
) -> GameResponse:
    return service.get_game_state(game_id)


@router.get("/games/{game_id}/legal-moves", response_model=LegalMovesResponse)
def legal_moves(
    game_id: int,
    player_address: str = Query(...),
    service: ChessService = Depends(get_chess_service),
) -> LegalMovesResponse:
    return service.legal_moves(game_id, player_address)


@router.patch("/games/{game_id}/join", response_model=GameResponse)
def join_game(
    game_id: int,
    request: JoinGameRequest,
    service: ChessService = Depends(get_chess_service),
) -> GameResponse:
    return service.join_game(game_id, request)


@router.patch("/games/{game_id}/move", response_model=GameResponse)
def make_move(
    game_id: int,
    request: MoveRequest,
    service: ChessService = Depends(get_chess_service),
) -> GameResponse:
    return service.make_move(game_id, request)


@router.patch("/games/{game_id}/resign", response_model=GameResponse)
def resign(
    game_id: int,
    request: ResignRequest,
    service: ChessService = Depends(get_chess_service),
) -> GameResponse:
    return service.resign(game_id, request)


@router.patch("/games/{game_id}/draw", response_model=GameResponse)
def handle_draw(
    game_id: int,
    request: DrawRequest,
    service: ChessService = Depends(get_chess_service),
) -> GameResponse:
    return service.handle_draw(game_id, request)


@router.patch("/games/{game_id}/wager", response_model=GameResponse)
def update_wager_status(
    game_id: int,
    request: WagerStatusRequest,
    service: ChessService = Depends(get_chess_service),
) -> GameResponse:
    return service.update_wager_status(game_id, request)
