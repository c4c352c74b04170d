"""
Protocol repository (implemented with SQLAlchemy in sql_repository.py, and in-memory for the service tests).

Write methods only stage their changes. Nothing is visible to other sessions before commit(),
so the service can make one intent (game update + ledger entry + result) atomic.
"""

from typing import Protocol

from chesschain.core.models import GameModel, MoveModel, PlayerModel, ResultModel


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    # -- players --
    def get_player_by_address(self, address: str) -> PlayerModel | None:
        """Get player by (normalised) wallet address, if record exists."""
        ...

    def create_player(self, address: str, username: str) -> PlayerModel:
        """Store a new player and return it with its new ID."""
        ...

    def update_player_username(self, address: str, username: str) -> PlayerModel | None:
        """Change a player's display name."""
        ...

    # -- games --
    def create_game(self, game: GameModel) -> GameModel:
        """Store new game and return the stored data (with the newly created game ID)."""
        ...

    def load_game(self, game_id: int) -> GameModel | None:
        """Get game by ID with its players, ordered moves and result, if record exists."""
        ...

    def update_game(self, game: GameModel) -> GameModel:
        """
        Overwrite the mutable fields of an existing game.
        ----
        Compare-and-swap on game.version. Raises ConflictError if the stored version moved on in the meantime.
        """
        ...

    def append_move(self, move: MoveModel) -> MoveModel:
        """Add an entry to the move ledger. Raises ConflictError if the move number is taken."""
        ...

    def get_result(self, game_id: int) -> ResultModel | None:
        ...

    def write_result(self, result: ResultModel) -> ResultModel:
        """Store the one result of a game. Raises ConflictError if the game already has one."""
        ...

    def list_active_games(self) -> list[GameModel]:
        """Games waiting for an opponent, newest first."""
        ...

    def list_recent_games(self, limit: int) -> list[GameModel]:
        """Completed games, most recently finished first."""
        ...

    # -- unit of work --
    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...
