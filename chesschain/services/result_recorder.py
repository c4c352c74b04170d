"""Writes the single result row of a finished game."""

import structlog

from chesschain.core.exceptions import ConflictError
from chesschain.core.models import ResultModel
from chesschain.db.repository import GameRepository

logger = structlog.get_logger()


class ResultRecorder:
    """
    Exactly one result per game.
    ----

    Recording the same outcome twice (a retried request) is a no-op that returns the stored result.
    Recording a different outcome for a game that already has one raises ConflictError.
    """

    def __init__(self, repository: GameRepository) -> None:
        self.repo = repository

    def record(self, result: ResultModel) -> ResultModel:
        existing = self.repo.get_result(result.game_id)
        if existing is not None:
            if self._same_outcome(existing, result):
                logger.info("result already recorded", game_id=result.game_id, result=existing.result)
                return existing
            raise ConflictError(
                f"Game {result.game_id} already ended with {existing.result!r}; refusing to record {result.result!r}."
            )
        stored = self.repo.write_result(result)
        logger.info(
            "result recorded",
            game_id=stored.game_id,
            result=stored.result,
            termination=stored.termination,
            winner_id=stored.winner_id,
        )
        return stored

    @staticmethod
    def _same_outcome(first: ResultModel, second: ResultModel) -> bool:
        return (
            first.result == second.result
            and first.winner_id == second.winner_id
            and first.termination == second.termination
        )
