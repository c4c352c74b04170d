"""FastAPI application factory and entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from chesschain.api.routes import game_error_handler, request_validation_handler, router
from chesschain.core.config import Settings, get_settings
from chesschain.core.exceptions import GameError
from chesschain.core.logging import setup_logging
from chesschain.db.database import init_db

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    logger.info("database ready")
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, json_mode=settings.log_format == "json")

    app = FastAPI(title="ChessChain", lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    return app


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
