"""
Pytest will auto-discover / import this file called 'conftest.py'. ]
This file defines fixtures/variables required for testing multiple layers.
"""

from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import Engine, StaticPool
from sqlalchemy.orm import Session, sessionmaker

from chesschain.db.database import build_engine
from chesschain.db.schema import Base

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = build_engine(DATABASE_URL, poolclass=StaticPool)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """
    File backed database: every session gets its own connection.
    Mock real setup with multiple requests (sessions) racing on the same game.
    """
    file_db = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=file_db)
    try:
        yield file_db
    finally:
        file_db.dispose()
