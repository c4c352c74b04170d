"""Application settings, read from environment variables (prefix CHESSCHAIN_)."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

_VALID_LOG_FORMATS = {"json", "console"}
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    model_config = {"env_prefix": "CHESSCHAIN_"}

    database_url: str = "sqlite:///./chesschain.db"
    database_echo: bool = False
    recent_games_limit: int = 5
    log_level: str = "INFO"
    log_format: str = "console"
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level {value!r}. Must be one of {', '.join(sorted(_VALID_LOG_LEVELS))}."
            )
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in _VALID_LOG_FORMATS:
            raise ValueError(f"Invalid log format {value!r}. Must be 'json' or 'console'.")
        return fmt

    @field_validator("recent_games_limit")
    @classmethod
    def validate_recent_games_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("recent_games_limit must be at least 1.")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
