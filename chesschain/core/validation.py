"""Normalisation / validation of raw input values. Shared by request models and the domain layer."""

import re
from decimal import Decimal, InvalidOperation

from chesschain.core.exceptions import ValidationError

MOVE_PATTERN = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")
USERNAME_SUFFIX_LENGTH = 6


def normalize_address(address: str | None) -> str:
    """Wallet addresses are compared case-insensitively, so they are stored lower-cased."""
    if address is None or not address.strip():
        raise ValidationError("Player address is required.")
    return address.strip().lower()


def username_from_address(address: str) -> str:
    return f"Player_{address[-USERNAME_SUFFIX_LENGTH:]}"


def validate_wager_amount(amount: str | int | float | None) -> str:
    if amount is None or not str(amount).strip():
        raise ValidationError("Wager amount is required.")
    text = str(amount).strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"Cannot interpret wager amount {text!r} as a number.")
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Wager amount must be a positive number, got {text!r}.")
    return text


def validate_time_control(time_control: str | int | None) -> str:
    if time_control is None or not str(time_control).strip():
        raise ValidationError("Time control is required.")
    text = str(time_control).strip()
    if not (text.isascii() and text.isdigit()) or int(text) <= 0:
        raise ValidationError(f"Time control must be a positive integer, got {text!r}.")
    return str(int(text))


def require_text(value: str | None, name: str) -> str:
    """Pass-through metadata fields only need to be present."""
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required.")
    return value.strip()


def normalize_move(move: str | None) -> str:
    """Coordinate notation: <from><to>[promotion], e.g. 'e2e4' or 'e7e8q'."""
    if move is None:
        raise ValidationError("Move is required.")
    text = move.strip().lower()
    if not MOVE_PATTERN.match(text):
        raise ValidationError(f"Cannot interpret {move!r} as a move in coordinate notation.")
    return text
