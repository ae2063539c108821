from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from stockcount.time_utils import parse_iso_date


# Quantities are stored in hundredths; keep totals well inside a 64-bit integer.
MAX_QUANTITY = Decimal("999999999.99")
TWO_PLACES = Decimal("0.01")

MODE_STORE = "store"
MODE_STOCKROOM = "stockroom"

# Labels used by the scanner client alongside the canonical ones
MODE_ALIASES = {
    "store": MODE_STORE,
    "loja": MODE_STORE,
    "stockroom": MODE_STOCKROOM,
    "estoque": MODE_STOCKROOM,
}


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: unknown code, unknown id, or an id owned by another user."""


class ConflictError(ValueError):
    """
    Uniqueness violation that the upsert logic should have made impossible.

    Surfaced as a server fault, never as a client error.
    """


def round_quantity(value: Decimal) -> Decimal:
    """Round half-up on the third decimal digit."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def require_json_object(payload: Any) -> dict:
    if payload is None:
        raise ValidationError("JSON body is required")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_mode(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("mode is required (store or stockroom)")
    mode = MODE_ALIASES.get(value.strip().lower())
    if mode is None:
        raise ValidationError(f"Invalid mode: {value!r} (expected store or stockroom)")
    return mode


def parse_quantity(value: Any) -> Decimal:
    """
    Accept a JSON number or an arithmetic expression string.

    Strings go through the expression evaluator; numbers are checked and
    rounded the same way so both paths store identical values.
    """
    if value is None:
        raise ValidationError("quantity is required")

    if isinstance(value, str):
        from stockcount.services.expression_service import evaluate
        quantity = evaluate(value)
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("quantity must be a number")
    else:
        try:
            quantity = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError("quantity must be a number")
        if not quantity.is_finite():
            raise ValidationError("quantity must be a finite number")
        quantity = round_quantity(quantity)

    if quantity < 0:
        raise ValidationError("quantity cannot be negative")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")
    return quantity


def parse_expiry(value: Any) -> date | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("expiry_date must be a YYYY-MM-DD string")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"Invalid expiry_date: {value!r} (expected YYYY-MM-DD)")


def parse_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer")
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return parsed


def to_hundredths(quantity: Decimal) -> int:
    """Storage form: quantities are kept as integer hundredths."""
    return int(round_quantity(quantity) * 100)


def from_hundredths(value: int | None) -> Decimal:
    return (Decimal(value or 0) / 100).quantize(TWO_PLACES)


def quantity_to_json(value: Decimal) -> int | float:
    """Whole quantities serialize as integers, fractional ones as floats."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)
