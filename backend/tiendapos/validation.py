from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import InvalidInputError
from .time_utils import normalize_datetime, parse_iso_datetime, to_utc_z


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999

_CENT = Decimal("0.01")


def parse_money_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """
    Convert a user-supplied amount ("25.50", 25.5, Decimal, 25) to integer cents.

    Amounts are quantized half-up to the cent through Decimal so that
    float input never leaks binary rounding into stored figures.

    Raises InvalidInputError for None, booleans, non-numeric strings,
    NaN/infinity, negatives, zero (unless allow_zero) and overflow.
    """
    if value is None:
        raise InvalidInputError(f"{field} is required", details={"field": field})

    # bool is a subclass of int; never accept it as money
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be numeric", details={"field": field})

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError(f"{field} is required", details={"field": field})
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise InvalidInputError(f"{field} must be numeric", details={"field": field, "value": value})
    else:
        raise InvalidInputError(f"{field} must be numeric", details={"field": field})

    if not amount.is_finite():
        raise InvalidInputError(f"{field} must be a finite number", details={"field": field})

    if amount < 0:
        raise InvalidInputError(f"{field} cannot be negative", details={"field": field})
    if amount * 100 > MAX_AMOUNT_CENTS:
        raise InvalidInputError(f"{field} exceeds maximum allowed amount", details={"field": field})

    cents = int((amount / _CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents == 0 and not allow_zero:
        raise InvalidInputError(f"{field} must be greater than zero", details={"field": field})
    return cents


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Strict positive integer: rejects bools, floats with decimals and numeric strings with decimals."""
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field} must be a positive integer", details={"field": field})
    if isinstance(value, int):
        qty = value
    elif isinstance(value, float) and value.is_integer():
        qty = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        qty = int(value.strip())
    else:
        raise InvalidInputError(f"{field} must be a positive integer", details={"field": field, "value": value})
    if qty <= 0:
        raise InvalidInputError(f"{field} must be a positive integer", details={"field": field, "value": value})
    return qty


def parse_int_id(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer id", details={"field": field})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field} must be an integer id", details={"field": field, "value": value})


def format_cents(cents: int | None) -> str | None:
    """12345 -> "123.45"."""
    if cents is None:
        return None
    return str((Decimal(cents) * _CENT).quantize(_CENT))


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} is required", details={"field": field})
    text = value.strip()
    if len(text) > max_length:
        raise InvalidInputError(
            f"{field} must be at most {max_length} characters",
            details={"field": field, "max_length": max_length},
        )
    return text


def parse_datetime_value(value: Any, field: str) -> datetime:
    """datetime, date or ISO-8601 string -> UTC-naive datetime."""
    if isinstance(value, datetime):
        return normalize_datetime(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            raise InvalidInputError(f"{field} must be an ISO-8601 datetime", details={"field": field, "value": value})
        if parsed is not None:
            return parsed
    raise InvalidInputError(f"{field} is required", details={"field": field})


def parse_period(start: Any, end: Any) -> tuple[datetime, datetime]:
    """
    Half-open reporting window [start, end).

    Both bounds are required and start must precede end.
    """
    start_dt = parse_datetime_value(start, "period_start")
    end_dt = parse_datetime_value(end, "period_end")
    if start_dt >= end_dt:
        raise InvalidInputError(
            "period_start must be before period_end",
            details={"period_start": to_utc_z(start_dt), "period_end": to_utc_z(end_dt)},
        )
    return start_dt, end_dt
