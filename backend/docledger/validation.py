from __future__ import annotations

from typing import Any

from .errors import ValidationError
from .time_utils import normalize_datetime


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for payload values.

    Rejects floats, booleans, decimals and scientific notation so that a cent
    amount can never be silently truncated.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", {"field": field})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                {"field": field},
            )
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", {"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", {"field": field})
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", {"field": field})
    raise ValidationError(f"{field} must be an integer", {"field": field})


def optional_int(value: Any, field: str) -> int | None:
    """coerce_int that lets None through (optional ids such as user_id)."""
    if value is None:
        return None
    return coerce_int(value, field)


def require_positive(value: Any, field: str) -> int:
    n = coerce_int(value, field)
    if n <= 0:
        raise ValidationError(f"{field} must be positive", {"field": field, "value": n})
    return n


def require_non_negative(value: Any, field: str) -> int:
    n = coerce_int(value, field)
    if n < 0:
        raise ValidationError(f"{field} cannot be negative", {"field": field, "value": n})
    return n


def require_amount_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    n = require_non_negative(value, field) if allow_zero else require_positive(value, field)
    if n > MAX_AMOUNT_CENTS:
        raise ValidationError(
            f"{field} cannot exceed {MAX_AMOUNT_CENTS}",
            {"field": field, "value": n},
        )
    return n


def require_choice(value: Any, field: str, choices) -> str:
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(sorted(choices))}",
            {"field": field, "value": value},
        )
    return value


def clean_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str:
    text = "" if value is None else str(value).strip()
    if required and not text:
        raise ValidationError(f"{field} is required", {"field": field})
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", {"field": field})
    return text


def require_list(value: Any, field: str) -> list:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list", {"field": field})
    return list(value)


def parse_datetime_field(value: Any, field: str):
    """Datetime or ISO-8601 string -> canonical UTC-naive datetime (None passes through)."""
    try:
        return normalize_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", {"field": field, "value": str(value)})
