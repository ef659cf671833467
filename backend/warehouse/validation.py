from __future__ import annotations

from typing import Any

from .time_utils import normalize_datetime


class ValidationError(ValueError):
    """400-level input problem, raised before any mutation."""


class NotFoundError(LookupError):
    """404-level: the event, product, lot or shipment no longer exists."""


class StateError(ValueError):
    """409-level: operation is not valid for the current lifecycle state."""


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request payloads.

    Rejects floats, bools, scientific notation and decimal strings.
    """
    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be positive")
    return number


def require_non_negative_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    """Trimmed, non-empty string."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    text = value.strip()
    return text or None


def require_timestamp(value: Any, field: str):
    """ISO-8601 string or datetime, normalized to UTC-naive."""
    try:
        parsed = normalize_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    if parsed is None:
        raise ValidationError(f"{field} is required")
    return parsed
