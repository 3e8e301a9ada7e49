from __future__ import annotations

import re
from typing import Any, Iterable


# Largest amount accepted for any fee, rate or POS amount (whole currency units)
MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., slot already occupied)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def require_text(data: dict, key: str, *, max_length: int = 255) -> str:
    value = optional_text(data, key, max_length=max_length)
    if not value:
        raise ValidationError(f"{key} is required", details={"field": key})
    return value


def optional_text(data: dict, key: str, *, max_length: int = 255) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters", details={"field": key})
    return value


def parse_amount(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Parse a non-negative whole-unit money amount.

    Accepts ints and digit strings. Rejects floats with a fractional part,
    booleans, negatives and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number", details={"field": field})

    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be a whole number (no fractional currency)", details={"field": field})
        value = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not re.fullmatch(r"-?\d+", stripped):
            raise ValidationError(f"{field} must be a whole number", details={"field": field})
        value = int(stripped)
    elif not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number", details={"field": field})

    if value < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if value > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}", details={"field": field})
    return value


def parse_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required", details={"field": field})
        return default
    choices = list(choices)
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}",
            details={"field": field, "allowed": choices},
        )
    return value


def parse_optional_bool(value: Any, field: str) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationError(f"{field} must be true or false", details={"field": field})


def normalize_phone(value: str | None) -> str | None:
    """Strip everything except digits and a leading +; empty input becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    if value.startswith("+"):
        digits = "+" + re.sub(r"[^\d]", "", value[1:])
    else:
        digits = re.sub(r"[^\d]", "", value)
    return digits if digits.strip("+") else None


def phone_digit_count(phone: str | None) -> int:
    if not phone:
        return 0
    return len(re.sub(r"[^\d]", "", phone))
