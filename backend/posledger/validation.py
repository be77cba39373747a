from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from .errors import ValidationError


# Matches Numeric(12, 2): 9,999,999,999.99
MAX_MONEY = Decimal("9999999999.99")
CENTS = Decimal("0.01")


def require_present(payload: dict, fields: Iterable[str]) -> None:
    """Reject a payload missing any of the given keys (None counts as missing)."""
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid payload")
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )


def require_object(payload: Any) -> dict:
    """JSON request body: missing means empty, anything but an object is rejected."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")
    return payload


def coerce_int(value: Any, field: str, *, minimum: int | None = None, allow_zero: bool = True) -> int:
    """
    Strict integer coercion: rejects floats, decimals, booleans and
    scientific notation rather than silently truncating.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if not allow_zero and result == 0:
        raise ValidationError(f"{field} must be non-zero")
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def coerce_money(value: Any, field: str, *, minimum: Decimal | None = Decimal("0")) -> Decimal:
    """
    Parse a currency amount into a 2-place Decimal.

    Floats go through str() first so 19.99 stays 19.99 instead of its
    binary approximation.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str) and value.strip():
            amount = Decimal(value.strip())
        else:
            raise ValidationError(f"{field} must be a number")
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if minimum is not None and amount < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return amount


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    """Non-blank string after stripping."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} cannot be blank")
    text = str(value).strip()
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return require_text(value, field, max_length=max_length)


def coerce_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = list(choices)
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(allowed)}"
        )
    return value


def coerce_items(items: Any, field: str = "items") -> list[dict]:
    """Line items must be a non-empty list of objects."""
    if not isinstance(items, list) or not items:
        raise ValidationError(f"{field} must be a non-empty list")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"{field}[{i}] must be an object")
    return items
