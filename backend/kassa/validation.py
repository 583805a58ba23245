from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .money import normalize_quantity


# Maximum price: 9,999,999.99 major units (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_QUANTITY = Decimal("99999999.999")


def parse_cents(value: Any, field: str, *, allow_negative: bool = False, maximum: int | None = None) -> int:
    """
    Strict integer-cents coercion.

    Rejects floats, booleans, decimals-in-strings and scientific notation so
    that no fractional money ever reaches the ledger.
    """
    if value is None:
        raise ValidationError(f"{field} is required", details={"field": field})

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if isinstance(value, int):
        cents = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            cents = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", details={"field": field})
    else:
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if maximum is not None and cents > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}", details={"field": field})
    return cents


def parse_price_cents(value: Any, field: str = "price_cents") -> int:
    return parse_cents(value, field, maximum=MAX_PRICE_CENTS)


def parse_quantity(value: Any, field: str = "qty", *, allow_zero: bool = False) -> Decimal:
    """
    Decimal quantity with at most three fractional digits.

    Floats are accepted here (scales and tape measures produce them) but are
    routed through str() so binary noise never leaks into the ledger.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={"field": field})

    try:
        if isinstance(value, float):
            qty = Decimal(str(value))
        elif isinstance(value, (int, Decimal)):
            qty = Decimal(value)
        elif isinstance(value, str) and value.strip():
            qty = Decimal(value.strip())
        else:
            raise ValidationError(f"{field} must be a number", details={"field": field})
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", details={"field": field})

    if not qty.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field})
    if qty < 0 or (qty == 0 and not allow_zero):
        raise ValidationError(f"{field} must be positive", details={"field": field})
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} is too large", details={"field": field})
    if qty != qty.quantize(Decimal("0.001")):
        raise ValidationError(f"{field} allows at most 3 decimal places", details={"field": field})
    return normalize_quantity(qty)


def parse_id(value: Any, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required", details={"field": field})
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id", details={"field": field})
    if isinstance(value, float) and value != ident:
        raise ValidationError(f"{field} must be an integer id", details={"field": field})
    if ident <= 0:
        raise ValidationError(f"{field} must be a positive id", details={"field": field})
    return ident


def clean_text(value: Any, field: str, *, required: bool = False, max_length: int = 255) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None
    text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters", details={"field": field})
    return text
