"""
Integer-cent arithmetic helpers.

Money is always an int of minor units. Quantities are Decimals (fractional
units for weight/length goods), so price x quantity is computed in Decimal and
rounded half-up back to whole cents exactly once per line.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

QUANTITY_PLACES = Decimal("0.001")
CENT = Decimal("1")


def to_cents(value: Decimal) -> int:
    return int(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def line_total_cents(unit_price_cents: int, quantity: Decimal) -> int:
    """unit price x quantity, half-up to whole cents."""
    return to_cents(Decimal(unit_price_cents) * Decimal(quantity))


def format_major(cents: int) -> str:
    """12345 -> '123.45' (two-decimal major units, used on printed receipts)."""
    sign = "-" if cents < 0 else ""
    cents = abs(int(cents))
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def normalize_quantity(value) -> Decimal:
    return Decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def format_quantity(quantity) -> str:
    """Decimal('2.000') -> '2', Decimal('1.250') -> '1.25'."""
    q = normalize_quantity(quantity)
    if q == q.to_integral_value():
        return str(int(q))
    return format(q.normalize(), "f")
