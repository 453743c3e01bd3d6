# backend/multishop/money.py
"""
Money helpers.

Amounts are stored as integer cents; percentages as basis points
(1250 = 12.5%). Conversions round half-up to the cent.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationFailure

# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

CENT = Decimal("0.01")


def to_cents(value, *, field: str = "amount") -> int:
    """Parse a decimal amount ("12.50", 12.5, Decimal) into integer cents."""
    if isinstance(value, bool) or value is None:
        raise ValidationFailure(f"{field} must be a number", field=field)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailure(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationFailure(f"{field} must be a number", field=field)
    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationFailure(f"{field} is too large", field=field)
    return cents


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    if cents is None:
        return None
    return str(from_cents(cents))


def percent_to_bps(value, *, field: str = "discount_percent") -> int:
    """12.5 -> 1250. Must lie within [0, 100]."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationFailure(f"{field} must be a number", field=field)
    try:
        pct = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailure(f"{field} must be a number", field=field)
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise ValidationFailure(f"{field} must be between 0 and 100", field=field)
    return int((pct * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def bps_to_percent(bps: int | None) -> Decimal:
    return (Decimal(bps or 0) / 100).quantize(CENT)


def apply_bps(cents: int, bps: int) -> int:
    """Portion of ``cents`` at ``bps`` basis points, nearest cent (half-up)."""
    product = cents * bps
    if product >= 0:
        return (product + 5000) // 10000
    return -((-product + 5000) // 10000)
