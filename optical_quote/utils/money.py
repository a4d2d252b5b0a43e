"""
Money helpers.

Amounts travel through the core as cents: integers on catalog and plan
data, exact Decimals once percentages and multipliers are involved.
Conversion to dollars (and the only rounding step) happens in
`to_display`.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0")
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def cents(value: int | str | Decimal) -> Decimal:
    """Coerce an integer / string / Decimal cent amount to Decimal."""
    return value if isinstance(value, Decimal) else Decimal(value)


def dollars_to_cents(value: int | str | Decimal) -> int:
    """Convert a dollar amount (e.g. "180.00") to integer cents."""
    return int((Decimal(str(value)) * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """`percent` is expressed on a 0-100 scale."""
    return amount * percent / _HUNDRED


def clamp_non_negative(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO


def to_display(amount_cents: int | Decimal) -> Decimal:
    """Round a cent amount to a 2dp dollar value for display."""
    return (cents(amount_cents) / _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_usd(amount_cents: int | Decimal) -> str:
    value = to_display(amount_cents)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
