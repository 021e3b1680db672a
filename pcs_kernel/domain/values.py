"""
Monetary value helpers.

Rates and multipliers are carried as ``Decimal`` dollars; every calculated
amount is stored as integer cents. Conversion happens in exactly one place
(``to_cents``) with ROUND_HALF_UP so repeated runs cannot drift.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def require_decimal(value: Any, name: str = "amount") -> None:
    """Raise TypeError unless value is a Decimal (floats are never accepted)."""
    if not isinstance(value, Decimal):
        raise TypeError(f"{name} must be Decimal, not {type(value).__name__}")


def to_cents(amount: Decimal) -> int:
    """Quantize a Decimal dollar amount to integer cents (ROUND_HALF_UP)."""
    require_decimal(amount)
    return int((amount * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int) -> Decimal:
    """Integer cents back to a two-place Decimal dollar amount."""
    return (Decimal(cents) / _HUNDRED).quantize(CENT)


def format_usd(cents: int) -> str:
    """Human-readable dollars, e.g. ``2250000`` -> ``'$22,500.00'``."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents_to_decimal(cents)):,.2f}"
