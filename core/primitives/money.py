"""
RSO Money Primitive — Decimal Amounts in a Single Currency
============================================================
Engine: Core Primitives

RULES (NON-NEGOTIABLE):
- Amounts are Decimal, never float
- Running sums keep full precision
- Rounding to the minor unit happens only at a boundary
  (display, persisted invoice total) via round_money()
- One currency per deployment, no conversion

This file contains NO persistence logic.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

DEFAULT_CURRENCY = "RON"


def d(val) -> Decimal:
    """Coerce incoming values to Decimal safely. NaN and infinities are rejected."""
    if isinstance(val, bool):
        raise TypeError("bool is not a monetary value.")
    if isinstance(val, Decimal):
        result = val
    else:
        try:
            result = Decimal(str(val))
        except InvalidOperation as exc:
            raise ValueError(f"'{val}' is not a valid decimal amount.") from exc
    if not result.is_finite():
        raise ValueError(f"'{val}' is not a finite decimal amount.")
    return result


def clamp_pct(value) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    pct = d(value)
    if pct < ZERO:
        return ZERO
    if pct > HUNDRED:
        return HUNDRED
    return pct


def round_money(amount: Decimal) -> Decimal:
    """Round to the currency minor unit (2 decimals, half-up)."""
    return d(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def money_str(amount: Decimal) -> str:
    """Wire/display form: always two decimals, e.g. '693.50'."""
    return str(round_money(amount))


def format_money(amount: Decimal, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Human display form with thousands separator.

    format_money(Decimal("1234.5")) -> "1,234.50 RON"
    """
    return f"{round_money(amount):,.2f} {currency}"
