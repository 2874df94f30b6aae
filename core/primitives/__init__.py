"""
RSO Core Primitives — Reusable Building Blocks
================================================
Pure Python (no Django dependency), immutable, deterministic.

Primitives:
    money   — Decimal helpers: coercion, clamping, boundary rounding
"""

from core.primitives.money import (
    DEFAULT_CURRENCY,
    HUNDRED,
    TWOPLACES,
    ZERO,
    clamp_pct,
    d,
    format_money,
    money_str,
    round_money,
)

__all__ = [
    "DEFAULT_CURRENCY",
    "HUNDRED",
    "TWOPLACES",
    "ZERO",
    "clamp_pct",
    "d",
    "format_money",
    "money_str",
    "round_money",
]
