"""
RSO Numbering — Invoice Number Display Policy
===============================================
The counter issues plain integers; NumberingPolicy only decides how
an issued number is rendered on receipts (e.g. 42 → "INV-00042").

Doctrine:
- Same policy + number → same label (deterministic).
- Formatting never advances or reads the sequence.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NumberingPolicy:
    """
    Fields:
        prefix:   prepended before the number (e.g. "INV-")
        suffix:   appended after the number (e.g. "/2026")
        padding:  minimum digit width (5 → "00042")
        start_at: first value issued by a fresh tenant sequence
    """
    prefix: str = ""
    suffix: str = ""
    padding: int = 1
    start_at: int = 1

    def __post_init__(self):
        if not isinstance(self.prefix, str):
            raise ValueError("prefix must be a string.")
        if not isinstance(self.suffix, str):
            raise ValueError("suffix must be a string.")
        if not isinstance(self.padding, int) or self.padding < 1:
            raise ValueError("padding must be int >= 1.")
        if not isinstance(self.start_at, int) or self.start_at < 1:
            raise ValueError("start_at must be int >= 1.")

    def format_number(self, number: int) -> str:
        if not isinstance(number, int) or number < 1:
            raise ValueError("number must be int >= 1.")
        return f"{self.prefix}{str(number).zfill(self.padding)}{self.suffix}"
