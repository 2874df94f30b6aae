"""
RSO Numbering — Public API
============================
"""

from core.numbering.models import NumberingPolicy
from core.numbering.provider import InMemoryInvoiceCounter, InvoiceCounter

__all__ = [
    "InMemoryInvoiceCounter",
    "InvoiceCounter",
    "NumberingPolicy",
]
