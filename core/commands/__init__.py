"""
RSO Command Layer — Rejections
================================
Every editing or invoicing request either succeeds or comes back
with the full list of reasons it was refused.
REJECTED requests are first-class citizens.
"""

from core.commands.rejection import (
    ReasonCode,
    RejectionReason,
    collect_rejections,
)

__all__ = [
    "ReasonCode",
    "RejectionReason",
    "collect_rejections",
]
