"""
RSO Command Layer — Rejection Model
======================================
Structured rejection reasons for denied operations.

A rejection is the closed-set validation error of the engines:
policies return one (or None), services collect every one of them
so the caller can fix all problems in a single pass.

Every rejection must be:
- Deterministic (same input → same rejection)
- Auditable (code + message + policy)
- Machine-readable (reason_code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a rejected operation.

    Fields:
        code:        Machine-readable rejection code (e.g. 'ORDER_LOCKED').
        message:     Human-readable explanation.
        policy_name: Name of the policy that caused rejection.

    This is serializable into audit details and HTTP responses.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        """Serialize for audit details / API payloads."""
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


def collect_rejections(*results: RejectionReason | None) -> tuple[RejectionReason, ...]:
    """Drop passing (None) policy results, keep evaluation order."""
    return tuple(result for result in results if result is not None)


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Order lifecycle ───────────────────────────────────────
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_ALREADY_INVOICED = "ORDER_ALREADY_INVOICED"
    ORDER_LOCKED = "ORDER_LOCKED"
    ORDER_NOT_INVOICED = "ORDER_NOT_INVOICED"
    ORDER_HAS_NO_TRAYS = "ORDER_HAS_NO_TRAYS"
    TRAYS_NOT_FINALIZED = "TRAYS_NOT_FINALIZED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # ── Invoicing request ─────────────────────────────────────
    MISSING_REASON = "MISSING_REASON"
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"

    # ── Trays / line items ────────────────────────────────────
    TRAY_NOT_FOUND = "TRAY_NOT_FOUND"
    LINE_ITEM_NOT_FOUND = "LINE_ITEM_NOT_FOUND"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    CATALOG_REFERENCE_MISMATCH = "CATALOG_REFERENCE_MISMATCH"
    CATALOG_ENTRY_NOT_FOUND = "CATALOG_ENTRY_NOT_FOUND"
    CATALOG_PRICE_MISSING = "CATALOG_PRICE_MISSING"

    # ── General ───────────────────────────────────────────────
    POLICY_VIOLATION = "POLICY_VIOLATION"
