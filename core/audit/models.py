"""
RSO Core Audit — Immutable Audit Models
==========================================
Append-only audit log entries.
These are frozen dataclasses — once created, never modified.
Deletion of audit records is forbidden.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


# ══════════════════════════════════════════════════════════════
# ENTITY TYPES
# ══════════════════════════════════════════════════════════════

ENTITY_SERVICE_ORDER = "service_order"
ENTITY_TRAY = "tray"
ENTITY_LINE_ITEM = "line_item"

VALID_ENTITY_TYPES = frozenset({
    ENTITY_SERVICE_ORDER,
    ENTITY_TRAY,
    ENTITY_LINE_ITEM,
})


# ══════════════════════════════════════════════════════════════
# AUDIT LOG ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AuditEntry:
    """
    Immutable record of a valuation- or lifecycle-affecting action.

    details is a JSON-serializable dict (amounts as strings).
    """

    entry_id: uuid.UUID
    entity_type: str
    entity_id: str
    event_type: str
    message: str
    occurred_at: datetime
    actor_id: Optional[str] = None
    details: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.entity_type not in VALID_ENTITY_TYPES:
            raise ValueError(
                f"entity_type '{self.entity_type}' is not valid. "
                f"Must be one of: {sorted(VALID_ENTITY_TYPES)}"
            )
        if not self.entity_id:
            raise ValueError("entity_id must be non-empty.")
        if not self.event_type:
            raise ValueError("event_type must be non-empty.")

    def to_dict(self) -> dict:
        return {
            "entry_id": str(self.entry_id),
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "event_type": self.event_type,
            "message": self.message,
            "occurred_at": self.occurred_at.isoformat(),
            "actor_id": self.actor_id,
            "details": dict(self.details),
        }
