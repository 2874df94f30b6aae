"""
RSO Core Audit — Pure Audit Functions
========================================
Factory for audit entries. Returns new frozen objects, never mutates.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from core.audit.models import AuditEntry


def create_audit_entry(
    entity_type: str,
    entity_id,
    event_type: str,
    message: str,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> AuditEntry:
    """Create an immutable audit entry."""
    return AuditEntry(
        entry_id=uuid.uuid4(),
        entity_type=entity_type,
        entity_id=str(entity_id),
        event_type=event_type,
        message=message,
        occurred_at=occurred_at,
        actor_id=actor_id,
        details=details or {},
    )
