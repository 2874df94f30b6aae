"""
RSO Core Audit — Public API
==============================
Immutable, append-only audit entries and best-effort emission.
"""

from core.audit.emitter import AuditEmitter
from core.audit.functions import create_audit_entry
from core.audit.log import AuditLog, InMemoryAuditLog
from core.audit.models import (
    ENTITY_LINE_ITEM,
    ENTITY_SERVICE_ORDER,
    ENTITY_TRAY,
    AuditEntry,
)

__all__ = [
    "AuditEmitter",
    "AuditEntry",
    "AuditLog",
    "ENTITY_LINE_ITEM",
    "ENTITY_SERVICE_ORDER",
    "ENTITY_TRAY",
    "InMemoryAuditLog",
    "create_audit_entry",
]
