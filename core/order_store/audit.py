"""
RSO Order Store - DB Audit Log
===============================
Append-only AuditLog backed by rso_audit_entries.
Called from the AuditEmitter worker, never inside an order transaction.
"""

from __future__ import annotations

from core.audit.models import AuditEntry
from core.order_store.models import AuditEntryRecord


def _to_entry(record: AuditEntryRecord) -> AuditEntry:
    return AuditEntry(
        entry_id=record.entry_id,
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        event_type=record.event_type,
        message=record.message,
        occurred_at=record.occurred_at,
        actor_id=record.actor_id,
        details=dict(record.details),
    )


class DbAuditLog:
    def record(self, entry: AuditEntry) -> None:
        AuditEntryRecord.objects.create(
            entry_id=entry.entry_id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            event_type=entry.event_type,
            message=entry.message,
            occurred_at=entry.occurred_at,
            actor_id=entry.actor_id,
            details=dict(entry.details),
        )

    def query_by_entity(self, entity_type: str, entity_id) -> tuple[AuditEntry, ...]:
        return tuple(
            _to_entry(r)
            for r in AuditEntryRecord.objects.filter(
                entity_type=entity_type, entity_id=str(entity_id),
            )
        )

    def query_by_event_type(self, event_type: str) -> tuple[AuditEntry, ...]:
        return tuple(
            _to_entry(r)
            for r in AuditEntryRecord.objects.filter(event_type=event_type)
        )
