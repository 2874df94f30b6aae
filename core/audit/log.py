"""
RSO Core Audit — Audit Log Port
=================================
Protocol + in-memory, append-only implementation.
The Django-backed log lives in core.order_store.audit.
"""

from __future__ import annotations

import threading
from typing import List, Protocol

from core.audit.models import AuditEntry


class AuditLog(Protocol):
    def record(self, entry: AuditEntry) -> None:
        """Append one entry. Never updates, never deletes."""
        ...


class InMemoryAuditLog:
    """
    Append-only audit log used by tests and bootstrap.
    Thread-safe: entries arrive from the emitter's worker thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def query_by_entity(self, entity_type: str, entity_id) -> List[AuditEntry]:
        with self._lock:
            return [
                e for e in self._entries
                if e.entity_type == entity_type and e.entity_id == str(entity_id)
            ]

    def query_by_event_type(self, event_type: str) -> List[AuditEntry]:
        with self._lock:
            return [e for e in self._entries if e.event_type == event_type]

    @property
    def entries(self) -> List[AuditEntry]:
        """Read-only access to all entries."""
        with self._lock:
            return list(self._entries)
