"""
RSO Archive - Archive Store Port
=================================
Protocol + in-memory implementation. Write-once, read-later.
The Django-backed store lives in core.order_store.archive.
"""

from __future__ import annotations

import threading
import uuid
from typing import Optional, Protocol

from core.archive.models import ArchiveRecord, OrderSnapshot


class ArchiveStore(Protocol):
    def archive(self, snapshot: OrderSnapshot) -> uuid.UUID:
        """Persist the snapshot once and return its archive id."""
        ...


class InMemoryArchiveStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[uuid.UUID, ArchiveRecord] = {}

    def archive(self, snapshot: OrderSnapshot) -> uuid.UUID:
        record = ArchiveRecord(
            archive_id=uuid.uuid4(),
            snapshot=snapshot,
            snapshot_hash=snapshot.snapshot_hash,
        )
        with self._lock:
            self._records[record.archive_id] = record
        return record.archive_id

    def get(self, archive_id: uuid.UUID) -> Optional[ArchiveRecord]:
        with self._lock:
            return self._records.get(archive_id)

    def list_for_order(self, order_id: uuid.UUID) -> tuple[ArchiveRecord, ...]:
        with self._lock:
            return tuple(
                r for r in self._records.values()
                if r.snapshot.order_id == order_id
            )
