"""
RSO Order Store - DB Archive Store
===================================
Write-once invoice snapshots in rso_order_archive.
"""

from __future__ import annotations

import uuid
from typing import Optional

from core.archive.models import ArchiveRecord, OrderSnapshot
from core.order_store.models import OrderArchiveRecord


def _to_archive_record(record: OrderArchiveRecord) -> ArchiveRecord:
    return ArchiveRecord(
        archive_id=record.archive_id,
        snapshot=OrderSnapshot(
            order_id=record.order_id,
            tenant_id=record.tenant_id,
            invoice_number=record.invoice_number,
            archived_at=record.archived_at,
            archived_by=record.archived_by,
            reason=record.reason,
            payload=dict(record.payload),
        ),
        snapshot_hash=record.snapshot_hash,
    )


class DbArchiveStore:
    def archive(self, snapshot: OrderSnapshot) -> uuid.UUID:
        record = OrderArchiveRecord.objects.create(
            archive_id=uuid.uuid4(),
            order_id=snapshot.order_id,
            tenant_id=snapshot.tenant_id,
            invoice_number=snapshot.invoice_number,
            archived_at=snapshot.archived_at,
            archived_by=snapshot.archived_by,
            reason=snapshot.reason,
            payload=snapshot.payload,
            snapshot_hash=snapshot.snapshot_hash,
        )
        return record.archive_id

    def get(self, archive_id: uuid.UUID) -> Optional[ArchiveRecord]:
        record = OrderArchiveRecord.objects.filter(archive_id=archive_id).first()
        return None if record is None else _to_archive_record(record)

    def list_for_order(self, order_id: uuid.UUID) -> tuple[ArchiveRecord, ...]:
        return tuple(
            _to_archive_record(r)
            for r in OrderArchiveRecord.objects.filter(order_id=order_id)
        )
