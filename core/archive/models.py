"""
RSO Archive - Archived Order Snapshot
======================================
Write-once record of an order graph + valuation at invoicing time.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from core.archive.hashing import compute_snapshot_hash


@dataclass(frozen=True)
class OrderSnapshot:
    """
    Fields:
        order_id:       archived service order
        tenant_id:      owning tenant
        invoice_number: number issued by the invoicing that produced it
        archived_at:    when the snapshot was taken
        archived_by:    actor id
        reason:         why it was archived (e.g. "invoiced")
        payload:        JSON-ready order graph + valuation
    """
    order_id: uuid.UUID
    tenant_id: str
    invoice_number: int
    archived_at: datetime
    archived_by: str
    reason: str
    payload: dict = field(default_factory=dict)

    @property
    def snapshot_hash(self) -> str:
        return compute_snapshot_hash(self.payload)


@dataclass(frozen=True)
class ArchiveRecord:
    archive_id: uuid.UUID
    snapshot: OrderSnapshot
    snapshot_hash: str
