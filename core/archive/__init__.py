"""
RSO Archive - Public API
=========================
"""

from core.archive.hashing import canonical_json, compute_snapshot_hash
from core.archive.models import ArchiveRecord, OrderSnapshot
from core.archive.provider import ArchiveStore, InMemoryArchiveStore

__all__ = [
    "ArchiveRecord",
    "ArchiveStore",
    "InMemoryArchiveStore",
    "OrderSnapshot",
    "canonical_json",
    "compute_snapshot_hash",
]
