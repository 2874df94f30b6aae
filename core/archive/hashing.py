"""
RSO Archive - Snapshot Hash
============================
Deterministic SHA-256 over an archived order snapshot.

Doctrine:
- Same snapshot → same hash (canonical JSON: sorted keys, no whitespace).
- Stored next to the snapshot so a later reader can detect tampering.
- This module ONLY computes. It does not persist.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from typing import Any


def _canonical_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_canonical_value(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _canonical_value(v) for k, v in sorted(value.items())}
    return str(value)


def canonical_json(value: Any) -> str:
    normalised = _canonical_value(value)
    return json.dumps(normalised, separators=(",", ":"), ensure_ascii=True)


def compute_snapshot_hash(snapshot: dict) -> str:
    """Lowercase hex SHA-256 digest, 64 characters."""
    if not isinstance(snapshot, dict):
        raise ValueError("snapshot must be a dict.")
    return hashlib.sha256(canonical_json(snapshot).encode("utf-8")).hexdigest()
