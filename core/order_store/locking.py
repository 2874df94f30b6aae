"""
RSO Order Store - Bounded Row Locks
====================================
select_for_update() waits forever by default. On PostgreSQL the wait
is bounded per transaction with SET LOCAL lock_timeout; a timed out
wait surfaces as OperationalError. SQLite serializes writers itself
and has no row locks, so nothing is set there.
"""

from __future__ import annotations

from django.db import connection, transaction


def apply_lock_timeout(timeout: float) -> None:
    """Bound row-lock waits for the rest of the current transaction."""
    if connection.vendor != "postgresql":
        return
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("apply_lock_timeout() must run inside transaction.atomic().")
    millis = max(1, int(timeout * 1000))
    with connection.cursor() as cursor:
        cursor.execute(f"SET LOCAL lock_timeout = '{millis}ms'")
