"""
RSO Numbering — Invoice Counter Port
======================================
Protocol + in-memory implementation of the tenant-scoped invoice
sequence.

Doctrine:
- "Increment and read" is ONE atomic step per tenant.
- Numbers are strictly increasing and never reused.
- A caller never waits forever: the step takes a timeout and raises
  CounterTimeoutError (retryable, nothing incremented) when it expires.
- The DB counter lives in core.order_store.counter.
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol

from core.numbering.models import NumberingPolicy
from core.operations.errors import CounterTimeoutError


class InvoiceCounter(Protocol):
    def next_invoice_number(self, tenant_id, *, timeout: float) -> int:
        """Atomically advance the tenant sequence and return the new value."""
        ...


class InMemoryInvoiceCounter:
    """
    Thread-safe in-memory counter used by tests and bootstrap.
    One sequence per tenant, all guarded by a single lock.
    """

    def __init__(self, policy: Optional[NumberingPolicy] = None):
        self._policy = policy or NumberingPolicy()
        self._lock = threading.Lock()
        self._next: dict[str, int] = {}

    def next_invoice_number(self, tenant_id, *, timeout: float) -> int:
        if not self._lock.acquire(timeout=timeout):
            raise CounterTimeoutError(
                "next invoice number",
                f"counter for tenant '{tenant_id}' busy for more than {timeout}s",
            )
        try:
            key = str(tenant_id)
            number = self._next.get(key, self._policy.start_at)
            self._next[key] = number + 1
            return number
        finally:
            self._lock.release()

    def current_value(self, tenant_id) -> int:
        """Last issued number for a tenant, 0 if none (test helper)."""
        with self._lock:
            nxt = self._next.get(str(tenant_id))
            return 0 if nxt is None else nxt - 1
