"""
RSO Order Store - DB Invoice Counter
=====================================
One row per tenant in rso_invoice_counters.

The increment runs in its own savepoint. When called inside the
order's lock_for_update() block it joins that transaction, so a
failed order write rolls the counter back with it and the number is
not burned.
"""

from __future__ import annotations

import logging
from typing import Optional

from django.db import DatabaseError, OperationalError, transaction
from django.db.models import F

from core.numbering.models import NumberingPolicy
from core.operations.errors import CounterTimeoutError, CounterUnavailableError
from core.order_store.locking import apply_lock_timeout
from core.order_store.models import InvoiceCounterRecord

logger = logging.getLogger("rso.store")


class DbInvoiceCounter:
    def __init__(self, policy: Optional[NumberingPolicy] = None):
        self._policy = policy or NumberingPolicy()

    def next_invoice_number(self, tenant_id, *, timeout: float) -> int:
        key = str(tenant_id)
        try:
            with transaction.atomic():
                apply_lock_timeout(timeout)
                record, _ = (
                    InvoiceCounterRecord.objects.select_for_update()
                    .get_or_create(
                        tenant_id=key,
                        defaults={"next_value": self._policy.start_at},
                    )
                )
                number = record.next_value
                InvoiceCounterRecord.objects.filter(tenant_id=key).update(
                    next_value=F("next_value") + 1,
                )
                return number
        except OperationalError as exc:
            logger.warning(f"Invoice counter for tenant {key} timed out: {exc}")
            raise CounterTimeoutError(
                "next invoice number",
                f"counter for tenant '{key}' busy for more than {timeout}s",
            ) from exc
        except DatabaseError as exc:
            raise CounterUnavailableError("next invoice number", str(exc)) from exc

    def current_value(self, tenant_id) -> int:
        """Last issued number for a tenant, 0 if none."""
        record = InvoiceCounterRecord.objects.filter(tenant_id=str(tenant_id)).first()
        return 0 if record is None else record.next_value - 1
