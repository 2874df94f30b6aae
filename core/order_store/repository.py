"""
RSO Order Store - Django Service Order Repository
==================================================
ORM implementation of engines.service_orders.repository.ServiceOrderRepository.

Write rules:
- save() is ONE conditional UPDATE on (order_id, version[, locked=False]);
  zero rows updated → ConcurrentModificationError, nothing else written
- trays and line items are rewritten inside the same transaction
- lock_for_update() opens the transaction, takes the row lock with a
  bounded wait and yields the graph read under that lock; everything
  the caller writes inside the block commits or rolls back together
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

from django.db import DatabaseError, OperationalError, transaction

from core.operations.errors import (
    ConcurrentModificationError,
    LockTimeoutError,
    OrderNotFoundError,
    PersistenceError,
)
from core.order_store.locking import apply_lock_timeout
from core.order_store.models import LineItemRecord, ServiceOrderRecord, TrayRecord
from engines.service_orders.models import (
    ItemType,
    LineItem,
    OrderStatus,
    ServiceOrder,
    SubscriptionPlan,
    Tray,
    TrayArena,
    TrayStatus,
)

logger = logging.getLogger("rso.store")


# ══════════════════════════════════════════════════════════════
# RECORD ↔ DOMAIN
# ══════════════════════════════════════════════════════════════

def _order_fields(order: ServiceOrder) -> dict:
    return {
        "tenant_id": order.tenant_id,
        "customer_id": order.customer_id,
        "status": order.status.value,
        "urgent": order.urgent,
        "is_return": order.is_return,
        "cash": order.cash,
        "card": order.card,
        "no_deal": order.no_deal,
        "global_discount_pct": order.global_discount_pct,
        "subscription": (
            None if order.subscription is None else order.subscription.to_dict()
        ),
        "locked": order.locked,
        "invoice_number": order.invoice_number,
        "invoiced_at": order.invoiced_at,
        "invoice_note": order.invoice_note,
        "cancelled": order.cancelled,
        "cancel_reason": order.cancel_reason,
        "cancelled_at": order.cancelled_at,
        "cancelled_by": order.cancelled_by,
        "archived_at": order.archived_at,
        "archive_id": order.archive_id,
    }


def _to_tray(record: TrayRecord) -> Tray:
    return Tray(
        tray_id=record.tray_id,
        order_id=record.order_id,
        label=record.label,
        status=TrayStatus(record.status),
        parent_tray_id=record.parent_tray_id,
    )


def _to_line_item(record: LineItemRecord) -> LineItem:
    return LineItem(
        item_id=record.item_id,
        tray_id=record.tray_id,
        item_type=ItemType(record.item_type),
        name=record.name,
        unit_price_snapshot=record.unit_price_snapshot,
        quantity=record.quantity,
        non_repairable_quantity=record.non_repairable_quantity,
        line_discount_pct=record.line_discount_pct,
        urgent=record.urgent,
        service_id=record.service_id,
        part_id=record.part_id,
        instrument_id=record.instrument_id,
    )


def _to_order(record: ServiceOrderRecord, trays, items) -> ServiceOrder:
    return ServiceOrder(
        order_id=record.order_id,
        tenant_id=record.tenant_id,
        customer_id=record.customer_id,
        status=OrderStatus(record.status),
        urgent=record.urgent,
        is_return=record.is_return,
        cash=record.cash,
        card=record.card,
        no_deal=record.no_deal,
        global_discount_pct=record.global_discount_pct,
        subscription=(
            None if record.subscription is None
            else SubscriptionPlan.from_dict(record.subscription)
        ),
        locked=record.locked,
        invoice_number=record.invoice_number,
        invoiced_at=record.invoiced_at,
        invoice_note=record.invoice_note,
        cancelled=record.cancelled,
        cancel_reason=record.cancel_reason,
        cancelled_at=record.cancelled_at,
        cancelled_by=record.cancelled_by,
        archived_at=record.archived_at,
        archive_id=record.archive_id,
        trays=TrayArena(_to_tray(t) for t in trays),
        items=tuple(_to_line_item(i) for i in items),
        version=record.version,
    )


def _write_children(order: ServiceOrder) -> None:
    LineItemRecord.objects.filter(order_id=order.order_id).delete()
    TrayRecord.objects.filter(order_id=order.order_id).delete()
    TrayRecord.objects.bulk_create([
        TrayRecord(
            tray_id=tray.tray_id,
            order_id=order.order_id,
            label=tray.label,
            status=tray.status.value,
            parent_tray_id=tray.parent_tray_id,
            position=position,
        )
        for position, tray in enumerate(order.trays)
    ])
    LineItemRecord.objects.bulk_create([
        LineItemRecord(
            item_id=item.item_id,
            order_id=order.order_id,
            tray_id=item.tray_id,
            item_type=item.item_type.value,
            name=item.name,
            unit_price_snapshot=item.unit_price_snapshot,
            quantity=item.quantity,
            non_repairable_quantity=item.non_repairable_quantity,
            line_discount_pct=item.line_discount_pct,
            urgent=item.urgent,
            service_id=item.service_id,
            part_id=item.part_id,
            instrument_id=item.instrument_id,
            position=position,
        )
        for position, item in enumerate(order.items)
    ])


# ══════════════════════════════════════════════════════════════
# REPOSITORY
# ══════════════════════════════════════════════════════════════

class DjangoServiceOrderRepository:
    def get(self, order_id: uuid.UUID) -> Optional[ServiceOrder]:
        with transaction.atomic():
            record = ServiceOrderRecord.objects.filter(order_id=order_id).first()
            if record is None:
                return None
            trays = TrayRecord.objects.filter(order_id=order_id).order_by("position")
            items = LineItemRecord.objects.filter(order_id=order_id).order_by("position")
            return _to_order(record, list(trays), list(items))

    def add(self, order: ServiceOrder) -> ServiceOrder:
        try:
            with transaction.atomic():
                if ServiceOrderRecord.objects.filter(order_id=order.order_id).exists():
                    raise PersistenceError(
                        "add order", f"service order '{order.order_id}' already exists"
                    )
                ServiceOrderRecord.objects.create(
                    order_id=order.order_id,
                    version=1,
                    **_order_fields(order),
                )
                _write_children(order)
        except DatabaseError as exc:
            raise PersistenceError("add order", str(exc)) from exc
        return self.get(order.order_id)

    def save(
        self,
        order: ServiceOrder,
        *,
        expected_version: int,
        require_unlocked: bool = False,
    ) -> ServiceOrder:
        try:
            with transaction.atomic():
                rows = ServiceOrderRecord.objects.filter(
                    order_id=order.order_id,
                    version=expected_version,
                )
                if require_unlocked:
                    rows = rows.filter(locked=False)
                updated = rows.update(version=expected_version + 1, **_order_fields(order))
                if updated == 0:
                    if not ServiceOrderRecord.objects.filter(order_id=order.order_id).exists():
                        raise OrderNotFoundError(order.order_id)
                    raise ConcurrentModificationError(
                        "save order",
                        f"service order '{order.order_id}' changed since version "
                        f"{expected_version}",
                    )
                _write_children(order)
        except DatabaseError as exc:
            logger.error(f"Saving service order {order.order_id} failed: {exc}", exc_info=True)
            raise PersistenceError("save order", str(exc)) from exc
        return self.get(order.order_id)

    @contextmanager
    def lock_for_update(
        self,
        order_id: uuid.UUID,
        *,
        timeout: float,
    ) -> Iterator[ServiceOrder]:
        with transaction.atomic():
            try:
                apply_lock_timeout(timeout)
                locked = list(
                    ServiceOrderRecord.objects.select_for_update()
                    .filter(order_id=order_id)
                    .values_list("order_id", flat=True)
                )
            except OperationalError as exc:
                raise LockTimeoutError(
                    "lock order",
                    f"service order '{order_id}' busy for more than {timeout}s",
                ) from exc
            if not locked:
                raise OrderNotFoundError(order_id)
            yield self.get(order_id)
