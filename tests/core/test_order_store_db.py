"""
Tests for core.order_store — Django ORM repository, counter, archive
and audit log.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.archive.models import OrderSnapshot
from core.audit.emitter import AuditEmitter
from core.audit.functions import create_audit_entry
from core.audit.log import InMemoryAuditLog
from core.audit.models import ENTITY_SERVICE_ORDER
from core.numbering.models import NumberingPolicy
from core.operations.errors import (
    ConcurrentModificationError,
    OrderNotFoundError,
    PersistenceError,
)
from core.order_store.archive import DbArchiveStore
from core.order_store.audit import DbAuditLog
from core.order_store.counter import DbInvoiceCounter
from core.order_store.models import LineItemRecord, ServiceOrderRecord, TrayRecord
from core.order_store.repository import DjangoServiceOrderRepository
from core.time.clock import FixedClock
from engines.invoicing.commands import InvoiceRequest
from engines.invoicing.services import InvoicingService
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

pytestmark = pytest.mark.django_db(transaction=True)

NOW = datetime(2026, 3, 3, 14, 0, tzinfo=timezone.utc)


def _uid(name: str) -> uuid.UUID:
    return uuid.uuid5(uuid.NAMESPACE_URL, f"rso-store-{name}")


def _order(name: str = "order", tenant_id: str = "tenant-db") -> ServiceOrder:
    order_id = _uid(name)
    root = Tray(
        tray_id=_uid(f"{name}-root"), order_id=order_id,
        label="Box", status=TrayStatus.FINALIZED,
    )
    child = Tray(
        tray_id=_uid(f"{name}-child"), order_id=order_id,
        label="Box b", status=TrayStatus.FINALIZED, parent_tray_id=root.tray_id,
    )
    return ServiceOrder(
        order_id=order_id,
        tenant_id=tenant_id,
        customer_id="customer-db",
        status=OrderStatus.COMPLETED,
        global_discount_pct=Decimal("5"),
        subscription=SubscriptionPlan.from_code("both"),
        trays=TrayArena([root, child]),
        items=(
            LineItem(
                item_id=_uid(f"{name}-svc"),
                tray_id=root.tray_id,
                item_type=ItemType.SERVICE,
                name="Sharpening",
                unit_price_snapshot=Decimal("400"),
                service_id="svc-1",
            ),
            LineItem(
                item_id=_uid(f"{name}-svc2"),
                tray_id=root.tray_id,
                item_type=ItemType.SERVICE,
                name="Polish",
                unit_price_snapshot=Decimal("200"),
                service_id="svc-2",
            ),
            LineItem(
                item_id=_uid(f"{name}-part"),
                tray_id=child.tray_id,
                item_type=ItemType.PART,
                name="Blade",
                unit_price_snapshot=Decimal("200"),
                part_id="part-1",
            ),
        ),
    )


# ══════════════════════════════════════════════════════════════
# REPOSITORY
# ══════════════════════════════════════════════════════════════


class TestDjangoRepository:
    def test_add_and_get_round_trip(self):
        repository = DjangoServiceOrderRepository()
        order = _order()

        stored = repository.add(order)

        assert stored.version == 1
        assert stored.trays == order.trays
        assert [i.item_id for i in stored.items] == [i.item_id for i in order.items]
        assert stored.items[0].unit_price_snapshot == Decimal("400")
        assert stored.subscription == order.subscription
        assert repository.get(order.order_id) == stored
        assert TrayRecord.objects.filter(order_id=order.order_id).count() == 2
        assert LineItemRecord.objects.filter(order_id=order.order_id).count() == 3

    def test_add_twice_fails(self):
        repository = DjangoServiceOrderRepository()
        repository.add(_order("dup"))
        with pytest.raises(PersistenceError):
            repository.add(_order("dup"))

    def test_get_unknown_returns_none(self):
        assert DjangoServiceOrderRepository().get(_uid("nothing")) is None

    def test_save_is_compare_and_set(self):
        repository = DjangoServiceOrderRepository()
        stored = repository.add(_order("cas"))

        saved = repository.save(stored, expected_version=1)
        assert saved.version == 2

        with pytest.raises(ConcurrentModificationError):
            repository.save(stored, expected_version=1)
        assert ServiceOrderRecord.objects.get(order_id=stored.order_id).version == 2

    def test_save_requiring_unlocked_fails_on_locked_row(self):
        repository = DjangoServiceOrderRepository()
        stored = repository.add(_order("locked-row"))
        ServiceOrderRecord.objects.filter(order_id=stored.order_id).update(
            locked=True, status=OrderStatus.INVOICED.value, invoice_number=9,
        )

        with pytest.raises(ConcurrentModificationError):
            repository.save(stored, expected_version=1, require_unlocked=True)

    def test_save_unknown_order(self):
        with pytest.raises(OrderNotFoundError):
            DjangoServiceOrderRepository().save(_order("ghost"), expected_version=1)

    def test_save_rewrites_children(self):
        repository = DjangoServiceOrderRepository()
        stored = repository.add(_order("children"))
        trimmed = ServiceOrder(
            order_id=stored.order_id,
            tenant_id=stored.tenant_id,
            customer_id=stored.customer_id,
            trays=TrayArena([next(iter(stored.trays))]),
            items=stored.items[:1],
        )

        saved = repository.save(trimmed, expected_version=stored.version)

        assert len(saved.trays) == 1
        assert len(saved.items) == 1
        assert LineItemRecord.objects.filter(order_id=stored.order_id).count() == 1

    def test_lock_for_update_yields_current_graph(self):
        repository = DjangoServiceOrderRepository()
        stored = repository.add(_order("lock"))
        with repository.lock_for_update(stored.order_id, timeout=1) as order:
            assert order == stored

    def test_lock_for_update_unknown_order(self):
        repository = DjangoServiceOrderRepository()
        with pytest.raises(OrderNotFoundError):
            with repository.lock_for_update(_uid("missing"), timeout=1):
                pass

    def test_failed_write_inside_lock_rolls_back(self):
        repository = DjangoServiceOrderRepository()
        stored = repository.add(_order("rollback"))

        with pytest.raises(RuntimeError):
            with repository.lock_for_update(stored.order_id, timeout=1) as order:
                repository.save(order, expected_version=order.version)
                raise RuntimeError("boom")

        assert repository.get(stored.order_id).version == 1


# ══════════════════════════════════════════════════════════════
# COUNTER / ARCHIVE / AUDIT
# ══════════════════════════════════════════════════════════════


def test_db_counter_is_per_tenant():
    counter = DbInvoiceCounter()
    assert [counter.next_invoice_number("a", timeout=1) for _ in range(3)] == [1, 2, 3]
    assert counter.next_invoice_number("b", timeout=1) == 1
    assert counter.current_value("a") == 3
    assert counter.current_value("zzz") == 0


def test_db_counter_honours_start_at():
    counter = DbInvoiceCounter(NumberingPolicy(start_at=500))
    assert counter.next_invoice_number("t", timeout=1) == 500
    assert counter.next_invoice_number("t", timeout=1) == 501


def test_db_archive_store():
    store = DbArchiveStore()
    snapshot = OrderSnapshot(
        order_id=_uid("archived"),
        tenant_id="tenant-db",
        invoice_number=4,
        archived_at=NOW,
        archived_by="cashier",
        reason="invoice.issued",
        payload={"valuation": {"final_total": "693.50"}},
    )

    archive_id = store.archive(snapshot)

    record = store.get(archive_id)
    assert record.snapshot.payload == snapshot.payload
    assert record.snapshot_hash == snapshot.snapshot_hash
    assert store.list_for_order(_uid("archived")) == (record,)
    assert store.get(uuid.uuid4()) is None


def test_db_audit_log_appends_and_queries():
    log = DbAuditLog()
    entry = create_audit_entry(
        entity_type=ENTITY_SERVICE_ORDER,
        entity_id=_uid("audited"),
        event_type="invoice.cancelled",
        message="cancelled",
        occurred_at=NOW,
        actor_id="manager",
        details={"reason": "typo"},
    )

    log.record(entry)

    assert log.query_by_entity(ENTITY_SERVICE_ORDER, _uid("audited")) == (entry,)
    assert log.query_by_event_type("invoice.cancelled")[0].details == {"reason": "typo"}


# ══════════════════════════════════════════════════════════════
# FULL FLOW ON THE DATABASE
# ══════════════════════════════════════════════════════════════


class TestInvoicingOnDatabase:
    @pytest.fixture
    def service(self):
        audit = AuditEmitter(InMemoryAuditLog())
        service = InvoicingService(
            repository=DjangoServiceOrderRepository(),
            counter=DbInvoiceCounter(),
            archive=DbArchiveStore(),
            audit=audit,
            clock=FixedClock(NOW),
        )
        yield service
        audit.shutdown()

    def test_invoice_then_cancel_then_reinvoice(self, service):
        repository = DjangoServiceOrderRepository()
        order = repository.add(_order("flow"))

        first = service.invoice(
            order.order_id, actor_id="cashier", request=InvoiceRequest(payment_method="cash"),
        )
        assert first.accepted is True
        assert first.receipt.final_total == Decimal("693.50")

        row = ServiceOrderRecord.objects.get(order_id=order.order_id)
        assert row.locked is True
        assert row.status == OrderStatus.INVOICED.value
        assert row.invoice_number == 1
        assert row.cash is True
        assert row.archive_id == first.receipt.archive_id

        again = service.invoice(order.order_id)
        assert again.accepted is False
        assert DbInvoiceCounter().current_value("tenant-db") == 1

        cancelled = service.cancel(order.order_id, "wrong customer", actor_id="manager")
        assert cancelled.accepted is True
        row.refresh_from_db()
        assert row.locked is False
        assert row.cancel_reason == "wrong customer"

        second = service.invoice(order.order_id)
        assert second.receipt.invoice_number == 2
        assert len(DbArchiveStore().list_for_order(order.order_id)) == 2
