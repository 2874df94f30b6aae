"""
Tests for engines.service_orders.services — editing the order graph.
"""

from __future__ import annotations

import types
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.archive.provider import InMemoryArchiveStore
from core.audit.emitter import AuditEmitter
from core.audit.log import InMemoryAuditLog
from core.audit.models import ENTITY_LINE_ITEM, ENTITY_SERVICE_ORDER, ENTITY_TRAY
from core.commands.rejection import ReasonCode
from core.numbering.provider import InMemoryInvoiceCounter
from core.operations.errors import OrderNotFoundError
from core.time.clock import FixedClock
from engines.invoicing.services import InvoicingService
from engines.service_orders.catalog import CatalogEntry, InMemoryCatalog
from engines.service_orders.commands import (
    AddLineItemRequest,
    AddTrayRequest,
    CreateOrderRequest,
    RemoveLineItemRequest,
    SetGlobalDiscountRequest,
    SetStatusRequest,
    SetSubscriptionRequest,
    SetTrayStatusRequest,
    SetUrgentRequest,
    SplitTrayRequest,
    UpdateLineItemRequest,
)
from engines.service_orders.events import (
    LINE_ITEM_ADDED,
    LINE_ITEM_UPDATED,
    ORDER_CREATED,
    TRAY_SPLIT,
)
from engines.service_orders.models import (
    ItemType,
    OrderStatus,
    SubscriptionPlan,
    TrayStatus,
)
from engines.service_orders.repository import InMemoryServiceOrderRepository
from engines.service_orders.services import ServiceOrderService

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _uid(name: str) -> uuid.UUID:
    return uuid.uuid5(uuid.NAMESPACE_URL, f"rso-editing-{name}")


ORDER_ID = _uid("order")
TRAY_ID = _uid("tray")

CATALOG = InMemoryCatalog([
    CatalogEntry("svc-sharpen", ItemType.SERVICE, "Sharpening", Decimal("100")),
    CatalogEntry("svc-quote", ItemType.SERVICE, "Custom job"),
    CatalogEntry("part-spring", ItemType.PART, "Spring", Decimal("20")),
    CatalogEntry("instr-scissors", ItemType.INSTRUMENT_ONLY, "Scissors", Decimal("0")),
])


@pytest.fixture
def shop():
    repository = InMemoryServiceOrderRepository()
    audit_log = InMemoryAuditLog()
    audit = AuditEmitter(audit_log)
    clock = FixedClock(NOW)
    service = ServiceOrderService(
        repository=repository, catalog=CATALOG, audit=audit, clock=clock,
    )
    service.create_order(
        CreateOrderRequest(
            tenant_id="tenant-1",
            customer_id="customer-1",
            status=OrderStatus.IN_PROGRESS,
            order_id=ORDER_ID,
        ),
        actor_id="clerk",
    )
    service.add_tray(AddTrayRequest(order_id=ORDER_ID, label="Box 1", tray_id=TRAY_ID))
    yield types.SimpleNamespace(
        service=service,
        repository=repository,
        audit=audit,
        audit_log=audit_log,
        clock=clock,
    )
    audit.shutdown()


def _add_service(shop, name="svc", **kwargs):
    params = {
        "order_id": ORDER_ID,
        "tray_id": TRAY_ID,
        "item_type": ItemType.SERVICE,
        "service_id": "svc-sharpen",
        "item_id": _uid(f"item-{name}"),
    }
    params.update(kwargs)
    return shop.service.add_line_item(AddLineItemRequest(**params), actor_id="clerk")


def _invoice(shop):
    tray = shop.repository.get(ORDER_ID).trays.get(TRAY_ID)
    if not tray.is_finalized:
        shop.service.set_tray_status(
            SetTrayStatusRequest(order_id=ORDER_ID, tray_id=TRAY_ID, status=TrayStatus.FINALIZED),
        )
    invoicing = InvoicingService(
        repository=shop.repository,
        counter=InMemoryInvoiceCounter(),
        archive=InMemoryArchiveStore(),
        audit=shop.audit,
        clock=shop.clock,
    )
    return invoicing.invoice(ORDER_ID)


# ══════════════════════════════════════════════════════════════
# ORDER
# ══════════════════════════════════════════════════════════════


class TestOrder:
    def test_created_order_is_open_and_unlocked(self, shop):
        order = shop.service.get_order(ORDER_ID)
        assert order.tenant_id == "tenant-1"
        assert order.locked is False
        assert len(order.trays) == 1

    def test_create_order_rejects_invoiced_status(self, shop):
        outcome = shop.service.create_order(
            CreateOrderRequest(
                tenant_id="tenant-1", customer_id="c", status=OrderStatus.INVOICED,
            ),
        )
        assert outcome.rejection_codes == (ReasonCode.INVALID_STATUS_TRANSITION,)

    def test_get_unknown_order_raises(self, shop):
        with pytest.raises(OrderNotFoundError):
            shop.service.get_order(_uid("nobody"))

    def test_set_status_between_open_statuses(self, shop):
        outcome = shop.service.set_status(
            SetStatusRequest(order_id=ORDER_ID, status=OrderStatus.COMPLETED),
        )
        assert outcome.accepted is True
        assert shop.repository.get(ORDER_ID).status == OrderStatus.COMPLETED

    def test_set_status_cannot_invoice(self, shop):
        outcome = shop.service.set_status(
            SetStatusRequest(order_id=ORDER_ID, status=OrderStatus.INVOICED),
        )
        assert outcome.rejection_codes == (ReasonCode.INVALID_STATUS_TRANSITION,)
        assert shop.repository.get(ORDER_ID).locked is False

    def test_unchanged_status_is_a_no_op(self, shop):
        before = shop.repository.get(ORDER_ID)
        outcome = shop.service.set_status(
            SetStatusRequest(order_id=ORDER_ID, status=OrderStatus.IN_PROGRESS),
        )
        assert outcome.accepted is True
        assert shop.repository.get(ORDER_ID).version == before.version

    def test_order_level_fields(self, shop):
        shop.service.set_global_discount(
            SetGlobalDiscountRequest(order_id=ORDER_ID, global_discount_pct=Decimal("7.5")),
        )
        shop.service.set_urgent(SetUrgentRequest(order_id=ORDER_ID, urgent=True))
        shop.service.set_subscription(
            SetSubscriptionRequest(
                order_id=ORDER_ID, subscription=SubscriptionPlan.from_code("parts"),
            ),
        )

        order = shop.repository.get(ORDER_ID)
        assert order.global_discount_pct == Decimal("7.5")
        assert order.urgent is True
        assert order.subscription.part_pct == Decimal("5")
        assert order.subscription.service_pct == Decimal("0")

        shop.service.set_subscription(SetSubscriptionRequest(order_id=ORDER_ID))
        assert shop.repository.get(ORDER_ID).subscription is None

    def test_edits_on_unknown_order_are_rejected(self, shop):
        outcome = shop.service.set_urgent(SetUrgentRequest(order_id=_uid("ghost"), urgent=True))
        assert outcome.rejection_codes == (ReasonCode.ORDER_NOT_FOUND,)

    def test_create_order_is_audited(self, shop):
        shop.audit.flush(timeout=5)
        created = shop.audit_log.query_by_event_type(ORDER_CREATED)
        assert len(created) == 1
        assert created[0].entity_type == ENTITY_SERVICE_ORDER
        assert created[0].actor_id == "clerk"
        assert created[0].occurred_at == NOW


# ══════════════════════════════════════════════════════════════
# LINE ITEMS
# ══════════════════════════════════════════════════════════════


class TestLineItems:
    def test_add_line_item_snapshots_catalog_price(self, shop):
        outcome = _add_service(shop, quantity=2, line_discount_pct=Decimal("10"))

        assert outcome.accepted is True
        item = shop.repository.get(ORDER_ID).get_item(_uid("item-svc"))
        assert item.name == "Sharpening"
        assert item.unit_price_snapshot == Decimal("100")
        assert item.quantity == 2

        shop.audit.flush(timeout=5)
        added = shop.audit_log.query_by_event_type(LINE_ITEM_ADDED)
        assert added[0].entity_type == ENTITY_LINE_ITEM
        assert added[0].details["unit_price_snapshot"] == "100"

    def test_instrument_only_line_with_zero_price(self, shop):
        outcome = _add_service(
            shop, "instr",
            item_type=ItemType.INSTRUMENT_ONLY,
            service_id=None,
            instrument_id="instr-scissors",
        )
        assert outcome.accepted is True

    def test_unknown_catalog_entry(self, shop):
        outcome = _add_service(shop, service_id="svc-missing")
        assert outcome.rejection_codes == (ReasonCode.CATALOG_ENTRY_NOT_FOUND,)

    def test_catalog_entry_without_price(self, shop):
        outcome = _add_service(shop, service_id="svc-quote")
        assert outcome.rejection_codes == (ReasonCode.CATALOG_PRICE_MISSING,)

    @pytest.mark.parametrize(
        "references",
        [
            {"service_id": None},
            {"service_id": None, "part_id": "part-spring"},
            {"part_id": "part-spring"},
        ],
    )
    def test_reference_must_match_item_type(self, shop, references):
        outcome = _add_service(shop, **references)
        assert ReasonCode.CATALOG_REFERENCE_MISMATCH in outcome.rejection_codes
        assert shop.repository.get(ORDER_ID).items == ()

    def test_invalid_quantities_are_collected_with_other_problems(self, shop):
        outcome = _add_service(
            shop,
            tray_id=_uid("no-such-tray"),
            quantity=1,
            non_repairable_quantity=3,
            service_id="svc-missing",
        )
        assert outcome.rejection_codes == (
            ReasonCode.TRAY_NOT_FOUND,
            ReasonCode.INVALID_QUANTITY,
            ReasonCode.CATALOG_ENTRY_NOT_FOUND,
        )

    def test_duplicate_item_id_rejected(self, shop):
        _add_service(shop)
        outcome = _add_service(shop)
        assert outcome.rejection_codes == (ReasonCode.POLICY_VIOLATION,)

    def test_update_line_item_records_changes(self, shop):
        _add_service(shop, quantity=3)

        outcome = shop.service.update_line_item(
            UpdateLineItemRequest(
                order_id=ORDER_ID,
                item_id=_uid("item-svc"),
                non_repairable_quantity=1,
                urgent=True,
            ),
        )

        assert outcome.accepted is True
        item = outcome.order.get_item(_uid("item-svc"))
        assert item.non_repairable_quantity == 1
        assert item.urgent is True
        assert item.unit_price_snapshot == Decimal("100")

        shop.audit.flush(timeout=5)
        updated = shop.audit_log.query_by_event_type(LINE_ITEM_UPDATED)
        assert set(updated[0].details["changes"]) == {"non_repairable_quantity", "urgent"}

    def test_update_rejects_negative_quantity(self, shop):
        _add_service(shop, quantity=2)
        outcome = shop.service.update_line_item(
            UpdateLineItemRequest(order_id=ORDER_ID, item_id=_uid("item-svc"), quantity=-1),
        )
        assert outcome.rejection_codes == (ReasonCode.INVALID_QUANTITY,)

    def test_update_unknown_item(self, shop):
        outcome = shop.service.update_line_item(
            UpdateLineItemRequest(order_id=ORDER_ID, item_id=_uid("ghost"), quantity=1),
        )
        assert outcome.rejection_codes == (ReasonCode.LINE_ITEM_NOT_FOUND,)

    def test_remove_line_item(self, shop):
        _add_service(shop)
        outcome = shop.service.remove_line_item(
            RemoveLineItemRequest(order_id=ORDER_ID, item_id=_uid("item-svc")),
        )
        assert outcome.accepted is True
        assert shop.repository.get(ORDER_ID).items == ()


# ══════════════════════════════════════════════════════════════
# TRAYS
# ══════════════════════════════════════════════════════════════


class TestTrays:
    def test_split_moves_items_and_keeps_lineage(self, shop):
        _add_service(shop, "a")
        _add_service(shop, "b", item_type=ItemType.PART, service_id=None, part_id="part-spring")
        child_id = _uid("child-tray")

        outcome = shop.service.split_tray(
            SplitTrayRequest(
                order_id=ORDER_ID,
                source_tray_id=TRAY_ID,
                item_ids=(_uid("item-b"),),
                label="Box 1b",
                tray_id=child_id,
            ),
        )

        order = outcome.order
        assert outcome.accepted is True
        assert order.trays.get(child_id).parent_tray_id == TRAY_ID
        assert [t.tray_id for t in order.trays.lineage_of(child_id)] == [TRAY_ID, child_id]
        assert [i.item_id for i in order.items_for_tray(child_id)] == [_uid("item-b")]
        assert [i.item_id for i in order.items_for_tray(TRAY_ID)] == [_uid("item-a")]

        shop.audit.flush(timeout=5)
        split = shop.audit_log.query_by_event_type(TRAY_SPLIT)
        assert split[0].entity_type == ENTITY_TRAY
        assert split[0].details["moved_item_ids"] == [str(_uid("item-b"))]

    def test_split_rejects_items_from_other_trays(self, shop):
        outcome = shop.service.split_tray(
            SplitTrayRequest(
                order_id=ORDER_ID, source_tray_id=TRAY_ID, item_ids=(_uid("stray"),),
            ),
        )
        assert outcome.rejection_codes == (ReasonCode.LINE_ITEM_NOT_FOUND,)

    def test_split_unknown_source_tray(self, shop):
        outcome = shop.service.split_tray(
            SplitTrayRequest(order_id=ORDER_ID, source_tray_id=_uid("nowhere")),
        )
        assert ReasonCode.TRAY_NOT_FOUND in outcome.rejection_codes

    def test_duplicate_tray_id_rejected(self, shop):
        outcome = shop.service.add_tray(AddTrayRequest(order_id=ORDER_ID, tray_id=TRAY_ID))
        assert outcome.rejection_codes == (ReasonCode.POLICY_VIOLATION,)

    def test_set_tray_status(self, shop):
        outcome = shop.service.set_tray_status(
            SetTrayStatusRequest(order_id=ORDER_ID, tray_id=TRAY_ID, status=TrayStatus.FINALIZED),
        )
        assert outcome.order.trays.get(TRAY_ID).is_finalized is True


# ══════════════════════════════════════════════════════════════
# LOCKED ORDER
# ══════════════════════════════════════════════════════════════


class TestLockedOrder:
    def test_every_edit_is_rejected_while_invoiced(self, shop):
        _add_service(shop)
        assert _invoice(shop).accepted is True
        locked = shop.repository.get(ORDER_ID)

        attempts = [
            shop.service.set_status(
                SetStatusRequest(order_id=ORDER_ID, status=OrderStatus.COMPLETED),
            ),
            shop.service.set_global_discount(
                SetGlobalDiscountRequest(order_id=ORDER_ID, global_discount_pct=Decimal("50")),
            ),
            shop.service.set_urgent(SetUrgentRequest(order_id=ORDER_ID, urgent=True)),
            shop.service.add_tray(AddTrayRequest(order_id=ORDER_ID)),
            _add_service(shop, "late"),
            shop.service.update_line_item(
                UpdateLineItemRequest(order_id=ORDER_ID, item_id=_uid("item-svc"), quantity=5),
            ),
            shop.service.remove_line_item(
                RemoveLineItemRequest(order_id=ORDER_ID, item_id=_uid("item-svc")),
            ),
        ]

        for outcome in attempts:
            assert outcome.accepted is False
            assert outcome.rejection_codes == (ReasonCode.ORDER_LOCKED,)
        assert shop.repository.get(ORDER_ID) == locked


# ══════════════════════════════════════════════════════════════
# NON-FINITE DISCOUNTS
# ══════════════════════════════════════════════════════════════


NON_FINITE = ["NaN", "Infinity", "-Infinity"]


@pytest.mark.parametrize("raw", NON_FINITE)
def test_global_discount_must_be_finite(shop, raw):
    with pytest.raises(ValueError):
        SetGlobalDiscountRequest(order_id=ORDER_ID, global_discount_pct=raw)
    assert shop.repository.get(ORDER_ID).global_discount_pct == Decimal("0")


@pytest.mark.parametrize("raw", NON_FINITE)
def test_line_discount_must_be_finite_on_add(shop, raw):
    with pytest.raises(ValueError):
        _add_service(shop, line_discount_pct=raw)
    assert shop.repository.get(ORDER_ID).items == ()


@pytest.mark.parametrize("raw", NON_FINITE)
def test_line_discount_must_be_finite_on_update(shop, raw):
    _add_service(shop)
    with pytest.raises(ValueError):
        UpdateLineItemRequest(
            order_id=ORDER_ID, item_id=_uid("item-svc"), line_discount_pct=raw,
        )

    item = shop.repository.get(ORDER_ID).get_item(_uid("item-svc"))
    assert item.line_discount_pct == Decimal("0")
    outcome = _invoice(shop)
    assert outcome.accepted is True
    assert outcome.receipt.final_total == Decimal("100.00")
