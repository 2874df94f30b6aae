"""
RSO Service Orders Engine — Audit Event Types and Detail Builders
===================================================================
Every accepted edit emits exactly one audit event. Details are plain
JSON-safe dicts (ids and decimals as strings).
"""

from __future__ import annotations

from core.audit.models import ENTITY_LINE_ITEM, ENTITY_SERVICE_ORDER, ENTITY_TRAY
from engines.service_orders.models import LineItem, ServiceOrder, Tray

ORDER_CREATED = "service_order.created"
ORDER_STATUS_CHANGED = "service_order.status.changed"
ORDER_GLOBAL_DISCOUNT_SET = "service_order.global_discount.set"
ORDER_URGENT_SET = "service_order.urgent.set"
ORDER_SUBSCRIPTION_SET = "service_order.subscription.set"
TRAY_ADDED = "tray.added"
TRAY_SPLIT = "tray.split"
TRAY_STATUS_CHANGED = "tray.status.changed"
LINE_ITEM_ADDED = "line_item.added"
LINE_ITEM_UPDATED = "line_item.updated"
LINE_ITEM_REMOVED = "line_item.removed"

SERVICE_ORDER_EVENT_TYPES = (
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    ORDER_GLOBAL_DISCOUNT_SET,
    ORDER_URGENT_SET,
    ORDER_SUBSCRIPTION_SET,
    TRAY_ADDED,
    TRAY_SPLIT,
    TRAY_STATUS_CHANGED,
    LINE_ITEM_ADDED,
    LINE_ITEM_UPDATED,
    LINE_ITEM_REMOVED,
)

ENTITY_BY_EVENT_TYPE = {
    ORDER_CREATED: ENTITY_SERVICE_ORDER,
    ORDER_STATUS_CHANGED: ENTITY_SERVICE_ORDER,
    ORDER_GLOBAL_DISCOUNT_SET: ENTITY_SERVICE_ORDER,
    ORDER_URGENT_SET: ENTITY_SERVICE_ORDER,
    ORDER_SUBSCRIPTION_SET: ENTITY_SERVICE_ORDER,
    TRAY_ADDED: ENTITY_TRAY,
    TRAY_SPLIT: ENTITY_TRAY,
    TRAY_STATUS_CHANGED: ENTITY_TRAY,
    LINE_ITEM_ADDED: ENTITY_LINE_ITEM,
    LINE_ITEM_UPDATED: ENTITY_LINE_ITEM,
    LINE_ITEM_REMOVED: ENTITY_LINE_ITEM,
}


def _base_details(order: ServiceOrder) -> dict:
    return {"order_id": str(order.order_id), "tenant_id": order.tenant_id}


def build_order_created_details(order: ServiceOrder) -> dict:
    p = _base_details(order)
    p.update({
        "customer_id": order.customer_id,
        "status": order.status.value,
        "urgent": order.urgent,
        "is_return": order.is_return,
    })
    return p


def build_order_status_changed_details(previous: ServiceOrder, order: ServiceOrder) -> dict:
    p = _base_details(order)
    p.update({"from_status": previous.status.value, "to_status": order.status.value})
    return p


def build_order_global_discount_details(previous: ServiceOrder, order: ServiceOrder) -> dict:
    p = _base_details(order)
    p.update({
        "from_pct": str(previous.global_discount_pct),
        "to_pct": str(order.global_discount_pct),
    })
    return p


def build_order_urgent_details(order: ServiceOrder) -> dict:
    p = _base_details(order)
    p["urgent"] = order.urgent
    return p


def build_order_subscription_details(order: ServiceOrder) -> dict:
    p = _base_details(order)
    p["subscription"] = (
        None if order.subscription is None else order.subscription.to_dict()
    )
    return p


def build_tray_added_details(order: ServiceOrder, tray: Tray) -> dict:
    p = _base_details(order)
    p.update(tray.to_dict())
    return p


def build_tray_split_details(order: ServiceOrder, tray: Tray, moved_item_ids) -> dict:
    p = _base_details(order)
    p.update(tray.to_dict())
    p["moved_item_ids"] = [str(item_id) for item_id in moved_item_ids]
    return p


def build_tray_status_details(previous: Tray, tray: Tray, order: ServiceOrder) -> dict:
    p = _base_details(order)
    p.update({
        "tray_id": str(tray.tray_id),
        "from_status": previous.status.value,
        "to_status": tray.status.value,
    })
    return p


def build_line_item_details(order: ServiceOrder, item: LineItem) -> dict:
    p = _base_details(order)
    p.update(item.to_dict())
    return p


def build_line_item_updated_details(
    order: ServiceOrder, previous: LineItem, item: LineItem,
) -> dict:
    before = previous.to_dict()
    after = item.to_dict()
    p = _base_details(order)
    p.update({
        "item_id": str(item.item_id),
        "changes": {
            key: {"from": before[key], "to": after[key]}
            for key in after
            if before[key] != after[key]
        },
    })
    return p
