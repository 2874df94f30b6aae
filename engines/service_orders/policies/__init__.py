"""
RSO Service Orders Engine — Policies
"""

from __future__ import annotations

import uuid
from typing import Iterable, Mapping, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.service_orders.models import (
    CATALOG_FIELD_BY_TYPE,
    OPEN_STATUSES,
    ItemType,
    OrderStatus,
    ServiceOrder,
)


def order_must_exist_policy(
    order: Optional[ServiceOrder], order_id: uuid.UUID,
) -> Optional[RejectionReason]:
    if order is None:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_FOUND,
            message=f"Service order '{order_id}' not found.",
            policy_name="order_must_exist_policy")
    return None


def order_must_be_unlocked_policy(order: ServiceOrder) -> Optional[RejectionReason]:
    """Invoiced orders are frozen until the invoice is cancelled."""
    if order.locked:
        return RejectionReason(
            code=ReasonCode.ORDER_LOCKED,
            message=f"Service order '{order.order_id}' is locked by invoice "
                    f"#{order.invoice_number}. Cancel the invoice to edit it.",
            policy_name="order_must_be_unlocked_policy")
    return None


def tray_must_exist_policy(
    order: ServiceOrder, tray_id: uuid.UUID,
) -> Optional[RejectionReason]:
    if tray_id not in order.trays:
        return RejectionReason(
            code=ReasonCode.TRAY_NOT_FOUND,
            message=f"Tray '{tray_id}' not found on order '{order.order_id}'.",
            policy_name="tray_must_exist_policy")
    return None


def tray_id_must_be_new_policy(
    order: ServiceOrder, tray_id: Optional[uuid.UUID],
) -> Optional[RejectionReason]:
    if tray_id is not None and tray_id in order.trays:
        return RejectionReason(
            code=ReasonCode.POLICY_VIOLATION,
            message=f"Tray '{tray_id}' already exists.",
            policy_name="tray_id_must_be_new_policy")
    return None


def line_item_must_exist_policy(
    order: ServiceOrder, item_id: uuid.UUID,
) -> Optional[RejectionReason]:
    if order.get_item(item_id) is None:
        return RejectionReason(
            code=ReasonCode.LINE_ITEM_NOT_FOUND,
            message=f"Line item '{item_id}' not found on order '{order.order_id}'.",
            policy_name="line_item_must_exist_policy")
    return None


def line_item_id_must_be_new_policy(
    order: ServiceOrder, item_id: Optional[uuid.UUID],
) -> Optional[RejectionReason]:
    if item_id is not None and order.get_item(item_id) is not None:
        return RejectionReason(
            code=ReasonCode.POLICY_VIOLATION,
            message=f"Line item '{item_id}' already exists.",
            policy_name="line_item_id_must_be_new_policy")
    return None


def items_must_belong_to_tray_policy(
    order: ServiceOrder, tray_id: uuid.UUID, item_ids: Iterable[uuid.UUID],
) -> Optional[RejectionReason]:
    foreign = []
    for item_id in item_ids:
        item = order.get_item(item_id)
        if item is None or item.tray_id != tray_id:
            foreign.append(str(item_id))
    if foreign:
        return RejectionReason(
            code=ReasonCode.LINE_ITEM_NOT_FOUND,
            message=f"Line item(s) {', '.join(foreign)} not in tray '{tray_id}'.",
            policy_name="items_must_belong_to_tray_policy")
    return None


def quantities_must_be_valid_policy(
    quantity: int, non_repairable_quantity: int,
) -> Optional[RejectionReason]:
    if quantity < 0 or non_repairable_quantity < 0:
        return RejectionReason(
            code=ReasonCode.INVALID_QUANTITY,
            message="quantity and non_repairable_quantity must be >= 0 "
                    f"(got {quantity} / {non_repairable_quantity}).",
            policy_name="quantities_must_be_valid_policy")
    if non_repairable_quantity > quantity:
        return RejectionReason(
            code=ReasonCode.INVALID_QUANTITY,
            message=f"non_repairable_quantity {non_repairable_quantity} "
                    f"exceeds quantity {quantity}.",
            policy_name="quantities_must_be_valid_policy")
    return None


def catalog_reference_must_match_type_policy(
    item_type: ItemType, references: Mapping[str, Optional[str]],
) -> Optional[RejectionReason]:
    """Exactly one reference is set and it is the one item_type allows."""
    present = sorted(name for name, value in references.items() if value)
    expected = CATALOG_FIELD_BY_TYPE[item_type]
    if present != [expected]:
        shown = ", ".join(present) if present else "none"
        return RejectionReason(
            code=ReasonCode.CATALOG_REFERENCE_MISMATCH,
            message=f"{item_type.value} line needs exactly {expected}, got {shown}.",
            policy_name="catalog_reference_must_match_type_policy")
    return None


def status_must_be_open_policy(status: OrderStatus) -> Optional[RejectionReason]:
    """INVOICED is only reachable through the invoicing engine."""
    if status not in OPEN_STATUSES:
        return RejectionReason(
            code=ReasonCode.INVALID_STATUS_TRANSITION,
            message=f"Status {status.value} cannot be set directly. "
                    "Use invoicing to issue an invoice.",
            policy_name="status_must_be_open_policy")
    return None
