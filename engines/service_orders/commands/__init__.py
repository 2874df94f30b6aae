"""
RSO Service Orders Engine — Request Commands
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from core.primitives.money import ZERO, d
from engines.service_orders.models import (
    ItemType,
    OrderStatus,
    SubscriptionPlan,
    TrayStatus,
)


def _require_uuid(value, name: str) -> None:
    if not isinstance(value, uuid.UUID):
        raise ValueError(f"{name} must be a UUID.")


@dataclass(frozen=True)
class CreateOrderRequest:
    tenant_id: str
    customer_id: str
    urgent: bool = False
    is_return: bool = False
    no_deal: bool = False
    status: OrderStatus = OrderStatus.DRAFT
    order_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        if not self.tenant_id:
            raise ValueError("tenant_id must be non-empty.")
        if not self.customer_id:
            raise ValueError("customer_id must be non-empty.")
        if not isinstance(self.status, OrderStatus):
            raise ValueError("status must be an OrderStatus.")
        if self.order_id is not None:
            _require_uuid(self.order_id, "order_id")


@dataclass(frozen=True)
class AddTrayRequest:
    order_id: uuid.UUID
    label: str = ""
    tray_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        if self.tray_id is not None:
            _require_uuid(self.tray_id, "tray_id")


@dataclass(frozen=True)
class SplitTrayRequest:
    """Open a child tray under source_tray_id and move item_ids into it."""
    order_id: uuid.UUID
    source_tray_id: uuid.UUID
    item_ids: Tuple[uuid.UUID, ...] = ()
    label: str = ""
    tray_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        _require_uuid(self.source_tray_id, "source_tray_id")
        object.__setattr__(self, "item_ids", tuple(self.item_ids))
        for item_id in self.item_ids:
            _require_uuid(item_id, "item_ids[]")
        if self.tray_id is not None:
            _require_uuid(self.tray_id, "tray_id")


@dataclass(frozen=True)
class SetTrayStatusRequest:
    order_id: uuid.UUID
    tray_id: uuid.UUID
    status: TrayStatus

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        _require_uuid(self.tray_id, "tray_id")
        if not isinstance(self.status, TrayStatus):
            raise ValueError("status must be a TrayStatus.")


@dataclass(frozen=True)
class AddLineItemRequest:
    """
    Exactly one of service_id / part_id / instrument_id names the
    catalog entry; which one must match item_type. Quantities are
    checked by policies so the caller gets every problem at once.
    """
    order_id: uuid.UUID
    tray_id: uuid.UUID
    item_type: ItemType
    service_id: Optional[str] = None
    part_id: Optional[str] = None
    instrument_id: Optional[str] = None
    quantity: int = 1
    non_repairable_quantity: int = 0
    line_discount_pct: Decimal = ZERO
    urgent: bool = False
    item_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        _require_uuid(self.tray_id, "tray_id")
        if not isinstance(self.item_type, ItemType):
            raise ValueError("item_type must be an ItemType.")
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool):
            raise ValueError("quantity must be an integer.")
        if (
            not isinstance(self.non_repairable_quantity, int)
            or isinstance(self.non_repairable_quantity, bool)
        ):
            raise ValueError("non_repairable_quantity must be an integer.")
        object.__setattr__(self, "line_discount_pct", d(self.line_discount_pct))
        if self.item_id is not None:
            _require_uuid(self.item_id, "item_id")

    @property
    def references(self) -> dict:
        return {
            "service_id": self.service_id,
            "part_id": self.part_id,
            "instrument_id": self.instrument_id,
        }


@dataclass(frozen=True)
class UpdateLineItemRequest:
    """None leaves the field as it is."""
    order_id: uuid.UUID
    item_id: uuid.UUID
    quantity: Optional[int] = None
    non_repairable_quantity: Optional[int] = None
    line_discount_pct: Optional[Decimal] = None
    urgent: Optional[bool] = None

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        _require_uuid(self.item_id, "item_id")
        for name in ("quantity", "non_repairable_quantity"):
            value = getattr(self, name)
            if value is not None and (
                not isinstance(value, int) or isinstance(value, bool)
            ):
                raise ValueError(f"{name} must be an integer.")
        if self.line_discount_pct is not None:
            object.__setattr__(self, "line_discount_pct", d(self.line_discount_pct))

    @property
    def is_empty(self) -> bool:
        return (
            self.quantity is None
            and self.non_repairable_quantity is None
            and self.line_discount_pct is None
            and self.urgent is None
        )


@dataclass(frozen=True)
class RemoveLineItemRequest:
    order_id: uuid.UUID
    item_id: uuid.UUID

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        _require_uuid(self.item_id, "item_id")


@dataclass(frozen=True)
class SetGlobalDiscountRequest:
    """Stored as given; valuation clamps into [0, 100]."""
    order_id: uuid.UUID
    global_discount_pct: Decimal

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        object.__setattr__(self, "global_discount_pct", d(self.global_discount_pct))


@dataclass(frozen=True)
class SetUrgentRequest:
    order_id: uuid.UUID
    urgent: bool

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        if not isinstance(self.urgent, bool):
            raise ValueError("urgent must be a bool.")


@dataclass(frozen=True)
class SetSubscriptionRequest:
    """subscription=None removes the plan from the order."""
    order_id: uuid.UUID
    subscription: Optional[SubscriptionPlan] = None

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        if self.subscription is not None and not isinstance(
            self.subscription, SubscriptionPlan
        ):
            raise ValueError("subscription must be a SubscriptionPlan.")


@dataclass(frozen=True)
class SetStatusRequest:
    order_id: uuid.UUID
    status: OrderStatus

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")
        if not isinstance(self.status, OrderStatus):
            raise ValueError("status must be an OrderStatus.")
