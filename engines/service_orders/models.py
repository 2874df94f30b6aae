"""
RSO Service Orders — Order Graph Model
========================================
ServiceOrder (aggregate root) → Tray → LineItem.

RULES (NON-NEGOTIABLE):
- All nodes are frozen; a mutation produces a new ServiceOrder with
  version + 1 (the optimistic-concurrency token)
- locked == (status == INVOICED); only invoicing sets it, only
  cancellation clears it
- unit_price_snapshot is captured once from the catalog when the
  line is created and never re-read
- Trays form an arena indexed by id; parent_tray_id always points to
  a tray that was already in the arena (acyclic by construction)

This file contains NO persistence logic and NO valuation logic.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional, Tuple

from core.primitives.money import ZERO, clamp_pct, d


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class OrderStatus(Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ORDERED = "ORDERED"
    INVOICED = "INVOICED"


OPEN_STATUSES = frozenset({
    OrderStatus.DRAFT,
    OrderStatus.IN_PROGRESS,
    OrderStatus.COMPLETED,
    OrderStatus.ORDERED,
})


class ItemType(Enum):
    SERVICE = "SERVICE"
    PART = "PART"
    INSTRUMENT_ONLY = "INSTRUMENT_ONLY"


class TrayStatus(Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED = "FINALIZED"


class PaymentMethod(Enum):
    CASH = "CASH"
    CARD = "CARD"


# Which catalog reference field each item type is allowed to carry.
CATALOG_FIELD_BY_TYPE: Dict[ItemType, str] = {
    ItemType.SERVICE: "service_id",
    ItemType.PART: "part_id",
    ItemType.INSTRUMENT_ONLY: "instrument_id",
}


# ══════════════════════════════════════════════════════════════
# LINE ITEM
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineItem:
    """
    One billable row inside a tray.

    non_repairable_quantity may exceed quantity on legacy rows; the
    valuator clamps it, the editing policies refuse to create it.
    """
    item_id: uuid.UUID
    tray_id: uuid.UUID
    item_type: ItemType
    name: str
    unit_price_snapshot: Decimal
    quantity: int = 1
    non_repairable_quantity: int = 0
    line_discount_pct: Decimal = ZERO
    urgent: bool = False
    service_id: Optional[str] = None
    part_id: Optional[str] = None
    instrument_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.item_type, ItemType):
            raise ValueError("item_type must be an ItemType.")
        if not isinstance(self.quantity, int) or self.quantity < 0:
            raise ValueError("quantity must be integer >= 0.")
        if (
            not isinstance(self.non_repairable_quantity, int)
            or self.non_repairable_quantity < 0
        ):
            raise ValueError("non_repairable_quantity must be integer >= 0.")
        object.__setattr__(self, "unit_price_snapshot", d(self.unit_price_snapshot))
        object.__setattr__(self, "line_discount_pct", d(self.line_discount_pct))

        references = {
            "service_id": self.service_id,
            "part_id": self.part_id,
            "instrument_id": self.instrument_id,
        }
        present = [name for name, value in references.items() if value is not None]
        if len(present) > 1:
            raise ValueError(
                f"at most one catalog reference may be set, got {present}."
            )
        allowed = CATALOG_FIELD_BY_TYPE[self.item_type]
        if present and present[0] != allowed:
            raise ValueError(
                f"{self.item_type.value} line cannot reference {present[0]}."
            )

    @property
    def catalog_ref(self) -> Optional[str]:
        return getattr(self, CATALOG_FIELD_BY_TYPE[self.item_type])

    def to_dict(self) -> dict:
        return {
            "item_id": str(self.item_id),
            "tray_id": str(self.tray_id),
            "item_type": self.item_type.value,
            "name": self.name,
            "unit_price_snapshot": str(self.unit_price_snapshot),
            "quantity": self.quantity,
            "non_repairable_quantity": self.non_repairable_quantity,
            "line_discount_pct": str(self.line_discount_pct),
            "urgent": self.urgent,
            "service_id": self.service_id,
            "part_id": self.part_id,
            "instrument_id": self.instrument_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LineItem:
        return cls(
            item_id=uuid.UUID(str(data["item_id"])),
            tray_id=uuid.UUID(str(data["tray_id"])),
            item_type=ItemType(data["item_type"]),
            name=data.get("name", ""),
            unit_price_snapshot=d(data["unit_price_snapshot"]),
            quantity=int(data.get("quantity", 1)),
            non_repairable_quantity=int(data.get("non_repairable_quantity", 0)),
            line_discount_pct=d(data.get("line_discount_pct", "0")),
            urgent=bool(data.get("urgent", False)),
            service_id=data.get("service_id"),
            part_id=data.get("part_id"),
            instrument_id=data.get("instrument_id"),
        )


# ══════════════════════════════════════════════════════════════
# TRAY + ARENA
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Tray:
    """Grouping key for line items. No monetary state of its own."""
    tray_id: uuid.UUID
    order_id: uuid.UUID
    label: str = ""
    status: TrayStatus = TrayStatus.OPEN
    parent_tray_id: Optional[uuid.UUID] = None

    @property
    def is_finalized(self) -> bool:
        return self.status == TrayStatus.FINALIZED

    def to_dict(self) -> dict:
        return {
            "tray_id": str(self.tray_id),
            "order_id": str(self.order_id),
            "label": self.label,
            "status": self.status.value,
            "parent_tray_id": (
                None if self.parent_tray_id is None else str(self.parent_tray_id)
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Tray:
        parent = data.get("parent_tray_id")
        return cls(
            tray_id=uuid.UUID(str(data["tray_id"])),
            order_id=uuid.UUID(str(data["order_id"])),
            label=data.get("label", ""),
            status=TrayStatus(data.get("status", TrayStatus.OPEN.value)),
            parent_tray_id=None if parent is None else uuid.UUID(str(parent)),
        )


class TrayArena:
    """
    Immutable, insertion-ordered index of trays with parent pointers.

    A split tray may only point at a tray that is already present,
    so the parent graph is a forest and never contains a cycle.
    """

    def __init__(self, trays: Iterable[Tray] = ()):
        self._trays: Dict[uuid.UUID, Tray] = {}
        for tray in trays:
            if tray.tray_id in self._trays:
                raise ValueError(f"Duplicate tray '{tray.tray_id}'.")
            if tray.parent_tray_id is not None and tray.parent_tray_id not in self._trays:
                raise ValueError(
                    f"Tray '{tray.tray_id}' references unknown or later "
                    f"parent '{tray.parent_tray_id}'."
                )
            self._trays[tray.tray_id] = tray

    def with_tray(self, tray: Tray) -> TrayArena:
        return TrayArena((*self._trays.values(), tray))

    def replace(self, tray: Tray) -> TrayArena:
        current = self._trays.get(tray.tray_id)
        if current is None:
            raise KeyError(tray.tray_id)
        if current.parent_tray_id != tray.parent_tray_id:
            raise ValueError("parent_tray_id of an existing tray cannot change.")
        return TrayArena(
            tray if t.tray_id == tray.tray_id else t for t in self._trays.values()
        )

    def get(self, tray_id: uuid.UUID) -> Optional[Tray]:
        return self._trays.get(tray_id)

    def children_of(self, tray_id: uuid.UUID) -> Tuple[Tray, ...]:
        return tuple(t for t in self._trays.values() if t.parent_tray_id == tray_id)

    def lineage_of(self, tray_id: uuid.UUID) -> Tuple[Tray, ...]:
        """Root-first chain of trays ending with tray_id."""
        chain = []
        current = self._trays.get(tray_id)
        while current is not None:
            chain.append(current)
            parent_id = current.parent_tray_id
            current = None if parent_id is None else self._trays.get(parent_id)
        return tuple(reversed(chain))

    def __contains__(self, tray_id) -> bool:
        return tray_id in self._trays

    def __iter__(self) -> Iterator[Tray]:
        return iter(tuple(self._trays.values()))

    def __len__(self) -> int:
        return len(self._trays)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TrayArena):
            return NotImplemented
        return tuple(self) == tuple(other)

    def __hash__(self) -> int:
        return hash(tuple(self))

    def __repr__(self) -> str:
        return f"TrayArena({list(self._trays.values())!r})"


# ══════════════════════════════════════════════════════════════
# SUBSCRIPTION
# ══════════════════════════════════════════════════════════════

SUBSCRIPTION_SERVICES = "services"
SUBSCRIPTION_PARTS = "parts"
SUBSCRIPTION_BOTH = "both"

STANDARD_SERVICE_PCT = Decimal("10")
STANDARD_PART_PCT = Decimal("5")


@dataclass(frozen=True)
class SubscriptionPlan:
    """Order-level discount split by line category."""
    code: str = "custom"
    service_pct: Decimal = ZERO
    part_pct: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(self, "service_pct", clamp_pct(self.service_pct))
        object.__setattr__(self, "part_pct", clamp_pct(self.part_pct))

    @classmethod
    def from_code(cls, code: str) -> SubscriptionPlan:
        if code == SUBSCRIPTION_SERVICES:
            return cls(code=code, service_pct=STANDARD_SERVICE_PCT)
        if code == SUBSCRIPTION_PARTS:
            return cls(code=code, part_pct=STANDARD_PART_PCT)
        if code == SUBSCRIPTION_BOTH:
            return cls(
                code=code,
                service_pct=STANDARD_SERVICE_PCT,
                part_pct=STANDARD_PART_PCT,
            )
        raise ValueError(f"subscription code '{code}' is not valid.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "service_pct": str(self.service_pct),
            "part_pct": str(self.part_pct),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SubscriptionPlan:
        return cls(
            code=data.get("code", "custom"),
            service_pct=d(data.get("service_pct", "0")),
            part_pct=d(data.get("part_pct", "0")),
        )


# ══════════════════════════════════════════════════════════════
# SERVICE ORDER (aggregate root)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ServiceOrder:
    order_id: uuid.UUID
    tenant_id: str
    customer_id: str
    status: OrderStatus = OrderStatus.DRAFT
    urgent: bool = False
    is_return: bool = False
    cash: bool = False
    card: bool = False
    no_deal: bool = False
    global_discount_pct: Decimal = ZERO
    subscription: Optional[SubscriptionPlan] = None
    locked: bool = False
    invoice_number: Optional[int] = None
    invoiced_at: Optional[datetime] = None
    invoice_note: str = ""
    cancelled: bool = False
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    archived_at: Optional[datetime] = None
    archive_id: Optional[uuid.UUID] = None
    trays: TrayArena = field(default_factory=TrayArena)
    items: Tuple[LineItem, ...] = ()
    version: int = 0

    def __post_init__(self):
        if not isinstance(self.status, OrderStatus):
            raise ValueError("status must be an OrderStatus.")
        if self.locked != (self.status == OrderStatus.INVOICED):
            raise ValueError(
                "locked must be set exactly while the order is INVOICED "
                f"(status={self.status.value}, locked={self.locked})."
            )
        if self.status == OrderStatus.INVOICED and self.invoice_number is None:
            raise ValueError("an INVOICED order must carry an invoice_number.")
        object.__setattr__(self, "global_discount_pct", d(self.global_discount_pct))
        object.__setattr__(self, "items", tuple(self.items))
        for item in self.items:
            if item.tray_id not in self.trays:
                raise ValueError(
                    f"Line item '{item.item_id}' belongs to unknown tray '{item.tray_id}'."
                )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_invoiced(self) -> bool:
        return self.status == OrderStatus.INVOICED

    @property
    def live_invoice_number(self) -> Optional[int]:
        """The invoice number only while the invoice stands (not cancelled)."""
        return self.invoice_number if self.is_invoiced else None

    @property
    def payment_method(self) -> Optional[PaymentMethod]:
        if self.cash:
            return PaymentMethod.CASH
        if self.card:
            return PaymentMethod.CARD
        return None

    def items_for_tray(self, tray_id: uuid.UUID) -> Tuple[LineItem, ...]:
        return tuple(item for item in self.items if item.tray_id == tray_id)

    def get_item(self, item_id: uuid.UUID) -> Optional[LineItem]:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def to_dict(self) -> dict:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return None if value is None else value.isoformat()

        return {
            "order_id": str(self.order_id),
            "tenant_id": self.tenant_id,
            "customer_id": self.customer_id,
            "status": self.status.value,
            "urgent": self.urgent,
            "is_return": self.is_return,
            "cash": self.cash,
            "card": self.card,
            "no_deal": self.no_deal,
            "global_discount_pct": str(self.global_discount_pct),
            "subscription": (
                None if self.subscription is None else self.subscription.to_dict()
            ),
            "locked": self.locked,
            "invoice_number": self.invoice_number,
            "invoiced_at": _iso(self.invoiced_at),
            "invoice_note": self.invoice_note,
            "cancelled": self.cancelled,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": _iso(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "archived_at": _iso(self.archived_at),
            "archive_id": None if self.archive_id is None else str(self.archive_id),
            "trays": [tray.to_dict() for tray in self.trays],
            "items": [item.to_dict() for item in self.items],
            "version": self.version,
        }
