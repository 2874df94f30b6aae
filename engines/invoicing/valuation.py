"""
RSO Invoicing — Order Valuation
=================================
Line → tray → order valuation with stacked discounts.

RULES (NON-NEGOTIABLE):
- Deterministic and pure: same order snapshot → identical result,
  no I/O, no clock, no mutation; safe to call concurrently
- Full Decimal precision in every running sum; rounding to the minor
  unit happens only at the boundary (OrderValuation.final_total and
  the to_dict() display forms)
- Order of operations is fixed (changing it breaks parity with
  already issued invoices):

    line:  billable qty → subtotal → line discount → urgency reduction
    order: Σ trays → subscription (by category) → global discount

- Urgency applies only when BOTH the line and the order are urgent,
  and is computed on the post-line-discount amount
- Percentages are clamped into [0, 100] before use
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Tuple

from core.primitives.money import (
    DEFAULT_CURRENCY,
    HUNDRED,
    ZERO,
    clamp_pct,
    d,
    money_str,
    round_money,
)
from engines.service_orders.models import (
    ItemType,
    LineItem,
    ServiceOrder,
    Tray,
)


# ══════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════

CANONICAL_URGENCY_RATE = Decimal("0.10")


@dataclass(frozen=True)
class ValuationSettings:
    urgency_rate: Decimal = CANONICAL_URGENCY_RATE
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self):
        rate = d(self.urgency_rate)
        if rate < ZERO or rate > Decimal("1"):
            raise ValueError("urgency_rate must be within [0, 1].")
        object.__setattr__(self, "urgency_rate", rate)


DEFAULT_VALUATION_SETTINGS = ValuationSettings()


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineValuation:
    item_id: object
    tray_id: object
    item_type: ItemType
    urgent: bool
    billable_quantity: int
    unit_price: Decimal
    subtotal: Decimal
    line_discount_pct: Decimal
    line_discount_amount: Decimal
    after_line_discount: Decimal
    urgency_adjustment: Decimal
    line_total: Decimal

    @property
    def urgency_applied(self) -> bool:
        return self.urgency_adjustment != ZERO

    def to_dict(self) -> dict:
        return {
            "item_id": str(self.item_id),
            "tray_id": str(self.tray_id),
            "item_type": self.item_type.value,
            "urgent": self.urgent,
            "billable_quantity": self.billable_quantity,
            "unit_price": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
            "line_discount_pct": str(self.line_discount_pct),
            "line_discount_amount": money_str(self.line_discount_amount),
            "after_line_discount": money_str(self.after_line_discount),
            "urgency_adjustment": money_str(self.urgency_adjustment),
            "line_total": money_str(self.line_total),
        }


@dataclass(frozen=True)
class TrayValuation:
    tray_id: object
    lines: Tuple[LineValuation, ...]
    subtotal: Decimal
    line_discount_total: Decimal
    urgency_total: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "tray_id": str(self.tray_id),
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": money_str(self.subtotal),
            "line_discount_total": money_str(self.line_discount_total),
            "urgency_total": money_str(self.urgency_total),
            "total": money_str(self.total),
        }


@dataclass(frozen=True)
class OrderValuation:
    order_id: object
    trays: Tuple[TrayValuation, ...]
    tray_total: Decimal
    service_category_total: Decimal
    part_category_total: Decimal
    subscription_service_pct: Decimal
    subscription_part_pct: Decimal
    subscription_discount: Decimal
    after_subscription: Decimal
    global_discount_pct: Decimal
    global_discount: Decimal
    exact_final_total: Decimal
    currency: str = DEFAULT_CURRENCY

    @property
    def final_total(self) -> Decimal:
        return round_money(self.exact_final_total)

    @property
    def lines(self) -> Tuple[LineValuation, ...]:
        return tuple(line for tray in self.trays for line in tray.lines)

    def to_dict(self) -> dict:
        return {
            "order_id": str(self.order_id),
            "currency": self.currency,
            "trays": [tray.to_dict() for tray in self.trays],
            "tray_total": money_str(self.tray_total),
            "service_category_total": money_str(self.service_category_total),
            "part_category_total": money_str(self.part_category_total),
            "subscription_service_pct": str(self.subscription_service_pct),
            "subscription_part_pct": str(self.subscription_part_pct),
            "subscription_discount": money_str(self.subscription_discount),
            "after_subscription": money_str(self.after_subscription),
            "global_discount_pct": str(self.global_discount_pct),
            "global_discount": money_str(self.global_discount),
            "final_total": money_str(self.final_total),
        }


# ══════════════════════════════════════════════════════════════
# VALUATORS
# ══════════════════════════════════════════════════════════════

def billable_quantity(item: LineItem) -> int:
    """quantity minus the non-repairable units, never negative."""
    non_repairable = min(item.non_repairable_quantity, item.quantity)
    return max(0, item.quantity - non_repairable)


def valuate_line(
    item: LineItem,
    order_urgent: bool,
    settings: ValuationSettings = DEFAULT_VALUATION_SETTINGS,
) -> LineValuation:
    qty = billable_quantity(item)
    subtotal = Decimal(qty) * item.unit_price_snapshot
    pct = clamp_pct(item.line_discount_pct)
    after_line_discount = subtotal * (1 - pct / HUNDRED)

    urgency_adjustment = ZERO
    if item.urgent and order_urgent:
        urgency_adjustment = after_line_discount * settings.urgency_rate

    return LineValuation(
        item_id=item.item_id,
        tray_id=item.tray_id,
        item_type=item.item_type,
        urgent=item.urgent,
        billable_quantity=qty,
        unit_price=item.unit_price_snapshot,
        subtotal=subtotal,
        line_discount_pct=pct,
        line_discount_amount=subtotal - after_line_discount,
        after_line_discount=after_line_discount,
        urgency_adjustment=urgency_adjustment,
        line_total=after_line_discount - urgency_adjustment,
    )


def valuate_tray(
    tray: Tray,
    items: Iterable[LineItem],
    order_urgent: bool,
    settings: ValuationSettings = DEFAULT_VALUATION_SETTINGS,
) -> TrayValuation:
    lines = tuple(valuate_line(item, order_urgent, settings) for item in items)
    return TrayValuation(
        tray_id=tray.tray_id,
        lines=lines,
        subtotal=sum((line.subtotal for line in lines), ZERO),
        line_discount_total=sum((line.line_discount_amount for line in lines), ZERO),
        urgency_total=sum((line.urgency_adjustment for line in lines), ZERO),
        total=sum((line.line_total for line in lines), ZERO),
    )


def _category_total(trays: Iterable[TrayValuation], item_type: ItemType) -> Decimal:
    return sum(
        (
            line.line_total
            for tray in trays
            for line in tray.lines
            if line.item_type == item_type
        ),
        ZERO,
    )


def valuate_order(
    order: ServiceOrder,
    settings: ValuationSettings = DEFAULT_VALUATION_SETTINGS,
) -> OrderValuation:
    trays = tuple(
        valuate_tray(tray, order.items_for_tray(tray.tray_id), order.urgent, settings)
        for tray in order.trays
    )
    tray_total = sum((tray.total for tray in trays), ZERO)

    service_total = _category_total(trays, ItemType.SERVICE)
    part_total = _category_total(trays, ItemType.PART)
    service_pct = ZERO
    part_pct = ZERO
    if order.subscription is not None:
        service_pct = clamp_pct(order.subscription.service_pct)
        part_pct = clamp_pct(order.subscription.part_pct)
    subscription_discount = (
        service_total * service_pct / HUNDRED + part_total * part_pct / HUNDRED
    )
    after_subscription = tray_total - subscription_discount

    global_pct = clamp_pct(order.global_discount_pct)
    global_discount = after_subscription * global_pct / HUNDRED

    return OrderValuation(
        order_id=order.order_id,
        trays=trays,
        tray_total=tray_total,
        service_category_total=service_total,
        part_category_total=part_total,
        subscription_service_pct=service_pct,
        subscription_part_pct=part_pct,
        subscription_discount=subscription_discount,
        after_subscription=after_subscription,
        global_discount_pct=global_pct,
        global_discount=global_discount,
        exact_final_total=after_subscription - global_discount,
        currency=settings.currency,
    )


# ══════════════════════════════════════════════════════════════
# SUMMARY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ValuationSummary:
    total_items: int
    total_trays: int
    average_discount_pct: Decimal
    urgent_items: int


def summarize_valuation(valuation: OrderValuation) -> ValuationSummary:
    lines = valuation.lines
    average = ZERO
    if lines:
        average = round_money(
            sum((line.line_discount_pct for line in lines), ZERO) / len(lines)
        )
    return ValuationSummary(
        total_items=len(lines),
        total_trays=len(valuation.trays),
        average_discount_pct=average,
        urgent_items=sum(1 for line in lines if line.urgent),
    )
