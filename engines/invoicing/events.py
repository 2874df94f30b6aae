"""
RSO Invoicing Engine — Audit Event Types and Detail Builders
"""

from __future__ import annotations

from core.primitives.money import money_str
from engines.invoicing.valuation import OrderValuation
from engines.service_orders.models import ServiceOrder

INVOICE_ISSUED = "invoice.issued"
INVOICE_CANCELLED = "invoice.cancelled"

INVOICING_EVENT_TYPES = (
    INVOICE_ISSUED,
    INVOICE_CANCELLED,
)


def build_invoice_issued_details(
    order: ServiceOrder,
    valuation: OrderValuation,
    *,
    display_number: str,
    unfinalized_trays: int = 0,
) -> dict:
    payment = order.payment_method
    return {
        "order_id": str(order.order_id),
        "tenant_id": order.tenant_id,
        "invoice_number": order.invoice_number,
        "display_number": display_number,
        "invoiced_at": order.invoiced_at.isoformat(),
        "final_total": money_str(valuation.final_total),
        "currency": valuation.currency,
        "global_discount_pct": str(valuation.global_discount_pct),
        "payment_method": None if payment is None else payment.value,
        "unfinalized_trays": unfinalized_trays,
    }


def build_invoice_cancelled_details(order: ServiceOrder) -> dict:
    return {
        "order_id": str(order.order_id),
        "tenant_id": order.tenant_id,
        "invoice_number": order.invoice_number,
        "reason": order.cancel_reason,
        "cancelled_at": order.cancelled_at.isoformat(),
        "reopened_status": order.status.value,
    }
