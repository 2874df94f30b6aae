"""
RSO Invoicing Engine — Policies

Each policy inspects one precondition and returns a RejectionReason
or None. The service evaluates all of them and reports every failure.
"""

from __future__ import annotations

from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.service_orders.models import OrderStatus, PaymentMethod, ServiceOrder


def order_must_not_be_invoiced_policy(order: ServiceOrder) -> Optional[RejectionReason]:
    if order.status == OrderStatus.INVOICED:
        return RejectionReason(
            code=ReasonCode.ORDER_ALREADY_INVOICED,
            message=f"Service order '{order.order_id}' is already invoiced "
                    f"(invoice #{order.invoice_number}).",
            policy_name="order_must_not_be_invoiced_policy")
    return None


def order_must_have_trays_policy(order: ServiceOrder) -> Optional[RejectionReason]:
    if len(order.trays) == 0:
        return RejectionReason(
            code=ReasonCode.ORDER_HAS_NO_TRAYS,
            message=f"Service order '{order.order_id}' has no trays.",
            policy_name="order_must_have_trays_policy")
    return None


def count_unfinalized_trays(order: ServiceOrder) -> int:
    return sum(1 for tray in order.trays if not tray.is_finalized)


def trays_must_be_finalized_policy(order: ServiceOrder) -> Optional[RejectionReason]:
    pending = count_unfinalized_trays(order)
    if pending:
        return RejectionReason(
            code=ReasonCode.TRAYS_NOT_FINALIZED,
            message=f"{pending} tray(s) not finalized.",
            policy_name="trays_must_be_finalized_policy")
    return None


def payment_method_must_be_valid_policy(
    payment_method: Optional[str],
) -> Optional[RejectionReason]:
    if payment_method is None:
        return None
    valid = {m.value for m in PaymentMethod}
    if str(payment_method).strip().upper() not in valid:
        return RejectionReason(
            code=ReasonCode.INVALID_PAYMENT_METHOD,
            message=f"Payment method '{payment_method}' is not one of {sorted(valid)}.",
            policy_name="payment_method_must_be_valid_policy")
    return None


def order_must_be_invoiced_policy(order: ServiceOrder) -> Optional[RejectionReason]:
    if order.status != OrderStatus.INVOICED:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_INVOICED,
            message=f"Service order '{order.order_id}' has no live invoice "
                    f"(status {order.status.value}).",
            policy_name="order_must_be_invoiced_policy")
    return None


def cancel_reason_must_be_present_policy(reason: Optional[str]) -> Optional[RejectionReason]:
    if reason is None or not str(reason).strip():
        return RejectionReason(
            code=ReasonCode.MISSING_REASON,
            message="A cancellation reason is required.",
            policy_name="cancel_reason_must_be_present_policy")
    return None
