"""
RSO Invoicing Engine — Application Service
============================================
Issues and cancels invoices for service orders.

Invoice flow (NON-NEGOTIABLE):
    1. Take the order's update lock (bounded wait)
    2. Evaluate ALL preconditions; any failure → rejected outcome,
       nothing written, no number consumed
    3. Advance the tenant invoice counter (bounded, retried on timeout)
    4. Value the order once more with the invoice overrides applied
    5. Persist number / date / frozen discount / lock / INVOICED,
       compare-and-set on version and locked == False
    --- lock released, core write committed ---
    6. Archive snapshot, stamp archive id      (best-effort)
    7. Remove from board                       (best-effort)
    8. Emit invoice.issued                     (best-effort)

Steps 6-8 never roll back step 5: their failures are logged and the
invoice stands. Failures of steps 1, 3 and 5 are raised to the caller
as OperationError subclasses.

Cancellation requires a non-blank reason before anything is read.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from core.archive.models import OrderSnapshot
from core.archive.provider import ArchiveStore
from core.audit.emitter import AuditEmitter
from core.audit.models import ENTITY_SERVICE_ORDER
from core.commands.rejection import RejectionReason, collect_rejections
from core.numbering.provider import InvoiceCounter
from core.operations.errors import CounterTimeoutError, OrderNotFoundError
from core.primitives.money import clamp_pct, format_money, money_str
from core.time.clock import Clock
from engines.invoicing.board import BoardCollaborator, NullBoard
from engines.invoicing.commands import InvoiceRequest, InvoicingSettings
from engines.invoicing.events import (
    INVOICE_CANCELLED,
    INVOICE_ISSUED,
    build_invoice_cancelled_details,
    build_invoice_issued_details,
)
from engines.invoicing.policies import (
    cancel_reason_must_be_present_policy,
    count_unfinalized_trays,
    order_must_be_invoiced_policy,
    order_must_have_trays_policy,
    order_must_not_be_invoiced_policy,
    payment_method_must_be_valid_policy,
    trays_must_be_finalized_policy,
)
from engines.invoicing.valuation import (
    OrderValuation,
    ValuationSummary,
    summarize_valuation,
    valuate_order,
)
from engines.service_orders.models import (
    OrderStatus,
    PaymentMethod,
    ServiceOrder,
)
from engines.service_orders.policies import (
    order_must_be_unlocked_policy,
    order_must_exist_policy,
)
from engines.service_orders.repository import ServiceOrderRepository

logger = logging.getLogger("rso.invoicing")

SYSTEM_ACTOR = "system"


# ══════════════════════════════════════════════════════════════
# OUTCOMES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class InvoiceReceipt:
    order_id: uuid.UUID
    invoice_number: int
    display_number: str
    invoiced_at: datetime
    valuation: OrderValuation
    payment_method: Optional[PaymentMethod] = None
    unfinalized_trays: int = 0
    archive_id: Optional[uuid.UUID] = None

    @property
    def final_total(self):
        return self.valuation.final_total

    def to_dict(self) -> dict:
        return {
            "order_id": str(self.order_id),
            "invoice_number": self.invoice_number,
            "display_number": self.display_number,
            "invoiced_at": self.invoiced_at.isoformat(),
            "final_total": money_str(self.final_total),
            "final_total_display": format_money(
                self.final_total, self.valuation.currency,
            ),
            "payment_method": (
                None if self.payment_method is None else self.payment_method.value
            ),
            "unfinalized_trays": self.unfinalized_trays,
            "archive_id": None if self.archive_id is None else str(self.archive_id),
            "valuation": self.valuation.to_dict(),
        }


@dataclass(frozen=True)
class InvoiceOutcome:
    accepted: bool
    order: Optional[ServiceOrder] = None
    receipt: Optional[InvoiceReceipt] = None
    rejections: Tuple[RejectionReason, ...] = ()

    @property
    def rejection_codes(self) -> Tuple[str, ...]:
        return tuple(r.code for r in self.rejections)


@dataclass(frozen=True)
class CancelOutcome:
    accepted: bool
    order: Optional[ServiceOrder] = None
    cancelled_invoice_number: Optional[int] = None
    rejections: Tuple[RejectionReason, ...] = ()

    @property
    def rejection_codes(self) -> Tuple[str, ...]:
        return tuple(r.code for r in self.rejections)


@dataclass(frozen=True)
class InvoiceDetails:
    order: ServiceOrder
    valuation: OrderValuation
    summary: ValuationSummary
    invoice_number: Optional[int] = None
    display_number: Optional[str] = None
    invoiced_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "valuation": self.valuation.to_dict(),
            "summary": {
                "total_items": self.summary.total_items,
                "total_trays": self.summary.total_trays,
                "average_discount_pct": str(self.summary.average_discount_pct),
                "urgent_items": self.summary.urgent_items,
            },
            "invoice_number": self.invoice_number,
            "display_number": self.display_number,
            "invoiced_at": (
                None if self.invoiced_at is None else self.invoiced_at.isoformat()
            ),
        }


def _not_found(order_id: uuid.UUID) -> Tuple[RejectionReason, ...]:
    return collect_rejections(order_must_exist_policy(None, order_id))


def apply_invoice_overrides(order: ServiceOrder, request: InvoiceRequest) -> ServiceOrder:
    """Order as it would be valued with the request's overrides."""
    pct = order.global_discount_pct
    if request.global_discount_pct is not None:
        pct = request.global_discount_pct
    urgent = order.urgent if request.urgent is None else request.urgent
    return dataclasses.replace(order, global_discount_pct=clamp_pct(pct), urgent=urgent)


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class InvoicingService:
    def __init__(
        self,
        *,
        repository: ServiceOrderRepository,
        counter: InvoiceCounter,
        archive: ArchiveStore,
        audit: AuditEmitter,
        clock: Clock,
        board: Optional[BoardCollaborator] = None,
        settings: Optional[InvoicingSettings] = None,
    ):
        self._repository = repository
        self._counter = counter
        self._archive = archive
        self._audit = audit
        self._clock = clock
        self._board = board or NullBoard()
        self._settings = settings or InvoicingSettings()

    @property
    def settings(self) -> InvoicingSettings:
        return self._settings

    # ── Reads ─────────────────────────────────────────────────

    def preview(
        self, order_id: uuid.UUID, request: Optional[InvoiceRequest] = None,
    ) -> OrderValuation:
        """Valuation for live editing. Never writes."""
        order = self._load(order_id)
        if request is not None:
            order = apply_invoice_overrides(order, request)
        return valuate_order(order, self._settings.valuation)

    def get_invoice_details(self, order_id: uuid.UUID) -> InvoiceDetails:
        order = self._load(order_id)
        valuation = valuate_order(order, self._settings.valuation)
        number = order.live_invoice_number
        return InvoiceDetails(
            order=order,
            valuation=valuation,
            summary=summarize_valuation(valuation),
            invoice_number=number,
            display_number=(
                None if number is None
                else self._settings.numbering.format_number(number)
            ),
            invoiced_at=order.invoiced_at if order.is_invoiced else None,
        )

    # ── Invoice ───────────────────────────────────────────────

    def invoice(
        self,
        order_id: uuid.UUID,
        actor_id: Optional[str] = None,
        request: Optional[InvoiceRequest] = None,
    ) -> InvoiceOutcome:
        request = request or InvoiceRequest()
        try:
            with self._repository.lock_for_update(
                order_id, timeout=self._settings.lock_timeout,
            ) as order:
                rejections = self._invoice_rejections(order, request)
                if rejections:
                    logger.info(
                        f"Invoice for order {order_id} rejected: "
                        f"{', '.join(r.code for r in rejections)}"
                    )
                    return InvoiceOutcome(accepted=False, order=order, rejections=rejections)

                prepared = self._prepare_invoice(order, request)
                valuation = valuate_order(prepared, self._settings.valuation)

                invoiced_at = self._clock.now_utc()
                number = self._next_invoice_number(order.tenant_id)
                invoiced = dataclasses.replace(
                    prepared,
                    status=OrderStatus.INVOICED,
                    locked=True,
                    invoice_number=number,
                    invoiced_at=invoiced_at,
                )
                stored = self._repository.save(
                    invoiced,
                    expected_version=order.version,
                    require_unlocked=True,
                )
        except OrderNotFoundError:
            return InvoiceOutcome(accepted=False, rejections=_not_found(order_id))

        display_number = self._settings.numbering.format_number(number)
        unfinalized = count_unfinalized_trays(stored)
        logger.info(
            f"Order {stored.order_id} invoiced as {display_number}, "
            f"total {format_money(valuation.final_total, valuation.currency)}"
        )

        stored, archive_id = self._archive_invoiced(stored, valuation, actor_id)
        self._remove_from_board(stored.order_id)
        self._audit.emit(
            entity_type=ENTITY_SERVICE_ORDER,
            entity_id=stored.order_id,
            event_type=INVOICE_ISSUED,
            message=f"Invoice {display_number} issued, total "
                    f"{format_money(valuation.final_total, valuation.currency)}",
            occurred_at=invoiced_at,
            actor_id=actor_id,
            details=build_invoice_issued_details(
                stored, valuation,
                display_number=display_number,
                unfinalized_trays=unfinalized,
            ),
        )

        receipt = InvoiceReceipt(
            order_id=stored.order_id,
            invoice_number=number,
            display_number=display_number,
            invoiced_at=invoiced_at,
            valuation=valuation,
            payment_method=stored.payment_method,
            unfinalized_trays=unfinalized,
            archive_id=archive_id,
        )
        return InvoiceOutcome(accepted=True, order=stored, receipt=receipt)

    def _invoice_rejections(
        self, order: ServiceOrder, request: InvoiceRequest,
    ) -> Tuple[RejectionReason, ...]:
        results = [
            order_must_not_be_invoiced_policy(order),
            order_must_be_unlocked_policy(order),
            order_must_have_trays_policy(order),
        ]
        if not self._settings.allow_partial_invoicing:
            results.append(trays_must_be_finalized_policy(order))
        results.append(payment_method_must_be_valid_policy(request.payment_method))
        return collect_rejections(*results)

    def _prepare_invoice(self, order: ServiceOrder, request: InvoiceRequest) -> ServiceOrder:
        """Overrides and payment flags, still open; the number is stamped later."""
        order = apply_invoice_overrides(order, request)
        cash, card = order.cash, order.card
        payment = request.resolved_payment_method
        if payment is not None:
            cash = payment == PaymentMethod.CASH
            card = payment == PaymentMethod.CARD
        return dataclasses.replace(
            order,
            invoice_note=request.note,
            cash=cash,
            card=card,
            archived_at=None,
            archive_id=None,
        )

    def _next_invoice_number(self, tenant_id: str) -> int:
        attempts = self._settings.counter_attempts
        attempt = 1
        while True:
            try:
                return self._counter.next_invoice_number(
                    tenant_id, timeout=self._settings.counter_timeout,
                )
            except CounterTimeoutError:
                if attempt >= attempts:
                    logger.error(
                        f"Invoice counter for tenant {tenant_id} timed out "
                        f"{attempts} time(s), giving up"
                    )
                    raise
                logger.warning(
                    f"Invoice counter for tenant {tenant_id} timed out "
                    f"(attempt {attempt}/{attempts}), retrying"
                )
                attempt += 1

    def _archive_invoiced(
        self,
        order: ServiceOrder,
        valuation: OrderValuation,
        actor_id: Optional[str],
    ) -> Tuple[ServiceOrder, Optional[uuid.UUID]]:
        snapshot = OrderSnapshot(
            order_id=order.order_id,
            tenant_id=order.tenant_id,
            invoice_number=order.invoice_number,
            archived_at=order.invoiced_at,
            archived_by=actor_id or SYSTEM_ACTOR,
            reason=INVOICE_ISSUED,
            payload={"order": order.to_dict(), "valuation": valuation.to_dict()},
        )
        try:
            archive_id = self._archive.archive(snapshot)
        except Exception as exc:
            logger.error(
                f"Archive of invoiced order {order.order_id} failed, "
                f"invoice stands: {exc}",
                exc_info=True,
            )
            return order, None

        try:
            stamped = self._repository.save(
                dataclasses.replace(
                    order, archived_at=snapshot.archived_at, archive_id=archive_id,
                ),
                expected_version=order.version,
            )
        except Exception as exc:
            logger.warning(
                f"Archive {archive_id} stored but order {order.order_id} "
                f"could not be stamped: {exc}",
                exc_info=True,
            )
            return order, archive_id
        return stamped, archive_id

    def _remove_from_board(self, order_id: uuid.UUID) -> None:
        try:
            self._board.remove_from_board(order_id)
        except Exception as exc:
            logger.warning(
                f"Board removal of order {order_id} failed: {exc}",
                exc_info=True,
            )

    # ── Cancel ────────────────────────────────────────────────

    def cancel(
        self,
        order_id: uuid.UUID,
        reason: Optional[str],
        actor_id: Optional[str] = None,
    ) -> CancelOutcome:
        rejections = collect_rejections(cancel_reason_must_be_present_policy(reason))
        if rejections:
            return CancelOutcome(accepted=False, rejections=rejections)

        try:
            with self._repository.lock_for_update(
                order_id, timeout=self._settings.lock_timeout,
            ) as order:
                rejections = collect_rejections(order_must_be_invoiced_policy(order))
                if rejections:
                    return CancelOutcome(accepted=False, order=order, rejections=rejections)

                cancelled_at = self._clock.now_utc()
                cancelled = dataclasses.replace(
                    order,
                    status=self._settings.reopened_status,
                    locked=False,
                    cash=False,
                    card=False,
                    cancelled=True,
                    cancel_reason=reason.strip(),
                    cancelled_at=cancelled_at,
                    cancelled_by=actor_id,
                )
                stored = self._repository.save(cancelled, expected_version=order.version)
        except OrderNotFoundError:
            return CancelOutcome(accepted=False, rejections=_not_found(order_id))

        logger.info(
            f"Invoice #{stored.invoice_number} of order {stored.order_id} cancelled, "
            f"order reopened as {stored.status.value}"
        )
        self._audit.emit(
            entity_type=ENTITY_SERVICE_ORDER,
            entity_id=stored.order_id,
            event_type=INVOICE_CANCELLED,
            message=f"Invoice #{stored.invoice_number} cancelled: {stored.cancel_reason}",
            occurred_at=cancelled_at,
            actor_id=actor_id,
            details=build_invoice_cancelled_details(stored),
        )
        return CancelOutcome(
            accepted=True,
            order=stored,
            cancelled_invoice_number=stored.invoice_number,
        )

    # ── Internals ─────────────────────────────────────────────

    def _load(self, order_id: uuid.UUID) -> ServiceOrder:
        order = self._repository.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order
