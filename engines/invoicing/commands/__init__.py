"""
RSO Invoicing Engine — Requests and Settings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from core.numbering.models import NumberingPolicy
from core.primitives.money import d
from engines.invoicing.valuation import DEFAULT_VALUATION_SETTINGS, ValuationSettings
from engines.service_orders.models import OPEN_STATUSES, OrderStatus, PaymentMethod


@dataclass(frozen=True)
class InvoicingSettings:
    """
    Fields:
        reopened_status:         status an order returns to on cancel
        allow_partial_invoicing: unfinalized trays become a warning count
                                 on the receipt instead of a rejection
        lock_timeout:            seconds to wait for the order update lock
        counter_timeout:         seconds per attempt to advance the counter
        counter_attempts:        attempts before CounterTimeoutError surfaces
        numbering:               display format of issued numbers
        valuation:               urgency rate and currency
    """
    reopened_status: OrderStatus = OrderStatus.IN_PROGRESS
    allow_partial_invoicing: bool = False
    lock_timeout: float = 5.0
    counter_timeout: float = 2.0
    counter_attempts: int = 3
    numbering: NumberingPolicy = field(default_factory=NumberingPolicy)
    valuation: ValuationSettings = DEFAULT_VALUATION_SETTINGS

    def __post_init__(self):
        if self.reopened_status not in OPEN_STATUSES:
            raise ValueError(
                f"reopened_status must be an open status, got {self.reopened_status}."
            )
        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be > 0.")
        if self.counter_timeout <= 0:
            raise ValueError("counter_timeout must be > 0.")
        if not isinstance(self.counter_attempts, int) or self.counter_attempts < 1:
            raise ValueError("counter_attempts must be int >= 1.")


@dataclass(frozen=True)
class InvoiceRequest:
    """
    Optional overrides applied at invoicing time.

    global_discount_pct: replaces the order's global discount and is
                         frozen on the invoice (clamped into [0, 100])
    payment_method:      "CASH" / "CARD"; checked by policy so an
                         unknown value is a rejection, not an exception
    note:                free text kept on the order
    urgent:              replaces the order's urgent flag
    """
    global_discount_pct: Optional[Decimal] = None
    payment_method: Optional[str] = None
    note: str = ""
    urgent: Optional[bool] = None

    def __post_init__(self):
        if self.global_discount_pct is not None:
            object.__setattr__(self, "global_discount_pct", d(self.global_discount_pct))
        if isinstance(self.payment_method, PaymentMethod):
            object.__setattr__(self, "payment_method", self.payment_method.value)
        if self.note is None:
            object.__setattr__(self, "note", "")
        if not isinstance(self.note, str):
            raise ValueError("note must be a string.")
        if self.urgent is not None and not isinstance(self.urgent, bool):
            raise ValueError("urgent must be a bool.")

    @property
    def resolved_payment_method(self) -> Optional[PaymentMethod]:
        if self.payment_method is None:
            return None
        return PaymentMethod(str(self.payment_method).strip().upper())
