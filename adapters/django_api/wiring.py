"""
RSO Django Adapter Wiring
=========================
Constructs the invoicing service for the HTTP adapter from Django
settings (RSO_* values) and the order_store DB providers.

This module is adapter-only glue:
- no engine logic
- one lazily built, process-wide set of dependencies
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from core.audit.emitter import AuditEmitter
from core.numbering.models import NumberingPolicy
from core.order_store.archive import DbArchiveStore
from core.order_store.audit import DbAuditLog
from core.order_store.counter import DbInvoiceCounter
from core.order_store.repository import DjangoServiceOrderRepository
from core.time.clock import SystemClock
from engines.invoicing.board import NullBoard
from engines.invoicing.commands import InvoicingSettings
from engines.invoicing.services import InvoicingService
from engines.invoicing.valuation import ValuationSettings
from engines.service_orders.models import OrderStatus


@dataclass(frozen=True)
class ApiDependencies:
    invoicing_service: InvoicingService
    audit: AuditEmitter


_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: ApiDependencies | None = None


def build_invoicing_settings() -> InvoicingSettings:
    numbering = NumberingPolicy(
        prefix=getattr(settings, "RSO_INVOICE_PREFIX", ""),
        suffix=getattr(settings, "RSO_INVOICE_SUFFIX", ""),
        padding=int(getattr(settings, "RSO_INVOICE_PADDING", 1)),
        start_at=int(getattr(settings, "RSO_INVOICE_START_AT", 1)),
    )
    valuation = ValuationSettings(
        urgency_rate=Decimal(str(getattr(settings, "RSO_URGENCY_RATE", "0.10"))),
        currency=getattr(settings, "RSO_CURRENCY", "RON"),
    )
    return InvoicingSettings(
        reopened_status=OrderStatus(
            getattr(settings, "RSO_REOPENED_STATUS", OrderStatus.IN_PROGRESS.value)
        ),
        allow_partial_invoicing=bool(
            getattr(settings, "RSO_ALLOW_PARTIAL_INVOICING", False)
        ),
        lock_timeout=float(getattr(settings, "RSO_LOCK_TIMEOUT_SECONDS", 5.0)),
        counter_timeout=float(getattr(settings, "RSO_COUNTER_TIMEOUT_SECONDS", 2.0)),
        counter_attempts=int(getattr(settings, "RSO_COUNTER_ATTEMPTS", 3)),
        numbering=numbering,
        valuation=valuation,
    )


def _create_dependencies() -> ApiDependencies:
    invoicing_settings = build_invoicing_settings()
    audit = AuditEmitter(DbAuditLog())
    service = InvoicingService(
        repository=DjangoServiceOrderRepository(),
        counter=DbInvoiceCounter(invoicing_settings.numbering),
        archive=DbArchiveStore(),
        audit=audit,
        clock=SystemClock(),
        board=NullBoard(),
        settings=invoicing_settings,
    )
    return ApiDependencies(invoicing_service=service, audit=audit)


def build_dependencies() -> ApiDependencies:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _create_dependencies()
        return _DEPENDENCIES


def reset_dependencies() -> None:
    """Drop the singleton (tests and settings overrides)."""
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is not None:
            _DEPENDENCIES.audit.shutdown()
        _DEPENDENCIES = None
