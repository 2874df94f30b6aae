"""
RSO Django Adapter Views
========================
Thin JSON views over the invoicing service.

Envelope: {"ok": true, "data": ...} or
          {"ok": false, "error": {"code", "message", "details"}}
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_dependencies
from core.commands.rejection import ReasonCode
from core.operations.errors import OperationError, OrderNotFoundError
from engines.invoicing.commands import InvoiceRequest

logger = logging.getLogger("rso.invoicing")


def _json_ok(data: Any, status: int = 200) -> JsonResponse:
    return JsonResponse({"ok": True, "data": data}, status=status)


def _json_error(
    code: str,
    message: str,
    status: int = 400,
    details: dict[str, Any] | None = None,
) -> JsonResponse:
    return JsonResponse(
        {
            "ok": False,
            "error": {"code": code, "message": message, "details": details or {}},
        },
        status=status,
    )


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except Exception as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _rejected(rejections) -> JsonResponse:
    codes = [r.code for r in rejections]
    status = 404 if codes == [ReasonCode.ORDER_NOT_FOUND] else 409
    return _json_error(
        "REJECTED",
        "; ".join(r.message for r in rejections),
        status=status,
        details={"rejections": [r.to_dict() for r in rejections]},
    )


def _operation_failed(exc: OperationError) -> JsonResponse:
    logger.error(f"{exc}", exc_info=True)
    if exc.retryable:
        return _json_error("RETRYABLE_FAILURE", str(exc), status=503)
    return _json_error("OPERATION_FAILED", str(exc), status=500)


def _invoice_request_from_body(body: dict[str, Any]) -> InvoiceRequest:
    return InvoiceRequest(
        global_discount_pct=body.get("global_discount_pct"),
        payment_method=body.get("payment_method"),
        note=body.get("note", ""),
        urgent=body.get("urgent"),
    )


@csrf_exempt
def order_preview_view(request: HttpRequest, order_id: uuid.UUID) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    service = build_dependencies().invoicing_service
    try:
        valuation = service.preview(order_id)
    except OrderNotFoundError as exc:
        return _json_error(ReasonCode.ORDER_NOT_FOUND, str(exc), status=404)
    return _json_ok(valuation.to_dict())


@csrf_exempt
def invoice_details_view(request: HttpRequest, order_id: uuid.UUID) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    service = build_dependencies().invoicing_service
    try:
        details = service.get_invoice_details(order_id)
    except OrderNotFoundError as exc:
        return _json_error(ReasonCode.ORDER_NOT_FOUND, str(exc), status=404)
    return _json_ok(details.to_dict())


@csrf_exempt
def invoice_issue_view(request: HttpRequest, order_id: uuid.UUID) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        invoice_request = _invoice_request_from_body(body)
    except (TypeError, ValueError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)

    service = build_dependencies().invoicing_service
    try:
        outcome = service.invoice(
            order_id, actor_id=body.get("actor_id"), request=invoice_request,
        )
    except OperationError as exc:
        return _operation_failed(exc)
    if not outcome.accepted:
        return _rejected(outcome.rejections)
    return _json_ok(outcome.receipt.to_dict(), status=201)


@csrf_exempt
def invoice_cancel_view(request: HttpRequest, order_id: uuid.UUID) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
    except ValueError as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)

    service = build_dependencies().invoicing_service
    try:
        outcome = service.cancel(
            order_id, reason=body.get("reason"), actor_id=body.get("actor_id"),
        )
    except OperationError as exc:
        return _operation_failed(exc)
    if not outcome.accepted:
        return _rejected(outcome.rejections)
    return _json_ok({
        "order_id": str(outcome.order.order_id),
        "cancelled_invoice_number": outcome.cancelled_invoice_number,
        "status": outcome.order.status.value,
        "cancel_reason": outcome.order.cancel_reason,
    })
