"""
RSO Service Orders Engine — Application Service
=================================================
Editing of the order graph (order, trays, line items) before it is
invoiced.

Every edit follows the same path:
    1. Take the order's update lock (bounded wait)
    2. Evaluate ALL policies, collect every rejection
    3. Build the new immutable ServiceOrder
    4. save() compare-and-set on the loaded version
    5. Emit one audit event (best-effort, after the write)

While the order is locked by an invoice every edit is rejected with
ORDER_LOCKED; cancelling the invoice is the only way back.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Union

from core.audit.emitter import AuditEmitter
from core.commands.rejection import ReasonCode, RejectionReason, collect_rejections
from core.operations.errors import OrderNotFoundError
from core.time.clock import Clock
from engines.service_orders.catalog import CatalogLookup
from engines.service_orders.commands import (
    AddLineItemRequest,
    AddTrayRequest,
    CreateOrderRequest,
    RemoveLineItemRequest,
    SetGlobalDiscountRequest,
    SetStatusRequest,
    SetSubscriptionRequest,
    SetTrayStatusRequest,
    SetUrgentRequest,
    SplitTrayRequest,
    UpdateLineItemRequest,
)
from engines.service_orders.events import (
    ENTITY_BY_EVENT_TYPE,
    LINE_ITEM_ADDED,
    LINE_ITEM_REMOVED,
    LINE_ITEM_UPDATED,
    ORDER_CREATED,
    ORDER_GLOBAL_DISCOUNT_SET,
    ORDER_STATUS_CHANGED,
    ORDER_SUBSCRIPTION_SET,
    ORDER_URGENT_SET,
    TRAY_ADDED,
    TRAY_SPLIT,
    TRAY_STATUS_CHANGED,
    build_line_item_details,
    build_line_item_updated_details,
    build_order_created_details,
    build_order_global_discount_details,
    build_order_status_changed_details,
    build_order_subscription_details,
    build_order_urgent_details,
    build_tray_added_details,
    build_tray_split_details,
    build_tray_status_details,
)
from engines.service_orders.models import (
    CATALOG_FIELD_BY_TYPE,
    LineItem,
    ServiceOrder,
    Tray,
)
from engines.service_orders.policies import (
    catalog_reference_must_match_type_policy,
    items_must_belong_to_tray_policy,
    line_item_id_must_be_new_policy,
    line_item_must_exist_policy,
    order_must_exist_policy,
    order_must_be_unlocked_policy,
    quantities_must_be_valid_policy,
    status_must_be_open_policy,
    tray_id_must_be_new_policy,
    tray_must_exist_policy,
)
from engines.service_orders.repository import ServiceOrderRepository

logger = logging.getLogger("rso.orders")


@dataclass(frozen=True)
class ServiceOrderSettings:
    lock_timeout: float = 5.0

    def __post_init__(self):
        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be > 0.")


@dataclass(frozen=True)
class EditOutcome:
    accepted: bool
    order: Optional[ServiceOrder] = None
    rejections: Tuple[RejectionReason, ...] = ()

    @property
    def rejection_codes(self) -> Tuple[str, ...]:
        return tuple(r.code for r in self.rejections)


@dataclass(frozen=True)
class _Change:
    order: ServiceOrder
    event_type: str
    entity_id: uuid.UUID
    message: str
    details: dict = field(default_factory=dict)


_Plan = Callable[[ServiceOrder], Union[_Change, Tuple[RejectionReason, ...], None]]


class ServiceOrderService:
    def __init__(
        self,
        *,
        repository: ServiceOrderRepository,
        catalog: CatalogLookup,
        audit: AuditEmitter,
        clock: Clock,
        settings: Optional[ServiceOrderSettings] = None,
    ):
        self._repository = repository
        self._catalog = catalog
        self._audit = audit
        self._clock = clock
        self._settings = settings or ServiceOrderSettings()

    # ── Orders ────────────────────────────────────────────────

    def create_order(
        self, request: CreateOrderRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        rejections = collect_rejections(status_must_be_open_policy(request.status))
        if rejections:
            return EditOutcome(accepted=False, rejections=rejections)

        order = ServiceOrder(
            order_id=request.order_id or uuid.uuid4(),
            tenant_id=request.tenant_id,
            customer_id=request.customer_id,
            status=request.status,
            urgent=request.urgent,
            is_return=request.is_return,
            no_deal=request.no_deal,
        )
        stored = self._repository.add(order)
        logger.info(f"Service order {stored.order_id} created for tenant {stored.tenant_id}")
        self._emit(
            _Change(
                order=stored,
                event_type=ORDER_CREATED,
                entity_id=stored.order_id,
                message=f"Service order created for customer {stored.customer_id}",
                details=build_order_created_details(stored),
            ),
            actor_id,
        )
        return EditOutcome(accepted=True, order=stored)

    def get_order(self, order_id: uuid.UUID) -> ServiceOrder:
        order = self._repository.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def set_status(
        self, request: SetStatusRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            rejections = collect_rejections(status_must_be_open_policy(request.status))
            if rejections:
                return rejections
            if order.status == request.status:
                return None
            updated = dataclasses.replace(order, status=request.status)
            return _Change(
                order=updated,
                event_type=ORDER_STATUS_CHANGED,
                entity_id=order.order_id,
                message=f"Status {order.status.value} -> {request.status.value}",
                details=build_order_status_changed_details(order, updated),
            )

        return self._edit(request.order_id, actor_id, plan)

    def set_global_discount(
        self, request: SetGlobalDiscountRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            updated = dataclasses.replace(
                order, global_discount_pct=request.global_discount_pct,
            )
            return _Change(
                order=updated,
                event_type=ORDER_GLOBAL_DISCOUNT_SET,
                entity_id=order.order_id,
                message=f"Global discount set to {request.global_discount_pct}%",
                details=build_order_global_discount_details(order, updated),
            )

        return self._edit(request.order_id, actor_id, plan)

    def set_urgent(
        self, request: SetUrgentRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            updated = dataclasses.replace(order, urgent=request.urgent)
            return _Change(
                order=updated,
                event_type=ORDER_URGENT_SET,
                entity_id=order.order_id,
                message="Order marked urgent" if request.urgent else "Order urgency cleared",
                details=build_order_urgent_details(updated),
            )

        return self._edit(request.order_id, actor_id, plan)

    def set_subscription(
        self, request: SetSubscriptionRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            updated = dataclasses.replace(order, subscription=request.subscription)
            label = "none" if request.subscription is None else request.subscription.code
            return _Change(
                order=updated,
                event_type=ORDER_SUBSCRIPTION_SET,
                entity_id=order.order_id,
                message=f"Subscription set to {label}",
                details=build_order_subscription_details(updated),
            )

        return self._edit(request.order_id, actor_id, plan)

    # ── Trays ─────────────────────────────────────────────────

    def add_tray(
        self, request: AddTrayRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            rejections = collect_rejections(
                tray_id_must_be_new_policy(order, request.tray_id),
            )
            if rejections:
                return rejections
            tray = Tray(
                tray_id=request.tray_id or uuid.uuid4(),
                order_id=order.order_id,
                label=request.label,
            )
            updated = dataclasses.replace(order, trays=order.trays.with_tray(tray))
            return _Change(
                order=updated,
                event_type=TRAY_ADDED,
                entity_id=tray.tray_id,
                message=f"Tray '{tray.label}' added",
                details=build_tray_added_details(updated, tray),
            )

        return self._edit(request.order_id, actor_id, plan)

    def split_tray(
        self, request: SplitTrayRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            rejections = collect_rejections(
                tray_must_exist_policy(order, request.source_tray_id),
                tray_id_must_be_new_policy(order, request.tray_id),
                items_must_belong_to_tray_policy(
                    order, request.source_tray_id, request.item_ids,
                ),
            )
            if rejections:
                return rejections
            tray = Tray(
                tray_id=request.tray_id or uuid.uuid4(),
                order_id=order.order_id,
                label=request.label,
                parent_tray_id=request.source_tray_id,
            )
            moving = set(request.item_ids)
            items = tuple(
                dataclasses.replace(item, tray_id=tray.tray_id)
                if item.item_id in moving else item
                for item in order.items
            )
            updated = dataclasses.replace(
                order, trays=order.trays.with_tray(tray), items=items,
            )
            return _Change(
                order=updated,
                event_type=TRAY_SPLIT,
                entity_id=tray.tray_id,
                message=f"Tray split from {request.source_tray_id}, "
                        f"{len(request.item_ids)} item(s) moved",
                details=build_tray_split_details(updated, tray, request.item_ids),
            )

        return self._edit(request.order_id, actor_id, plan)

    def set_tray_status(
        self, request: SetTrayStatusRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            rejections = collect_rejections(
                tray_must_exist_policy(order, request.tray_id),
            )
            if rejections:
                return rejections
            previous = order.trays.get(request.tray_id)
            if previous.status == request.status:
                return None
            tray = dataclasses.replace(previous, status=request.status)
            updated = dataclasses.replace(order, trays=order.trays.replace(tray))
            return _Change(
                order=updated,
                event_type=TRAY_STATUS_CHANGED,
                entity_id=tray.tray_id,
                message=f"Tray {previous.status.value} -> {tray.status.value}",
                details=build_tray_status_details(previous, tray, updated),
            )

        return self._edit(request.order_id, actor_id, plan)

    # ── Line items ────────────────────────────────────────────

    def add_line_item(
        self, request: AddLineItemRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            reference_rejection = catalog_reference_must_match_type_policy(
                request.item_type, request.references,
            )
            catalog_rejection = None
            entry = None
            if reference_rejection is None:
                catalog_id = request.references[CATALOG_FIELD_BY_TYPE[request.item_type]]
                entry = self._catalog.lookup(request.item_type, catalog_id)
                if entry is None:
                    catalog_rejection = RejectionReason(
                        code=ReasonCode.CATALOG_ENTRY_NOT_FOUND,
                        message=f"No {request.item_type.value} '{catalog_id}' in the catalog.",
                        policy_name="catalog_entry_must_exist_policy")
                elif entry.price is None:
                    catalog_rejection = RejectionReason(
                        code=ReasonCode.CATALOG_PRICE_MISSING,
                        message=f"{request.item_type.value} '{catalog_id}' has no price.",
                        policy_name="catalog_entry_must_have_price_policy")

            rejections = collect_rejections(
                tray_must_exist_policy(order, request.tray_id),
                line_item_id_must_be_new_policy(order, request.item_id),
                quantities_must_be_valid_policy(
                    request.quantity, request.non_repairable_quantity,
                ),
                reference_rejection,
                catalog_rejection,
            )
            if rejections:
                return rejections

            item = LineItem(
                item_id=request.item_id or uuid.uuid4(),
                tray_id=request.tray_id,
                item_type=request.item_type,
                name=entry.name,
                unit_price_snapshot=entry.price,
                quantity=request.quantity,
                non_repairable_quantity=request.non_repairable_quantity,
                line_discount_pct=request.line_discount_pct,
                urgent=request.urgent,
                service_id=request.service_id,
                part_id=request.part_id,
                instrument_id=request.instrument_id,
            )
            updated = dataclasses.replace(order, items=order.items + (item,))
            return _Change(
                order=updated,
                event_type=LINE_ITEM_ADDED,
                entity_id=item.item_id,
                message=f"{item.item_type.value} '{item.name}' x{item.quantity} "
                        f"added at {item.unit_price_snapshot}",
                details=build_line_item_details(updated, item),
            )

        return self._edit(request.order_id, actor_id, plan)

    def update_line_item(
        self, request: UpdateLineItemRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            rejections = collect_rejections(
                line_item_must_exist_policy(order, request.item_id),
            )
            if rejections:
                return rejections
            previous = order.get_item(request.item_id)
            changes = {
                name: getattr(request, name)
                for name in (
                    "quantity", "non_repairable_quantity",
                    "line_discount_pct", "urgent",
                )
                if getattr(request, name) is not None
            }
            rejections = collect_rejections(
                quantities_must_be_valid_policy(
                    changes.get("quantity", previous.quantity),
                    changes.get(
                        "non_repairable_quantity", previous.non_repairable_quantity,
                    ),
                ),
            )
            if rejections:
                return rejections
            item = dataclasses.replace(previous, **changes)
            if item == previous:
                return None
            updated = dataclasses.replace(
                order,
                items=tuple(
                    item if i.item_id == item.item_id else i for i in order.items
                ),
            )
            return _Change(
                order=updated,
                event_type=LINE_ITEM_UPDATED,
                entity_id=item.item_id,
                message=f"Line item '{item.name}' updated",
                details=build_line_item_updated_details(updated, previous, item),
            )

        return self._edit(request.order_id, actor_id, plan)

    def remove_line_item(
        self, request: RemoveLineItemRequest, actor_id: Optional[str] = None,
    ) -> EditOutcome:
        def plan(order):
            rejections = collect_rejections(
                line_item_must_exist_policy(order, request.item_id),
            )
            if rejections:
                return rejections
            item = order.get_item(request.item_id)
            updated = dataclasses.replace(
                order,
                items=tuple(i for i in order.items if i.item_id != item.item_id),
            )
            return _Change(
                order=updated,
                event_type=LINE_ITEM_REMOVED,
                entity_id=item.item_id,
                message=f"Line item '{item.name}' removed",
                details=build_line_item_details(updated, item),
            )

        return self._edit(request.order_id, actor_id, plan)

    # ── Internals ─────────────────────────────────────────────

    def _edit(
        self, order_id: uuid.UUID, actor_id: Optional[str], plan: _Plan,
    ) -> EditOutcome:
        try:
            with self._repository.lock_for_update(
                order_id, timeout=self._settings.lock_timeout,
            ) as order:
                rejections = collect_rejections(order_must_be_unlocked_policy(order))
                if rejections:
                    return EditOutcome(accepted=False, order=order, rejections=rejections)

                result = plan(order)
                if result is None:
                    return EditOutcome(accepted=True, order=order)
                if isinstance(result, tuple):
                    return EditOutcome(accepted=False, order=order, rejections=result)

                stored = self._repository.save(
                    result.order, expected_version=order.version,
                )
        except OrderNotFoundError:
            return EditOutcome(
                accepted=False,
                rejections=collect_rejections(order_must_exist_policy(None, order_id)),
            )

        self._emit(dataclasses.replace(result, order=stored), actor_id)
        return EditOutcome(accepted=True, order=stored)

    def _emit(self, change: _Change, actor_id: Optional[str]) -> None:
        self._audit.emit(
            entity_type=ENTITY_BY_EVENT_TYPE[change.event_type],
            entity_id=change.entity_id,
            event_type=change.event_type,
            message=change.message,
            occurred_at=self._clock.now_utc(),
            actor_id=actor_id,
            details=change.details,
        )
