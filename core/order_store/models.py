"""
RSO Order Store - Relational Order State
=========================================
DB-backed order graph (order → trays → line items), the per-tenant
invoice counter, the write-once invoice archive and the audit log.
"""

from __future__ import annotations

import uuid

from django.db import models


class OrderStatusChoice(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    COMPLETED = "COMPLETED", "Completed"
    ORDERED = "ORDERED", "Ordered"
    INVOICED = "INVOICED", "Invoiced"


class TrayStatusChoice(models.TextChoices):
    OPEN = "OPEN", "Open"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    FINALIZED = "FINALIZED", "Finalized"


class ItemTypeChoice(models.TextChoices):
    SERVICE = "SERVICE", "Service"
    PART = "PART", "Part"
    INSTRUMENT_ONLY = "INSTRUMENT_ONLY", "Instrument only"


class ServiceOrderRecord(models.Model):
    order_id = models.UUIDField(primary_key=True, editable=False)
    tenant_id = models.CharField(max_length=255)
    customer_id = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20,
        choices=OrderStatusChoice.choices,
        default=OrderStatusChoice.DRAFT,
    )
    urgent = models.BooleanField(default=False)
    is_return = models.BooleanField(default=False)
    cash = models.BooleanField(default=False)
    card = models.BooleanField(default=False)
    no_deal = models.BooleanField(default=False)
    global_discount_pct = models.DecimalField(max_digits=9, decimal_places=4, default=0)
    subscription = models.JSONField(null=True, blank=True)
    locked = models.BooleanField(default=False)
    invoice_number = models.PositiveIntegerField(null=True, blank=True)
    invoiced_at = models.DateTimeField(null=True, blank=True)
    invoice_note = models.TextField(default="", blank=True)
    cancelled = models.BooleanField(default=False)
    cancel_reason = models.TextField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=255, null=True, blank=True)
    archived_at = models.DateTimeField(null=True, blank=True)
    archive_id = models.UUIDField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "rso_service_orders"
        ordering = ["tenant_id", "order_id"]
        indexes = [
            models.Index(fields=["tenant_id", "status"], name="idx_order_tenant_status"),
            models.Index(
                fields=["tenant_id", "invoice_number"],
                name="idx_order_tenant_invoice",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} ({self.status})"


class TrayRecord(models.Model):
    tray_id = models.UUIDField(primary_key=True, editable=False)
    order = models.ForeignKey(
        ServiceOrderRecord,
        on_delete=models.CASCADE,
        related_name="trays",
        db_column="order_id",
    )
    label = models.CharField(max_length=255, default="", blank=True)
    status = models.CharField(
        max_length=20,
        choices=TrayStatusChoice.choices,
        default=TrayStatusChoice.OPEN,
    )
    parent_tray_id = models.UUIDField(null=True, blank=True)
    position = models.PositiveIntegerField()

    class Meta:
        db_table = "rso_trays"
        ordering = ["order_id", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "position"],
                name="uq_tray_order_position",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.tray_id} ({self.label})"


class LineItemRecord(models.Model):
    item_id = models.UUIDField(primary_key=True, editable=False)
    order = models.ForeignKey(
        ServiceOrderRecord,
        on_delete=models.CASCADE,
        related_name="items",
        db_column="order_id",
    )
    tray = models.ForeignKey(
        TrayRecord,
        on_delete=models.CASCADE,
        related_name="items",
        db_column="tray_id",
    )
    item_type = models.CharField(max_length=20, choices=ItemTypeChoice.choices)
    name = models.CharField(max_length=255, default="", blank=True)
    unit_price_snapshot = models.DecimalField(max_digits=18, decimal_places=4)
    quantity = models.PositiveIntegerField(default=1)
    non_repairable_quantity = models.PositiveIntegerField(default=0)
    line_discount_pct = models.DecimalField(max_digits=9, decimal_places=4, default=0)
    urgent = models.BooleanField(default=False)
    service_id = models.CharField(max_length=255, null=True, blank=True)
    part_id = models.CharField(max_length=255, null=True, blank=True)
    instrument_id = models.CharField(max_length=255, null=True, blank=True)
    position = models.PositiveIntegerField()

    class Meta:
        db_table = "rso_line_items"
        ordering = ["order_id", "position"]
        indexes = [
            models.Index(fields=["tray"], name="idx_line_item_tray"),
        ]

    def __str__(self) -> str:
        return f"{self.item_id} ({self.item_type} {self.name})"


class InvoiceCounterRecord(models.Model):
    tenant_id = models.CharField(primary_key=True, max_length=255)
    next_value = models.PositiveIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "rso_invoice_counters"
        ordering = ["tenant_id"]

    def __str__(self) -> str:
        return f"{self.tenant_id} -> {self.next_value}"


class OrderArchiveRecord(models.Model):
    archive_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_id = models.UUIDField()
    tenant_id = models.CharField(max_length=255)
    invoice_number = models.PositiveIntegerField()
    archived_at = models.DateTimeField()
    archived_by = models.CharField(max_length=255)
    reason = models.CharField(max_length=100)
    payload = models.JSONField(default=dict)
    snapshot_hash = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "rso_order_archive"
        ordering = ["archived_at", "archive_id"]
        indexes = [
            models.Index(fields=["order_id"], name="idx_archive_order"),
            models.Index(
                fields=["tenant_id", "invoice_number"],
                name="idx_archive_tenant_invoice",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.archive_id} (#{self.invoice_number})"


class AuditEntryRecord(models.Model):
    entry_id = models.UUIDField(primary_key=True, editable=False)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=255)
    event_type = models.CharField(max_length=100)
    message = models.TextField(default="", blank=True)
    occurred_at = models.DateTimeField()
    actor_id = models.CharField(max_length=255, null=True, blank=True)
    details = models.JSONField(default=dict)

    class Meta:
        db_table = "rso_audit_entries"
        ordering = ["occurred_at", "entry_id"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="idx_audit_entity"),
            models.Index(fields=["event_type"], name="idx_audit_event_type"),
        ]

    def __str__(self) -> str:
        return f"{self.event_type} {self.entity_type}:{self.entity_id}"
