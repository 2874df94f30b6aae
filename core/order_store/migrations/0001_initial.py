import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ServiceOrderRecord",
            fields=[
                ("order_id", models.UUIDField(editable=False, primary_key=True, serialize=False)),
                ("tenant_id", models.CharField(max_length=255)),
                ("customer_id", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("IN_PROGRESS", "In progress"),
                            ("COMPLETED", "Completed"),
                            ("ORDERED", "Ordered"),
                            ("INVOICED", "Invoiced"),
                        ],
                        default="DRAFT",
                        max_length=20,
                    ),
                ),
                ("urgent", models.BooleanField(default=False)),
                ("is_return", models.BooleanField(default=False)),
                ("cash", models.BooleanField(default=False)),
                ("card", models.BooleanField(default=False)),
                ("no_deal", models.BooleanField(default=False)),
                (
                    "global_discount_pct",
                    models.DecimalField(decimal_places=4, default=0, max_digits=9),
                ),
                ("subscription", models.JSONField(blank=True, null=True)),
                ("locked", models.BooleanField(default=False)),
                ("invoice_number", models.PositiveIntegerField(blank=True, null=True)),
                ("invoiced_at", models.DateTimeField(blank=True, null=True)),
                ("invoice_note", models.TextField(blank=True, default="")),
                ("cancelled", models.BooleanField(default=False)),
                ("cancel_reason", models.TextField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_by", models.CharField(blank=True, max_length=255, null=True)),
                ("archived_at", models.DateTimeField(blank=True, null=True)),
                ("archive_id", models.UUIDField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "rso_service_orders",
                "ordering": ["tenant_id", "order_id"],
                "indexes": [
                    models.Index(fields=["tenant_id", "status"], name="idx_order_tenant_status"),
                    models.Index(
                        fields=["tenant_id", "invoice_number"],
                        name="idx_order_tenant_invoice",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TrayRecord",
            fields=[
                ("tray_id", models.UUIDField(editable=False, primary_key=True, serialize=False)),
                ("label", models.CharField(blank=True, default="", max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("OPEN", "Open"),
                            ("IN_PROGRESS", "In progress"),
                            ("FINALIZED", "Finalized"),
                        ],
                        default="OPEN",
                        max_length=20,
                    ),
                ),
                ("parent_tray_id", models.UUIDField(blank=True, null=True)),
                ("position", models.PositiveIntegerField()),
                (
                    "order",
                    models.ForeignKey(
                        db_column="order_id",
                        on_delete=models.deletion.CASCADE,
                        related_name="trays",
                        to="core_order_store.serviceorderrecord",
                    ),
                ),
            ],
            options={
                "db_table": "rso_trays",
                "ordering": ["order_id", "position"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["order", "position"],
                        name="uq_tray_order_position",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LineItemRecord",
            fields=[
                ("item_id", models.UUIDField(editable=False, primary_key=True, serialize=False)),
                (
                    "item_type",
                    models.CharField(
                        choices=[
                            ("SERVICE", "Service"),
                            ("PART", "Part"),
                            ("INSTRUMENT_ONLY", "Instrument only"),
                        ],
                        max_length=20,
                    ),
                ),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("unit_price_snapshot", models.DecimalField(decimal_places=4, max_digits=18)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("non_repairable_quantity", models.PositiveIntegerField(default=0)),
                (
                    "line_discount_pct",
                    models.DecimalField(decimal_places=4, default=0, max_digits=9),
                ),
                ("urgent", models.BooleanField(default=False)),
                ("service_id", models.CharField(blank=True, max_length=255, null=True)),
                ("part_id", models.CharField(blank=True, max_length=255, null=True)),
                ("instrument_id", models.CharField(blank=True, max_length=255, null=True)),
                ("position", models.PositiveIntegerField()),
                (
                    "order",
                    models.ForeignKey(
                        db_column="order_id",
                        on_delete=models.deletion.CASCADE,
                        related_name="items",
                        to="core_order_store.serviceorderrecord",
                    ),
                ),
                (
                    "tray",
                    models.ForeignKey(
                        db_column="tray_id",
                        on_delete=models.deletion.CASCADE,
                        related_name="items",
                        to="core_order_store.trayrecord",
                    ),
                ),
            ],
            options={
                "db_table": "rso_line_items",
                "ordering": ["order_id", "position"],
                "indexes": [
                    models.Index(fields=["tray"], name="idx_line_item_tray"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceCounterRecord",
            fields=[
                ("tenant_id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("next_value", models.PositiveIntegerField(default=1)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "rso_invoice_counters",
                "ordering": ["tenant_id"],
            },
        ),
        migrations.CreateModel(
            name="OrderArchiveRecord",
            fields=[
                (
                    "archive_id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("order_id", models.UUIDField()),
                ("tenant_id", models.CharField(max_length=255)),
                ("invoice_number", models.PositiveIntegerField()),
                ("archived_at", models.DateTimeField()),
                ("archived_by", models.CharField(max_length=255)),
                ("reason", models.CharField(max_length=100)),
                ("payload", models.JSONField(default=dict)),
                ("snapshot_hash", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "rso_order_archive",
                "ordering": ["archived_at", "archive_id"],
                "indexes": [
                    models.Index(fields=["order_id"], name="idx_archive_order"),
                    models.Index(
                        fields=["tenant_id", "invoice_number"],
                        name="idx_archive_tenant_invoice",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditEntryRecord",
            fields=[
                ("entry_id", models.UUIDField(editable=False, primary_key=True, serialize=False)),
                ("entity_type", models.CharField(max_length=50)),
                ("entity_id", models.CharField(max_length=255)),
                ("event_type", models.CharField(max_length=100)),
                ("message", models.TextField(blank=True, default="")),
                ("occurred_at", models.DateTimeField()),
                ("actor_id", models.CharField(blank=True, max_length=255, null=True)),
                ("details", models.JSONField(default=dict)),
            ],
            options={
                "db_table": "rso_audit_entries",
                "ordering": ["occurred_at", "entry_id"],
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id"], name="idx_audit_entity"),
                    models.Index(fields=["event_type"], name="idx_audit_event_type"),
                ],
            },
        ),
    ]
