"""
RSO Order Store - App Configuration
====================================
Relational persistence for service orders, the invoice counter,
the invoice archive and the audit log.
"""

from django.apps import AppConfig


class CoreOrderStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.order_store"
    label = "core_order_store"
    verbose_name = "RSO Order Store"
