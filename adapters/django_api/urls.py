"""
RSO Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("orders/<uuid:order_id>/preview", views.order_preview_view),
    path("orders/<uuid:order_id>/invoice", views.invoice_details_view),
    path("orders/<uuid:order_id>/invoice/issue", views.invoice_issue_view),
    path("orders/<uuid:order_id>/invoice/cancel", views.invoice_cancel_view),
]
