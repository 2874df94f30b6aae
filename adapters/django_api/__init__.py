"""
RSO Django HTTP adapter.
Thin framework glue over the invoicing engine.
"""

from adapters.django_api.wiring import (
    ApiDependencies,
    build_dependencies,
    build_invoicing_settings,
    reset_dependencies,
)

__all__ = [
    "ApiDependencies",
    "build_dependencies",
    "build_invoicing_settings",
    "reset_dependencies",
]
