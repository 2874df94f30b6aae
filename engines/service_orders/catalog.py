"""
RSO Service Orders — Catalog Lookup Port
==========================================
Consulted exactly once per line item, when the line is created, to
capture name + unit price. Valuation never reads the catalog.

A missing entry and an entry without a price are different states:
lookup() returns None for the first, CatalogEntry(price=None) for the
second.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from core.primitives.money import d
from engines.service_orders.models import ItemType


@dataclass(frozen=True)
class CatalogEntry:
    catalog_id: str
    item_type: ItemType
    name: str
    price: Optional[Decimal] = None

    def __post_init__(self):
        if self.price is not None:
            object.__setattr__(self, "price", d(self.price))


class CatalogLookup(Protocol):
    def lookup(self, item_type: ItemType, catalog_id: str) -> Optional[CatalogEntry]:
        ...


class InMemoryCatalog:
    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: dict[tuple[ItemType, str], CatalogEntry] = {}
        for entry in entries:
            key = (entry.item_type, entry.catalog_id)
            if key in self._entries:
                raise ValueError(
                    f"Duplicate catalog entry {entry.item_type.value}:{entry.catalog_id}."
                )
            self._entries[key] = entry

    def lookup(self, item_type: ItemType, catalog_id: str) -> Optional[CatalogEntry]:
        return self._entries.get((item_type, catalog_id))
