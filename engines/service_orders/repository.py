"""
RSO Service Orders — Repository Port
======================================
Protocol + in-memory implementation for loading and storing the
order graph. The Django ORM implementation lives in
core.order_store.repository.

Doctrine:
- get() returns one consistent snapshot of the whole graph.
- save() is compare-and-set on version (and optionally on locked=False);
  the stored order comes back with version = expected_version + 1.
- lock_for_update() serializes writers of ONE order and gives up after
  a bounded timeout (LockTimeoutError), it never blocks forever.
"""

from __future__ import annotations

import dataclasses
import threading
import uuid
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, Optional, Protocol

from core.operations.errors import (
    ConcurrentModificationError,
    LockTimeoutError,
    OrderNotFoundError,
    PersistenceError,
)
from engines.service_orders.models import ServiceOrder


class ServiceOrderRepository(Protocol):
    def get(self, order_id: uuid.UUID) -> Optional[ServiceOrder]:
        ...

    def add(self, order: ServiceOrder) -> ServiceOrder:
        ...

    def save(
        self,
        order: ServiceOrder,
        *,
        expected_version: int,
        require_unlocked: bool = False,
    ) -> ServiceOrder:
        ...

    def lock_for_update(
        self,
        order_id: uuid.UUID,
        *,
        timeout: float,
    ) -> ContextManager[ServiceOrder]:
        ...


class InMemoryServiceOrderRepository:
    """Thread-safe in-memory repository used by tests and bootstrap."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._orders: Dict[uuid.UUID, ServiceOrder] = {}
        self._row_locks: Dict[uuid.UUID, threading.Lock] = {}

    def get(self, order_id: uuid.UUID) -> Optional[ServiceOrder]:
        with self._lock:
            return self._orders.get(order_id)

    def add(self, order: ServiceOrder) -> ServiceOrder:
        with self._lock:
            if order.order_id in self._orders:
                raise PersistenceError(
                    "add order", f"service order '{order.order_id}' already exists"
                )
            stored = dataclasses.replace(order, version=1)
            self._orders[order.order_id] = stored
            self._row_locks[order.order_id] = threading.Lock()
            return stored

    def save(
        self,
        order: ServiceOrder,
        *,
        expected_version: int,
        require_unlocked: bool = False,
    ) -> ServiceOrder:
        with self._lock:
            current = self._orders.get(order.order_id)
            if current is None:
                raise OrderNotFoundError(order.order_id)
            if current.version != expected_version:
                raise ConcurrentModificationError(
                    "save order",
                    f"service order '{order.order_id}' is at version "
                    f"{current.version}, expected {expected_version}",
                )
            if require_unlocked and current.locked:
                raise ConcurrentModificationError(
                    "save order",
                    f"service order '{order.order_id}' was locked concurrently",
                )
            stored = dataclasses.replace(order, version=expected_version + 1)
            self._orders[order.order_id] = stored
            return stored

    @contextmanager
    def lock_for_update(
        self,
        order_id: uuid.UUID,
        *,
        timeout: float,
    ) -> Iterator[ServiceOrder]:
        with self._lock:
            row_lock = self._row_locks.get(order_id)
        if row_lock is None:
            raise OrderNotFoundError(order_id)
        if not row_lock.acquire(timeout=timeout):
            raise LockTimeoutError(
                "lock order",
                f"service order '{order_id}' busy for more than {timeout}s",
            )
        try:
            yield self.get(order_id)
        finally:
            row_lock.release()
