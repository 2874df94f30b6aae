"""
RSO Invoicing — Board Collaborator Port
=========================================
The work board (kanban) lives outside this system. Invoicing only
tells it to drop an order once the invoice is issued.
"""

from __future__ import annotations

import threading
import uuid
from typing import List, Protocol


class BoardCollaborator(Protocol):
    def remove_from_board(self, order_id: uuid.UUID) -> None:
        ...


class NullBoard:
    """For deployments without a board."""

    def remove_from_board(self, order_id: uuid.UUID) -> None:
        return None


class InMemoryBoard:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._removed: List[uuid.UUID] = []

    def remove_from_board(self, order_id: uuid.UUID) -> None:
        with self._lock:
            self._removed.append(order_id)

    @property
    def removed(self) -> tuple:
        with self._lock:
            return tuple(self._removed)
