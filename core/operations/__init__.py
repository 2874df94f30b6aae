"""
RSO Operations — Public API
=============================
"""

from core.operations.errors import (
    ConcurrentModificationError,
    CounterTimeoutError,
    CounterUnavailableError,
    LockTimeoutError,
    OperationError,
    OrderNotFoundError,
    PersistenceError,
)

__all__ = [
    "ConcurrentModificationError",
    "CounterTimeoutError",
    "CounterUnavailableError",
    "LockTimeoutError",
    "OperationError",
    "OrderNotFoundError",
    "PersistenceError",
]
