"""
RSO Operations — Infrastructure Errors
========================================
Failures of the infrastructure under an operation (persistence write,
counter, row lock). Unlike RejectionReason these are exceptions:
always fatal to the operation, always surfaced to the caller.

retryable=True means the operation had no side effects and may be
submitted again as-is.
"""


class OperationError(Exception):
    retryable = False

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class PersistenceError(OperationError):
    """The core write of status/lock fields did not happen."""


class ConcurrentModificationError(PersistenceError):
    """Compare-and-set lost: the row changed since it was read."""


class OrderNotFoundError(OperationError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__("load order", f"service order '{order_id}' not found")


class LockTimeoutError(OperationError):
    """The order's update lock could not be taken in time."""

    retryable = True


class CounterUnavailableError(OperationError):
    """The invoice counter could not be reached."""


class CounterTimeoutError(CounterUnavailableError):
    """The counter step timed out before incrementing."""

    retryable = True
