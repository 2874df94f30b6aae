"""
RSO Core Audit — Best-Effort Emitter
======================================
Fire-and-forget delivery of audit entries to an AuditLog.

Rules:
- emit() never raises and never blocks on the log write
- Delivery runs on a background worker, outside any order transaction
- A failed write is logged with traceback and dropped
- flush() waits for pending deliveries (tests, graceful shutdown)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Optional

from core.audit.functions import create_audit_entry
from core.audit.log import AuditLog
from core.audit.models import AuditEntry

logger = logging.getLogger("rso.audit")


class AuditEmitter:
    def __init__(
        self,
        audit_log: AuditLog,
        *,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._audit_log = audit_log
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="rso-audit",
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def emit(
        self,
        *,
        entity_type: str,
        entity_id,
        event_type: str,
        message: str,
        occurred_at: datetime,
        actor_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        try:
            entry = create_audit_entry(
                entity_type=entity_type,
                entity_id=entity_id,
                event_type=event_type,
                message=message,
                occurred_at=occurred_at,
                actor_id=actor_id,
                details=details,
            )
            future = self._executor.submit(self._deliver, entry)
        except Exception as exc:
            logger.error(
                f"Audit event {event_type} for {entity_type} {entity_id} "
                f"could not be scheduled: {exc}",
                exc_info=True,
            )
            return

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def _deliver(self, entry: AuditEntry) -> None:
        try:
            self._audit_log.record(entry)
        except Exception as exc:
            logger.error(
                f"Audit write failed for {entry.event_type} "
                f"({entry.entity_type} {entry.entity_id}): {exc}",
                exc_info=True,
            )

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
