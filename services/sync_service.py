"""
Offline queue and background sync.

Mutations made while offline are stored in a PendingQueue and replayed in
enqueue order. Each operation gets MAX_RETRIES attempts; after the last
failure it is dropped with a warning. There is no conflict resolution:
the last write to reach the backend wins.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.helpers import new_id
from core.local_store import LocalStore
from core.logging_config import redact

logger = logging.getLogger(__name__)

QUEUE_PREFIX = "clinictrack_pending_operations_"
MAX_RETRIES = 3
OPERATION_TYPES = ("create", "update", "delete")


@dataclass
class DrainReport:
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.dropped)


class PendingQueue:
    """Ordered list of deferred operations, persisted in a LocalStore."""

    def __init__(self, store: LocalStore, namespace: str = "default", max_retries: int = MAX_RETRIES):
        self.store = store
        self.key = f"{QUEUE_PREFIX}{namespace}"
        self.max_retries = max_retries
        self._drain_lock = threading.Lock()
        self._drop_listeners: List[Callable[[Dict[str, Any]], None]] = []

    def __len__(self) -> int:
        return len(self.all())

    def all(self) -> List[Dict[str, Any]]:
        return list(self.store.get(self.key, []))

    def enqueue(self, op_type: str, entity: str, payload: Optional[dict] = None, entity_id: Optional[str] = None) -> Dict[str, Any]:
        if op_type not in OPERATION_TYPES:
            raise ValueError(f"Unknown operation type '{op_type}'")
        operation = {
            "id": new_id(),
            "type": op_type,
            "entity": entity,
            "payload": payload or {},
            "entity_id": entity_id,
            "timestamp": time.time(),
            "retry_count": 0,
        }
        self.store.update(self.key, lambda ops: (ops or []) + [operation], default=[])
        logger.info("Queued %s %s for sync", op_type, entity, extra={"operation_id": operation["id"]})
        return operation

    def dequeue(self, operation_id: str) -> None:
        self.store.update(self.key, lambda ops: [op for op in ops or [] if op["id"] != operation_id], default=[])

    def update_retry_count(self, operation_id: str, retry_count: int) -> None:
        def _apply(ops):
            return [dict(op, retry_count=retry_count) if op["id"] == operation_id else op for op in ops or []]

        self.store.update(self.key, _apply, default=[])

    def clear(self) -> None:
        self.store.remove(self.key)

    def add_drop_listener(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self._drop_listeners.append(callback)

    def _notify_dropped(self, operation: Dict[str, Any]) -> None:
        for callback in list(self._drop_listeners):
            try:
                callback(operation)
            except Exception:
                logger.exception("Drop listener failed")

    def drain(self, executor: Callable[[Dict[str, Any]], Any]) -> DrainReport:
        """
        Replay every queued operation through `executor`, oldest first.

        A raised exception counts as a failed attempt. Operations queued
        while a drain runs wait for the next one. Concurrent drains are
        skipped rather than doubled up.
        """
        report = DrainReport()
        if not self._drain_lock.acquire(blocking=False):
            logger.debug("Drain already in progress")
            return report

        try:
            for operation in self.all():
                try:
                    executor(operation)
                except Exception as exc:
                    attempts = operation.get("retry_count", 0) + 1
                    if attempts >= self.max_retries:
                        self.dequeue(operation["id"])
                        report.dropped.append(operation["id"])
                        logger.warning(
                            "Operation could not sync after %d attempts, dropping it: %s",
                            attempts,
                            exc,
                            extra={
                                "operation_id": operation["id"],
                                "entity": operation["entity"],
                                "type": operation["type"],
                                "payload": redact(operation["payload"]),
                            },
                        )
                        self._notify_dropped(operation)
                    else:
                        self.update_retry_count(operation["id"], attempts)
                        report.failed.append(operation["id"])
                        logger.info("Sync attempt %d failed for %s %s: %s", attempts, operation["type"], operation["entity"], exc)
                else:
                    self.dequeue(operation["id"])
                    report.succeeded.append(operation["id"])
        finally:
            self._drain_lock.release()

        if report.attempted:
            logger.info(
                "Sync finished: %d synced, %d to retry, %d dropped",
                len(report.succeeded),
                len(report.failed),
                len(report.dropped),
            )
        return report


class SyncWorker(threading.Thread):
    """Drains the queue every `interval` seconds and right after reconnecting."""

    def __init__(self, drain: Callable[[], DrainReport], monitor, interval: float = 30.0):
        super().__init__(name="clinic-sync", daemon=True)
        self._drain = drain
        self.monitor = monitor
        self.interval = interval
        self._wake = threading.Event()
        self._stopping = threading.Event()
        monitor.add_listener(self._on_connectivity)

    def _on_connectivity(self, online: bool) -> None:
        if online:
            self._wake.set()

    def run(self) -> None:
        while not self._stopping.is_set():
            self._wake.wait(self.interval)
            self._wake.clear()
            if self._stopping.is_set():
                break
            self.run_once()

    def run_once(self) -> Optional[DrainReport]:
        if not self.monitor.check():
            return None
        try:
            return self._drain()
        except Exception:
            logger.exception("Background sync failed")
            return None

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopping.set()
        self._wake.set()
        self.monitor.remove_listener(self._on_connectivity)
        if self.is_alive():
            self.join(timeout)
