"""
Offline-aware facade over the scoped repositories.

Pages and entity services talk to ClinicDataClient only. Online it calls
the repositories and keeps the local cache current; offline it serves the
cached lists and queues mutations for the SyncWorker.
"""
import logging
from collections import defaultdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.connectivity import ConnectivityMonitor
from core.errors import NotFound, OfflineQueued, UpstreamFailure
from core.helpers import new_id
from core.local_cache import CACHE_DURATION, ENTITY_KINDS, LocalCache
from core.local_store import LocalStore
from services.data_access import ENTITY_MODELS, ScopedRepository
from services.sync_service import DrainReport, PendingQueue, SyncWorker

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _jsonable_dict(values: Optional[dict]) -> dict:
    return {key: _jsonable(value) for key, value in (values or {}).items()}


def _mode_of_key(key: str) -> Optional[str]:
    return key.split(":", 1)[1] if ":" in key else None


class ClinicDataClient:
    def __init__(self, context, cache: LocalCache = None, queue: PendingQueue = None, monitor: ConnectivityMonitor = None):
        self.context = context
        self.cache = cache or LocalCache(LocalStore())
        self.queue = queue or PendingQueue(self.cache.store)
        self.monitor = monitor or ConnectivityMonitor()
        self._repositories: Dict[str, ScopedRepository] = {}
        self._subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self._worker: Optional[SyncWorker] = None

    def repository(self, kind: str) -> ScopedRepository:
        if kind not in self._repositories:
            self._repositories[kind] = ScopedRepository(self.context, kind)
        return self._repositories[kind]

    # -----------------------------
    # Subscriptions
    # -----------------------------
    def subscribe(self, kind: str, callback: Callable[[str, Any], None]) -> Callable[[], None]:
        """Register `callback(event, data)` for changes to `kind`. Returns an unsubscribe function."""
        self._subscribers[kind].append(callback)

        def unsubscribe():
            if callback in self._subscribers[kind]:
                self._subscribers[kind].remove(callback)

        return unsubscribe

    def _notify(self, kind: str, event: str, data: Any) -> None:
        for callback in list(self._subscribers.get(kind, [])):
            try:
                callback(event, data)
            except Exception:
                logger.exception("Subscriber for %s failed", kind)

    # -----------------------------
    # Cache helpers
    # -----------------------------
    def _rehydrate(self, kind: str, row: dict):
        """Transient model instance from a cached dict (never attached to a session)."""
        repo = self.repository(kind)
        values = repo.coerce({k: v for k, v in row.items() if k in repo.columns})
        return ENTITY_MODELS[kind](**values)

    def _patch_cached_lists(self, kind: str, op_type: str, entity_id: str, row: Optional[dict] = None) -> None:
        if kind not in ENTITY_KINDS:
            return
        for key in self.cache.entity_keys(kind):
            rows = self.cache.get(key)
            if rows is None:
                continue
            mode = _mode_of_key(key)
            existing = next((r for r in rows if r.get("id") == entity_id), None)
            rows = [r for r in rows if r.get("id") != entity_id]
            if op_type == "create" or (op_type == "update" and existing is not None):
                merged = dict(existing or {}, **row)
                if mode is None or merged.get("doctor_mode") == mode:
                    rows.append(merged)
            self.cache.set(key, rows, CACHE_DURATION)

    def _can_cache(self, kind: str) -> bool:
        return kind in ENTITY_KINDS and self.context.resolver.profile is not None

    # -----------------------------
    # Reads
    # -----------------------------
    def list(self, kind: str, filters: dict = None, mode=None, order_by: str = None, limit: int = None) -> List[Any]:
        """
        Live scoped read when online (refreshing the cache for plain lists);
        the last cached list when offline or when the backend fails.
        """
        mode = _jsonable(mode)
        plain = not filters and order_by is None and limit is None

        if self.monitor.is_online():
            try:
                rows = self.repository(kind).list(filters=filters, mode=mode, order_by=order_by, limit=limit)
            except UpstreamFailure as exc:
                logger.warning("Live read of %s failed, serving cache: %s", kind, exc)
                self.monitor.check()
            else:
                if plain and self._can_cache(kind):
                    self.cache.cache_entities(kind, [row.to_dict() for row in rows], mode)
                    self.cache.set_last_sync_time()
                return rows

        cached = self.cache.get_cached_entities(kind, mode) or []
        if filters:
            wanted = _jsonable_dict(filters)
            cached = [row for row in cached if all(row.get(k) == v for k, v in wanted.items())]
        if limit:
            cached = cached[:limit]
        return [self._rehydrate(kind, row) for row in cached]

    def get(self, kind: str, entity_id: str):
        if self.monitor.is_online():
            try:
                return self.repository(kind).get(entity_id)
            except UpstreamFailure as exc:
                logger.warning("Live read of %s failed, serving cache: %s", kind, exc)
                self.monitor.check()
        for key in self.cache.entity_keys(kind):
            for row in self.cache.get(key) or []:
                if row.get("id") == entity_id:
                    return self._rehydrate(kind, row)
        raise NotFound(kind, entity_id)

    # -----------------------------
    # Writes
    # -----------------------------
    def _live_or_queue(self, kind: str, op_type: str, call: Callable[[], Any], payload: dict, entity_id: str):
        # Checked up front so a denied write is never queued
        self.repository(kind).authorize_write(op_type, payload if op_type != "delete" else None)

        if self.monitor.is_online():
            try:
                return call()
            except UpstreamFailure:
                # Only fall back to the queue when the failure was the network
                if self.monitor.check():
                    raise

        operation = self.queue.enqueue(op_type, kind, payload=payload, entity_id=entity_id)
        optimistic = dict(payload, id=entity_id) if op_type != "delete" else None
        self._patch_cached_lists(kind, op_type, entity_id, optimistic)
        result = OfflineQueued(operation_id=operation["id"], entity=kind, type=op_type, entity_id=entity_id)
        self._notify(kind, "queued", result)
        return result

    def create(self, kind: str, payload: dict):
        """Returns the stored entity, or OfflineQueued when deferred."""
        payload = _jsonable_dict(payload)
        payload.setdefault("id", new_id())
        result = self._live_or_queue(
            kind, "create", lambda: self.repository(kind).create(payload), payload, payload["id"]
        )
        if not isinstance(result, OfflineQueued):
            self._patch_cached_lists(kind, "create", result.id, result.to_dict())
            self._notify(kind, "created", result)
        return result

    def update(self, kind: str, entity_id: str, patch: dict):
        patch = _jsonable_dict(patch)
        result = self._live_or_queue(
            kind, "update", lambda: self.repository(kind).update(entity_id, patch), patch, entity_id
        )
        if not isinstance(result, OfflineQueued):
            self._patch_cached_lists(kind, "update", entity_id, result.to_dict())
            self._notify(kind, "updated", result)
        return result

    def delete(self, kind: str, entity_id: str):
        """Returns None, or OfflineQueued when deferred."""
        result = self._live_or_queue(
            kind, "delete", lambda: self.repository(kind).delete(entity_id), {}, entity_id
        )
        if isinstance(result, OfflineQueued):
            return result
        self._patch_cached_lists(kind, "delete", entity_id)
        self._notify(kind, "deleted", entity_id)
        return None

    # -----------------------------
    # Sync
    # -----------------------------
    def _replay(self, operation: Dict[str, Any]) -> None:
        kind = operation["entity"]
        repo = self.repository(kind)
        if operation["type"] == "create":
            entity = repo.create(operation["payload"])
            self._notify(kind, "created", entity)
        elif operation["type"] == "update":
            entity = repo.update(operation["entity_id"], operation["payload"])
            self._notify(kind, "updated", entity)
        else:
            try:
                repo.delete(operation["entity_id"])
            except NotFound:
                # Already gone: the delete has the effect the user asked for
                pass
            self._notify(kind, "deleted", operation["entity_id"])

    def drain(self) -> DrainReport:
        """Replay queued operations through the live repositories."""
        report = self.queue.drain(self._replay)
        if report.succeeded:
            self.cache.set_last_sync_time()
        return report

    def start_sync(self, interval: float = 30.0) -> SyncWorker:
        if self._worker is None or not self._worker.is_alive():
            self._worker = SyncWorker(self.drain, self.monitor, interval)
            self._worker.start()
        return self._worker

    def stop_sync(self) -> None:
        if self._worker is not None:
            self._worker.stop(timeout=1.0)
            self._worker = None

    @property
    def pending_count(self) -> int:
        return len(self.queue)

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats(pending_operations=self.pending_count)
