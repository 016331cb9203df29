import logging
import time
from typing import Any, Callable, Dict, List, Optional

from core.local_store import LocalStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "clinictrack_cache_"
CACHE_DURATION = 24 * 60 * 60  # seconds

ENTITY_KINDS = ("patients", "visits", "expenses", "appointments")


class LocalCache:
    """Last-known entity lists, kept per clinic namespace.

    Entries are {"data", "timestamp", "expires_at"}; expired entries are
    evicted when read.
    """

    def __init__(self, store: LocalStore, namespace: str = "default", clock: Callable[[], float] = time.time):
        self.store = store
        self.namespace = namespace
        self.clock = clock

    @property
    def prefix(self) -> str:
        return f"{CACHE_PREFIX}{self.namespace}_"

    def _key(self, key: str) -> str:
        return self.prefix + key

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self.clock()
        self.store.set(
            self._key(key),
            {
                "data": value,
                "timestamp": now,
                "expires_at": now + ttl if ttl else None,
            },
        )

    def get(self, key: str) -> Any:
        entry = self.store.get(self._key(key))
        if not isinstance(entry, dict):
            return None
        expires_at = entry.get("expires_at")
        if expires_at is not None and self.clock() > expires_at:
            self.invalidate(key)
            return None
        return entry.get("data")

    def invalidate(self, key: str) -> None:
        self.store.remove(self._key(key))

    def clear(self) -> None:
        self.store.remove_prefix(self.prefix)

    # -----------------------------
    # Entity lists
    # -----------------------------
    def cache_entities(self, kind: str, rows, mode: Optional[str] = None) -> None:
        self.set(self.entity_key(kind, mode), rows, CACHE_DURATION)

    def get_cached_entities(self, kind: str, mode: Optional[str] = None):
        return self.get(self.entity_key(kind, mode))

    @staticmethod
    def entity_key(kind: str, mode: Optional[str] = None) -> str:
        return f"{kind}:{mode}" if mode else kind

    def entity_keys(self, kind: str) -> List[str]:
        """Cache keys holding a list of `kind` (the plain one and every mode variant)."""
        base = self._key(kind)
        return [
            key[len(self.prefix):]
            for key in self.store.keys(base)
            if key == base or key.startswith(base + ":")
        ]

    def invalidate_kind(self, kind: str) -> None:
        """Drop every cached list of one entity kind, whatever its mode."""
        for key in self.entity_keys(kind):
            self.invalidate(key)

    # -----------------------------
    # Sync status
    # -----------------------------
    def set_last_sync_time(self, timestamp: Optional[float] = None) -> None:
        self.store.set(self._key("last_sync"), timestamp if timestamp is not None else self.clock())

    def get_last_sync_time(self) -> Optional[float]:
        return self.store.get(self._key("last_sync"))

    def stats(self, pending_operations: int = 0) -> Dict[str, Any]:
        result: Dict[str, Any] = {kind: self.get_cached_entities(kind) is not None for kind in ENTITY_KINDS}
        result["pending_operations"] = pending_operations
        result["last_sync_time"] = self.get_last_sync_time()
        return result
