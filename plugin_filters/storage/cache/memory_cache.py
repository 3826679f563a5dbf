"""In-process cache implementation.

Keeps CacheEntry objects in a dict guarded by a lock so request handlers
running on worker threads can share one instance.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from plugin_filters.models.model_cache import CacheEntry, CacheKind
from plugin_filters.storage.cache.base import Cache

logger = logging.getLogger(__name__)


class MemoryCache(Cache):
    """Thread-safe in-memory cache with lazy TTL expiry.

    Writes are last-writer-wins per (kind, key).
    """

    def __init__(
        self,
        ttls: dict[CacheKind, int] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        super().__init__(ttls=ttls, clock=clock)
        self._entries: dict[tuple[CacheKind, str], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, kind: CacheKind) -> Any | None:
        now = self.clock()
        with self._lock:
            entry = self._entries.get((kind, key))
            if entry is None:
                return None
            if entry.is_expired(now):
                logger.debug(f"Cache expired for key={key} in kind={kind.value}")
                del self._entries[(kind, key)]
                return None
            return entry.value

    def set(self, key: str, kind: CacheKind, value: Any, ttl: int | None = None) -> None:
        effective_ttl = ttl if ttl is not None else self.ttl_for(kind)
        entry = CacheEntry(
            key=key, kind=kind, value=value, stored_at=self.clock(), ttl_seconds=effective_ttl
        )
        with self._lock:
            self._entries[(kind, key)] = entry
        logger.debug(f"Cached key={key} in kind={kind.value} (ttl={effective_ttl}s)")

    def delete(self, key: str, kind: CacheKind) -> bool:
        with self._lock:
            return self._entries.pop((kind, key), None) is not None

    def invalidate(self, kind: CacheKind | None = None, prefix: str | None = None) -> int:
        with self._lock:
            doomed = [
                entry_id
                for entry_id in self._entries
                if (kind is None or entry_id[0] == kind)
                and (prefix is None or entry_id[1].startswith(prefix))
            ]
            for entry_id in doomed:
                del self._entries[entry_id]

        scope = kind.value if kind else "all kinds"
        logger.info(f"Invalidated {len(doomed)} entries from {scope}")
        return len(doomed)

    def stats(self) -> dict[str, dict[str, int]]:
        now = self.clock()
        counts = {k.value: {"total": 0, "expired": 0, "valid": 0} for k in CacheKind}
        with self._lock:
            for (kind, _), entry in self._entries.items():
                bucket = counts[kind.value]
                bucket["total"] += 1
                if entry.is_expired(now):
                    bucket["expired"] += 1
                else:
                    bucket["valid"] += 1
        return counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
