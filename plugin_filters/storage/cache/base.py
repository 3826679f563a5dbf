"""Abstract base class for cache backends.

Caches provide temporary storage with per-kind TTL (time-to-live) support.
Entries expire lazily: a read never returns data whose stored_at + ttl has
passed, whether or not the backend has pruned it yet.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any

from plugin_filters.models.common import _utc_now
from plugin_filters.models.model_cache import CacheKind


class Cache(ABC):
    """Abstract base class for cache implementations.

    Entries are organized by CacheKind. Each kind has a default TTL which
    callers may override per write. Backends must never raise from get():
    an unavailable store behaves like an empty one.
    """

    def __init__(
        self,
        ttls: dict[CacheKind, int] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the cache.

        Args:
            ttls: Default TTL per kind in seconds. Kinds not listed fall back
                to CacheKind.default_ttl.
            clock: Returns the current time. Defaults to UTC wall clock.
        """
        self.ttls = dict(ttls or {})
        self.clock = clock or _utc_now

    def ttl_for(self, kind: CacheKind) -> int:
        """Default TTL for a kind."""
        return self.ttls.get(kind, kind.default_ttl)

    def set_ttls(self, ttls: dict[CacheKind, int]) -> None:
        """Replace the default TTLs used for future writes."""
        self.ttls = dict(ttls)

    @abstractmethod
    def get(self, key: str, kind: CacheKind) -> Any | None:
        """Get a value from the cache.

        Args:
            key: Unique identifier for the cached value.
            kind: Kind of cached data.

        Returns:
            Cached value if found and not expired, None otherwise.
        """
        ...

    @abstractmethod
    def set(self, key: str, kind: CacheKind, value: Any, ttl: int | None = None) -> None:
        """Store a value, replacing any previous entry for the key.

        Args:
            key: Unique identifier for the cached value.
            kind: Kind of cached data.
            value: Value to cache.
            ttl: Time-to-live in seconds. None uses the kind's default TTL.
        """
        ...

    @abstractmethod
    def delete(self, key: str, kind: CacheKind) -> bool:
        """Delete a value from the cache.

        Args:
            key: Unique identifier for the cached value.
            kind: Kind of cached data.

        Returns:
            True if value was deleted, False if not found.
        """
        ...

    @abstractmethod
    def invalidate(self, kind: CacheKind | None = None, prefix: str | None = None) -> int:
        """Remove cached entries.

        Args:
            kind: If provided, only remove entries of this kind.
            prefix: If provided, only remove entries whose key starts with it.
                With neither argument every entry is removed.

        Returns:
            Number of entries removed.
        """
        ...

    @abstractmethod
    def stats(self) -> dict[str, dict[str, int]]:
        """Count entries per kind.

        Returns:
            Mapping of kind value to {"total", "expired", "valid"} counts.
        """
        ...

    def exists(self, key: str, kind: CacheKind) -> bool:
        """Check if a key exists in the cache and is not expired."""
        return self.get(key, kind) is not None
