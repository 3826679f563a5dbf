"""File-based cache implementation.

Stores cached data as JSON files organized by kind directories.
A backend failure (unwritable directory, corrupt file) degrades to a cache
miss and is logged, never raised.
"""

import hashlib
import json
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from plugin_filters.consts import DEFAULT_DATA_DIR
from plugin_filters.models.model_cache import CacheEntry, CacheKind
from plugin_filters.storage.cache.base import Cache

logger = logging.getLogger(__name__)


class FileCache(Cache):
    """File-based cache implementation with TTL support.

    Stores data as JSON files in kind-organized directories.
    Each cached entry includes metadata (stored_at, original_key, ttl).

    Directory structure:
        {cache_dir}/
        ├── plugin-metadata/
        │   ├── {hash}.json
        │   └── {hash}.json
        └── search-results/
            └── {hash}.json
    """

    def __init__(
        self,
        cache_dir: Path | str | None = None,
        ttls: dict[CacheKind, int] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize FileCache.

        Args:
            cache_dir: Directory for cache files. Defaults to {DEFAULT_DATA_DIR}/cache.
            ttls: Default TTL per kind in seconds.
            clock: Returns the current time. Defaults to UTC wall clock.
        """
        super().__init__(ttls=ttls, clock=clock)
        if cache_dir is None:
            cache_dir = DEFAULT_DATA_DIR / "cache"
        self.cache_dir = Path(cache_dir)

    def _hash_key(self, key: str) -> str:
        """Generate a safe filename from a key using SHA-256 hash."""
        return hashlib.sha256(key.encode()).hexdigest()[:16]

    def _kind_dir(self, kind: CacheKind) -> Path:
        return self.cache_dir / kind.value

    def _cache_path(self, key: str, kind: CacheKind) -> Path:
        return self._kind_dir(kind) / f"{self._hash_key(key)}.json"

    def _read_entry(self, path: Path, kind: CacheKind) -> CacheEntry:
        data = json.loads(path.read_text(encoding="utf-8"))
        return CacheEntry(
            key=data["original_key"],
            kind=kind,
            value=data.get("value"),
            stored_at=datetime.fromisoformat(data["stored_at"]),
            ttl_seconds=data["ttl"],
        )

    def get(self, key: str, kind: CacheKind) -> Any | None:
        """Get a value from the cache.

        Args:
            key: Unique identifier for the cached value.
            kind: Kind of cached data.

        Returns:
            Cached value if found and not expired, None otherwise.
        """
        path = self._cache_path(key, kind)
        try:
            if not path.exists():
                return None
            entry = self._read_entry(path, kind)
            if entry.key != key:
                logger.warning(f"Cache path collision for key={key} in kind={kind.value}")
                return None
            if entry.is_expired(self.clock()):
                logger.debug(f"Cache expired for key={key} in kind={kind.value}")
                path.unlink(missing_ok=True)
                return None
            return entry.value
        except OSError as e:
            logger.warning(f"Cache backend unavailable, treating {key} as a miss: {e}")
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to read cache entry: {e}")
            return None

    def set(self, key: str, kind: CacheKind, value: Any, ttl: int | None = None) -> None:
        """Store a value in the cache.

        Args:
            key: Unique identifier for the cached value.
            kind: Kind of cached data.
            value: Value to cache (must be JSON-serializable).
            ttl: Time-to-live in seconds. None uses the kind's default TTL.
        """
        effective_ttl = ttl if ttl is not None else self.ttl_for(kind)
        entry = {
            "stored_at": self.clock().isoformat(),
            "original_key": key,
            "ttl": effective_ttl,
            "value": value,
        }

        path = self._cache_path(key, kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(entry, indent=2, default=str), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write cache entry key={key}: {e}")
            return
        logger.debug(f"Cached key={key} in kind={kind.value} (ttl={effective_ttl}s)")

    def delete(self, key: str, kind: CacheKind) -> bool:
        """Delete a value from the cache.

        Args:
            key: Unique identifier for the cached value.
            kind: Kind of cached data.

        Returns:
            True if value was deleted, False if not found.
        """
        path = self._cache_path(key, kind)
        try:
            if path.exists():
                path.unlink()
                logger.debug(f"Deleted cache key={key} from kind={kind.value}")
                return True
        except OSError as e:
            logger.warning(f"Failed to delete cache entry key={key}: {e}")
        return False

    def _entry_paths(self, kind: CacheKind | None) -> list[tuple[CacheKind, Path]]:
        kinds = [kind] if kind is not None else list(CacheKind)
        paths = []
        for k in kinds:
            kind_dir = self._kind_dir(k)
            if kind_dir.exists():
                paths.extend((k, path) for path in kind_dir.glob("*.json"))
        return paths

    def invalidate(self, kind: CacheKind | None = None, prefix: str | None = None) -> int:
        """Remove cached entries.

        Args:
            kind: If provided, only remove entries of this kind.
            prefix: If provided, only remove entries whose key starts with it.

        Returns:
            Number of entries removed.
        """
        count = 0
        try:
            for entry_kind, path in self._entry_paths(kind):
                if prefix is not None:
                    try:
                        original_key = self._read_entry(path, entry_kind).key
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                        continue
                    if not original_key.startswith(prefix):
                        continue
                path.unlink(missing_ok=True)
                count += 1
        except OSError as e:
            logger.warning(f"Cache invalidation stopped early: {e}")

        scope = kind.value if kind else "all kinds"
        logger.info(f"Invalidated {count} entries from {scope}")
        return count

    def stats(self) -> dict[str, dict[str, int]]:
        """Count entries per kind, reading each file's timestamp."""
        now = self.clock()
        counts = {k.value: {"total": 0, "expired": 0, "valid": 0} for k in CacheKind}
        try:
            for kind, path in self._entry_paths(None):
                bucket = counts[kind.value]
                bucket["total"] += 1
                try:
                    expired = self._read_entry(path, kind).is_expired(now)
                except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                    expired = True
                bucket["expired" if expired else "valid"] += 1
        except OSError as e:
            logger.warning(f"Failed to collect cache statistics: {e}")
        return counts

    def list_keys(self, kind: CacheKind) -> list[str]:
        """List all original keys stored for a kind.

        Args:
            kind: Kind to list keys from.

        Returns:
            List of original keys (not hashed).
        """
        keys = []
        for entry_kind, path in self._entry_paths(kind):
            try:
                keys.append(self._read_entry(path, entry_kind).key)
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError):
                continue
        return keys
