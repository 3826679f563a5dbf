"""Storage backends for cached plugin data and algorithm configuration.

This module provides:
- Cache: Abstract base class for caching
- MemoryCache: Thread-safe in-process cache
- FileCache: File-based cache with TTL support
- ConfigStore: Validated, atomically replaced algorithm configuration
"""

from plugin_filters.storage.cache.base import Cache
from plugin_filters.storage.cache.file_caching import FileCache
from plugin_filters.storage.cache.memory_cache import MemoryCache
from plugin_filters.storage.config_store import ConfigStore

__all__ = [
    "Cache",
    "ConfigStore",
    "FileCache",
    "MemoryCache",
]
