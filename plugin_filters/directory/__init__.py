"""Plugin directory API client."""

from plugin_filters.directory.client import DirectoryClient
from plugin_filters.directory.parsing import SearchPage, normalize_plugin
from plugin_filters.directory.rate_limiter import RateLimiter

__all__ = ["DirectoryClient", "RateLimiter", "SearchPage", "normalize_plugin"]
