"""Cache entry models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from plugin_filters.consts import (
    CACHE_TTL_CALCULATED_SCORES,
    CACHE_TTL_PLUGIN_METADATA,
    CACHE_TTL_SEARCH_RESULTS,
)


class CacheKind(str, Enum):
    """Tier of cached data. Each tier has its own default TTL."""

    PLUGIN_METADATA = "plugin-metadata"
    CALCULATED_SCORES = "calculated-scores"
    SEARCH_RESULTS = "search-results"

    @property
    def default_ttl(self) -> int:
        return _DEFAULT_TTLS[self]


_DEFAULT_TTLS = {
    CacheKind.PLUGIN_METADATA: CACHE_TTL_PLUGIN_METADATA,
    CacheKind.CALCULATED_SCORES: CACHE_TTL_CALCULATED_SCORES,
    CacheKind.SEARCH_RESULTS: CACHE_TTL_SEARCH_RESULTS,
}


class CacheEntry(BaseModel):
    """A cached value with the time it was stored and its TTL.

    Expiry is always derived from stored_at + ttl_seconds.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    kind: CacheKind
    value: Any
    stored_at: datetime
    ttl_seconds: int = Field(ge=0)

    @property
    def expires_at(self) -> datetime:
        return self.stored_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime) -> bool:
        """An entry is live only while now < stored_at + ttl."""
        return now >= self.expires_at
