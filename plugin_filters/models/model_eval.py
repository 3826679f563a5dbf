"""Algorithm configuration and scoring context models."""

import hashlib
import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from plugin_filters.consts import (
    CACHE_TTL_CALCULATED_SCORES,
    CACHE_TTL_MAX,
    CACHE_TTL_MIN,
    CACHE_TTL_PLUGIN_METADATA,
    CACHE_TTL_SEARCH_RESULTS,
    DEFAULT_HEALTH_WEIGHTS,
    DEFAULT_PLATFORM_VERSION,
    DEFAULT_USABILITY_WEIGHTS,
    WEIGHT_TOLERANCE,
    WEIGHT_TOTAL,
)
from plugin_filters.models.common import _utc_now
from plugin_filters.models.model_cache import CacheKind


def _check_weight_total(weights: dict[str, int]) -> None:
    total = sum(weights.values())
    if abs(total - WEIGHT_TOTAL) > WEIGHT_TOLERANCE:
        msg = f"Weights must sum to {WEIGHT_TOTAL}, got {total}"
        raise ValueError(msg)


class UsabilityWeights(BaseModel):
    """Component weights for the usability rating (integer percentages)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_rating: int = Field(default=DEFAULT_USABILITY_WEIGHTS["user_rating"], ge=0, le=100)
    rating_count: int = Field(default=DEFAULT_USABILITY_WEIGHTS["rating_count"], ge=0, le=100)
    installs: int = Field(default=DEFAULT_USABILITY_WEIGHTS["installs"], ge=0, le=100)
    support: int = Field(default=DEFAULT_USABILITY_WEIGHTS["support"], ge=0, le=100)

    @model_validator(mode="after")
    def weights_sum_to_hundred(self) -> "UsabilityWeights":
        """Validate that weights sum to 100 within tolerance."""
        _check_weight_total(self.model_dump())
        return self


class HealthWeights(BaseModel):
    """Component weights for the health score (integer percentages)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    update_frequency: int = Field(default=DEFAULT_HEALTH_WEIGHTS["update_frequency"], ge=0, le=100)
    compatibility: int = Field(default=DEFAULT_HEALTH_WEIGHTS["compatibility"], ge=0, le=100)
    support: int = Field(default=DEFAULT_HEALTH_WEIGHTS["support"], ge=0, le=100)
    recency: int = Field(default=DEFAULT_HEALTH_WEIGHTS["recency"], ge=0, le=100)
    issues: int = Field(default=DEFAULT_HEALTH_WEIGHTS["issues"], ge=0, le=100)

    @model_validator(mode="after")
    def weights_sum_to_hundred(self) -> "HealthWeights":
        """Validate that weights sum to 100 within tolerance."""
        _check_weight_total(self.model_dump())
        return self


class CacheTTLs(BaseModel):
    """Time-to-live per cache kind, in seconds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    plugin_metadata: int = Field(default=CACHE_TTL_PLUGIN_METADATA, ge=CACHE_TTL_MIN, le=CACHE_TTL_MAX)
    calculated_scores: int = Field(
        default=CACHE_TTL_CALCULATED_SCORES, ge=CACHE_TTL_MIN, le=CACHE_TTL_MAX
    )
    search_results: int = Field(default=CACHE_TTL_SEARCH_RESULTS, ge=CACHE_TTL_MIN, le=CACHE_TTL_MAX)

    def for_kind(self, kind: CacheKind) -> int:
        return getattr(self, kind.name.lower())


class AlgorithmConfig(BaseModel):
    """Process-wide scoring weights and cache TTLs.

    Instances are immutable. Updates replace the whole object through
    ConfigStore so readers always hold a consistent snapshot.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    usability_weights: UsabilityWeights = Field(default_factory=UsabilityWeights)
    health_weights: HealthWeights = Field(default_factory=HealthWeights)
    cache_ttls: CacheTTLs = Field(default_factory=CacheTTLs)
    platform_version: str = Field(default=DEFAULT_PLATFORM_VERSION, min_length=1)

    def fingerprint(self) -> str:
        """Short hash of everything that changes a computed score."""
        payload = {
            "usability": self.usability_weights.model_dump(),
            "health": self.health_weights.model_dump(),
            "platform_version": self.platform_version,
        }
        return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()[:12]


class ScoringContext(BaseModel):
    """Everything a scorer reads besides the record itself.

    Scorers are pure functions of (record, context). Building the context once
    per request pins the weights snapshot and the clock for that request.
    """

    model_config = ConfigDict(frozen=True)

    usability_weights: UsabilityWeights = Field(default_factory=UsabilityWeights)
    health_weights: HealthWeights = Field(default_factory=HealthWeights)
    platform_version: str = Field(default=DEFAULT_PLATFORM_VERSION)
    current_time: datetime = Field(default_factory=_utc_now)

    @classmethod
    def from_config(
        cls, config: AlgorithmConfig, current_time: datetime | None = None
    ) -> "ScoringContext":
        return cls(
            usability_weights=config.usability_weights,
            health_weights=config.health_weights,
            platform_version=config.platform_version,
            current_time=current_time or _utc_now(),
        )
