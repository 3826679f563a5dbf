"""Pydantic models for plugin-directory-filters."""

from plugin_filters.models.model_cache import CacheEntry, CacheKind
from plugin_filters.models.model_eval import (
    AlgorithmConfig,
    CacheTTLs,
    HealthWeights,
    ScoringContext,
    UsabilityWeights,
)
from plugin_filters.models.model_plugin import (
    HEALTH_BAND_DESCRIPTIONS,
    AnnotatedPlugin,
    HealthBand,
    PluginRecord,
    ScoreBreakdown,
    health_band,
)
from plugin_filters.models.model_query import (
    ErrorInfo,
    FilterSpec,
    InstallRange,
    Pagination,
    QueryResult,
    SortDirection,
    SortField,
    SortSpec,
    UpdateTimeframe,
)

__all__ = [
    # Plugin models
    "AnnotatedPlugin",
    "HealthBand",
    "HEALTH_BAND_DESCRIPTIONS",
    "PluginRecord",
    "ScoreBreakdown",
    "health_band",
    # Configuration models
    "AlgorithmConfig",
    "CacheTTLs",
    "HealthWeights",
    "ScoringContext",
    "UsabilityWeights",
    # Cache models
    "CacheEntry",
    "CacheKind",
    # Query models
    "ErrorInfo",
    "FilterSpec",
    "InstallRange",
    "Pagination",
    "QueryResult",
    "SortDirection",
    "SortField",
    "SortSpec",
    "UpdateTimeframe",
]
