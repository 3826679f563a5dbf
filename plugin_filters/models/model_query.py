"""Query-side models: filter and sort specs, and the result envelope."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from plugin_filters.models.model_plugin import AnnotatedPlugin


class InstallRange(str, Enum):
    """Preset active-install buckets. Lower bound inclusive, upper exclusive."""

    UNDER_1K = "0-1k"
    FROM_1K_TO_10K = "1k-10k"
    FROM_10K_TO_100K = "10k-100k"
    FROM_100K_TO_1M = "100k-1m"
    OVER_1M = "1m-plus"

    @property
    def bounds(self) -> tuple[int, int | None]:
        return _INSTALL_RANGE_BOUNDS[self]


_INSTALL_RANGE_BOUNDS: dict[InstallRange, tuple[int, int | None]] = {
    InstallRange.UNDER_1K: (0, 1_000),
    InstallRange.FROM_1K_TO_10K: (1_000, 10_000),
    InstallRange.FROM_10K_TO_100K: (10_000, 100_000),
    InstallRange.FROM_100K_TO_1M: (100_000, 1_000_000),
    InstallRange.OVER_1M: (1_000_000, None),
}


class UpdateTimeframe(str, Enum):
    """Update-recency buckets, measured in days since last update."""

    LAST_WEEK = "last_week"
    LAST_MONTH = "last_month"
    LAST_3_MONTHS = "last_3months"
    LAST_6_MONTHS = "last_6months"
    LAST_YEAR = "last_year"
    OLDER = "older"

    def matches(self, days_since_update: float) -> bool:
        if self is UpdateTimeframe.OLDER:
            return days_since_update > 365
        return days_since_update <= _TIMEFRAME_DAYS[self]


_TIMEFRAME_DAYS = {
    UpdateTimeframe.LAST_WEEK: 7,
    UpdateTimeframe.LAST_MONTH: 30,
    UpdateTimeframe.LAST_3_MONTHS: 90,
    UpdateTimeframe.LAST_6_MONTHS: 180,
    UpdateTimeframe.LAST_YEAR: 365,
}


class FilterSpec(BaseModel):
    """Optional predicates combined with AND. None means no constraint."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    install_range: InstallRange | None = None
    min_installs: int | None = Field(default=None, ge=0)
    max_installs: int | None = Field(default=None, ge=0, description="Exclusive upper bound")
    update_timeframe: UpdateTimeframe | None = None
    min_usability: float | None = Field(default=None, ge=1.0, le=5.0)
    min_health: int | None = Field(default=None, ge=0, le=100)
    min_rating: float | None = Field(default=None, ge=0.0, le=5.0)
    tag: str | None = None
    author: str | None = None
    include_unknown: bool = Field(
        default=False,
        description="Let records missing a predicate's data pass that predicate",
    )

    @model_validator(mode="after")
    def install_bounds_ordered(self) -> "FilterSpec":
        if (
            self.min_installs is not None
            and self.max_installs is not None
            and self.min_installs >= self.max_installs
        ):
            msg = "min_installs must be below max_installs"
            raise ValueError(msg)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.applied()

    def applied(self) -> dict[str, Any]:
        """Present predicates only, as JSON-friendly values."""
        return self.model_dump(mode="json", exclude_none=True, exclude={"include_unknown"})

    def combine(self, other: "FilterSpec") -> "FilterSpec":
        """AND two specs together. Fields set in both must agree."""
        merged = self.model_dump(exclude_none=True)
        for name, value in other.model_dump(exclude_none=True).items():
            if name == "include_unknown":
                merged[name] = merged.get(name, False) and value
                continue
            if name in merged and merged[name] != value:
                msg = f"Conflicting values for {name}: {merged[name]!r} vs {value!r}"
                raise ValueError(msg)
            merged[name] = value
        return FilterSpec(**merged)


class SortField(str, Enum):
    """Sortable fields."""

    RELEVANCE = "relevance"
    INSTALLS = "installs"
    RATING = "rating"
    UPDATED = "updated"
    USABILITY = "usability"
    HEALTH = "health"
    NAME = "name"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(BaseModel):
    """Sort field and direction. Ties always break on slug ascending."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: SortField = SortField.RELEVANCE
    direction: SortDirection = SortDirection.DESC


class ErrorInfo(BaseModel):
    """Typed error surfaced alongside a degraded result."""

    code: str
    message: str
    retryable: bool = False


class Pagination(BaseModel):
    current_page: int = Field(ge=1)
    total_pages: int = Field(default=0, ge=0)
    total_results: int = Field(default=0, ge=0, description="Upstream total for the query")
    page_size: int = Field(ge=1)
    returned: int = Field(default=0, ge=0, description="Records left after filtering")


class QueryResult(BaseModel):
    """Annotated, filtered and sorted plugins for one query."""

    plugins: list[AnnotatedPlugin] = Field(default_factory=list)
    pagination: Pagination
    filters_applied: dict[str, Any] = Field(default_factory=dict)
    from_cache: bool = False
    degraded: bool = Field(default=False, description="Upstream failed; results may be stale or empty")
    error: ErrorInfo | None = None
