from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HealthBand(str, Enum):
    """Display band for a health score."""

    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


HEALTH_BAND_DESCRIPTIONS = {
    HealthBand.EXCELLENT: "Excellent - Well maintained and actively supported",
    HealthBand.GOOD: "Good - Regularly maintained with good support",
    HealthBand.FAIR: "Fair - Occasionally maintained, some concerns",
    HealthBand.POOR: "Poor - Infrequently maintained, potential issues",
}


def health_band(score: int) -> HealthBand:
    """Map a 0-100 health score onto its display band.

    Bands: 0-40 poor, 41-70 fair, 71-85 good, 86-100 excellent.
    """
    if score >= 86:
        return HealthBand.EXCELLENT
    elif score >= 71:
        return HealthBand.GOOD
    elif score >= 41:
        return HealthBand.FAIR
    else:
        return HealthBand.POOR


class PluginRecord(BaseModel):
    """Raw metadata for one plugin from the directory API.

    None always means "unknown upstream", never zero.
    """

    model_config = ConfigDict(frozen=True)

    slug: str = Field(min_length=1, description="Stable identifier, unique per result set")
    name: str = Field(default="", description="Display name")
    author: str = Field(default="", description="Author name with markup stripped")
    version: str | None = Field(default=None, description="Current release version")
    rating: float | None = Field(default=None, ge=0.0, le=5.0, description="Average rating 0-5")
    num_ratings: int | None = Field(default=None, ge=0, description="Number of ratings")
    ratings_distribution: dict[int, int] | None = Field(
        default=None, description="Star (1-5) to rating count"
    )
    active_installs: int | None = Field(default=None, ge=0, description="Active installations")
    downloaded: int | None = Field(default=None, ge=0, description="Total downloads")
    last_updated: datetime | None = Field(default=None, description="Last release timestamp")
    tested_up_to: str | None = Field(default=None, description="Highest platform version tested")
    requires_version: str | None = Field(default=None, description="Minimum platform version")
    support_threads_total: int | None = Field(default=None, ge=0)
    support_threads_resolved: int | None = Field(default=None, ge=0)
    short_description: str = Field(default="")
    homepage: str | None = Field(default=None)
    tags: frozenset[str] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def support_fields_together(self) -> "PluginRecord":
        """Support thread counts are either both known or both unknown."""
        if (self.support_threads_total is None) != (self.support_threads_resolved is None):
            msg = "support_threads_total and support_threads_resolved must be present together"
            raise ValueError(msg)
        return self

    @property
    def support_resolution_rate(self) -> float | None:
        """Resolved/total support threads, None when the ratio is not computable."""
        if self.support_threads_total is None or self.support_threads_resolved is None:
            return None
        if self.support_threads_total == 0:
            return None
        return min(1.0, self.support_threads_resolved / self.support_threads_total)


class ScoreBreakdown(BaseModel):
    """Per-component inputs and weights behind one composite score."""

    model_config = ConfigDict(frozen=True)

    components: dict[str, float | None] = Field(
        default_factory=dict, description="Normalized sub-score in [0,1], None if not computable"
    )
    weights: dict[str, int] = Field(default_factory=dict, description="Integer percentages")
    weight_used: int = Field(default=0, ge=0, description="Sum of weights of non-null components")
    normalized: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Renormalized weighted average"
    )
    composite: float | None = Field(default=None, description="Final scaled score")

    @property
    def insufficient_data(self) -> bool:
        """True when no component could be computed."""
        return self.composite is None


class AnnotatedPlugin(BaseModel):
    """A PluginRecord with its usability and health breakdowns."""

    model_config = ConfigDict(frozen=True)

    record: PluginRecord
    usability: ScoreBreakdown
    health: ScoreBreakdown
    position: int = Field(default=0, ge=0, description="Upstream relevance rank")

    @property
    def slug(self) -> str:
        return self.record.slug

    @property
    def usability_rating(self) -> float | None:
        return self.usability.composite

    @property
    def health_score(self) -> int | None:
        if self.health.composite is None:
            return None
        return int(self.health.composite)

    @property
    def health_band(self) -> HealthBand | None:
        score = self.health_score
        return health_band(score) if score is not None else None
