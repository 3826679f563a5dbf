"""Health scorer producing a 0-100 maintenance score."""

import logging
import re
from collections.abc import Sequence

from plugin_filters.consts import (
    NEUTRAL_ISSUES_SCORE,
    RECENCY_FLOOR,
    RECENCY_STEPS,
    UPDATE_FREQUENCY_RECENCY_FACTORS,
    UPDATE_FREQUENCY_RECENCY_FLOOR,
)
from plugin_filters.models.model_eval import ScoringContext
from plugin_filters.models.model_plugin import PluginRecord, ScoreBreakdown
from plugin_filters.scorers.composite import (
    days_since,
    renormalized_average,
    step_score_at_most,
    support_component,
)

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^\s*(\d+)(?:\.(\d+))?")

# Version granularity as a proxy for release cadence
GRANULARITY_SCORES = {3: 0.8, 2: 0.6, 1: 0.4}
FREQUENT_PATCH_THRESHOLD = 5
FREQUENT_PATCH_BONUS = 0.1

COMPAT_CURRENT = 1.0
COMPAT_ONE_STEP = 0.8
COMPAT_BEHIND = 0.4

LOW_STAR_PENALTY = 1.5
MANY_LOW_RATINGS = 50
MANY_LOW_RATINGS_PENALTY = 0.1


def parse_major_minor(version: str | None) -> tuple[int, int] | None:
    """'6.4.2' -> (6, 4), '7' -> (7, 0). None when there is no leading number."""
    if not version:
        return None
    match = _VERSION_RE.match(version)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2) or 0)


class HealthScorer:
    """Scores how actively maintained a plugin looks.

    Components (each normalized to [0,1]):
        update_frequency  version granularity, scaled by update recency
        compatibility     tested_up_to against the current platform version
        support           resolved / total threads, 0.5 with no threads
        recency           step function on days since last update
        issues            share of 1-2 star ratings, 0.5 with no distribution

    Composite:
        renormalized weighted average * 100, rounded, clamped to [0, 100]
    """

    name = "health"

    def __init__(
        self,
        recency_steps: Sequence[tuple[float, float]] = RECENCY_STEPS,
        recency_floor: float = RECENCY_FLOOR,
        frequency_recency_factors: Sequence[tuple[float, float]] = UPDATE_FREQUENCY_RECENCY_FACTORS,
        frequency_recency_floor: float = UPDATE_FREQUENCY_RECENCY_FLOOR,
    ):
        self.recency_steps = recency_steps
        self.recency_floor = recency_floor
        self.frequency_recency_factors = frequency_recency_factors
        self.frequency_recency_floor = frequency_recency_floor

    def update_frequency(self, record: PluginRecord, context: ScoringContext) -> float | None:
        """Heuristic release cadence. None when the version is unknown.

        More dotted parts and a high patch number suggest frequent releases.
        """
        if not record.version:
            return None

        parts = record.version.strip().split(".")
        score = GRANULARITY_SCORES[min(len(parts), 3)]
        if len(parts) >= 3 and parts[2].isdigit() and int(parts[2]) > FREQUENT_PATCH_THRESHOLD:
            score += FREQUENT_PATCH_BONUS

        if record.last_updated is not None:
            days = days_since(record.last_updated, context.current_time)
            score *= step_score_at_most(
                days, self.frequency_recency_factors, self.frequency_recency_floor
            )

        return min(1.0, score)

    def compatibility(self, record: PluginRecord, context: ScoringContext) -> float | None:
        """Compare tested_up_to with the platform version.

        One step below means the previous minor of the same major, or any
        minor of the previous major when the platform is at x.0.
        """
        tested = parse_major_minor(record.tested_up_to)
        if tested is None:
            return None
        platform = parse_major_minor(context.platform_version)
        if platform is None:
            logger.warning(f"Unparseable platform version: {context.platform_version!r}")
            return None

        if tested >= platform:
            return COMPAT_CURRENT

        major, minor = platform
        if minor > 0:
            one_step = tested == (major, minor - 1)
        else:
            one_step = tested[0] == major - 1
        return COMPAT_ONE_STEP if one_step else COMPAT_BEHIND

    def recency(self, record: PluginRecord, context: ScoringContext) -> float | None:
        if record.last_updated is None:
            return None
        days = days_since(record.last_updated, context.current_time)
        return step_score_at_most(days, self.recency_steps, self.recency_floor)

    def issues(self, record: PluginRecord) -> float:
        """Penalize a high share of 1-2 star ratings."""
        distribution = record.ratings_distribution
        if not distribution:
            return NEUTRAL_ISSUES_SCORE
        total = sum(distribution.values())
        if total <= 0:
            return NEUTRAL_ISSUES_SCORE

        low = distribution.get(1, 0) + distribution.get(2, 0)
        score = 1.0 - LOW_STAR_PENALTY * (low / total)
        if low > MANY_LOW_RATINGS:
            score -= MANY_LOW_RATINGS_PENALTY
        return max(0.0, min(1.0, score))

    def components(self, record: PluginRecord, context: ScoringContext) -> dict[str, float | None]:
        return {
            "update_frequency": self.update_frequency(record, context),
            "compatibility": self.compatibility(record, context),
            "support": support_component(record),
            "recency": self.recency(record, context),
            "issues": self.issues(record),
        }

    def score(self, record: PluginRecord, context: ScoringContext) -> ScoreBreakdown:
        """Calculate the health breakdown for one record.

        Args:
            record: The plugin to score
            context: Scoring context carrying health weights, platform version and clock

        Returns:
            ScoreBreakdown with an integer composite in [0, 100]
        """
        components = self.components(record, context)
        weights = context.health_weights.model_dump()
        normalized, weight_used = renormalized_average(components, weights)

        composite = None
        if normalized is not None:
            composite = max(0, min(100, round(normalized * 100)))

        return ScoreBreakdown(
            components=components,
            weights=weights,
            weight_used=weight_used,
            normalized=normalized,
            composite=composite,
        )
