"""Usability scorer producing a 1.0-5.0 rating."""

from collections.abc import Sequence

from plugin_filters.consts import (
    INSTALL_FLOOR,
    INSTALL_STEPS,
    RATING_COUNT_FLOOR,
    RATING_COUNT_STEPS,
)
from plugin_filters.models.model_eval import ScoringContext
from plugin_filters.models.model_plugin import PluginRecord, ScoreBreakdown
from plugin_filters.scorers.composite import renormalized_average, step_score, support_component

USABILITY_MIN = 1.0
USABILITY_MAX = 5.0


class UsabilityScorer:
    """Scores how well-received and well-supported a plugin is.

    Components (each normalized to [0,1]):
        user_rating   rating / 5, None if unrated
        rating_count  step function on num_ratings, None if 0 or unknown
        installs      step function on active_installs, None if 0 or unknown
        support       resolved / total threads, 0.5 with no threads

    Composite:
        renormalized weighted average * 5, clamped to [1, 5], one decimal
    """

    name = "usability"

    def __init__(
        self,
        rating_count_steps: Sequence[tuple[float, float]] = RATING_COUNT_STEPS,
        rating_count_floor: float = RATING_COUNT_FLOOR,
        install_steps: Sequence[tuple[float, float]] = INSTALL_STEPS,
        install_floor: float = INSTALL_FLOOR,
    ):
        self.rating_count_steps = rating_count_steps
        self.rating_count_floor = rating_count_floor
        self.install_steps = install_steps
        self.install_floor = install_floor

    def components(self, record: PluginRecord) -> dict[str, float | None]:
        user_rating = None
        if record.rating is not None and record.rating > 0:
            user_rating = min(1.0, record.rating / 5.0)

        rating_count = None
        if record.num_ratings:
            rating_count = step_score(
                record.num_ratings, self.rating_count_steps, self.rating_count_floor
            )

        installs = None
        if record.active_installs:
            installs = step_score(record.active_installs, self.install_steps, self.install_floor)

        return {
            "user_rating": user_rating,
            "rating_count": rating_count,
            "installs": installs,
            "support": support_component(record),
        }

    def score(self, record: PluginRecord, context: ScoringContext) -> ScoreBreakdown:
        """Calculate the usability breakdown for one record.

        Args:
            record: The plugin to score
            context: Scoring context carrying the usability weights

        Returns:
            ScoreBreakdown whose composite is None when no component is known
        """
        components = self.components(record)
        weights = context.usability_weights.model_dump()
        normalized, weight_used = renormalized_average(components, weights)

        composite = None
        if normalized is not None:
            scaled = normalized * USABILITY_MAX
            composite = round(min(USABILITY_MAX, max(USABILITY_MIN, scaled)), 1)

        return ScoreBreakdown(
            components=components,
            weights=weights,
            weight_used=weight_used,
            normalized=normalized,
            composite=composite,
        )
