"""Base scorer protocol defining the contract for both composite scores."""

from typing import Protocol

from plugin_filters.models.model_eval import ScoringContext
from plugin_filters.models.model_plugin import PluginRecord, ScoreBreakdown


class BaseScorer(Protocol):
    """Protocol defining the scorer contract.

    Scorers are pure functions of (record, context). They never raise for
    missing data: a component that cannot be computed is None in the
    returned breakdown, and a breakdown with no computable components has a
    None composite.
    """

    name: str

    def score(self, record: PluginRecord, context: ScoringContext) -> ScoreBreakdown:
        """Score one record.

        Args:
            record: The plugin to score
            context: Weights snapshot, platform version and clock

        Returns:
            Per-component breakdown with the scaled composite
        """
        ...
