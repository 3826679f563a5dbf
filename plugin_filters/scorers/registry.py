"""Scorer registry that annotates plugin records with both composite scores."""

import logging

from plugin_filters.models.model_eval import ScoringContext
from plugin_filters.models.model_plugin import AnnotatedPlugin, PluginRecord
from plugin_filters.scorers.base import BaseScorer
from plugin_filters.scorers.health import HealthScorer
from plugin_filters.scorers.usability import UsabilityScorer

logger = logging.getLogger(__name__)


class ScorerRegistry:
    """Runs the usability and health scorers over plugin records.

    Annotation never mutates the record; it returns a new AnnotatedPlugin.
    """

    def __init__(
        self,
        usability: BaseScorer | None = None,
        health: BaseScorer | None = None,
    ) -> None:
        self.scorers: dict[str, BaseScorer] = {
            "usability": usability or UsabilityScorer(),
            "health": health or HealthScorer(),
        }

    def annotate(
        self, record: PluginRecord, context: ScoringContext, position: int = 0
    ) -> AnnotatedPlugin:
        """Score one record.

        Args:
            record: The plugin to score
            context: Weights snapshot and clock for this request
            position: Upstream relevance rank

        Returns:
            The record with its usability and health breakdowns
        """
        return AnnotatedPlugin(
            record=record,
            usability=self.scorers["usability"].score(record, context),
            health=self.scorers["health"].score(record, context),
            position=position,
        )

    def annotate_batch(
        self, records: list[PluginRecord], context: ScoringContext
    ) -> list[AnnotatedPlugin]:
        """Score records, keeping their order as the relevance position."""
        annotated = [self.annotate(record, context, i) for i, record in enumerate(records)]
        insufficient = sum(1 for a in annotated if a.usability.insufficient_data)
        if insufficient:
            logger.debug(f"{insufficient}/{len(annotated)} records lack data for a usability rating")
        return annotated
