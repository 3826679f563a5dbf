"""Scorers module for deriving composite quality scores.

Plugins are scored on two composites:
- Usability (1.0-5.0): user rating, rating count, installs, support
- Health (0-100): update frequency, compatibility, support, recency, issues

All scorers are stateless pure functions that take PluginRecord + ScoringContext → ScoreBreakdown.
"""

from plugin_filters.scorers.base import BaseScorer
from plugin_filters.scorers.composite import renormalized_average
from plugin_filters.scorers.health import HealthScorer
from plugin_filters.scorers.registry import ScorerRegistry
from plugin_filters.scorers.usability import UsabilityScorer

__all__ = [
    # Protocol
    "BaseScorer",
    # Individual scorers
    "UsabilityScorer",
    "HealthScorer",
    # Orchestration
    "ScorerRegistry",
    # Composite scoring
    "renormalized_average",
]
