"""Shared helpers for composite scoring."""

from collections.abc import Mapping, Sequence
from datetime import datetime

from plugin_filters.consts import NEUTRAL_SUPPORT_SCORE
from plugin_filters.models.model_plugin import PluginRecord


def renormalized_average(
    components: Mapping[str, float | None], weights: Mapping[str, int]
) -> tuple[float | None, int]:
    """Weighted average over the non-null components only.

    Weights of null components are dropped from the denominator, so missing
    data is redistributed proportionally instead of counting as zero.

    Args:
        components: Component name to normalized score in [0,1] or None
        weights: Component name to integer weight

    Returns:
        (normalized average in [0,1] or None, sum of weights used)
    """
    weight_used = 0
    total = 0.0
    for name, value in components.items():
        if value is None:
            continue
        weight = weights.get(name, 0)
        weight_used += weight
        total += weight * value

    if weight_used <= 0:
        return None, weight_used
    return min(1.0, max(0.0, total / weight_used)), weight_used


def step_score(value: float, steps: Sequence[tuple[float, float]], floor: float) -> float:
    """First score whose threshold value meets (>=), else floor."""
    for threshold, score in steps:
        if value >= threshold:
            return score
    return floor


def step_score_at_most(value: float, steps: Sequence[tuple[float, float]], floor: float) -> float:
    """First score whose limit value stays within (<=), else floor."""
    for limit, score in steps:
        if value <= limit:
            return score
    return floor


def days_since(timestamp: datetime, now: datetime) -> int:
    """Whole days elapsed, never negative."""
    return max(0, (now - timestamp).days)


def support_component(record: PluginRecord) -> float | None:
    """Resolved/total support threads.

    Neutral when there were no threads at all, None when the counts are
    unknown upstream.
    """
    if record.support_threads_total is None or record.support_threads_resolved is None:
        return None
    if record.support_threads_total == 0:
        return NEUTRAL_SUPPORT_SCORE
    return record.support_resolution_rate
