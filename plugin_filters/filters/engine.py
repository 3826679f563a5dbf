"""Compound filtering and deterministic sorting of annotated plugins.

Filtering ANDs every present predicate in a FilterSpec. A record lacking the
data a predicate reads fails that predicate unless the FilterSpec opts in with
include_unknown.

Sorting compares on the requested field, always places absent values after
present ones, and breaks ties on slug ascending whatever the direction.
"""

import functools
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from plugin_filters.models.common import _utc_now
from plugin_filters.models.model_plugin import AnnotatedPlugin
from plugin_filters.models.model_query import FilterSpec, SortDirection, SortField, SortSpec
from plugin_filters.scorers.composite import days_since

logger = logging.getLogger(__name__)

# Predicate outcome: True/False, or None when the record lacks the data
Predicate = Callable[[AnnotatedPlugin], bool | None]


def _sort_value(plugin: AnnotatedPlugin, field: SortField) -> Any:
    record = plugin.record
    if field is SortField.RELEVANCE:
        return plugin.position
    if field is SortField.INSTALLS:
        return record.active_installs
    if field is SortField.RATING:
        return record.rating
    if field is SortField.UPDATED:
        return record.last_updated
    if field is SortField.USABILITY:
        return plugin.usability_rating
    if field is SortField.HEALTH:
        return plugin.health_score
    if field is SortField.NAME:
        return (record.name or record.slug).casefold()
    msg = f"Unsupported sort field: {field}"
    raise ValueError(msg)


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class FilterSortEngine:
    """Apply a FilterSpec and a SortSpec to annotated plugins."""

    def _predicates(self, spec: FilterSpec, now: datetime) -> list[tuple[str, Predicate]]:
        predicates: list[tuple[str, Predicate]] = []

        if spec.install_range is not None:
            low, high = spec.install_range.bounds

            def in_range(p: AnnotatedPlugin) -> bool | None:
                installs = p.record.active_installs
                if installs is None:
                    return None
                return installs >= low and (high is None or installs < high)

            predicates.append(("install_range", in_range))

        if spec.min_installs is not None:
            min_installs = spec.min_installs
            predicates.append(
                ("min_installs", lambda p: _at_least(p.record.active_installs, min_installs))
            )

        if spec.max_installs is not None:
            max_installs = spec.max_installs

            def below_max(p: AnnotatedPlugin) -> bool | None:
                installs = p.record.active_installs
                return None if installs is None else installs < max_installs

            predicates.append(("max_installs", below_max))

        if spec.update_timeframe is not None:
            timeframe = spec.update_timeframe

            def updated_within(p: AnnotatedPlugin) -> bool | None:
                if p.record.last_updated is None:
                    return None
                return timeframe.matches(days_since(p.record.last_updated, now))

            predicates.append(("update_timeframe", updated_within))

        if spec.min_usability is not None:
            min_usability = spec.min_usability
            predicates.append(
                ("min_usability", lambda p: _at_least(p.usability_rating, min_usability))
            )

        if spec.min_health is not None:
            min_health = spec.min_health
            predicates.append(("min_health", lambda p: _at_least(p.health_score, min_health)))

        if spec.min_rating is not None:
            min_rating = spec.min_rating
            predicates.append(("min_rating", lambda p: _at_least(p.record.rating, min_rating)))

        if spec.tag is not None:
            tag = spec.tag.casefold()

            def has_tag(p: AnnotatedPlugin) -> bool | None:
                if not p.record.tags:
                    return None
                return tag in {t.casefold() for t in p.record.tags}

            predicates.append(("tag", has_tag))

        if spec.author is not None:
            author = spec.author.casefold()

            def by_author(p: AnnotatedPlugin) -> bool | None:
                if not p.record.author:
                    return None
                return author in p.record.author.casefold()

            predicates.append(("author", by_author))

        return predicates

    def filter(
        self,
        plugins: Iterable[AnnotatedPlugin],
        spec: FilterSpec,
        current_time: datetime | None = None,
    ) -> list[AnnotatedPlugin]:
        """Keep plugins satisfying every present predicate.

        Args:
            plugins: Annotated plugins to filter
            spec: Predicates to AND together
            current_time: Reference time for update_timeframe (defaults to now)

        Returns:
            Matching plugins in their input order
        """
        plugins = list(plugins)
        predicates = self._predicates(spec, current_time or _utc_now())
        if not predicates:
            return plugins

        kept = []
        rejected: dict[str, int] = {}
        for plugin in plugins:
            for name, predicate in predicates:
                outcome = predicate(plugin)
                if outcome is None:
                    outcome = spec.include_unknown
                if not outcome:
                    rejected[name] = rejected.get(name, 0) + 1
                    break
            else:
                kept.append(plugin)

        logger.debug(f"Filter: {len(kept)}/{len(plugins)} plugins kept, rejected by {rejected}")
        return kept

    def sort(self, plugins: Iterable[AnnotatedPlugin], spec: SortSpec) -> list[AnnotatedPlugin]:
        """Deterministically order plugins.

        Relevance keeps upstream order and ignores direction. Every other
        field honors direction on the primary comparison only.
        """
        field = spec.field
        descending = spec.direction is SortDirection.DESC and field is not SortField.RELEVANCE

        def compare(a: AnnotatedPlugin, b: AnnotatedPlugin) -> int:
            va, vb = _sort_value(a, field), _sort_value(b, field)
            if va is None or vb is None:
                if va is None and vb is not None:
                    return 1
                if vb is None and va is not None:
                    return -1
            else:
                primary = _cmp(va, vb)
                if primary:
                    return -primary if descending else primary
            return _cmp(a.slug, b.slug)

        return sorted(plugins, key=functools.cmp_to_key(compare))

    def apply(
        self,
        plugins: Iterable[AnnotatedPlugin],
        filter_spec: FilterSpec | None = None,
        sort_spec: SortSpec | None = None,
        current_time: datetime | None = None,
    ) -> list[AnnotatedPlugin]:
        """Filter then sort.

        Args:
            plugins: Annotated plugins
            filter_spec: Predicates; None applies no filtering
            sort_spec: Ordering; None keeps relevance order

        Returns:
            New list of matching plugins in sorted order
        """
        filtered = self.filter(plugins, filter_spec or FilterSpec(), current_time)
        return self.sort(filtered, sort_spec or SortSpec())


def _at_least(value: float | None, threshold: float) -> bool | None:
    if value is None:
        return None
    return value >= threshold
