"""Compound filtering and deterministic sorting."""

from plugin_filters.filters.engine import FilterSortEngine

__all__ = ["FilterSortEngine"]
