"""Plugin Directory Filters: scoring, filtering and sorting for plugin directory listings."""

__version__ = "1.0.0"
