"""Pytest configuration and fixtures."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from plugin_filters.models.model_eval import ScoringContext
from plugin_filters.models.model_plugin import AnnotatedPlugin, PluginRecord, ScoreBreakdown

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_record(slug: str = "sample-plugin", **overrides: Any) -> PluginRecord:
    """Build a PluginRecord with every field known unless overridden."""
    data: dict[str, Any] = {
        "slug": slug,
        "name": slug.replace("-", " ").title(),
        "author": "Sample Author",
        "version": "2.4.1",
        "rating": 4.5,
        "num_ratings": 250,
        "ratings_distribution": {5: 200, 4: 30, 3: 10, 2: 5, 1: 5},
        "active_installs": 200_000,
        "last_updated": NOW - timedelta(days=10),
        "tested_up_to": "6.8",
        "requires_version": "6.0",
        "support_threads_total": 20,
        "support_threads_resolved": 15,
        "short_description": "A sample plugin",
        "tags": frozenset({"forms", "contact"}),
    }
    data.update(overrides)
    return PluginRecord(**data)


def make_plugin(
    slug: str,
    position: int = 0,
    usability: float | None = None,
    health: float | None = None,
    **record_overrides: Any,
) -> AnnotatedPlugin:
    """Build an AnnotatedPlugin with fixed composite scores."""
    return AnnotatedPlugin(
        record=make_record(slug, **record_overrides),
        usability=ScoreBreakdown(composite=usability),
        health=ScoreBreakdown(composite=health),
        position=position,
    )


def raw_plugin(slug: str = "contact-form", **overrides: Any) -> dict[str, Any]:
    """A plugin object shaped like the directory API returns it."""
    data: dict[str, Any] = {
        "name": "Contact Form",
        "slug": slug,
        "version": "5.9.3",
        "author": '<a href="https://example.com/">Jane Doe</a>',
        "requires": "6.2",
        "tested": "6.8.1",
        "rating": 90,
        "ratings": {"5": 1500, "4": 200, "3": 100, "2": 50, "1": 150},
        "num_ratings": 2000,
        "support_threads": 120,
        "support_threads_resolved": 100,
        "active_installs": 5_000_000,
        "downloaded": 300_000_000,
        "last_updated": "2025-05-20 4:12pm GMT",
        "short_description": "Just another contact form plugin.",
        "homepage": "https://example.com/contact-form/",
        "tags": {"contact": "contact", "form": "form"},
    }
    data.update(overrides)
    return data


def search_body(plugins: list[dict[str, Any]], page: int = 1, pages: int = 1) -> dict[str, Any]:
    return {
        "info": {"page": page, "pages": pages, "results": len(plugins)},
        "plugins": plugins,
    }


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def context() -> ScoringContext:
    """Default weights, platform 6.8, fixed clock."""
    return ScoringContext(platform_version="6.8", current_time=NOW)


@pytest.fixture
def sample_record() -> PluginRecord:
    return make_record()
