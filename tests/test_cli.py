"""Tests for CLI interface."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from conftest import make_plugin
from plugin_filters.cli import app
from plugin_filters.errors import NotFoundError, ValidationError
from plugin_filters.models.model_cache import CacheKind
from plugin_filters.models.model_query import (
    ErrorInfo,
    Pagination,
    QueryResult,
    SortField,
)
from plugin_filters.storage.cache.file_caching import FileCache

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def sample_result() -> QueryResult:
    plugins = [
        make_plugin("contact-form", 0, usability=4.6, health=91, active_installs=5_000_000),
        make_plugin("tiny-forms", 1, usability=None, health=35, active_installs=500),
    ]
    return QueryResult(
        plugins=plugins,
        pagination=Pagination(
            current_page=1, total_pages=4, total_results=90, page_size=24, returned=2
        ),
    )


def invoke(data_dir: Path, *args: str):
    # Wide terminal so table cells are not wrapped
    return runner.invoke(app, ["--data-dir", str(data_dir), *args], env={"COLUMNS": "200"})


class TestSearchCLI:
    """Tests for search command."""

    @patch("plugin_filters.cli.run_query")
    def test_search_basic(
        self, mock_query: MagicMock, data_dir: Path, sample_result: QueryResult
    ) -> None:
        mock_query.return_value = sample_result

        result = invoke(data_dir, "search", "forms")
        assert result.exit_code == 0
        assert "contact-form" in result.stdout
        assert "5M+" in result.stdout
        assert "insufficient data" in result.stdout

    @patch("plugin_filters.cli.run_query")
    def test_search_passes_filters(
        self, mock_query: MagicMock, data_dir: Path, sample_result: QueryResult
    ) -> None:
        mock_query.return_value = sample_result

        result = invoke(
            data_dir,
            "search",
            "forms",
            "--min-installs",
            "10000",
            "--min-health",
            "60",
            "--sort",
            "health",
            "--direction",
            "asc",
        )
        assert result.exit_code == 0

        call_kwargs = mock_query.call_args.kwargs
        assert call_kwargs["filter_spec"].min_installs == 10_000
        assert call_kwargs["filter_spec"].min_health == 60
        assert call_kwargs["sort_spec"].field == SortField.HEALTH
        assert call_kwargs["data_dir"] == data_dir

    @patch("plugin_filters.cli.run_query")
    def test_search_invalid_filter(self, mock_query: MagicMock, data_dir: Path) -> None:
        result = invoke(
            data_dir, "search", "forms", "--min-installs", "5000", "--min-health", "500"
        )
        assert result.exit_code == 1
        assert "Error" in result.stdout
        mock_query.assert_not_called()

    @patch("plugin_filters.cli.run_query")
    def test_search_no_results(self, mock_query: MagicMock, data_dir: Path) -> None:
        mock_query.return_value = QueryResult(pagination=Pagination(current_page=1, page_size=24))

        result = invoke(data_dir, "search", "xyznonexistent")
        assert result.exit_code == 0
        assert "No plugins found" in result.stdout

    @patch("plugin_filters.cli.run_query")
    def test_search_degraded(self, mock_query: MagicMock, data_dir: Path) -> None:
        mock_query.return_value = QueryResult(
            pagination=Pagination(current_page=1, page_size=24),
            degraded=True,
            error=ErrorInfo(code="network_error", message="Directory server error", retryable=True),
        )

        result = invoke(data_dir, "search", "forms")
        assert result.exit_code == 0
        assert "network_error" in result.stdout

    @patch("plugin_filters.cli.run_query")
    def test_search_validation_error(self, mock_query: MagicMock, data_dir: Path) -> None:
        mock_query.side_effect = ValidationError("Invalid query", {"page": "must be within 1..1000"})

        result = invoke(data_dir, "search", "forms", "--page", "0")
        assert result.exit_code == 1
        assert "Invalid query" in result.stdout


class TestDetailsCLI:
    """Tests for details command."""

    @patch("plugin_filters.cli.run_get_plugin")
    def test_details(self, mock_get: MagicMock, data_dir: Path) -> None:
        mock_get.return_value = make_plugin("contact-form", usability=4.6, health=91)

        result = invoke(data_dir, "details", "contact-form")
        assert result.exit_code == 0
        assert "contact-form" in result.stdout
        assert "Excellent" in result.stdout

    @patch("plugin_filters.cli.run_get_plugin")
    def test_details_not_found(self, mock_get: MagicMock, data_dir: Path) -> None:
        mock_get.side_effect = NotFoundError("Plugin not found", {"slug": "nope"})

        result = invoke(data_dir, "details", "nope")
        assert result.exit_code == 1
        assert "Plugin not found" in result.stdout


class TestConfigCLI:
    """Tests for show-config and set-weights."""

    def test_show_config_defaults(self, data_dir: Path) -> None:
        result = invoke(data_dir, "show-config")
        assert result.exit_code == 0
        assert "user_rating" in result.stdout
        assert "update_frequency" in result.stdout
        assert "Platform version" in result.stdout

    def test_set_weights_persists(self, data_dir: Path) -> None:
        result = invoke(
            data_dir,
            "set-weights",
            "--usability",
            "user_rating=50,rating_count=20,installs=20,support=10",
        )
        assert result.exit_code == 0
        assert "Configuration updated" in result.stdout

        saved = json.loads((data_dir / "config" / "algorithm.json").read_text())
        assert saved["usability_weights"]["user_rating"] == 50

    def test_set_weights_rejects_bad_sum(self, data_dir: Path) -> None:
        result = invoke(
            data_dir,
            "set-weights",
            "--usability",
            "user_rating=40,rating_count=20,installs=25,support=10",
        )
        assert result.exit_code == 1
        assert "Error" in result.stdout
        assert not (data_dir / "config" / "algorithm.json").exists()

    def test_set_weights_unparseable(self, data_dir: Path) -> None:
        result = invoke(data_dir, "set-weights", "--health", "recency")
        assert result.exit_code != 0

    def test_set_weights_nothing_to_update(self, data_dir: Path) -> None:
        result = invoke(data_dir, "set-weights")
        assert result.exit_code == 1
        assert "Nothing to update" in result.stdout

    def test_reset(self, data_dir: Path) -> None:
        invoke(data_dir, "set-weights", "--platform-version", "5.9")
        result = invoke(data_dir, "set-weights", "--reset")
        assert result.exit_code == 0

        saved = json.loads((data_dir / "config" / "algorithm.json").read_text())
        assert saved["platform_version"] != "5.9"


class TestCacheCLI:
    """Tests for cache commands."""

    def test_clear_cache_by_kind(self, data_dir: Path) -> None:
        cache = FileCache(data_dir / "cache")
        cache.set("query:a", CacheKind.SEARCH_RESULTS, {"x": 1})
        cache.set("details:a", CacheKind.PLUGIN_METADATA, {"slug": "a"})

        result = invoke(data_dir, "clear-cache", "--kind", "search-results")
        assert result.exit_code == 0
        assert "Cleared 1 entries from search-results" in result.stdout
        assert cache.get("details:a", CacheKind.PLUGIN_METADATA) == {"slug": "a"}

    def test_clear_all(self, data_dir: Path) -> None:
        cache = FileCache(data_dir / "cache")
        cache.set("query:a", CacheKind.SEARCH_RESULTS, {"x": 1})
        cache.set("details:a", CacheKind.PLUGIN_METADATA, {"slug": "a"})

        result = invoke(data_dir, "clear-cache")
        assert result.exit_code == 0
        assert "Cleared 2 entries" in result.stdout

    def test_cache_stats(self, data_dir: Path) -> None:
        FileCache(data_dir / "cache").set("query:a", CacheKind.SEARCH_RESULTS, {"x": 1})

        result = invoke(data_dir, "cache-stats")
        assert result.exit_code == 0
        assert "search-results" in result.stdout
        assert "Cache Statistics" in result.stdout
