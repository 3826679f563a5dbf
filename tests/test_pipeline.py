"""Tests for the query pipeline."""

from typing import Any

import httpx
import pytest

from conftest import NOW, FakeClock, make_record, raw_plugin, search_body
from plugin_filters.directory.client import DirectoryClient
from plugin_filters.errors import NotFoundError, ValidationError
from plugin_filters.models.model_cache import CacheKind
from plugin_filters.models.model_query import FilterSpec, SortField, SortSpec
from plugin_filters.pipeline import PluginQueryService, score_cache_key
from plugin_filters.storage.cache.memory_cache import MemoryCache
from plugin_filters.storage.config_store import ConfigStore


class FakeDirectory:
    """MockTransport handler serving canned search and detail bodies."""

    def __init__(self, plugins: list[dict[str, Any]] | None = None):
        self.plugins = plugins if plugins is not None else [
            raw_plugin("contact-form"),
            raw_plugin("tiny-forms", active_installs=500, rating=60, num_ratings=8),
            raw_plugin("mid-forms", active_installs=15_000),
        ]
        self.calls: list[httpx.Request] = []
        self.down = False
        self.garbled = False
        self.missing = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.down:
            return httpx.Response(503)
        if self.missing:
            return httpx.Response(404)
        if self.garbled:
            return httpx.Response(200, content=b"not json")
        if request.url.params["action"] == "plugin_information":
            slug = request.url.params["request[slug]"]
            for plugin in self.plugins:
                if plugin["slug"] == slug:
                    return httpx.Response(200, json=plugin)
            return httpx.Response(200, json={"error": "Plugin not found."})
        return httpx.Response(200, json=search_body(self.plugins))

    @property
    def search_calls(self) -> int:
        return sum(1 for r in self.calls if r.url.params["action"] == "query_plugins")


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def service(directory: FakeDirectory, fake_clock: FakeClock) -> PluginQueryService:
    client = DirectoryClient(transport=httpx.MockTransport(directory), max_retries=0)
    return PluginQueryService(
        client=client,
        cache=MemoryCache(clock=fake_clock),
        config_store=ConfigStore(),
        clock=fake_clock,
    )


class TestQueryPlugins:
    """End-to-end query flow against a mock directory."""

    @pytest.mark.asyncio
    async def test_annotates_filters_and_sorts(self, service: PluginQueryService) -> None:
        result = await service.query_plugins(
            "forms",
            FilterSpec(min_installs=10_000),
            SortSpec(field=SortField.INSTALLS),
        )

        assert [p.slug for p in result.plugins] == ["contact-form", "mid-forms"]
        assert all(p.usability_rating is not None for p in result.plugins)
        assert all(p.health_score is not None for p in result.plugins)
        assert result.filters_applied == {"min_installs": 10_000}
        assert result.pagination.returned == 2
        assert result.pagination.total_results == 3
        assert not result.from_cache
        assert not result.degraded
        assert result.error is None

    @pytest.mark.asyncio
    async def test_relevance_keeps_upstream_order(self, service: PluginQueryService) -> None:
        result = await service.query_plugins("forms")
        assert [p.slug for p in result.plugins] == ["contact-form", "tiny-forms", "mid-forms"]
        assert [p.position for p in result.plugins] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_second_query_served_from_cache(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        first = await service.query_plugins("forms")
        second = await service.query_plugins("forms")

        assert directory.search_calls == 1
        assert second.from_cache
        assert [p.slug for p in second.plugins] == [p.slug for p in first.plugins]
        assert second.plugins[0].health_score == first.plugins[0].health_score

    @pytest.mark.asyncio
    async def test_different_filters_use_different_entries(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        await service.query_plugins("forms")
        result = await service.query_plugins("forms", FilterSpec(min_installs=10_000))

        assert directory.search_calls == 2
        assert not result.from_cache

    @pytest.mark.asyncio
    async def test_result_cache_expires_after_ttl(
        self, service: PluginQueryService, directory: FakeDirectory, fake_clock: FakeClock
    ) -> None:
        await service.query_plugins("forms")

        fake_clock.advance(3599)
        assert (await service.query_plugins("forms")).from_cache
        assert directory.search_calls == 1

        fake_clock.advance(2)
        result = await service.query_plugins("forms")
        assert not result.from_cache
        assert directory.search_calls == 2

    @pytest.mark.asyncio
    async def test_scores_cached_per_slug(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        result = await service.query_plugins("forms")
        config = service.config_store.snapshot()

        record = result.plugins[0].record
        cached = service.cache.get(score_cache_key(record, config), CacheKind.CALCULATED_SCORES)
        assert cached is not None
        assert cached["health"]["composite"] == result.plugins[0].health_score

    @pytest.mark.asyncio
    async def test_changed_record_is_rescored(
        self, service: PluginQueryService, directory: FakeDirectory, fake_clock: FakeClock
    ) -> None:
        await service.query_plugins("forms")

        # Same version, more installs upstream
        directory.plugins[2]["active_installs"] = 2_000_000
        fake_clock.advance(3601)
        result = await service.query_plugins("forms")

        plugin = next(p for p in result.plugins if p.slug == "mid-forms")
        assert plugin.record.active_installs == 2_000_000
        assert plugin.usability.components["installs"] == 1.0

    def test_score_key_ignores_tag_order(self) -> None:
        config = ConfigStore().snapshot()
        first = make_record(tags=frozenset(["forms", "contact", "email"]))
        second = make_record(tags=frozenset(["email", "contact", "forms"]))
        changed = make_record(active_installs=1)

        assert score_cache_key(first, config) == score_cache_key(second, config)
        assert score_cache_key(first, config) != score_cache_key(changed, config)

    @pytest.mark.asyncio
    async def test_weight_change_produces_fresh_results(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        before = await service.query_plugins("forms")
        service.update_algorithm_config(
            usability_weights={"user_rating": 10, "rating_count": 10, "installs": 70, "support": 10}
        )
        after = await service.query_plugins("forms")

        assert not after.from_cache
        assert directory.search_calls == 2
        assert before.plugins[0].usability != after.plugins[0].usability

    @pytest.mark.asyncio
    async def test_rejected_weights_keep_prior_config(self, service: PluginQueryService) -> None:
        before = service.config_store.snapshot()
        with pytest.raises(ValidationError):
            service.update_algorithm_config(
                usability_weights={
                    "user_rating": 40,
                    "rating_count": 20,
                    "installs": 25,
                    "support": 10,
                }
            )
        assert service.config_store.snapshot() is before

        # Queries keep scoring with the prior weights
        result = await service.query_plugins("forms")
        assert result.plugins[0].usability.weights == before.usability_weights.model_dump()

    @pytest.mark.parametrize(
        ("term", "page", "page_size"),
        [("x" * 201, 1, 24), ("forms", 0, 24), ("forms", 1, 0), ("forms", 1, 49)],
    )
    @pytest.mark.asyncio
    async def test_invalid_query_rejected(
        self,
        service: PluginQueryService,
        directory: FakeDirectory,
        term: str,
        page: int,
        page_size: int,
    ) -> None:
        with pytest.raises(ValidationError):
            await service.query_plugins(term, page=page, page_size=page_size)
        assert directory.calls == []


class TestDegradedResults:
    """Upstream failures produce degraded results instead of raising."""

    @pytest.mark.asyncio
    async def test_empty_degraded_result_when_nothing_cached(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        directory.down = True
        result = await service.query_plugins("forms")

        assert result.degraded
        assert result.plugins == []
        assert result.error is not None
        assert result.error.code == "network_error"
        assert result.error.retryable
        assert service.cache.stats()["search-results"]["total"] == 0

    @pytest.mark.asyncio
    async def test_falls_back_to_cached_records(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        await service.query_plugins("forms")
        service.invalidate_cache(CacheKind.SEARCH_RESULTS)

        directory.down = True
        result = await service.query_plugins("forms", sort_spec=SortSpec(field=SortField.NAME))

        assert result.degraded
        assert result.error is not None
        assert {p.slug for p in result.plugins} == {"contact-form", "tiny-forms", "mid-forms"}
        assert all(p.health_score is not None for p in result.plugins)

    @pytest.mark.asyncio
    async def test_degraded_result_is_not_cached(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        directory.down = True
        await service.query_plugins("forms")

        directory.down = False
        result = await service.query_plugins("forms")
        assert not result.degraded
        assert not result.from_cache
        assert len(result.plugins) == 3

    @pytest.mark.asyncio
    async def test_search_404_is_degraded(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        directory.missing = True
        result = await service.query_plugins("forms")

        assert result.degraded
        assert result.error is not None
        assert result.error.code == "protocol_error"

    @pytest.mark.asyncio
    async def test_malformed_response_is_protocol_error(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        directory.garbled = True
        result = await service.query_plugins("forms")

        assert result.degraded
        assert result.error is not None
        assert result.error.code == "protocol_error"
        assert not result.error.retryable


class TestGetPlugin:
    """Single plugin lookup."""

    @pytest.mark.asyncio
    async def test_fetches_and_scores(
        self, service: PluginQueryService, directory: FakeDirectory
    ) -> None:
        plugin = await service.get_plugin("mid-forms")
        assert plugin.slug == "mid-forms"
        assert plugin.usability_rating is not None

        await service.get_plugin("mid-forms")
        assert len(directory.calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_slug(self, service: PluginQueryService) -> None:
        with pytest.raises(NotFoundError):
            await service.get_plugin("does-not-exist")

    @pytest.mark.asyncio
    async def test_empty_slug(self, service: PluginQueryService) -> None:
        with pytest.raises(ValidationError):
            await service.get_plugin("  ")


class TestInvalidateCache:
    """Cache invalidation by kind."""

    @pytest.mark.asyncio
    async def test_invalidate_by_name(self, service: PluginQueryService) -> None:
        await service.query_plugins("forms")
        assert service.invalidate_cache("search-results") == 1
        assert (await service.query_plugins("forms")).from_cache is False

    @pytest.mark.asyncio
    async def test_invalidate_everything(self, service: PluginQueryService) -> None:
        await service.query_plugins("forms")
        # 1 raw page + 3 score entries + 1 result
        assert service.invalidate_cache() == 5

    def test_unknown_kind(self, service: PluginQueryService) -> None:
        with pytest.raises(ValidationError, match="Unknown cache kind"):
            service.invalidate_cache("everything")

    def test_service_clock_is_injected(self, service: PluginQueryService) -> None:
        assert service.clock() == NOW


class TestServiceWiring:
    """Injected collaborators are used as given."""

    def test_empty_shared_cache_is_kept(self, fake_clock: FakeClock) -> None:
        shared = MemoryCache(clock=fake_clock)
        store = ConfigStore()
        service = PluginQueryService(cache=shared, config_store=store)

        assert len(shared) == 0
        assert service.cache is shared
        assert service.config_store is store

    @pytest.mark.asyncio
    async def test_two_services_share_one_cache(
        self, directory: FakeDirectory, fake_clock: FakeClock
    ) -> None:
        shared = MemoryCache(clock=fake_clock)
        services = [
            PluginQueryService(
                client=DirectoryClient(transport=httpx.MockTransport(directory), max_retries=0),
                cache=shared,
                config_store=ConfigStore(),
                clock=fake_clock,
            )
            for _ in range(2)
        ]

        await services[0].query_plugins("forms")
        result = await services[1].query_plugins("forms")

        assert result.from_cache
        assert directory.search_calls == 1
