"""Query pipeline: the single entry point for filtered, scored plugin listings.

Each query runs these steps in order:
1. Validate input and take one config snapshot
2. Look up the finished result in the search-results cache
3. Fetch the search page from the directory (cached raw records on failure)
4. Score every record (per-slug calculated-scores cache)
5. Filter and sort
6. Store the result unless it is degraded
"""

import asyncio
import hashlib
import json
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pydantic

from plugin_filters.consts import (
    DEFAULT_DATA_DIR,
    DEFAULT_PAGE_SIZE,
    DIRECTORY_MAX_PAGE_SIZE,
    MAX_PAGE,
    MAX_SEARCH_TERM_LENGTH,
)
from plugin_filters.directory.client import DirectoryClient
from plugin_filters.directory.parsing import SearchPage
from plugin_filters.errors import NetworkError, ProtocolError, ValidationError
from plugin_filters.filters.engine import FilterSortEngine
from plugin_filters.models.common import _utc_now
from plugin_filters.models.model_cache import CacheKind
from plugin_filters.models.model_eval import AlgorithmConfig, CacheTTLs, ScoringContext
from plugin_filters.models.model_plugin import AnnotatedPlugin, PluginRecord, ScoreBreakdown
from plugin_filters.models.model_query import FilterSpec, Pagination, QueryResult, SortSpec
from plugin_filters.scorers.registry import ScorerRegistry
from plugin_filters.storage.cache.base import Cache
from plugin_filters.storage.cache.file_caching import FileCache
from plugin_filters.storage.cache.memory_cache import MemoryCache
from plugin_filters.storage.config_store import ConfigStore, WeightsInput

logger = logging.getLogger(__name__)


def _digest(payload: Any) -> str:
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()[:16]


def search_cache_key(
    term: str, page: int, page_size: int, tag: str | None, author: str | None
) -> str:
    """Key for raw upstream records of one search page."""
    return f"search:{term}:{page}:{page_size}:{tag or ''}:{author or ''}"


def result_cache_key(
    term: str,
    filter_spec: FilterSpec,
    sort_spec: SortSpec,
    page: int,
    page_size: int,
    config: AlgorithmConfig,
) -> str:
    """Key for a finished QueryResult. Includes the config fingerprint."""
    spec_digest = _digest(
        {"filter": filter_spec.model_dump(mode="json"), "sort": sort_spec.model_dump(mode="json")}
    )
    return f"query:{term}:{page}:{page_size}:{spec_digest}:{config.fingerprint()}"


def score_cache_key(record: PluginRecord, config: AlgorithmConfig) -> str:
    """Key for one record's breakdowns. Any change to the record gives a new key."""
    payload = record.model_dump(mode="json")
    # Set iteration order varies between processes
    payload["tags"] = sorted(payload["tags"])
    record_digest = _digest(payload)
    return f"{record.slug}@{record.version or 'unknown'}:{record_digest}:{config.fingerprint()}"


def _dump_page(page: SearchPage) -> dict[str, Any]:
    return {
        "records": [r.model_dump(mode="json") for r in page.records],
        "page": page.page,
        "pages": page.pages,
        "results": page.results,
    }


def _load_page(data: Any) -> SearchPage | None:
    try:
        return SearchPage(
            records=[PluginRecord.model_validate(r) for r in data["records"]],
            page=data["page"],
            pages=data["pages"],
            results=data["results"],
        )
    except (KeyError, TypeError, pydantic.ValidationError) as e:
        logger.warning(f"Discarding unreadable cached search page: {e}")
        return None


class PluginQueryService:
    """Fetch, score, filter and sort plugin listings.

    Collaborators are injected so callers (CLI, HTTP handler, scheduled job)
    can share one cache and one config store across requests.
    """

    def __init__(
        self,
        client: DirectoryClient | None = None,
        cache: Cache | None = None,
        config_store: ConfigStore | None = None,
        registry: ScorerRegistry | None = None,
        engine: FilterSortEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client = client if client is not None else DirectoryClient()
        self.cache = cache if cache is not None else MemoryCache()
        self.config_store = config_store if config_store is not None else ConfigStore()
        self.registry = registry if registry is not None else ScorerRegistry()
        self.engine = engine if engine is not None else FilterSortEngine()
        self.clock = clock or _utc_now

    @classmethod
    def from_data_dir(cls, data_dir: Path | str | None = None) -> "PluginQueryService":
        """Build a service with a file cache and persisted config under data_dir."""
        data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        store = ConfigStore(data_dir / "config" / "algorithm.json")
        store.load()
        return cls(cache=FileCache(data_dir / "cache"), config_store=store)

    @staticmethod
    def _validate_query(term: str, page: int, page_size: int) -> str:
        errors: dict[str, Any] = {}
        term = (term or "").strip()
        if len(term) > MAX_SEARCH_TERM_LENGTH:
            errors["search_term"] = f"longer than {MAX_SEARCH_TERM_LENGTH} characters"
        if not 1 <= page <= MAX_PAGE:
            errors["page"] = f"must be within 1..{MAX_PAGE}"
        if not 1 <= page_size <= DIRECTORY_MAX_PAGE_SIZE:
            errors["page_size"] = f"must be within 1..{DIRECTORY_MAX_PAGE_SIZE}"
        if errors:
            raise ValidationError("Invalid query", details=errors)
        return term

    def _annotate(
        self, records: list[PluginRecord], context: ScoringContext, config: AlgorithmConfig
    ) -> list[AnnotatedPlugin]:
        ttl = config.cache_ttls.calculated_scores
        annotated = []
        hits = 0
        for position, record in enumerate(records):
            key = score_cache_key(record, config)
            cached = self.cache.get(key, CacheKind.CALCULATED_SCORES)
            if cached is not None:
                try:
                    annotated.append(
                        AnnotatedPlugin(
                            record=record,
                            usability=ScoreBreakdown.model_validate(cached["usability"]),
                            health=ScoreBreakdown.model_validate(cached["health"]),
                            position=position,
                        )
                    )
                    hits += 1
                    continue
                except (KeyError, TypeError, pydantic.ValidationError) as e:
                    logger.warning(f"Discarding unreadable cached scores for {record.slug}: {e}")

            plugin = self.registry.annotate(record, context, position)
            self.cache.set(
                key,
                CacheKind.CALCULATED_SCORES,
                {
                    "usability": plugin.usability.model_dump(mode="json"),
                    "health": plugin.health.model_dump(mode="json"),
                },
                ttl=ttl,
            )
            annotated.append(plugin)

        logger.debug(f"Scored {len(records)} records ({hits} from cache)")
        return annotated

    async def query_plugins(
        self,
        search_term: str,
        filter_spec: FilterSpec | None = None,
        sort_spec: SortSpec | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> QueryResult:
        """Filtered and sorted plugins for one search page.

        Upstream failures never raise here: the result comes back degraded,
        built from cached records when any exist, and carries the error.

        Args:
            search_term: Free-text query, at most 200 characters.
            filter_spec: Predicates to AND together. None filters nothing.
            sort_spec: Ordering. None keeps upstream relevance order.
            page: 1-based upstream page.
            page_size: Records per upstream page, 1..48.

        Returns:
            QueryResult with annotated plugins and pagination.

        Raises:
            ValidationError: If the query parameters are out of range.
        """
        # Step 1: validate and snapshot
        term = self._validate_query(search_term, page, page_size)
        filter_spec = filter_spec or FilterSpec()
        sort_spec = sort_spec or SortSpec()
        config = self.config_store.snapshot()
        now = self.clock()
        context = ScoringContext.from_config(config, now)

        # Step 2: finished result
        result_key = result_cache_key(term, filter_spec, sort_spec, page, page_size, config)
        cached = self.cache.get(result_key, CacheKind.SEARCH_RESULTS)
        if cached is not None:
            try:
                result = QueryResult.model_validate(cached)
                logger.debug(f"Result cache hit for {term!r} page {page}")
                return result.model_copy(update={"from_cache": True})
            except pydantic.ValidationError as e:
                logger.warning(f"Discarding unreadable cached result: {e}")

        # Step 3: fetch, falling back to cached raw records
        search_key = search_cache_key(term, page, page_size, filter_spec.tag, filter_spec.author)
        degraded = False
        error = None
        try:
            search_page = await self.client.search(
                term, page, page_size, tag=filter_spec.tag, author=filter_spec.author
            )
            self.cache.set(
                search_key,
                CacheKind.PLUGIN_METADATA,
                _dump_page(search_page),
                ttl=config.cache_ttls.plugin_metadata,
            )
        except (NetworkError, ProtocolError) as e:
            logger.warning(f"Directory search failed for {term!r}, serving degraded result: {e}")
            degraded = True
            error = e.to_info()
            raw = self.cache.get(search_key, CacheKind.PLUGIN_METADATA)
            search_page = _load_page(raw) if raw is not None else None
            if search_page is None:
                search_page = SearchPage(page=page)

        # Step 4: score
        annotated = self._annotate(search_page.records, context, config)

        # Step 5: filter and sort
        plugins = self.engine.apply(annotated, filter_spec, sort_spec, current_time=now)
        logger.info(
            f"Query {term!r} page {page}: {len(plugins)}/{len(annotated)} plugins "
            f"after filters{' (degraded)' if degraded else ''}"
        )

        result = QueryResult(
            plugins=plugins,
            pagination=Pagination(
                current_page=page,
                total_pages=search_page.pages,
                total_results=search_page.results,
                page_size=page_size,
                returned=len(plugins),
            ),
            filters_applied=filter_spec.applied(),
            degraded=degraded,
            error=error,
        )

        # Step 6: store
        if not degraded:
            self.cache.set(
                result_key,
                CacheKind.SEARCH_RESULTS,
                result.model_dump(mode="json"),
                ttl=config.cache_ttls.search_results,
            )
        return result

    async def get_plugin(self, slug: str) -> AnnotatedPlugin:
        """Fetch and score one plugin's detail record.

        Raises:
            ValidationError: If slug is empty.
            NotFoundError: If the slug does not exist upstream.
            NetworkError: If upstream is unavailable and nothing is cached.
            ProtocolError: If upstream returned an unexpected shape.
        """
        slug = (slug or "").strip()
        if not slug:
            raise ValidationError("Plugin slug must not be empty", details={"slug": slug})

        config = self.config_store.snapshot()
        context = ScoringContext.from_config(config, self.clock())
        key = f"details:{slug}"

        record = None
        cached = self.cache.get(key, CacheKind.PLUGIN_METADATA)
        if cached is not None:
            try:
                record = PluginRecord.model_validate(cached)
            except pydantic.ValidationError as e:
                logger.warning(f"Discarding unreadable cached details for {slug}: {e}")

        if record is None:
            record = await self.client.fetch_details(slug)
            self.cache.set(
                key,
                CacheKind.PLUGIN_METADATA,
                record.model_dump(mode="json"),
                ttl=config.cache_ttls.plugin_metadata,
            )

        return self._annotate([record], context, config)[0]

    def invalidate_cache(self, kind: CacheKind | str | None = None) -> int:
        """Clear one cache kind, or everything.

        Raises:
            ValidationError: If kind names no cache kind.
        """
        if isinstance(kind, str):
            try:
                kind = CacheKind(kind)
            except ValueError as e:
                valid = [k.value for k in CacheKind]
                raise ValidationError(f"Unknown cache kind: {kind}", {"valid": valid}) from e
        return self.cache.invalidate(kind=kind)

    def update_algorithm_config(
        self,
        usability_weights: WeightsInput | None = None,
        health_weights: WeightsInput | None = None,
        cache_ttls: dict[str, int] | CacheTTLs | None = None,
        platform_version: str | None = None,
    ) -> AlgorithmConfig:
        """Validate and apply a config change.

        Cached scores and results are keyed by the config fingerprint, so a
        change only causes fresh keys; raw plugin metadata stays cached.

        Raises:
            ValidationError: If the change is rejected. The prior config is kept.
        """
        return self.config_store.update(
            usability=usability_weights,
            health=health_weights,
            cache_ttls=cache_ttls,
            platform_version=platform_version,
        )

    async def aclose(self) -> None:
        await self.client.aclose()


def run_query(
    search_term: str,
    filter_spec: FilterSpec | None = None,
    sort_spec: SortSpec | None = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    data_dir: Path | None = None,
) -> QueryResult:
    """Run one query synchronously against the on-disk cache and config."""

    async def _run() -> QueryResult:
        service = PluginQueryService.from_data_dir(data_dir)
        try:
            return await service.query_plugins(search_term, filter_spec, sort_spec, page, page_size)
        finally:
            await service.aclose()

    return asyncio.run(_run())


def run_get_plugin(slug: str, data_dir: Path | None = None) -> AnnotatedPlugin:
    """Fetch and score one plugin synchronously."""

    async def _run() -> AnnotatedPlugin:
        service = PluginQueryService.from_data_dir(data_dir)
        try:
            return await service.get_plugin(slug)
        finally:
            await service.aclose()

    return asyncio.run(_run())
