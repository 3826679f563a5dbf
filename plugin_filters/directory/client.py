"""Plugin directory API client.

A pure fetch-and-validate boundary:
- Exponential backoff with jitter on transient failures (timeouts, 5xx, 429)
- No retries on malformed responses or unknown slugs
- A wall-clock budget per public call
- No caching; that is the pipeline's job
"""

import asyncio
import json
import logging
from typing import Any

import httpx

from plugin_filters.consts import (
    DIRECTORY_API_BASE_URL,
    DIRECTORY_DETAIL_FIELDS,
    DIRECTORY_MAX_PAGE_SIZE,
    DIRECTORY_MAX_RETRIES,
    DIRECTORY_REQUEST_TIMEOUT,
    DIRECTORY_SEARCH_FIELDS,
    DIRECTORY_TOTAL_TIMEOUT,
    DIRECTORY_USER_AGENT,
)
from plugin_filters.directory.parsing import (
    SearchPage,
    parse_details_response,
    parse_search_response,
)
from plugin_filters.directory.rate_limiter import RateLimiter
from plugin_filters.errors import (
    NetworkError,
    NotFoundError,
    ProtocolError,
    RateLimitError,
)
from plugin_filters.models.model_plugin import PluginRecord

logger = logging.getLogger(__name__)


def _field_params(fields: dict[str, bool]) -> dict[str, str]:
    return {f"request[fields][{name}]": "1" if wanted else "0" for name, wanted in fields.items()}


class DirectoryClient:
    """Async client for the plugins info API (query_plugins, plugin_information)."""

    def __init__(
        self,
        base_url: str = DIRECTORY_API_BASE_URL,
        max_retries: int = DIRECTORY_MAX_RETRIES,
        total_timeout: float = DIRECTORY_TOTAL_TIMEOUT,
        request_timeout: float = DIRECTORY_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: API endpoint accepting the `action` query parameter.
            max_retries: Retries allowed per call on NetworkError.
            total_timeout: Wall-clock budget per public call, retries included.
            request_timeout: Per-attempt HTTP timeout.
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
        """
        self.base_url = base_url
        self.max_retries = max_retries
        self.total_timeout = total_timeout
        self.request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.request_timeout),
                headers={"Accept": "application/json", "User-Agent": DIRECTORY_USER_AGENT},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "DirectoryClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _attempt(self, params: dict[str, Any]) -> Any:
        """Issue one GET and map the outcome onto the error taxonomy."""
        client = await self._get_client()
        action = params.get("action")
        try:
            response = await client.get("", params=params)
        except httpx.TimeoutException as e:
            raise NetworkError("Directory request timed out", {"action": action}) from e
        except httpx.TransportError as e:
            raise NetworkError(f"Directory unreachable: {e}", {"action": action}) from e

        status = response.status_code
        if status == 429:
            raise RateLimitError("Directory rate limit hit", {"status": status})
        if status >= 500:
            raise NetworkError("Directory server error", {"status": status})
        if status == 404:
            if action == "plugin_information":
                raise NotFoundError("Directory resource not found", {"status": status})
            raise ProtocolError("Directory search endpoint not found", {"status": status})
        if status >= 400:
            raise ProtocolError("Directory rejected the request", {"status": status})

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError("Directory returned malformed JSON", {"action": action}) from e

    async def _request(self, params: dict[str, Any]) -> Any:
        """Make an API request, retrying NetworkError with backoff."""
        limiter = RateLimiter(max_retries=self.max_retries)
        while True:
            try:
                return await self._attempt(params)
            except NetworkError as e:
                if limiter.exhausted:
                    logger.error(
                        f"Giving up on {params.get('action')} after "
                        f"{limiter.consecutive_errors} retries: {e}"
                    )
                    raise
                delay = limiter.backoff()
                logger.warning(
                    f"{e.message} ({e.code}), retry {limiter.consecutive_errors}/"
                    f"{self.max_retries} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _with_budget(self, params: dict[str, Any]) -> Any:
        try:
            return await asyncio.wait_for(self._request(params), timeout=self.total_timeout)
        except TimeoutError as e:
            raise NetworkError(
                f"Directory call exceeded {self.total_timeout:.0f}s budget",
                {"action": params.get("action")},
            ) from e

    async def search(
        self,
        query: str,
        page: int = 1,
        page_size: int = 24,
        tag: str | None = None,
        author: str | None = None,
    ) -> SearchPage:
        """Search the directory.

        Args:
            query: Free-text search term. May be empty when tag or author is given.
            page: 1-based page number.
            page_size: Results per page, capped at the upstream maximum of 48.
            tag: Restrict to a tag slug.
            author: Restrict to an author username.

        Returns:
            SearchPage with normalized records and upstream pagination.

        Raises:
            NetworkError: Upstream unavailable after retries.
            ProtocolError: Response shape invalid.
        """
        page_size = max(1, min(page_size, DIRECTORY_MAX_PAGE_SIZE))
        params: dict[str, Any] = {
            "action": "query_plugins",
            "request[page]": page,
            "request[per_page]": page_size,
            **_field_params(DIRECTORY_SEARCH_FIELDS),
        }
        if query:
            params["request[search]"] = query
        if tag:
            params["request[tag]"] = tag
        if author:
            params["request[author]"] = author

        logger.debug(f"Searching directory: query={query!r} page={page} size={page_size}")
        body = await self._with_budget(params)
        result = parse_search_response(body)
        logger.info(
            f"Directory search {query!r}: {len(result.records)} records "
            f"(page {result.page}/{result.pages}, {result.results} total, {result.skipped} skipped)"
        )
        return result

    async def fetch_details(self, slug: str) -> PluginRecord:
        """Fetch one plugin's full record.

        Raises:
            NotFoundError: The slug does not exist upstream.
            NetworkError: Upstream unavailable after retries.
            ProtocolError: Response shape invalid.
        """
        params: dict[str, Any] = {
            "action": "plugin_information",
            "request[slug]": slug,
            **_field_params(DIRECTORY_DETAIL_FIELDS),
        }
        body = await self._with_budget(params)
        if isinstance(body, dict) and "error" in body:
            raise NotFoundError(f"Plugin not found: {slug}", {"slug": slug})
        if body is None:
            raise NotFoundError(f"Plugin not found: {slug}", {"slug": slug})
        return parse_details_response(body, slug)
