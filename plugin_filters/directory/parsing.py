"""Normalization of plugin directory API payloads into PluginRecords.

The upstream API is loosely typed: numbers arrive as strings, empty strings
stand in for missing values, tags come as either an object or a list, and
the author field carries an HTML link. Everything is coerced here so the
scorers only ever see a validated PluginRecord.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pydantic

from plugin_filters.errors import ProtocolError
from plugin_filters.models.model_plugin import PluginRecord

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_LAST_UPDATED_FORMATS = ("%Y-%m-%d %I:%M%p GMT", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d")
UPSTREAM_RATING_SCALE = 20  # Upstream rating is a 0-100 percentage


@dataclass
class SearchPage:
    """One page of search results with upstream pagination metadata."""

    records: list[PluginRecord] = field(default_factory=list)
    page: int = 1
    pages: int = 0
    results: int = 0
    skipped: int = 0


def strip_html(value: str) -> str:
    """Drop markup and decode entities, e.g. '<a href="...">Jane</a>' -> 'Jane'."""
    return html.unescape(_TAG_RE.sub("", value)).strip()


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _to_int(value: Any) -> int | None:
    value = _blank_to_none(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> str | None:
    value = _blank_to_none(value)
    if value is None or isinstance(value, bool):
        return None
    return str(value).strip()


def parse_last_updated(value: Any) -> datetime | None:
    """Parse an upstream timestamp. Unparseable values become None.

    Accepts "2024-05-01 3:15pm GMT", plain dates, and ISO 8601. Naive values
    are taken as UTC.
    """
    value = _blank_to_none(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    parsed = None
    for fmt in _LAST_UPDATED_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable last_updated value: {text!r}")
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_tags(value: Any) -> frozenset[str]:
    """Tags arrive as {slug: label} or [slug, ...]. Either way keep the slugs."""
    if isinstance(value, dict):
        return frozenset(str(k) for k in value if str(k).strip())
    if isinstance(value, list):
        return frozenset(str(v) for v in value if isinstance(v, str | int) and str(v).strip())
    return frozenset()


def parse_ratings_distribution(value: Any) -> dict[int, int] | None:
    """Star (1-5) to count. Keys may be strings; anything else is dropped."""
    if not isinstance(value, dict):
        return None
    distribution: dict[int, int] = {}
    for star, count in value.items():
        star_num = _to_int(star)
        count_num = _to_int(count)
        if star_num is None or not 1 <= star_num <= 5 or count_num is None or count_num < 0:
            continue
        distribution[star_num] = count_num
    return distribution or None


def _parse_rating(raw: dict[str, Any], num_ratings: int | None) -> float | None:
    rating = _blank_to_none(raw.get("rating"))
    if rating is None or isinstance(rating, bool):
        return None
    try:
        value = float(rating) / UPSTREAM_RATING_SCALE
    except (TypeError, ValueError):
        return None
    # A zero average with zero ratings means "never rated", not "rated zero"
    if value == 0 and not num_ratings:
        return None
    return max(0.0, min(5.0, value))


def normalize_plugin(raw: dict[str, Any]) -> PluginRecord:
    """Build a PluginRecord from one upstream plugin object.

    Raises:
        pydantic.ValidationError: If the normalized data still violates the
            record's constraints (e.g. missing slug).
    """
    num_ratings = _to_int(raw.get("num_ratings"))
    total = _to_int(raw.get("support_threads"))
    resolved = _to_int(raw.get("support_threads_resolved"))
    if total is None or resolved is None:
        total = resolved = None

    author = _to_str(raw.get("author"))

    return PluginRecord(
        slug=_to_str(raw.get("slug")) or "",
        name=strip_html(_to_str(raw.get("name")) or ""),
        author=strip_html(author) if author else "",
        version=_to_str(raw.get("version")),
        rating=_parse_rating(raw, num_ratings),
        num_ratings=num_ratings,
        ratings_distribution=parse_ratings_distribution(raw.get("ratings")),
        active_installs=_to_int(raw.get("active_installs")),
        downloaded=_to_int(raw.get("downloaded")),
        last_updated=parse_last_updated(raw.get("last_updated")),
        tested_up_to=_to_str(raw.get("tested")),
        requires_version=_to_str(raw.get("requires")),
        support_threads_total=total,
        support_threads_resolved=resolved,
        short_description=strip_html(_to_str(raw.get("short_description")) or ""),
        homepage=_to_str(raw.get("homepage")),
        tags=parse_tags(raw.get("tags")),
    )


def parse_search_response(body: Any) -> SearchPage:
    """Validate the query_plugins envelope and normalize its records.

    Individual records that fail validation are skipped with a warning; an
    envelope of the wrong shape is a ProtocolError.

    Raises:
        ProtocolError: If the body is not {"info": {...}, "plugins": [...]}.
    """
    if not isinstance(body, dict):
        raise ProtocolError("Search response is not a JSON object", {"type": type(body).__name__})
    if "error" in body:
        raise ProtocolError("Directory returned an error", {"error": str(body["error"])})

    plugins = body.get("plugins")
    info = body.get("info")
    if not isinstance(plugins, list) or not isinstance(info, dict):
        raise ProtocolError(
            "Search response missing 'plugins' list or 'info' object",
            {"keys": sorted(str(k) for k in body)},
        )

    page = SearchPage(
        page=_to_int(info.get("page")) or 1,
        pages=_to_int(info.get("pages")) or 0,
        results=_to_int(info.get("results")) or 0,
    )
    seen: set[str] = set()
    for raw in plugins:
        if not isinstance(raw, dict):
            page.skipped += 1
            logger.warning(f"Skipping non-object plugin entry: {type(raw).__name__}")
            continue
        try:
            record = normalize_plugin(raw)
        except pydantic.ValidationError as e:
            page.skipped += 1
            logger.warning(f"Skipping invalid plugin entry {raw.get('slug')!r}: {e}")
            continue
        if record.slug in seen:
            logger.debug(f"Dropping duplicate slug in result set: {record.slug}")
            continue
        seen.add(record.slug)
        page.records.append(record)

    return page


def parse_details_response(body: Any, slug: str) -> PluginRecord:
    """Validate a plugin_information body.

    Raises:
        ProtocolError: If the body is not a valid plugin object.
    """
    if not isinstance(body, dict):
        raise ProtocolError("Details response is not a JSON object", {"slug": slug})
    try:
        return normalize_plugin(body)
    except pydantic.ValidationError as e:
        raise ProtocolError("Details response failed validation", {"slug": slug}) from e
