"""CLI interface for plugin-directory-filters."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from plugin_filters.consts import DEFAULT_DATA_DIR, DEFAULT_PAGE_SIZE
from plugin_filters.errors import PluginFiltersError
from plugin_filters.models.model_cache import CacheKind
from plugin_filters.models.model_plugin import (
    HEALTH_BAND_DESCRIPTIONS,
    AnnotatedPlugin,
    HealthBand,
)
from plugin_filters.models.model_query import (
    FilterSpec,
    InstallRange,
    SortDirection,
    SortField,
    SortSpec,
    UpdateTimeframe,
)
from plugin_filters.pipeline import PluginQueryService, run_get_plugin, run_query
from plugin_filters.storage.cache.file_caching import FileCache
from plugin_filters.storage.config_store import ConfigStore

app = typer.Typer(
    name="pdf",
    help="Plugin Directory Filters - Search, score, filter and sort directory plugins",
)

console = Console()

_state: dict[str, Path] = {"data_dir": DEFAULT_DATA_DIR}

BAND_COLORS = {
    HealthBand.EXCELLENT: "green",
    HealthBand.GOOD: "cyan",
    HealthBand.FAIR: "yellow",
    HealthBand.POOR: "red",
}


def _format_installs(installs: int | None) -> str:
    """Format install counts like the directory does (1M+, 10K+)."""
    if installs is None:
        return "-"
    if installs >= 1_000_000:
        return f"{installs // 1_000_000}M+"
    elif installs >= 1_000:
        return f"{installs // 1_000}K+"
    return str(installs)


def _format_health(plugin: AnnotatedPlugin) -> str:
    score = plugin.health_score
    band = plugin.health_band
    if score is None or band is None:
        return "[dim]n/a[/dim]"
    color = BAND_COLORS[band]
    return f"[{color}]{score}[/{color}]"


def _format_usability(plugin: AnnotatedPlugin) -> str:
    rating = plugin.usability_rating
    return "[dim]insufficient data[/dim]" if rating is None else f"{rating:.1f}"


def _truncate(text: str, max_len: int = 40) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _config_store() -> ConfigStore:
    store = ConfigStore(_state["data_dir"] / "config" / "algorithm.json")
    store.load()
    return store


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    data_dir: Path = typer.Option(
        None, "--data-dir", help="Directory for cache and config (default: ./data)"
    ),
) -> None:
    """Configure logging and the data directory for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    _state["data_dir"] = Path(data_dir) if data_dir else DEFAULT_DATA_DIR


@app.command()
def search(
    query: str = typer.Argument("", help="Search term"),
    page: int = typer.Option(1, "--page", "-p", help="Upstream page number"),
    page_size: int = typer.Option(DEFAULT_PAGE_SIZE, "--page-size", help="Results per page (max 48)"),
    installs: InstallRange = typer.Option(None, "--installs", help="Active install range"),
    min_installs: int = typer.Option(None, "--min-installs", help="Minimum active installs"),
    updated: UpdateTimeframe = typer.Option(None, "--updated", help="Last updated timeframe"),
    min_usability: float = typer.Option(None, "--min-usability", help="Minimum usability (1-5)"),
    min_health: int = typer.Option(None, "--min-health", help="Minimum health score (0-100)"),
    min_rating: float = typer.Option(None, "--min-rating", help="Minimum user rating (0-5)"),
    tag: str = typer.Option(None, "--tag", help="Restrict to a tag"),
    author: str = typer.Option(None, "--author", help="Restrict to an author"),
    include_unknown: bool = typer.Option(
        False, "--include-unknown", help="Keep plugins missing data for a filter"
    ),
    sort: SortField = typer.Option(SortField.RELEVANCE, "--sort", "-s", help="Sort field"),
    direction: SortDirection = typer.Option(SortDirection.DESC, "--direction", "-d"),
) -> None:
    """Search the directory and show scored, filtered, sorted plugins."""
    try:
        filter_spec = FilterSpec(
            install_range=installs,
            min_installs=min_installs,
            update_timeframe=updated,
            min_usability=min_usability,
            min_health=min_health,
            min_rating=min_rating,
            tag=tag,
            author=author,
            include_unknown=include_unknown,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        result = run_query(
            query,
            filter_spec=filter_spec,
            sort_spec=SortSpec(field=sort, direction=direction),
            page=page,
            page_size=page_size,
            data_dir=_state["data_dir"],
        )
    except PluginFiltersError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if result.degraded and result.error is not None:
        console.print(
            f"[yellow]Directory unavailable ({result.error.code}): {result.error.message}. "
            f"Showing cached results if any.[/yellow]"
        )

    if not result.plugins:
        console.print("[yellow]No plugins found.[/yellow]")
        return

    pagination = result.pagination
    table = Table(
        title=f"Page {pagination.current_page}/{pagination.total_pages} "
        f"({pagination.total_results} total, {pagination.returned} shown)"
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Installs", justify="right", style="magenta")
    table.add_column("Rating", justify="right")
    table.add_column("Usability", justify="right")
    table.add_column("Health", justify="right")
    table.add_column("Updated", justify="right")

    for i, plugin in enumerate(result.plugins, 1):
        record = plugin.record
        table.add_row(
            str(i),
            record.slug,
            _truncate(record.name),
            _format_installs(record.active_installs),
            f"{record.rating:.1f}" if record.rating is not None else "-",
            _format_usability(plugin),
            _format_health(plugin),
            record.last_updated.strftime("%Y-%m-%d") if record.last_updated else "-",
        )

    console.print(table)
    if result.from_cache:
        console.print("[dim](served from cache)[/dim]")


@app.command()
def details(slug: str = typer.Argument(..., help="Plugin slug")) -> None:
    """Show one plugin with its full score breakdown."""
    try:
        plugin = run_get_plugin(slug, data_dir=_state["data_dir"])
    except PluginFiltersError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    record = plugin.record
    console.print(f"\n[bold cyan]{record.name or record.slug}[/bold cyan] ({record.slug})")
    console.print(f"Author: {record.author or '-'}  Version: {record.version or '-'}")
    console.print(f"Tested up to: {record.tested_up_to or '-'}")
    if record.short_description:
        console.print(f"\n{record.short_description}")

    console.print(f"\nUsability: {_format_usability(plugin)}")
    console.print(f"Health: {_format_health(plugin)}", end="")
    if plugin.health_band is not None:
        console.print(f" - {HEALTH_BAND_DESCRIPTIONS[plugin.health_band]}")
    else:
        console.print()

    for title, breakdown in (("Usability", plugin.usability), ("Health", plugin.health)):
        table = Table(title=f"{title} breakdown (weight used {breakdown.weight_used})")
        table.add_column("Component", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Weight", justify="right", style="magenta")
        for name, value in breakdown.components.items():
            table.add_row(
                name,
                "[dim]unknown[/dim]" if value is None else f"{value:.2f}",
                str(breakdown.weights.get(name, 0)),
            )
        console.print(table)


@app.command(name="clear-cache")
def clear_cache(
    kind: CacheKind = typer.Option(None, "--kind", "-k", help="Only clear this cache kind"),
) -> None:
    """Clear cached plugin data."""
    service = PluginQueryService(
        cache=FileCache(_state["data_dir"] / "cache"), config_store=_config_store()
    )
    cleared = service.invalidate_cache(kind)
    scope = kind.value if kind else "all kinds"
    console.print(f"[green]Cleared {cleared} entries from {scope}[/green]")


@app.command(name="cache-stats")
def cache_stats() -> None:
    """Show cache entry counts per kind."""
    stats = FileCache(_state["data_dir"] / "cache").stats()

    table = Table(title="Cache Statistics")
    table.add_column("Kind", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Valid", justify="right", style="green")
    table.add_column("Expired", justify="right", style="red")
    for kind, counts in stats.items():
        table.add_row(kind, str(counts["total"]), str(counts["valid"]), str(counts["expired"]))
    console.print(table)


@app.command(name="show-config")
def show_config() -> None:
    """Show current scoring weights, cache TTLs and platform version."""
    config = _config_store().snapshot()

    for title, weights in (
        ("Usability Weights", config.usability_weights.model_dump()),
        ("Health Weights", config.health_weights.model_dump()),
    ):
        table = Table(title=title)
        table.add_column("Component", style="cyan")
        table.add_column("Weight", justify="right", style="magenta")
        for name, weight in weights.items():
            table.add_row(name, f"{weight}%")
        console.print(table)

    table = Table(title="Cache TTLs")
    table.add_column("Kind", style="cyan")
    table.add_column("Seconds", justify="right")
    for kind in CacheKind:
        table.add_row(kind.value, str(config.cache_ttls.for_kind(kind)))
    console.print(table)

    console.print(f"Platform version: {config.platform_version}")
    console.print(f"Fingerprint: {config.fingerprint()}")


def _parse_weights(spec: str) -> dict[str, int]:
    """Parse 'name=40,other=60' into a weight map."""
    weights: dict[str, int] = {}
    for part in spec.split(","):
        if not part.strip():
            continue
        name, sep, value = part.partition("=")
        if not sep:
            msg = f"Expected name=value, got {part!r}"
            raise typer.BadParameter(msg)
        try:
            weights[name.strip()] = int(value)
        except ValueError:
            msg = f"Weight for {name.strip()!r} must be an integer"
            raise typer.BadParameter(msg) from None
    return weights


@app.command(name="set-weights")
def set_weights(
    usability: str = typer.Option(
        None,
        "--usability",
        help="user_rating=40,rating_count=20,installs=25,support=15",
    ),
    health: str = typer.Option(
        None,
        "--health",
        help="update_frequency=30,compatibility=25,support=20,recency=15,issues=10",
    ),
    platform_version: str = typer.Option(None, "--platform-version", help="e.g. 6.8"),
    reset: bool = typer.Option(False, "--reset", help="Restore default weights and TTLs"),
) -> None:
    """Validate and store new scoring weights."""
    store = _config_store()
    if reset:
        store.reset_to_defaults()
        console.print("[green]Configuration reset to defaults[/green]")
        return

    if usability is None and health is None and platform_version is None:
        console.print("[red]Error:[/red] Nothing to update. Use --usability, --health or --reset")
        raise typer.Exit(1)

    try:
        config = store.update(
            usability=_parse_weights(usability) if usability else None,
            health=_parse_weights(health) if health else None,
            platform_version=platform_version,
        )
    except PluginFiltersError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Configuration updated[/green] (fingerprint {config.fingerprint()})")


if __name__ == "__main__":
    app()
