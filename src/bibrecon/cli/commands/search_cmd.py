# ABOUTME: The `bibrecon search` command for querying metadata providers.
# ABOUTME: Fans an ISBN, title, or author query out through the query coordinator.

import asyncio
import logging
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bibrecon.cli.options import json_option
from bibrecon.cli.render import to_json
from bibrecon.metadata.config import ConfigManager
from bibrecon.metadata.coordinator import AggregatedResult, CoordinatorConfig, QueryCoordinator
from bibrecon.metadata.errors import GlobalTimeoutExceeded, ProviderFailure
from bibrecon.metadata.http import ReconHttpClient
from bibrecon.metadata.openlibrary import OpenLibraryProvider
from bibrecon.metadata.provider import MetadataProvider
from bibrecon.metadata.rate_limiter import RateLimiterRegistry
from bibrecon.metadata.relaxation import QueryStrategyBuilder
from bibrecon.metadata.strategy import Strategy, select_providers
from bibrecon.metadata.types import CreatorQuery, IsbnQuery, MultiCriteriaQuery, Query, TitleQuery

logger = logging.getLogger(__name__)


def _create_providers(http_client: ReconHttpClient) -> list[MetadataProvider]:
    """Create the default metadata providers (Open Library)."""
    return [OpenLibraryProvider(http_client=http_client)]


def _build_queries(
    isbn: str | None, title: str | None, author: str | None
) -> tuple[Query, list[Query]]:
    """Primary query plus fallbacks tried in order while nothing is found.

    Title searches fall back to progressively relaxed multi-criteria queries.
    """
    builder = QueryStrategyBuilder()
    if isbn:
        if not title:
            return IsbnQuery(isbn=isbn), []
        by_title = MultiCriteriaQuery(title=title, authors=(author,) if author else ())
        return IsbnQuery(isbn=isbn), [by_title, *builder.build_strategy(by_title).fallbacks]
    if title and author:
        strategy = builder.build_strategy(MultiCriteriaQuery(title=title, authors=(author,)))
        return strategy.primary, list(strategy.fallbacks)
    if title:
        return TitleQuery(title=title), []
    return CreatorQuery(name=author or ""), []


async def _run(
    primary: Query,
    fallbacks: list[Query],
    config: CoordinatorConfig,
    manager: ConfigManager,
    selection: MultiCriteriaQuery,
    strategy: Strategy,
    max_providers: int | None = None,
) -> AggregatedResult:
    async with ReconHttpClient() as http_client:
        enabled = [
            p
            for p in _create_providers(http_client)
            if manager.get_provider_config(p.name) is None or manager.is_provider_enabled(p.name)
        ]
        if not enabled:
            msg = "No enabled providers"
            raise ProviderFailure("search", msg)
        providers = select_providers(enabled, selection, strategy, max_providers=max_providers)
        if not providers:
            msg = f"No providers selected by the {strategy.value} strategy"
            raise ProviderFailure("search", msg)
        logger.debug("Selected providers: %s", ", ".join(p.name for p in providers))
        registry = RateLimiterRegistry()
        for provider in providers:
            registry.get_limiter(provider.name, manager.get_effective_rate_limit(provider.name))
        slowest = max(manager.get_effective_timeout(p.name).operation_timeout for p in providers)
        config = replace(config, provider_timeout=min(config.global_timeout, slowest))
        coordinator = QueryCoordinator(providers, config, rate_limiter=registry)
        return await coordinator.query_with_strategy(primary, fallbacks)


@click.command("search")
@click.option("--isbn", default=None, help="ISBN-10 or ISBN-13 to look up.")
@click.option("--title", default=None, help="Title to search for.")
@click.option("--author", default=None, help="Author name to search for.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0.1),
    default=30.0,
    show_default=True,
    help="Overall deadline in seconds.",
)
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in Strategy]),
    default=Strategy.ALL.value,
    show_default=True,
    help="How providers are chosen for the query.",
)
@click.option(
    "--max-providers",
    type=click.IntRange(min=1),
    default=None,
    help="Query at most this many providers.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Provider configuration JSON.",
)
@json_option
def search(
    isbn: str | None,
    title: str | None,
    author: str | None,
    timeout: float,
    strategy: str,
    max_providers: int | None,
    config_path: Path | None,
    as_json: bool,
) -> None:
    """Search metadata providers by ISBN, title, or author."""
    console = Console()
    if not (isbn or title or author):
        console.print("[red]Give at least one of --isbn, --title, or --author.[/red]")
        raise SystemExit(1)

    manager = ConfigManager()
    if config_path:
        try:
            manager.load_json(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            console.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc

    config = CoordinatorConfig(
        global_timeout=timeout,
        max_concurrency=manager.config.max_concurrent_queries,
    )
    primary, fallbacks = _build_queries(isbn, title, author)
    logger.debug("Searching %s with %d fallback(s)", primary, len(fallbacks))

    try:
        result = asyncio.run(
            _run(
                primary,
                fallbacks,
                config,
                manager,
                MultiCriteriaQuery(title=title, authors=(author,) if author else (), isbn=isbn),
                Strategy(strategy),
                max_providers,
            )
        )
    except (ProviderFailure, GlobalTimeoutExceeded) as exc:
        console.print(f"[red]Search failed: {exc}[/red]")
        raise SystemExit(1) from exc

    if as_json:
        click.echo(to_json(result))
        return

    for outcome in result.provider_results:
        if not outcome.success:
            console.print(f"[yellow]{outcome.provider} failed: {outcome.error}[/yellow]")

    if not result.aggregated_records:
        console.print("[yellow]No results found.[/yellow]")
        return

    table = Table()
    table.add_column("Source", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Year", width=5)
    table.add_column("ISBN")
    table.add_column("Conf.", justify="right", width=6)
    for record in result.aggregated_records:
        table.add_row(
            record.source,
            record.title or "[dim]untitled[/dim]",
            record.author or "[dim]unknown[/dim]",
            str(record.publication_year or "?"),
            record.isbn[0] if record.isbn else "",
            f"{record.confidence:.2f}",
        )
    console.print(table)
    console.print(
        f"\n[dim]{result.total_records} result(s) from {result.successful_providers} provider(s) "
        f"in {result.total_duration:.1f}s[/dim]"
    )
