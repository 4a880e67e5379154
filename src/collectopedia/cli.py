"""Click-based CLI for collectopedia.

Each command loads config, builds its collaborators and delegates to the
pricing or batch packages; output goes through rich tables or JSON.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from collectopedia.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as exc:
            raise click.ClickException(f"Invalid configuration: {exc}") from exc
    return ctx.obj["config"]


def _http_client(config):
    """Create the shared outbound HTTP client."""
    import httpx

    return httpx.AsyncClient(timeout=httpx.Timeout(config.http.request_timeout))


def _load_items(path: str) -> list:
    """Read catalog items from a JSON file (a list, or {"items": [...]})."""
    from pydantic import ValidationError

    from collectopedia.core import CatalogItem

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="ITEMS_FILE") from exc

    if isinstance(raw, dict):
        raw = raw.get("items", [])
    if not isinstance(raw, list):
        raise click.BadParameter("expected a list of items", param_hint="ITEMS_FILE")

    try:
        return [CatalogItem.model_validate(entry) for entry in raw]
    except ValidationError as exc:
        raise click.BadParameter(str(exc), param_hint="ITEMS_FILE") from exc


def _format_money(value: float, symbol: str) -> str:
    return f"{symbol}{value:,.2f}"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="COLLECTOPEDIA_CONFIG",
    default=None,
    help="Path to collectopedia.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose (debug) logging.",
)
@click.version_option(package_name="collectopedia")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Collectopedia: marketplace price estimates for collectibles."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("search_term")
@click.option(
    "--listing-type",
    "-t",
    type=click.Choice(["listed", "sold"], case_sensitive=False),
    default="listed",
    help="Active listings or sold listings.",
)
@click.option(
    "--condition",
    type=click.Choice(["New", "Used"], case_sensitive=False),
    default=None,
    help="Restrict to one item condition.",
)
@click.option("--region", "-r", type=str, default=None, help="Region code (US, UK).")
@click.option(
    "--image",
    "image_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Photo of the item; adds an image search to listed prices.",
)
@click.option(
    "--include-items",
    is_flag=True,
    default=False,
    help="Include raw listings in JSON output.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def prices(
    ctx: click.Context,
    search_term: str,
    listing_type: str,
    condition: str | None,
    region: str | None,
    image_file: str | None,
    include_items: bool,
    output_format: str,
) -> None:
    """Look up lowest/median/highest prices for SEARCH_TERM.

    With --image the photo is searched too and the image result, when it
    found anything, becomes the combined figure.
    """
    from collectopedia.core import Condition, ListingType, PriceQuery
    from collectopedia.pricing import create_aggregator

    config = _load_config(ctx)
    query = PriceQuery(
        search_term=search_term,
        listing_type=ListingType(listing_type.lower()),
        condition=Condition(condition.capitalize()) if condition else None,
        region=region,
        include_items=include_items,
    )

    if image_file is not None:
        if query.listing_type != ListingType.LISTED:
            raise click.BadParameter("only works with listed prices", param_hint="--image")
        image = base64.b64encode(Path(image_file).read_bytes()).decode("ascii")
        _enhanced_prices(ctx, config, query, image, output_format)
        return

    async def _run():
        async with _http_client(config) as client:
            aggregator = create_aggregator(config, client)
            resolved = aggregator.resolve_region(query.region, strict=False)
            stats = await aggregator.get_prices(query)
            return stats, resolved

    stats, resolved = _run_async(_run())

    if output_format == "json":
        click.echo(json.dumps(stats.to_response(), indent=2))
    else:
        _output_prices_table(search_term, stats, resolved)

    if stats.error:
        ctx.exit(1)


def _output_prices_table(search_term: str, stats, region) -> None:
    """Render price statistics as a rich table."""
    table = Table(title=f"{stats.listing_type.value.title()} prices: {search_term} ({region.code})")
    table.add_column("Statistic", style="bold")
    table.add_column("Value", justify="right")

    symbol = region.currency_symbol
    table.add_row("Lowest", _format_money(stats.lowest, symbol))
    table.add_row("Median", _format_money(stats.median, symbol))
    table.add_row("Highest", _format_money(stats.highest, symbol))
    console.print(table)

    if stats.message:
        console.print(f"[yellow]{stats.message}[/yellow]")
    if stats.error:
        detail = f": {stats.details}" if stats.details else ""
        console.print(f"[red]{stats.error}{detail}[/red]")


def _enhanced_prices(ctx: click.Context, config, query, image: str, output_format: str) -> None:
    """Keyword plus image search, printed side by side."""
    from collectopedia.pricing import create_aggregator

    async def _run():
        async with _http_client(config) as client:
            aggregator = create_aggregator(config, client)
            resolved = aggregator.resolve_region(query.region, strict=False)
            return await aggregator.get_enhanced_prices(query, image), resolved

    result, resolved = _run_async(_run())

    if output_format == "json":
        click.echo(json.dumps(result.to_response(), indent=2))
    else:
        _output_enhanced_table(query.search_term, result, resolved)

    if result.combined.error:
        ctx.exit(1)


def _output_enhanced_table(search_term: str, result, region) -> None:
    table = Table(title=f"Listed prices: {search_term} ({region.code})")
    table.add_column("Statistic", style="bold")
    table.add_column("Text", justify="right")
    table.add_column("Image", justify="right")
    table.add_column("Combined", justify="right", style="bold")

    symbol = region.currency_symbol
    for label in ("lowest", "median", "highest"):
        table.add_row(
            label.title(),
            _format_money(getattr(result.text_based, label), symbol),
            _format_money(getattr(result.image_based, label), symbol),
            _format_money(getattr(result.combined, label), symbol),
        )
    console.print(table)

    for name, stats in (("Text", result.text_based), ("Image", result.image_based)):
        if stats.message:
            console.print(f"[yellow]{name}: {stats.message}[/yellow]")
        if stats.error:
            detail = f": {stats.details}" if stats.details else ""
            console.print(f"[red]{name}: {stats.error}{detail}[/red]")


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--batch-size", "-b", type=int, default=None, help="Items per batch.")
@click.option("--offset", type=int, default=0, help="Index of the first unsold item.")
@click.option(
    "--all",
    "refresh_everything",
    is_flag=True,
    default=False,
    help="Keep going batch after batch until every unsold item is done.",
)
@click.option(
    "--stale-first",
    is_flag=True,
    default=False,
    help="Order items so never-refreshed and oldest refreshes go first.",
)
@click.option(
    "--listing-type",
    "-t",
    type=click.Choice(["listed", "sold"], case_sensitive=False),
    default="listed",
    help="Value items from active or sold listings.",
)
@click.option("--region", "-r", type=str, default=None, help="Region code (US, UK).")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def refresh(
    ctx: click.Context,
    items_file: str,
    batch_size: int | None,
    offset: int,
    refresh_everything: bool,
    stale_first: bool,
    listing_type: str,
    region: str | None,
    output_format: str,
) -> None:
    """Refresh item valuations listed in ITEMS_FILE (JSON)."""
    from collectopedia.batch import BatchRefresher, order_by_staleness
    from collectopedia.core import ListingType
    from collectopedia.pricing import create_aggregator

    if batch_size is not None and batch_size < 1:
        raise click.BadParameter("must be >= 1", param_hint="--batch-size")
    if offset < 0:
        raise click.BadParameter("must be >= 0", param_hint="--offset")

    config = _load_config(ctx)
    items = _load_items(items_file)
    if stale_first:
        items = order_by_staleness(items)
    kind = ListingType(listing_type.lower())

    async def _run():
        async with _http_client(config) as client:
            refresher = BatchRefresher(create_aggregator(config, client), config.refresh)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task(f"Refreshing {len(items)} items...", total=None)
                if refresh_everything:
                    return await refresher.refresh_all(
                        items, batch_size=batch_size, listing_type=kind, region=region
                    )
                return await refresher.refresh_batch(
                    items, offset=offset, batch_size=batch_size,
                    listing_type=kind, region=region,
                )

    result = _run_async(_run())

    if output_format == "json":
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return
    _output_refresh_table(result)


def _output_refresh_table(result) -> None:
    """Render batch refresh results as a rich table."""
    if result.updates:
        table = Table(title="Refreshed valuations")
        table.add_column("Item", style="bold")
        table.add_column("Name")
        table.add_column("Value", justify="right")
        table.add_column("Range", justify="right")
        for update in result.updates:
            table.add_row(
                update.item_id,
                update.name,
                str(update.value),
                f"{update.lowest:.2f} - {update.highest:.2f}",
            )
        console.print(table)

    for item_id, reason in result.failures.items():
        console.print(f"[yellow]{item_id}: {reason}[/yellow]")

    console.print(
        f"{result.summary}. Total value {result.total_value}, "
        f"{result.remaining_items} remaining (next offset {result.next_offset})."
    )


# ---------------------------------------------------------------------------
# regions
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def regions(ctx: click.Context) -> None:
    """List configured marketplace regions."""
    config = _load_config(ctx)
    default = config.regions.default.upper()

    table = Table(title="Regions")
    table.add_column("Code", style="bold")
    table.add_column("Label")
    table.add_column("Marketplace")
    table.add_column("Countries")
    table.add_column("Site ID", justify="right")
    table.add_column("Currency")

    for code, region in sorted(config.regions.table.items()):
        table.add_row(
            f"{code} (default)" if code == default else code,
            region.label,
            region.marketplace_id,
            f"{region.location_country}/{region.delivery_country}",
            region.site_id,
            f"{region.currency_code} {region.currency_symbol}",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]uvicorn not installed. Install with: "
            "pip install collectopedia[api][/red]"
        )
        raise SystemExit(1)

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting collectopedia API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    # The app factory runs in the server process and reads its config from here.
    from collectopedia.core.config import CONFIG_PATH_ENV

    if ctx.obj.get("config_path"):
        os.environ[CONFIG_PATH_ENV] = os.path.abspath(ctx.obj["config_path"])

    uvicorn.run(
        "collectopedia.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
