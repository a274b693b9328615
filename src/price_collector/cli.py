"""Click-based CLI for price-collector.

Thin wrapper around library modules, meant to be driven by cron or systemd
timers. Every operation delegates to the ingestion and collection modules.

Exit codes: 0 on success, 1 when a backfill run recorded per-pair failures,
2 on a fatal error (sampler failure, bad configuration, storage unavailable).
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from price_collector.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as exc:
            _fatal("Configuration error", exc)
    return ctx.obj["config"]


def _fatal(what: str, exc: Exception) -> None:
    console.print(f"[red]{what}: {exc}[/red]")
    raise SystemExit(EXIT_FATAL)


@asynccontextmanager
async def _pipeline(config):
    """Open the HTTP client, price source, and store; close them on exit."""
    from price_collector.ingestion import CoinGeckoSource, ResilientClient, create_store

    store = await create_store(config.storage)
    try:
        async with ResilientClient(config.source) as client:
            yield CoinGeckoSource(client, config.source.base_url), store
    finally:
        await store.close()


def _build_driver(config, source, store):
    from price_collector.collection import BackfillDriver, DailyAverageCalculator

    tz = config.collection.tz
    return BackfillDriver(
        DailyAverageCalculator(source, tz),
        store,
        tz,
        pacing_delay_ms=config.collection.pacing_delay_ms,
        recovery_days=config.collection.recovery_days,
    )


def _finish_backfill(report, config) -> None:
    """Write the run log, print the summary, exit 1 if any pair failed."""
    from price_collector.collection import write_run_log

    try:
        log_path = write_run_log(report, config.collection.log_dir)
    except Exception as exc:
        _fatal("Could not write run log", exc)

    _output_report_table(report)
    console.print(
        f"{report.succeeded} saved, {report.already_present} already present, "
        f"{report.failed} failed. Log: {log_path}"
    )
    if not report.ok:
        raise SystemExit(EXIT_FAILURES)


def _output_report_table(report) -> None:
    """Render a backfill report as a Rich table."""
    table = Table(title=f"Backfill ({report.mode.value})")
    table.add_column("Date")
    table.add_column("Symbol", style="bold")
    table.add_column("Outcome")
    table.add_column("Price (JPY)", justify="right")
    table.add_column("Reason")

    styles = {"success": "green", "already_present": "dim", "failure": "red"}
    for r in report.results:
        style = styles[r.outcome.value]
        table.add_row(
            r.date.isoformat(),
            r.symbol.value,
            f"[{style}]{r.outcome.value}[/{style}]",
            f"{r.price:.6f}" if r.price is not None else "",
            r.reason or "",
        )

    console.print(table)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_COLLECTOR_CONFIG",
    default=None,
    help="Path to price-collector.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="price-collector")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Price Collector: XEM/XYM prices in JPY from CoinGecko."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# sample
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def sample(ctx: click.Context) -> None:
    """Record the current price of every symbol, then prune old samples."""
    config = _load_config(ctx)

    async def _run():
        from price_collector.collection import InstantSampler, JsonCacheWriter

        async with _pipeline(config) as (source, store):
            sampler = InstantSampler(
                source, store, JsonCacheWriter(config.collection.cache_dir)
            )
            result = await sampler.sample()
            pruned = await store.prune_instant_prices(config.storage.retention_days)
            return result, pruned

    try:
        result, pruned = _run_async(_run())
    except Exception as exc:
        _fatal("Sampling failed", exc)

    prices = ", ".join(f"{s.value}={p:.6f}" for s, p in result.prices.items())
    console.print(f"[green]✓[/green] Sampled {prices} JPY")
    if pruned:
        console.print(f"Pruned {pruned} samples older than {config.storage.retention_days} days")


# ---------------------------------------------------------------------------
# daily / recover
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--date",
    "target",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Collect this date instead of yesterday (YYYY-MM-DD).",
)
@click.pass_context
def daily(ctx: click.Context, target: datetime | None) -> None:
    """Collect yesterday's daily average price for every symbol."""
    config = _load_config(ctx)

    async def _run():
        async with _pipeline(config) as (source, store):
            driver = _build_driver(config, source, store)
            return await driver.collect_daily(day=target.date() if target else None)

    try:
        report = _run_async(_run())
    except Exception as exc:
        _fatal("Daily collection failed", exc)

    _finish_backfill(report, config)


@cli.command()
@click.option(
    "--days",
    "-d",
    type=click.IntRange(min=1),
    default=None,
    help="Number of days to scan, ending yesterday (default from config).",
)
@click.pass_context
def recover(ctx: click.Context, days: int | None) -> None:
    """Backfill any missing daily prices in the recent window."""
    config = _load_config(ctx)

    async def _run():
        async with _pipeline(config) as (source, store):
            driver = _build_driver(config, source, store)
            return await driver.recover(days=days)

    try:
        report = _run_async(_run())
    except Exception as exc:
        _fatal("Recovery failed", exc)

    _finish_backfill(report, config)


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option(
    "--from",
    "start",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=True,
    help="Start date (YYYY-MM-DD, UTC).",
)
@click.option(
    "--to",
    "end",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=True,
    help="End date (YYYY-MM-DD, UTC).",
)
@click.pass_context
def history(ctx: click.Context, symbol: str, start: datetime, end: datetime) -> None:
    """Print upstream price history for SYMBOL without storing it."""
    from price_collector.core import AssetSymbol

    try:
        asset = AssetSymbol.parse(symbol)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="SYMBOL") from exc
    if start > end:
        raise click.UsageError("--from must not be after --to")

    config = _load_config(ctx)

    async def _run():
        from price_collector.ingestion import CoinGeckoSource, ResilientClient

        async with ResilientClient(config.source) as client:
            source = CoinGeckoSource(client, config.source.base_url)
            return await source.price_history(asset, start.date(), end.date())

    try:
        rows = _run_async(_run())
    except Exception as exc:
        _fatal("History request failed", exc)

    table = Table(title=f"{asset.value} price history (JPY)")
    table.add_column("Date (UTC)")
    table.add_column("Price", justify="right")
    for day, price in rows:
        table.add_row(day.isoformat(), f"{price:.6f}")
    console.print(table)
    console.print(f"{len(rows)} data points")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the read API server."""
    import uvicorn

    config = _load_config(ctx)
    if ctx.obj.get("config_path"):
        # The app factory runs in the server process and reloads config itself
        os.environ["PRICE_COLLECTOR_CONFIG"] = ctx.obj["config_path"]
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting price-collector API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "price_collector.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show stored data coverage per symbol."""
    config = _load_config(ctx)

    async def _run():
        from price_collector.ingestion import create_store

        store = await create_store(config.storage)
        try:
            return await store.get_statistics()
        finally:
            await store.close()

    try:
        stats = _run_async(_run())
    except Exception as exc:
        _fatal("Could not read store", exc)

    from price_collector.core import AssetSymbol

    table = Table(title="Price Collector Status")
    table.add_column("Symbol", style="bold")
    table.add_column("Daily rows", justify="right")
    table.add_column("Date range")
    table.add_column("Instant rows", justify="right")
    table.add_column("Last sample")

    for asset in AssetSymbol:
        d = stats["daily"].get(asset.value)
        i = stats["instant"].get(asset.value)
        table.add_row(
            asset.value,
            str(d["count"]) if d else "0",
            f"{d['first']} → {d['last']}" if d else "N/A",
            str(i["count"]) if i else "0",
            i["last"] if i else "N/A",
        )

    console.print(f"Database: {config.storage.sqlite_path}")
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
