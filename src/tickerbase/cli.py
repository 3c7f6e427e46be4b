"""Click-based CLI for tickerbase.

Thin wrapper around the service object. Every command builds the service,
delegates to the engine or scheduler, and renders the result with rich.
"""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

from tickerbase.core.exceptions import TickerbaseError
from tickerbase.core.models import DATE_RANGE_CONFIGS
from tickerbase.quotes.source import available_ranges

console = Console(stderr=True)
logger = logging.getLogger(__name__)

_MAX_LISTED_FAILURES = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call, and set up logging."""
    if "config" not in ctx.obj:
        from tickerbase.core import load_config
        from tickerbase.core.logging import configure_logging

        config = load_config(config_path=ctx.obj.get("config_path"))
        level = "DEBUG" if ctx.obj.get("verbose") else config.logging.level
        configure_logging(level, config.logging.file)
        ctx.obj["config"] = config
    return ctx.obj["config"]


async def _build_service_async(config):
    from tickerbase.service import build_service

    return await build_service(config)


def _resolve_symbols(tickers: str | None) -> list[str]:
    """Symbols from --tickers, or the curated default universe."""
    from tickerbase.universe import DEFAULT_UNIVERSE, parse_symbols

    if tickers is None:
        return list(DEFAULT_UNIVERSE)
    symbols = parse_symbols(tickers)
    if not symbols:
        raise click.UsageError("--tickers must name at least one symbol")
    return symbols


def _fail(exc: Exception) -> None:
    console.print(f"[red]ERROR: {exc}[/red]")
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="TICKERBASE_CONFIG",
    default=None,
    help="Path to tickerbase.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="tickerbase")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """tickerbase: equity price ingestion and scheduling."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# load-stocks
# ---------------------------------------------------------------------------


@cli.command("load-stocks")
@click.option(
    "--tickers",
    "-t",
    type=str,
    default=None,
    help="Comma-separated symbols. Default: the curated universe.",
)
@click.option(
    "--range",
    "-r",
    "range_key",
    type=click.Choice(available_ranges()),
    default=None,
    help="History span. Default: ingestion.default_range (5y).",
)
@click.pass_context
def load_stocks(ctx: click.Context, tickers: str | None, range_key: str | None) -> None:
    """Register symbols and backfill their price history."""
    config = _load_config(ctx)
    symbols = _resolve_symbols(tickers)
    range_key = range_key or config.ingestion.default_range

    console.print(f"Loading [bold]{len(symbols)}[/bold] symbols (range {range_key})")
    console.print("[dim]Large universes take between 10 and 40 minutes.[/dim]")

    async def _run():
        try:
            service = await _build_service_async(config)
        except TickerbaseError as e:
            _fail(e)
        try:
            summary = await service.engine.run_bulk_load(symbols, range_key)
        except TickerbaseError as e:
            _fail(e)
        finally:
            await service.close()

        _output_bulk_summary(summary)

    _run_async(_run())


def _output_bulk_summary(summary) -> None:
    table = Table(title="Bulk Load Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Duration (min)", f"{summary.duration_seconds / 60:.1f}")
    table.add_row("Symbols processed", str(summary.total_symbols))
    table.add_row("Succeeded", str(summary.successful))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Total records", str(summary.total_records))
    table.add_row("Average per symbol", f"{summary.average_records:.0f}")
    if summary.asset_count is not None and summary.price_count is not None:
        table.add_section()
        table.add_row("Assets in database", str(summary.asset_count))
        table.add_row("Prices in database", str(summary.price_count))
        if summary.asset_count:
            table.add_row(
                "Prices per asset", f"{summary.price_count / summary.asset_count:.0f}"
            )
    console.print(table)

    if summary.failures:
        console.print("[red]Symbols with errors:[/red]")
        for outcome in summary.failures:
            console.print(f"  {outcome.symbol}: {outcome.error}")


# ---------------------------------------------------------------------------
# load-daily-close
# ---------------------------------------------------------------------------


@cli.command("load-daily-close")
@click.pass_context
def load_daily_close(ctx: click.Context) -> None:
    """Record today's price for every registered symbol."""
    config = _load_config(ctx)

    async def _run():
        try:
            service = await _build_service_async(config)
        except TickerbaseError as e:
            _fail(e)
        try:
            symbols = await service.store.list_symbols()
            if not symbols:
                console.print("[yellow]No symbols in the database.[/yellow]")
                console.print("Run 'tickerbase load-stocks' first.")
                return
            console.print(f"Found [bold]{len(symbols)}[/bold] symbols")
            summary = await service.engine.run_daily_close(
                symbols=symbols,
                batch_size=config.ingestion.daily_batch_size,
                batch_pause=config.ingestion.daily_batch_pause,
            )
            latest = await service.store.latest_prices(limit=3)
        except TickerbaseError as e:
            _fail(e)
        finally:
            await service.close()

        _output_daily_summary(summary, latest)

    _run_async(_run())


def _output_daily_summary(summary, latest) -> None:
    table = Table(title="Daily Close Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Duration (min)", f"{summary.duration_seconds / 60:.1f}")
    table.add_row("Succeeded", str(summary.processed))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Total", str(summary.total))
    console.print(table)

    failed = summary.failed_symbols
    if failed:
        console.print(f"[red]Symbols with errors ({len(failed)}):[/red]")
        console.print("  " + ", ".join(failed[:_MAX_LISTED_FAILURES]))
        if len(failed) > _MAX_LISTED_FAILURES:
            console.print(f"  ... and {len(failed) - _MAX_LISTED_FAILURES} more")

    console.print("Latest stored prices:")
    if not latest:
        console.print("  No prices stored")
    for record in latest:
        close = record.close if record.close is not None else record.open
        console.print(f"  {record.symbol}: ${close:.2f} ({record.date:%Y-%m-%d %H:%M})")


# ---------------------------------------------------------------------------
# quote / history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option("--save", is_flag=True, default=False, help="Store the quote as today's price.")
@click.pass_context
def quote(ctx: click.Context, symbol: str, save: bool) -> None:
    """Show the latest quote for SYMBOL."""
    config = _load_config(ctx)

    async def _run():
        try:
            service = await _build_service_async(config)
        except TickerbaseError as e:
            _fail(e)
        try:
            snapshot = await service.source.fetch_latest_quote(symbol)
            if save:
                outcome = await service.engine.record_snapshot(snapshot)
                if not outcome.succeeded:
                    _fail(RuntimeError(outcome.error))
        except TickerbaseError as e:
            _fail(e)
        finally:
            await service.close()

        table = Table(title=f"{snapshot.symbol} Quote")
        table.add_column("Field", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Price", f"{snapshot.regular_market_price:.2f}")
        table.add_row("Day high", _fmt(snapshot.day_high))
        table.add_row("Day low", _fmt(snapshot.day_low))
        table.add_row("Previous close", _fmt(snapshot.previous_close))
        table.add_row("Volume", str(snapshot.volume) if snapshot.volume is not None else "N/A")
        table.add_row("Currency", snapshot.currency or "N/A")
        table.add_row(
            "Market time",
            snapshot.market_time.isoformat() if snapshot.market_time else "N/A",
        )
        console.print(table)

    _run_async(_run())


@cli.command()
@click.argument("symbol")
@click.option(
    "--range",
    "-r",
    "range_key",
    type=click.Choice(available_ranges()),
    default="1mo",
    help="History span.",
)
@click.pass_context
def history(ctx: click.Context, symbol: str, range_key: str) -> None:
    """Load and store the price history of SYMBOL."""
    config = _load_config(ctx)

    async def _run():
        try:
            service = await _build_service_async(config)
        except TickerbaseError as e:
            _fail(e)
        try:
            outcomes = await service.engine.load_historical_batch([symbol], range_key)
        finally:
            await service.close()

        outcome = outcomes[0]
        if outcome.succeeded:
            console.print(
                f"[green]✓[/green] {outcome.symbol}: {outcome.records} records ({range_key})"
            )
        else:
            _fail(RuntimeError(f"{outcome.symbol}: {outcome.error}"))

    _run_async(_run())


def _fmt(value: float | None) -> str:
    return f"{value:.2f}" if value is not None else "N/A"


# ---------------------------------------------------------------------------
# ranges
# ---------------------------------------------------------------------------


@cli.command()
def ranges() -> None:
    """List the supported history ranges."""
    table = Table(title="History Ranges")
    table.add_column("Key", style="bold")
    table.add_column("Span")
    table.add_column("Interval")
    for key, cfg in DATE_RANGE_CONFIGS.items():
        table.add_row(key, cfg.range, cfg.interval)
    console.print(table)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show stored data counts and the job schedule."""
    config = _load_config(ctx)

    async def _run():
        try:
            service = await _build_service_async(config)
        except TickerbaseError as e:
            _fail(e)
        try:
            stats = await service.store.get_statistics()
            schedule = service.scheduler.status()
        except TickerbaseError as e:
            _fail(e)
        finally:
            await service.close()

        table = Table(title="tickerbase Status")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Database path", config.storage.sqlite_path)
        table.add_row("Assets", str(stats["assets"]))
        table.add_row("Prices", str(stats["prices"]))
        table.add_section()
        for job in schedule["jobs"]:
            upcoming = job["next_run_time"]
            table.add_row(
                f"{job['name']} ({job['cron']})",
                upcoming.isoformat() if upcoming else "never",
            )
        console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# run-scheduler / serve
# ---------------------------------------------------------------------------


@cli.command("run-scheduler")
@click.option("--now", "run_now", is_flag=True, default=False, help="Run the daily close once before waiting.")
@click.pass_context
def run_scheduler(ctx: click.Context, run_now: bool) -> None:
    """Run the market-close and health-check jobs until interrupted."""
    config = _load_config(ctx)

    async def _run():
        try:
            service = await _build_service_async(config)
        except TickerbaseError as e:
            _fail(e)
        try:
            service.scheduler.start()
            if run_now:
                await service.scheduler.run_now()
            console.print("Scheduler running. Press Ctrl+C to stop.")
            await asyncio.Event().wait()
        finally:
            await service.close()

    try:
        _run_async(_run())
    except KeyboardInterrupt:
        console.print("Scheduler stopped.")


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address. Default: api.host.")
@click.option("--port", "-p", type=int, default=None, help="Port number. Default: api.port.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the REST API server (and the scheduler, if enabled)."""
    import uvicorn

    from tickerbase.api.app import create_app

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting tickerbase API on [bold]{host}:{port}[/bold]")
    uvicorn.run(create_app(config=config), host=host, port=port, log_config=None)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
