"""
CLI interface for the Cursor usage tracker.

Runs the dashboard server, single or periodic collections, and maintenance.
"""

import asyncio
import signal
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from cursor_tracker.core.config import Settings, get_settings
from cursor_tracker.core.logging import configure_logging
from cursor_tracker.services.collector import CollectionResult, UsageCollector
from cursor_tracker.services.session import CookieSession, TrackerError
from cursor_tracker.services.storage import DataStore
from cursor_tracker.workers.tracker import UsageTracker

app = typer.Typer(help="Collect and serve Cursor dashboard usage statistics.")
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


def _build_store(settings: Settings) -> DataStore:
    return DataStore(
        settings.data_dir,
        active_window_hours=settings.active_window_hours,
        max_active_events=settings.max_active_events,
        default_page_size=settings.default_page_size,
    )


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Override LOG_LEVEL"),
):
    """Cursor usage tracker CLI."""
    configure_logging(log_level or get_settings().log_level)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: WEB_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: WEB_PORT)"),
):
    """Start the dashboard server with periodic collection."""
    import uvicorn

    settings = get_settings()
    console.print(f"Dashboard available at: http://{host or settings.web_host}:{port or settings.web_port}")
    console.print(f"Collection interval: {settings.collection_interval:.0f} seconds")
    uvicorn.run(
        "cursor_tracker.main:app",
        host=host or settings.web_host,
        port=port or settings.web_port,
        log_config=None,
    )


@app.command()
def collect():
    """Run a single collection cycle and print a summary."""
    settings = get_settings()
    try:
        result = asyncio.run(_collect_once(settings))
    except TrackerError as e:
        console.print(f"[red]Collection failed:[/] {e}")
        console.print("Export dashboard cookies to COOKIES_FILE or set COOKIE_HEADER.")
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Collection failed:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    _print_result(result)


@app.command()
def run():
    """Collect periodically without the web server until interrupted."""
    settings = get_settings()
    asyncio.run(_run_periodic(settings))


@app.command()
def cleanup(
    days: int = typer.Option(30, "--days", "-d", help="Keep events from the last N days"),
):
    """Drop stored events older than --days."""
    removed = asyncio.run(_build_store(get_settings()).cleanup_old_events(days))
    console.print(f"[green]✓[/] Removed {removed} events older than {days} days")


@app.command()
def stats():
    """Show the current statistics by model."""
    result = asyncio.run(_build_store(get_settings()).load_stats())
    if result is None:
        console.print("[yellow]No data collected yet[/]")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"Usage by model ({result.total_events} events)")
    table.add_column("Model")
    table.add_column("Requests", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Credits", justify="right")
    table.add_column("Cost ($)", justify="right")
    for model, agg in sorted(result.by_model.items(), key=lambda kv: kv[1].count, reverse=True):
        table.add_row(model, str(agg.count), f"{agg.tokens:,}", f"{agg.credits:.2f}", f"{agg.cost:.2f}")
    console.print(table)
    console.print(
        f"Total cost: ${result.total_cost:.2f} (estimated ${result.estimated_cost:.2f}), "
        f"max mode requests: {result.total_max_mode}"
    )


async def _collect_once(settings: Settings) -> CollectionResult:
    store = _build_store(settings)
    await store.initialize()
    session = CookieSession.from_settings(settings)
    try:
        return await UsageCollector(settings, store, session).collect()
    finally:
        await session.close()


async def _run_periodic(settings: Settings) -> None:
    store = _build_store(settings)
    await store.initialize()
    session = CookieSession.from_settings(settings)
    tracker = UsageTracker(
        UsageCollector(settings, store, session),
        settings.collection_interval,
        settings.shutdown_grace,
    )
    stopped = asyncio.Event()
    _install_signal_handlers(tracker, stopped)
    tracker.start()
    console.print("Tracker started, press Ctrl+C to stop")
    try:
        await stopped.wait()
    finally:
        await tracker.stop()
        await session.close()


def _install_signal_handlers(tracker: UsageTracker, stopped: asyncio.Event) -> None:
    """Route SIGINT/SIGTERM to this tracker's shutdown."""
    loop = asyncio.get_running_loop()

    def _shutdown(signame: str) -> None:
        console.print(f"\nReceived {signame}, shutting down (busy: {tracker.is_busy})...")
        stopped.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown, sig.name)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stopped.set))


def _print_result(result: CollectionResult) -> None:
    if result.dom_events:
        console.print(f"[yellow]![/] API returned nothing; {len(result.dom_events)} rows read from the dashboard page")
        return
    if not result.fetched:
        console.print("[yellow]No data collected[/]")
        return
    console.print(
        f"[green]✓[/] {result.strategy} sync: {result.fetched} fetched, "
        f"{result.new_count} new, {result.updated_count} updated, "
        f"{result.total_events} stored"
        + ("" if result.written else " (nothing changed)")
    )


if __name__ == "__main__":
    app()
