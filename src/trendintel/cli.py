"""CLI entry point using Typer."""

import asyncio
from pathlib import Path

import structlog
import typer
import yaml  # type: ignore[import-untyped]
from rich.console import Console
from rich.table import Table

from trendintel.errors import TrendIntelError

app = typer.Typer(
    name="trendintel",
    help="Trend Intelligence - Cross-source signal validation and asset tracking.",
)
console = Console()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)


def _engine():
    from trendintel.engine import SignalEngine

    try:
        return SignalEngine.from_settings()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _load_payloads(path: str) -> list[dict]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Signal file not found: {path}")
    data = yaml.safe_load(p.read_text()) or []
    if isinstance(data, dict):
        data = data.get("signals", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of signals or a 'signals' list")
    return data


def _payloads_or_exit(path: str) -> list[dict]:
    try:
        return _load_payloads(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _print_adapter_results(results) -> None:
    if not results:
        return
    table = Table(title="Adapters")
    table.add_column("Source", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Signals", style="green")
    table.add_column("Duration (ms)", style="white")
    table.add_column("Message", style="white")
    for result in results:
        style = "green" if result.ok else "red"
        table.add_row(
            result.source_name,
            f"[{style}]{result.status.value}[/{style}]",
            str(len(result.signals)),
            str(result.duration_ms or ""),
            result.message or "",
        )
    console.print(table)


def _print_validation(result) -> None:
    table = Table(title=f"Validation: {result.symbol}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Confidence", f"{result.overall_confidence:.1f}")
    table.add_row("Risk", result.risk_level.value)
    table.add_row("Recommendation", result.recommendation.value)
    table.add_row("Sources", ", ".join(result.source_names))
    flags = [name for name, value in vars(result.flags).items() if value]
    table.add_row("Flags", ", ".join(flags) or "-")
    table.add_row("Conflicts", "; ".join(result.conflicting_signals) or "-")
    console.print(table)
    console.print(result.summary)


@app.command()
def ingest(
    file: str | None = typer.Option(None, "--file", "-f", help="YAML/JSON file of raw signals"),
    skip_feeds: bool = typer.Option(False, "--skip-feeds", help="Do not scan configured feeds"),
    timeout: float | None = typer.Option(None, help="Adapter scan timeout in seconds"),
) -> None:
    """Scan configured feeds and/or a signal file into pending assets."""
    engine = _engine()

    payloads = _payloads_or_exit(file) if file else []

    results = []
    signals = []
    if engine.adapters and not skip_feeds:
        results = asyncio.run(engine.scan(timeout))
        signals = [signal for result in results for signal in result.signals]
        _print_adapter_results(results)

    stats = engine.ingest([*signals, *payloads])

    table = Table(title="Ingest Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green")
    table.add_row("Added", str(stats.added))
    table.add_row("Skipped (duplicate)", str(stats.skipped))
    table.add_row("Auto-rejected", str(stats.auto_rejected))
    table.add_row("Filtered", str(stats.filtered))
    table.add_row("Invalid", str(stats.invalid))
    console.print(table)


@app.command()
def validate(
    symbol: str = typer.Argument(..., help="Symbol to validate"),
    file: str | None = typer.Option(None, "--file", "-f", help="YAML/JSON file of raw signals"),
    timeout: float | None = typer.Option(None, help="Adapter scan timeout in seconds"),
) -> None:
    """Cross-validate one symbol against recent signals."""
    engine = _engine()
    if engine.adapters:
        asyncio.run(engine.collect(timeout))
    if file:
        signals, _ = engine.parse_signals(_payloads_or_exit(file))
        engine.window.add_many(signals)

    result = engine.validate(symbol)
    if result is None:
        console.print(f"[yellow]No recent signals for {symbol.upper()}.[/yellow]")
        raise typer.Exit(1)
    _print_validation(result)


@app.command()
def signals(
    file: str | None = typer.Option(None, "--file", "-f", help="YAML/JSON file of raw signals"),
    timeout: float | None = typer.Option(None, help="Adapter scan timeout in seconds"),
) -> None:
    """Validate every symbol with recent signals."""
    engine = _engine()
    if engine.adapters:
        asyncio.run(engine.collect(timeout))
    if file:
        parsed, _ = engine.parse_signals(_payloads_or_exit(file))
        engine.window.add_many(parsed)

    results = engine.validate_all()
    if not results:
        console.print("[yellow]No recent signals.[/yellow]")
        return

    table = Table(title="Validated Signals")
    table.add_column("Symbol", style="cyan")
    table.add_column("Confidence", style="green")
    table.add_column("Risk", style="white")
    table.add_column("Recommendation", style="magenta")
    table.add_column("Sources", style="white")
    for result in results:
        table.add_row(
            result.symbol,
            f"{result.overall_confidence:.1f}",
            result.risk_level.value,
            result.recommendation.value,
            str(len(result.source_names)),
        )
    console.print(table)


@app.command()
def pending() -> None:
    """List pending assets awaiting approval."""
    engine = _engine()
    items = engine.list_pending()
    if not items:
        console.print("[yellow]No pending assets.[/yellow]")
        return

    table = Table(title="Pending Assets")
    table.add_column("ID", style="dim")
    table.add_column("Symbol", style="cyan")
    table.add_column("Kind", style="white")
    table.add_column("Meme", style="green")
    table.add_column("Confidence", style="green")
    table.add_column("Sources", style="white")
    table.add_column("Summary", style="white")
    for item in items:
        table.add_row(
            item.id,
            item.symbol,
            item.asset_kind.value,
            str(item.meme_score),
            f"{item.confidence:.0f}",
            ", ".join(sorted(item.sources)),
            item.summary,
        )
    console.print(table)


@app.command()
def approve(
    pending_id: str = typer.Argument(..., help="Pending asset id"),
    political: int = typer.Option(0, "--political", help="Political score (0-3)"),
    earnings: int = typer.Option(0, "--earnings", help="Earnings score (0-2)"),
    summary: str | None = typer.Option(None, "--summary", help="Override the summary"),
) -> None:
    """Approve a pending asset into tracking."""
    from pydantic import ValidationError

    from trendintel.lifecycle import ApprovalOverrides

    engine = _engine()
    try:
        overrides = ApprovalOverrides(political_score=political, earnings_score=earnings, summary=summary)
        asset = engine.approve(pending_id, overrides)
    except (ValidationError, TrendIntelError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[bold green]Approved {asset.symbol}[/bold green] "
        f"(total {asset.total_score}, {asset.recommendation.value})"
    )


@app.command()
def reject(pending_id: str = typer.Argument(..., help="Pending asset id")) -> None:
    """Reject a pending asset."""
    engine = _engine()
    try:
        rejected = engine.reject(pending_id)
    except TrendIntelError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Rejected {rejected.symbol}[/green]")


@app.command()
def assets() -> None:
    """List tracked assets."""
    engine = _engine()
    items = engine.list_assets()
    if not items:
        console.print("[yellow]No tracked assets.[/yellow]")
        return

    table = Table(title="Tracked Assets")
    table.add_column("ID", style="dim")
    table.add_column("Symbol", style="cyan")
    table.add_column("Meme", style="green")
    table.add_column("Political", style="green")
    table.add_column("Earnings", style="green")
    table.add_column("Total", style="bold green")
    table.add_column("Recommendation", style="magenta")
    for item in items:
        table.add_row(
            item.id,
            item.symbol,
            str(item.meme_score),
            str(item.political_score),
            str(item.earnings_score),
            str(item.total_score),
            item.recommendation.value,
        )
    console.print(table)


@app.command()
def alerts() -> None:
    """List unread alerts."""
    engine = _engine()
    items = engine.unread_alerts()
    if not items:
        console.print("[green]No unread alerts.[/green]")
        return

    table = Table(title="Unread Alerts")
    table.add_column("ID", style="dim")
    table.add_column("Symbol", style="cyan")
    table.add_column("Total", style="bold green")
    table.add_column("Recommendation", style="magenta")
    for item in items:
        table.add_row(item.id, item.symbol, str(item.total_score), item.recommendation.value)
    console.print(table)


@app.command("alert-read")
def alert_read(asset_id: str = typer.Argument(..., help="Asset id")) -> None:
    """Mark an alert as read."""
    engine = _engine()
    try:
        asset = engine.mark_alert_read(asset_id)
    except TrendIntelError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Alert for {asset.symbol} marked as read[/green]")


@app.command()
def sweep() -> None:
    """Evict On Watch entities that fail retention."""
    engine = _engine()
    result = engine.sweep()
    console.print(
        f"[green]Evicted {result.evicted_confirmed} assets and {result.evicted_pending} pending assets[/green]"
    )


@app.command()
def status() -> None:
    """Show current status."""
    engine = _engine()
    info = engine.status()

    console.print("[bold blue]Trend Intelligence Status[/bold blue]\n")
    console.print(f"[cyan]Adapters:[/cyan] {', '.join(info['adapters']) or 'none configured'}")
    console.print(f"[cyan]Pending:[/cyan] {info['pending']}")
    console.print(f"[cyan]Assets:[/cyan] {info['assets']} tracked, {info['unread_alerts']} unread alerts")

    retention = info["retention"]
    table = Table(title="Retention")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green")
    for key, value in retention.items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)


@app.command()
def watch(
    interval: float = typer.Option(300.0, help="Seconds between scans"),
    timeout: float | None = typer.Option(None, help="Adapter scan timeout in seconds"),
) -> None:
    """Scan, ingest and sweep on a loop until interrupted."""
    from trendintel.config import settings

    engine = _engine()
    if not engine.adapters:
        console.print("[yellow]No feeds configured in sources file.[/yellow]")
        raise typer.Exit(1)

    async def _run() -> None:
        stop = asyncio.Event()
        await asyncio.gather(
            engine.run_scan_loop(interval, stop, timeout),
            engine.run_sweep_loop(settings.sweep_interval_seconds, stop),
        )

    console.print(f"[bold blue]Watching {len(engine.adapters)} feeds every {interval:.0f}s[/bold blue]")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


if __name__ == "__main__":
    app()
