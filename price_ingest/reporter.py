from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from price_ingest.infrastructure.gateway import TableCounts
from price_ingest.orchestrator import RunSummary


def _mb(value: Optional[int]) -> str:
    if not value:
        return "N/A"
    return f"{value / (1024 * 1024):.1f}"


def print_summary(summary: RunSummary, console: Optional[Console] = None) -> None:
    """
    Render per-file ingestion results and the store's row counts as rich tables.
    """
    console = console or Console()

    if not summary.files:
        console.print("[yellow]No files were ingested.[/yellow]")
    else:
        table = Table(title="Ingestion Results", box=box.ROUNDED)
        table.add_column("File", style="cyan", no_wrap=True)
        table.add_column("Lines", justify="right", style="magenta")
        table.add_column("Malformed", justify="right", style="yellow")
        table.add_column("Services", justify="right", style="magenta")
        table.add_column("Committed", justify="right", style="bold green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Rate Rows", justify="right", style="green")
        table.add_column("Duration (s)", justify="right", style="green")
        table.add_column("Peak Memory (MB)", justify="right", style="yellow")
        table.add_column("Status")

        for result in summary.files:
            status = "[green]ok[/green]" if result.ok else f"[red]{result.error}[/red]"
            if result.worker_errors:
                status += f"\n[dim]{len(result.worker_errors)} worker(s) exited early[/dim]"
            table.add_row(
                result.path,
                f"{result.lines:,}",
                f"{result.malformed_lines:,}",
                f"{result.records:,}",
                f"{result.committed:,}",
                f"{result.failed:,}",
                f"{result.rate_rows:,}",
                f"{result.duration_seconds:.1f}",
                _mb(result.peak_rss_bytes),
                status,
            )
        console.print(table)

    print_counts(summary.counts, console)


def print_counts(counts: Optional[TableCounts], console: Optional[Console] = None) -> None:
    console = console or Console()
    if counts is None:
        console.print("[yellow]Database statistics unavailable.[/yellow]")
        return
    table = Table(title="Database Statistics", box=box.ROUNDED)
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right", style="magenta")
    table.add_row("insurance_services", f"{counts.services:,}")
    table.add_row("negotiated_rates", f"{counts.rates:,}")
    console.print(table)


__all__ = ["print_counts", "print_summary"]
