"""
Rich Terminal Display Components.

Provides console UI for:
- Live progress panel during a run
- Per-table result table
- Run summary
- Checkpoint listing (status command)
"""

from __future__ import annotations

from typing import Any, Iterable

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
)
from rich.table import Table
from rich.text import Text

from mysql_sync.core.checkpoint import SyncCheckpoint
from mysql_sync.core.engine import SyncStats, TableResult, TableStatus


console = Console()

_STATUS_STYLES = {
    TableStatus.BOOTSTRAPPED: "[cyan]+ bootstrapped[/cyan]",
    TableStatus.CAUGHT_UP: "[green]✓ caught up[/green]",
    TableStatus.UP_TO_DATE: "[green]= up to date[/green]",
    TableStatus.SKIPPED: "[yellow]- skipped[/yellow]",
    TableStatus.FAILED: "[red]✗ failed[/red]",
}


class ProgressDisplay:
    """
    Live panel for a sync run.

    Shows tables done out of total, rows copied so far, and the table
    currently being processed.

    Example:
        with ProgressDisplay() as display:
            display.start(source="db1/shop", destination="db2/shop")
            stats = engine.run(on_progress=display.update)
    """

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            console=console,
        )
        self._live: Live | None = None
        self._task_id: Any = None
        self._source = ""
        self._destination = ""
        self._stats: SyncStats | None = None

    def start(self, source: str, destination: str) -> None:
        """Start the progress display."""
        self._source = source
        self._destination = destination
        self._task_id = self.progress.add_task("[cyan]Tables", total=None)
        self._live = Live(
            self._build_display(),
            console=console,
            refresh_per_second=4,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the progress display."""
        if self._live:
            self._live.stop()
            self._live = None

    def update(self, stats: SyncStats) -> None:
        """Progress callback for SyncEngine.run()."""
        self._stats = stats
        if self._task_id is not None:
            self.progress.update(
                self._task_id,
                total=stats.tables_total or None,
                completed=stats.tables_processed,
            )
        if self._live:
            self._live.update(self._build_display())

    def _build_display(self) -> Panel:
        info_table = Table.grid(padding=(0, 2))
        info_table.add_column(style="dim")
        info_table.add_column()
        info_table.add_row("Master:", self._source)
        info_table.add_row("Slave:", self._destination)

        stats = self._stats
        status_text = Text()
        if stats is not None:
            status_text.append("Rows: ", style="green")
            status_text.append(f"{stats.rows_synced:,}  ")
            status_text.append("Speed: ", style="yellow")
            status_text.append(f"{stats.rows_per_second:,.0f}/s  ")
            if stats.current_table:
                status_text.append("Current: ", style="dim")
                status_text.append(stats.current_table, style="bold cyan")

        return Panel(
            Group(info_table, Text(), self.progress, Text(), status_text),
            title="[bold white]MySQL Sync[/bold white]",
            border_style="blue",
            padding=(1, 2),
        )

    def __enter__(self) -> "ProgressDisplay":
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()


def print_table_results(results: Iterable[TableResult]) -> None:
    """Print one line per table with its outcome."""
    table = Table(title="Tables", border_style="blue")
    table.add_column("Table", style="cyan")
    table.add_column("Result")
    table.add_column("Rows", justify="right")
    table.add_column("Batches", justify="right")
    table.add_column("Cursor", justify="right")
    table.add_column("Detail", style="dim")

    for result in results:
        table.add_row(
            result.table,
            _STATUS_STYLES.get(result.status, result.status.value),
            f"{result.rows_synced:,}",
            str(result.batches),
            "" if result.cursor_value is None else str(result.cursor_value),
            result.message,
        )

    console.print(table)


def print_summary(stats: SyncStats) -> None:
    """Print a summary table after the run."""
    table = Table(title="Sync Summary", border_style="green")

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Duration", f"{stats.duration_seconds:.1f}s")
    table.add_row("Tables", f"{stats.tables_processed}/{stats.tables_total}")
    table.add_row("Bootstrapped", str(stats.count(TableStatus.BOOTSTRAPPED)))
    table.add_row("Caught Up", str(stats.count(TableStatus.CAUGHT_UP)))
    table.add_row("Up To Date", str(stats.count(TableStatus.UP_TO_DATE)))
    table.add_row("Skipped", str(stats.count(TableStatus.SKIPPED)))
    table.add_row("Failed", str(stats.count(TableStatus.FAILED)))
    table.add_row("Rows Synced", f"{stats.rows_synced:,}")
    table.add_row("Average Speed", f"{stats.rows_per_second:,.0f} rows/s")

    console.print(table)


def print_checkpoints(checkpoints: Iterable[SyncCheckpoint]) -> None:
    """Print the checkpoint table."""
    table = Table(title="Checkpoints", border_style="blue")
    table.add_column("Table", style="cyan")
    table.add_column("Cursor Column")
    table.add_column("Last Cursor", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Added")
    table.add_column("Last Sync")

    for cp in checkpoints:
        table.add_row(
            cp.table_name,
            cp.cursor_column,
            str(cp.last_cursor_value),
            f"{cp.total_rows_synced:,}",
            str(cp.added_at or ""),
            str(cp.last_synced_at or ""),
        )

    console.print(table)


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red bold]Error:[/red bold] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green bold]✓[/green bold] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow bold]⚠[/yellow bold] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")
