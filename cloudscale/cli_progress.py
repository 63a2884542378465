"""Console rendering and progress helpers for the cloudscale CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .models import BatchStats, ItemEvent, ItemResult, ItemState, RunResult


console = Console()

STATE_LABELS = {
    ItemState.WAITING: "WAITING",
    ItemState.UPLOADING: "UPLOADING",
    ItemState.TRANSFORMING: "UPSCALING…",
    ItemState.COMPLETED: "COMPLETED",
    ItemState.FAILED: "FAILED",
}


def human_size(value: int) -> str:
    if value < 1024:
        return f"{value} B"
    if value < 1024 * 1024:
        return f"{value / 1024:.1f} KB"
    return f"{value / (1024 * 1024):.2f} MB"


def render_configuration_summary(config: Dict[str, Any], out: Optional[Console] = None) -> None:
    """Render startup configuration summary."""
    out = out or console
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]cloudscale[/bold green]",
        subtitle="[dim]Cloudinary upscaler[/dim]",
        border_style="blue",
    )
    out.print(panel)


class BatchProgressDisplay:
    """Live overall and per-item progress for one run."""

    def __init__(self, out: Optional[Console] = None):
        self._console = out or console
        self._stats = BatchStats()
        self._active_tasks: Dict[int, TaskID] = {}
        self._live: Optional[Live] = None
        self._overall_task_id: Optional[TaskID] = None
        self._overall = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=self._console,
        )
        self._items = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=30),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[status]}", justify="left"),
            expand=False,
            console=self._console,
        )

    @property
    def stats(self) -> BatchStats:
        return self._stats.snapshot()

    def _emit_timeline(
        self,
        status: str,
        name: str,
        size_bytes: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {"DONE": "green", "FAIL": "red", "INFO": "blue"}
        color = palette.get(status, "white")
        size_label = f" ({human_size(size_bytes)})" if size_bytes and size_bytes > 0 else ""
        suffix = f" [dim]{detail}[/dim]" if detail else ""
        self._console.print(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name}{size_label}{suffix}")

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            Group(self._overall, self._items),
            console=self._console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._overall.add_task(
            "overall",
            label="Overall",
            total=max(self._stats.total, 1),
            completed=0,
            detail="processing=0 completed=0 errors=0",
        )

    def _stop_live(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _remove_item(self, index: int) -> None:
        task_id = self._active_tasks.pop(index, None)
        if task_id is not None:
            self._items.remove_task(task_id)

    def on_start(self, stats: BatchStats) -> None:
        self._stats = stats.snapshot()
        self._start_live()

    def on_stats(self, stats: BatchStats) -> None:
        self._stats = stats.snapshot()
        if self._overall_task_id is None:
            return
        settled = stats.completed + stats.errors
        self._overall.update(
            self._overall_task_id,
            completed=settled,
            total=max(stats.total, 1),
            detail=f"processing={stats.processing} completed={stats.completed} errors={stats.errors}",
        )

    def on_item_state(self, event: ItemEvent) -> None:
        if event.state.is_terminal:
            return
        task_id = self._active_tasks.get(event.index)
        if task_id is None:
            task_id = self._items.add_task(
                "item",
                label=event.filename[:48],
                total=100,
                status=STATE_LABELS[event.state],
            )
            self._active_tasks[event.index] = task_id
        self._items.update(
            task_id,
            completed=event.progress or 0,
            status=STATE_LABELS[event.state],
        )

    def on_item_complete(self, result: ItemResult) -> None:
        self._remove_item(result.index)
        self._emit_timeline("DONE", result.filename, size_bytes=result.size_bytes, detail=result.output_name)

    def on_item_fail(self, result: ItemResult) -> None:
        self._remove_item(result.index)
        self._emit_timeline("FAIL", f"Failed: {result.filename}", size_bytes=result.size_bytes, detail=result.error)

    def on_finish(self, result: RunResult) -> None:
        self._stop_live()
        color = "green" if result.all_success else "yellow"
        self._console.print(
            f"[bold {color}]✓ {result.completed_files} image(s) upscaled[/bold {color}] "
            f"failed={result.failed_files} total={result.total_files}"
        )
        if result.artifact is not None:
            self._console.print(f"[dim]{result.artifact.name} {human_size(result.artifact.size)}[/dim]")

    def on_run_fail(self, result: RunResult) -> None:
        self._stop_live()
        self._console.print(f"[bold red]{result.error or 'Run failed'}[/bold red]")

    def on_error(self, error: Exception) -> None:
        self._stop_live()
        self._emit_timeline("FAIL", "run", detail=str(error))
