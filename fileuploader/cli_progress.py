"""Console rendering and progress helpers for fileuploader CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .orchestrator import FileUploader
from .utils.formatting import human_size

console = Console()


def _echo(message: str) -> None:
    console.print(message)


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]fileuploader[/bold green]",
        subtitle="[dim]upload CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


class UploadProgressDisplay:
    """Event-based console display for a FileUploader session."""

    def __init__(self, uploader: FileUploader, live: bool = True):
        self._uploader = uploader
        self._file_tasks: Dict[str, TaskID] = {}
        self._names: Dict[str, str] = {}
        self._sizes: Dict[str, int] = {}
        self._stats: Dict[str, int] = {
            "uploaded": 0,
            "failed": 0,
            "cancelled": 0,
            "rejected": 0,
        }
        self._live: Optional[Live] = None
        self._use_live = live

        self._overall = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )
        self._files = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )
        self._overall_task = self._overall.add_task(
            "overall", label="Overall", total=1.0, completed=0, detail=self._detail()
        )

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def attach(self) -> None:
        """Subscribe to the uploader's events."""
        uploader = self._uploader
        uploader.on("accepted", self.on_accepted)
        uploader.on_rejected(self.on_rejected)
        uploader.on_upload_started(self.on_upload_started)
        uploader.on_progress(self.on_progress)
        uploader.on_total_progress(self.on_total_progress)
        uploader.on_upload_successful(self.on_upload_successful)
        uploader.on_upload_failed(self.on_upload_failed)
        uploader.on_upload_cancelled(self.on_upload_cancelled)
        uploader.on_limit_reached(self.on_limit_reached)
        uploader.on_limit_exceeded(self.on_limit_exceeded)

    def start(self) -> None:
        if not self._use_live or self._live is not None:
            return
        self._live = Live(
            Group(self._overall, self._files),
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def _detail(self) -> str:
        s = self._stats
        return f"uploaded={s['uploaded']} failed={s['failed']} cancelled={s['cancelled']}"

    def _refresh_overall(self) -> None:
        self._overall.update(self._overall_task, detail=self._detail())

    def _timeline(self, status: str, name: str, size_bytes: Optional[int] = None, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {human_size(size_bytes)}" if size_bytes and size_bytes > 0 else ""
        error_label = f" cause={error}" if error else ""
        palette = {"DONE": "green", "FAIL": "red", "SKIP": "yellow", "INFO": "blue"}
        color = palette.get(status, "white")
        _echo(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name}{size_label}{error_label}")

    def _finish_file_task(self, file_id: str) -> None:
        task_id = self._file_tasks.pop(file_id, None)
        if task_id is not None:
            self._files.remove_task(task_id)

    # Event handlers
    def on_accepted(self, file) -> None:
        self._names[file.id] = file.name
        self._sizes[file.id] = file.size

    def on_rejected(self, source, reasons: List[str]) -> None:
        self._stats["rejected"] += 1
        self._timeline("SKIP", getattr(source, "name", str(source)), error="; ".join(reasons))

    def on_upload_started(self, file_id: str) -> None:
        name = self._names.get(file_id, file_id)
        self._file_tasks[file_id] = self._files.add_task(
            "upload",
            label=name[:48],
            total=self._sizes.get(file_id) or 1,
        )

    def on_progress(self, file_id: str, fraction: float) -> None:
        task_id = self._file_tasks.get(file_id)
        if task_id is None:
            return
        total = self._sizes.get(file_id) or 1
        self._files.update(task_id, completed=fraction * total)

    def on_total_progress(self, ratio: float) -> None:
        self._overall.update(self._overall_task, completed=min(max(ratio, 0.0), 1.0))

    def on_upload_successful(self, file_id: str, response: Any) -> None:
        self._stats["uploaded"] += 1
        self._finish_file_task(file_id)
        self._refresh_overall()
        self._timeline("DONE", self._names.get(file_id, file_id), self._sizes.get(file_id))

    def on_upload_failed(self, file_id: str, error: BaseException) -> None:
        self._stats["failed"] += 1
        self._finish_file_task(file_id)
        self._refresh_overall()
        self._timeline("FAIL", self._names.get(file_id, file_id), error=str(error) or type(error).__name__)

    def on_upload_cancelled(self, file_id: str) -> None:
        self._stats["cancelled"] += 1
        self._finish_file_task(file_id)
        self._refresh_overall()

    def on_limit_reached(self) -> None:
        self._timeline("INFO", "file limit reached, nothing added")

    def on_limit_exceeded(self, allowed: int, sources: List[Any]) -> None:
        self._timeline("INFO", f"{len(sources)} files offered but only {allowed} allowed, nothing added")
