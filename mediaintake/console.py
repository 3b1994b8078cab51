"""Console rendering for intake state: progress bar, notifications, file list."""
from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .models import EntryStatus
from .services.notifier import Notification
from .store import FileEntryStore

_STATUS_STYLE = {
    EntryStatus.QUEUED: ("dim", "Queued"),
    EntryStatus.UPLOADING: ("cyan", "Uploading"),
    EntryStatus.SUCCESS: ("green", "Uploaded"),
    EntryStatus.ERROR: ("red", "Upload failed"),
}


def format_file_size(size: int) -> str:
    """1536 -> '1.5 KB'; sizes are rounded to two decimals."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = 0
    while index < len(units) - 1 and size >= 1024 ** (index + 1):
        index += 1
    value = round(size / (1024 ** index), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"


def render_notification(notification: Notification, console: Optional[Console] = None) -> None:
    """Print one notification the way a toast would show it."""
    console = console or Console()
    if notification.is_error:
        console.print(f"[red]Error:[/red] {notification.message}", highlight=False)
    else:
        console.print(f"[green]Success:[/green] {notification.message}", highlight=False)


def render_entries(store: FileEntryStore, console: Optional[Console] = None) -> Table:
    """Render the store as a file list table and return it."""
    console = console or Console()
    count = len(store)
    table = Table(title=f"{count} {'file' if count == 1 else 'files'}", title_justify="left")
    table.add_column("Name", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Progress", justify="right")

    for entry in store:
        style, label = _STATUS_STYLE[entry.status]
        if entry.status is EntryStatus.ERROR and entry.error:
            label = entry.error
        table.add_row(
            entry.name,
            format_file_size(entry.size),
            f"[{style}]{label}[/{style}]",
            f"{entry.progress}%",
        )
    console.print(table)
    return table


class BatchProgressDisplay:
    """
    Progress bar fed by orchestrator `progress` events.

    Usage:
        display = BatchProgressDisplay()
        orchestrator.events.on("progress", display.on_progress)
        orchestrator.notifier.events.on("notification", display.on_notification)
    """

    def __init__(self, console: Optional[Console] = None, label: str = "Uploading"):
        self._console = console or Console()
        self._label = label
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=self._console,
            expand=False,
        )
        self._task_id: Optional[TaskID] = None
        self.last_percent = -1

    @property
    def active(self) -> bool:
        return self._task_id is not None

    def on_progress(self, percent: int) -> None:
        percent = min(100, max(0, int(percent)))
        if self._task_id is None:
            self._progress.start()
            self._task_id = self._progress.add_task(self._label, total=100)
        self._progress.update(self._task_id, completed=percent)
        self.last_percent = percent

    def stop(self) -> None:
        if self._task_id is None:
            return
        self._progress.stop()
        self._progress.remove_task(self._task_id)
        self._task_id = None

    def on_notification(self, notification: Notification) -> None:
        self.stop()
        render_notification(notification, self._console)
