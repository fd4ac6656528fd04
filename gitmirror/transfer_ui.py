from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


class DownloadTask:
    """One file's progress bar. Without a display every call is a no-op."""

    __slots__ = ("_progress", "_task_id", "label", "received")

    def __init__(self, progress: Progress | None, task_id: TaskID | None, label: str) -> None:
        self._progress = progress
        self._task_id = task_id
        self.label = label
        self.received = 0

    def _update(self, **fields: object) -> None:
        if self._progress is not None and self._task_id is not None:
            self._progress.update(self._task_id, **fields)

    def begin(self, total_bytes: int | None) -> None:
        if self._progress is not None and self._task_id is not None:
            self._progress.start_task(self._task_id)
        self._update(total=total_bytes, status="")

    def advance(self, nbytes: int) -> None:
        self.received += nbytes
        self._update(completed=self.received)

    def finish(self) -> None:
        self._update(total=self.received, completed=self.received, status="[green]ok")

    def fail(self) -> None:
        self._update(status="[red]failed")


class DownloadProgress:
    """Rich progress display for sequential HTTP downloads."""

    def __init__(self, console: Console | None = None, *, transient: bool = False) -> None:
        self._progress = Progress(
            TextColumn("{task.description}", markup=False),
            BarColumn(bar_width=30),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[status]}"),
            console=console,
            transient=transient,
        )

    def __enter__(self) -> "DownloadProgress":
        self._progress.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.stop()

    def queue(self, label: str) -> DownloadTask:
        task_id = self._progress.add_task(label, total=None, start=False, status="[dim]queued")
        return DownloadTask(self._progress, task_id, label)


def download_task(display: DownloadProgress | None, label: str) -> DownloadTask:
    if display is None:
        return DownloadTask(None, None, label)
    return display.queue(label)
