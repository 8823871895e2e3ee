"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    SpinnerColumn,
)
from rich.status import Status
from rich.text import Text


@dataclass
class ProgressState:
    total: int
    success: int = 0
    failed: int = 0
    current: str | None = None


class RateColumn(ProgressColumn):
    """Files processed per second."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} file/s", style="progress.percentage")


class ProgressReporter:
    """Render progress and maintain counters for CLI feedback.

    Safe to advance from worker threads. Falls back to counting silently when
    disabled or when stdout is not a terminal.
    """

    def __init__(self, enabled: bool = True, label: str = "download") -> None:
        self.enabled = enabled
        self.label = label
        self._console: Console | None = None
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        self._console = Console()
        if not self._console.is_terminal:
            self._console = None
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<10}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[success]:>5}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>4}", justify="right"),
            TextColumn("[dim]{task.fields[current]}", justify="left"),
            refresh_per_second=8,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.start()
        except LiveError:
            self.enabled = False
            self._progress = None
            self._console = None
            return
        self._task_id = self._progress.add_task(
            self.label, total=total, label=self.label, success=0, failed=0, current=""
        )

    def advance(self, success: bool, current: str | None = None) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            if success:
                self.state.success += 1
            else:
                self.state.failed += 1
            if current:
                self.state.current = current
            if self._progress is not None and self._task_id is not None:
                self._progress.update(
                    self._task_id,
                    advance=1,
                    success=self.state.success,
                    failed=self.state.failed,
                    current=self.state.current or "",
                )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"success": 0, "failed": 0}
        return {"success": self.state.success, "failed": self.state.failed}


class ProgressActivity:
    """Indeterminate activity indicator using Rich Status spinner."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        self._status: Status | None = None

    def start(self, message: str) -> None:
        if not self.enabled or self._status is not None or not self.console.is_terminal:
            return
        self._status = self.console.status(message)
        self._status.start()

    def close(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def __enter__(self) -> "ProgressActivity":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["ProgressActivity", "ProgressReporter", "ProgressState"]
