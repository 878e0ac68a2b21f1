from __future__ import annotations

import threading

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)


def _shorten_path(path: str, max_len: int = 64) -> str:
    if len(path) <= max_len:
        return path
    keep = max_len - 3
    if keep <= 0:
        return path[:max_len]
    head = keep // 2
    tail = keep - head
    return f"{path[:head]}...{path[-tail:]}"


class ScanProgressUI:
    """Rich progress bar shared by the probe workers.

    Worker threads report through `advance`; every update to the underlying
    Progress goes through one lock.
    """

    def __init__(self, *, description: str, total: int, console: Console | None = None) -> None:
        self._console = console
        self._lock = threading.Lock()
        self._total = total
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn(f"[bold]{description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[path]}"),
            console=console,
            transient=False,
            expand=True,
        )
        self._task_id: TaskID | None = None

    def __enter__(self) -> "ScanProgressUI":
        self._progress.__enter__()
        self._task_id = self._progress.add_task("scan", total=self._total, path="")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def advance(self, path: str) -> None:
        with self._lock:
            if self._task_id is None:
                return
            self._progress.update(self._task_id, advance=1, path=_shorten_path(path))

    def finish(self) -> None:
        with self._lock:
            if self._task_id is None:
                return
            self._progress.update(self._task_id, completed=self._total, path="")
