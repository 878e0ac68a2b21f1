from __future__ import annotations

import threading
from collections import deque
from typing import Iterable

from markfiles.models import FileRecord, Snapshot


class WorkQueue:
    """Pre-seeded pending paths plus the result table the workers fill.

    The pending queue and the result table each have their own lock; every
    operation is a single critical section and never waits for more work.
    """

    def __init__(self, paths: Iterable[str]) -> None:
        self._pending: deque[str] = deque(dict.fromkeys(paths))
        self._pending_lock = threading.Lock()
        self._snapshot = Snapshot()
        self._results_lock = threading.Lock()
        self._failed: list[str] = []

    def take_next(self) -> str | None:
        with self._pending_lock:
            if not self._pending:
                return None
            return self._pending.popleft()

    def publish(self, record: FileRecord) -> int:
        with self._results_lock:
            self._snapshot.add(record)
            return len(self._snapshot)

    def mark_failed(self, path: str) -> None:
        with self._results_lock:
            self._failed.append(path)

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    @property
    def published_count(self) -> int:
        with self._results_lock:
            return len(self._snapshot)

    def failed_paths(self) -> list[str]:
        with self._results_lock:
            return sorted(self._failed)

    def freeze(self) -> Snapshot:
        """Hand out the result table; call only after every worker has joined."""
        with self._results_lock:
            return Snapshot(files=dict(self._snapshot.files))
