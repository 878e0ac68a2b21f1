from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Sequence

from markfiles.errors import EmptyInventoryError, ProbeFailure
from markfiles.models import FileRecord, Snapshot
from markfiles.work_queue import WorkQueue

if TYPE_CHECKING:
    from rich.console import Console


logger = logging.getLogger(__name__)

Probe = Callable[[str], FileRecord]


@dataclass(slots=True)
class InventoryResult:
    snapshot: Snapshot
    failed_paths: list[str] = field(default_factory=list)
    worker_count: int = 1


def available_parallelism() -> int:
    if hasattr(os, "sched_getaffinity"):
        try:
            return max(1, len(os.sched_getaffinity(0)))
        except OSError:
            pass
    return max(1, os.cpu_count() or 1)


def resolve_worker_count(requested: int | None, path_count: int) -> int:
    """Explicit request or hardware parallelism, capped at the path count, at least 1."""
    count = requested if requested is not None else available_parallelism()
    return max(1, min(count, path_count))


def _drain(
    queue: WorkQueue,
    probe: Probe,
    on_done: Callable[[str], None] | None,
) -> int:
    probed = 0
    while True:
        path = queue.take_next()
        if path is None:
            return probed
        try:
            record = probe(path)
        except ProbeFailure as exc:
            logger.warning("skipping %s: %s", path, exc.reason)
            queue.mark_failed(path)
        else:
            queue.publish(record)
            probed += 1
        if on_done is not None:
            on_done(path)


def build_inventory(
    paths: Sequence[str],
    probe: Probe,
    *,
    workers: int | None = None,
    on_done: Callable[[str], None] | None = None,
) -> InventoryResult:
    """Probe every path with a fixed pool of workers draining one shared queue."""
    queue = WorkQueue(paths)
    worker_count = resolve_worker_count(workers, len(paths))
    if not paths:
        return InventoryResult(snapshot=queue.freeze(), worker_count=worker_count)

    logger.debug("probing %d file(s) with %d worker(s)", len(paths), worker_count)
    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="markfiles-probe") as executor:
        futures: list[Future[int]] = [
            executor.submit(_drain, queue, probe, on_done) for _ in range(worker_count)
        ]
        try:
            for future in as_completed(futures):
                future.result()
        except Exception:
            for future in futures:
                future.cancel()
            raise

    snapshot = queue.freeze()
    failed = queue.failed_paths()
    if not snapshot:
        raise EmptyInventoryError(
            f"no file could be probed ({len(failed)} of {len(paths)} failed)"
        )
    return InventoryResult(snapshot=snapshot, failed_paths=failed, worker_count=worker_count)


def build_inventory_with_progress(
    paths: Sequence[str],
    probe: Probe,
    *,
    workers: int | None = None,
    console: "Console | None" = None,
) -> InventoryResult:
    from markfiles.progress import ScanProgressUI

    if not paths:
        return build_inventory(paths, probe, workers=workers)

    with ScanProgressUI(description="Probing", total=len(paths), console=console) as ui:
        result = build_inventory(paths, probe, workers=workers, on_done=ui.advance)
        ui.finish()
    return result
