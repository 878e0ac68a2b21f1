from __future__ import annotations

import functools
import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from markfiles.config import MarkFilesConfig
from markfiles.errors import EmptyInventoryError
from markfiles.inventory import InventoryResult, build_inventory, build_inventory_with_progress
from markfiles.locking import exclusive_run
from markfiles.models import RestorationRecord, Snapshot
from markfiles.restore import DiffResult, diff_and_restore, diff_snapshots
from markfiles.scanner import discover_files, probe_file
from markfiles.snapshot_store import load_snapshot, save_snapshot
from markfiles.timestamps import OsTimestampWriter, TimestampWriter


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunResult:
    snapshot: Snapshot
    output: Path
    restorations: list[RestorationRecord] = field(default_factory=list)
    failed_restores: list[str] = field(default_factory=list)
    unrestorable_ctime: list[str] = field(default_factory=list)
    failed_probes: list[str] = field(default_factory=list)
    diff: DiffResult | None = None

    @property
    def file_count(self) -> int:
        return len(self.snapshot)


def _status(console: Console | None, message: str):
    if console is None:
        return nullcontext()
    return console.status(message)


def _discover(config: MarkFilesConfig, console: Console | None) -> list[str]:
    with _status(console, "Discovering files..."):
        paths = discover_files(
            config.root,
            config.path_filter,
            excluded=(config.output, config.resolved_lock_path),
        )
    if not paths:
        raise EmptyInventoryError(f"no files found under {config.root}")
    return paths


def _build(
    config: MarkFilesConfig,
    paths: list[str],
    *,
    console: Console | None,
    show_progress: bool,
) -> InventoryResult:
    probe = functools.partial(probe_file, config.root)
    if show_progress:
        return build_inventory_with_progress(paths, probe, workers=config.workers, console=console)
    return build_inventory(paths, probe, workers=config.workers)


def run_inventory(
    config: MarkFilesConfig,
    *,
    writer: TimestampWriter | None = None,
    console: Console | None = None,
    show_progress: bool = False,
) -> RunResult:
    """Inventory `config.root`, optionally undo spurious drift, save the snapshot.

    The whole run holds the cross-process lock. Nothing is written when the
    inventory is empty.
    """
    with exclusive_run(config.resolved_lock_path, timeout=config.lock_timeout):
        paths = _discover(config, console)
        inventory = _build(config, paths, console=console, show_progress=show_progress)
        result = RunResult(
            snapshot=inventory.snapshot,
            output=config.output,
            failed_probes=inventory.failed_paths,
        )

        if config.restore:
            with _status(console, "Restoring timestamps..."):
                prior = load_snapshot(config.output)
                restored = diff_and_restore(
                    inventory.snapshot,
                    prior,
                    writer or OsTimestampWriter(config.root),
                )
            result.snapshot = restored.snapshot
            result.restorations = restored.restorations
            result.failed_restores = restored.failed_paths
            result.unrestorable_ctime = restored.unrestorable_ctime
            result.diff = restored.diff

        with _status(console, "Writing snapshot..."):
            save_snapshot(config.output, result.snapshot)

    logger.debug(
        "run complete: %d file(s), %d restored, %d restore failure(s)",
        result.file_count,
        len(result.restorations),
        len(result.failed_restores),
    )
    return result


def check_drift(
    config: MarkFilesConfig,
    *,
    console: Console | None = None,
    show_progress: bool = False,
) -> DiffResult:
    """Compare the tree against the stored snapshot without writing anything."""
    paths = _discover(config, console)
    inventory = _build(config, paths, console=console, show_progress=show_progress)
    return diff_snapshots(inventory.snapshot, load_snapshot(config.output))
