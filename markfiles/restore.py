from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from markfiles.errors import RestoreFailure
from markfiles.models import RestorationRecord, Snapshot
from markfiles.timestamps import TimestampWriter


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DiffResult:
    new_paths: list[str]
    changed_paths: list[str]
    unchanged_paths: list[str]
    removed_paths: list[str]
    drifted: list[RestorationRecord]

    @property
    def has_drift(self) -> bool:
        return bool(self.drifted)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_paths or self.changed_paths or self.removed_paths or self.drifted)


@dataclass(slots=True)
class RestoreResult:
    snapshot: Snapshot
    restorations: list[RestorationRecord]
    failed_paths: list[str] = field(default_factory=list)
    unrestorable_ctime: list[str] = field(default_factory=list)
    diff: DiffResult | None = None


def diff_snapshots(current: Snapshot, prior: Snapshot) -> DiffResult:
    """Classify every path and plan the restorations for spurious drift.

    Matching is by path; snapshot order plays no part.
    """
    new_paths: list[str] = []
    changed_paths: list[str] = []
    unchanged_paths: list[str] = []
    drifted: list[RestorationRecord] = []

    for path, record in current.files.items():
        old = prior.get(path)
        if old is None:
            new_paths.append(path)
            continue
        if old.fingerprint != record.fingerprint:
            changed_paths.append(path)
            continue

        unchanged_paths.append(path)
        ctime_changed = old.created_at != record.created_at
        mtime_changed = old.modified_at != record.modified_at
        if ctime_changed or mtime_changed:
            drifted.append(
                RestorationRecord(
                    path=path,
                    ctime_changed=ctime_changed,
                    old_ctime=old.created_at,
                    new_ctime=record.created_at,
                    mtime_changed=mtime_changed,
                    old_mtime=old.modified_at,
                    new_mtime=record.modified_at,
                )
            )

    removed_paths = [path for path in prior if path not in current]

    return DiffResult(
        new_paths=sorted(new_paths),
        changed_paths=sorted(changed_paths),
        unchanged_paths=sorted(unchanged_paths),
        removed_paths=sorted(removed_paths),
        drifted=sorted(drifted, key=lambda r: r.path),
    )


def _restorable(planned: RestorationRecord, writer: TimestampWriter) -> RestorationRecord:
    """Drop the creation-time part of `planned` when `writer` can't set it."""
    if not planned.ctime_changed or writer.supports_creation_time:
        return planned
    return replace(planned, ctime_changed=False)


def diff_and_restore(
    current: Snapshot,
    prior: Snapshot,
    writer: TimestampWriter,
) -> RestoreResult:
    """Write prior timestamps back onto files whose content is unchanged.

    Returns a new Snapshot carrying the restored values; `current` is left
    as it was. A file whose restore fails keeps its probed timestamps and is
    reported in `failed_paths` only.

    When the writer can't set creation time, the modification time is still
    restored and the file is listed in `unrestorable_ctime`. Records and the
    snapshot then only reflect the fields that were actually written.
    """
    diff = diff_snapshots(current, prior)
    files = dict(current.files)
    restorations: list[RestorationRecord] = []
    failed: list[str] = []
    unrestorable_ctime: list[str] = []

    for planned in diff.drifted:
        applied = _restorable(planned, writer)
        if applied.ctime_changed != planned.ctime_changed:
            logger.info("can't restore creation time of %s on this platform", planned.path)
            unrestorable_ctime.append(planned.path)
        if not applied.ctime_changed and not applied.mtime_changed:
            continue

        try:
            writer.set_timestamps(
                applied.path,
                applied.old_ctime if applied.ctime_changed else 0,
                applied.old_mtime if applied.mtime_changed else 0,
            )
        except RestoreFailure as exc:
            logger.warning("%s", exc)
            failed.append(applied.path)
            continue

        record = files[applied.path]
        files[applied.path] = replace(
            record,
            created_at=applied.old_ctime if applied.ctime_changed else record.created_at,
            modified_at=applied.old_mtime if applied.mtime_changed else record.modified_at,
        )
        restorations.append(applied)

    return RestoreResult(
        snapshot=Snapshot(files=files),
        restorations=restorations,
        failed_paths=failed,
        unrestorable_ctime=unrestorable_ctime,
        diff=diff,
    )
