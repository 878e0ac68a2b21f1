from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from markfiles.errors import SnapshotParseError, WriteFailure
from markfiles.models import FileRecord, Snapshot


logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


def _entry_to_json(record: FileRecord) -> str:
    return json.dumps(
        {
            "name": record.path,
            "sha": record.fingerprint,
            "ctime": record.created_at,
            "mtime": record.modified_at,
        },
        ensure_ascii=False,
    )


def dump_snapshot(snapshot: Snapshot) -> str:
    """Serialize with one file entry per line, sorted by path."""
    lines = [_entry_to_json(record) for record in snapshot.sorted_records()]
    if not lines:
        body = "[]"
    else:
        body = "[\n" + ",\n".join(f"    {line}" for line in lines) + "\n  ]"
    return f'{{\n  "version": {SNAPSHOT_FORMAT_VERSION},\n  "files": {body}\n}}\n'


def _as_timestamp(value: Any, field_name: str, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"invalid {field_name} for {path!r}: {value!r}")
    return value


def _record_from_fields(path: Any, values: dict[str, Any]) -> FileRecord:
    if not isinstance(path, str) or not path:
        raise ValueError(f"invalid file name: {path!r}")
    sha = values.get("sha")
    if not isinstance(sha, str) or not sha:
        raise ValueError(f"missing sha for {path!r}")
    return FileRecord(
        path=path,
        fingerprint=sha,
        created_at=_as_timestamp(values.get("ctime"), "ctime", path),
        modified_at=_as_timestamp(values.get("mtime"), "mtime", path),
    )


def parse_snapshot(data: Any) -> Snapshot:
    """Build a Snapshot from decoded `{"version": 1, "files": [...]}` JSON."""
    if not isinstance(data, dict):
        raise ValueError("snapshot root must be a JSON object")
    if not isinstance(data.get("files"), list):
        raise ValueError("snapshot has no \"files\" list")

    version = data.get("version", SNAPSHOT_FORMAT_VERSION)
    if version != SNAPSHOT_FORMAT_VERSION:
        raise ValueError(f"unsupported snapshot version: {version!r}")

    snapshot = Snapshot()
    for entry in data["files"]:
        if not isinstance(entry, dict):
            raise ValueError("file entries must be JSON objects")
        snapshot.add(_record_from_fields(entry.get("name"), entry))
    return snapshot


def read_snapshot(path: Path) -> Snapshot:
    """Strict load: raise SnapshotParseError for anything but a valid snapshot."""
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError as exc:
        raise SnapshotParseError(str(path), "file not found") from exc
    except OSError as exc:
        raise SnapshotParseError(str(path), exc.strerror or str(exc)) from exc
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotParseError(str(path), str(exc)) from exc

    try:
        return parse_snapshot(data)
    except ValueError as exc:
        raise SnapshotParseError(str(path), str(exc)) from exc


def load_snapshot(path: Path) -> Snapshot:
    """Lenient load: a missing or broken snapshot is an empty baseline."""
    if not path.exists():
        logger.info("no previous snapshot at %s", path)
        return Snapshot()
    try:
        return read_snapshot(path)
    except SnapshotParseError as exc:
        logger.warning("ignoring previous snapshot: %s", exc)
        return Snapshot()


def save_snapshot(path: Path, snapshot: Snapshot) -> Path:
    """Write atomically; the destination is only replaced by a complete file."""
    payload = dump_snapshot(snapshot)
    directory = path.parent
    tmp_path: Path | None = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(directory),
            delete=False,
        ) as fh:
            tmp_path = Path(fh.name)
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise WriteFailure(str(path), exc.strerror or str(exc)) from exc

    logger.debug("wrote %d record(s) to %s", len(snapshot), path)
    return path
