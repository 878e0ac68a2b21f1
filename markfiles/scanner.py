from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Iterable

from markfiles.errors import ProbeFailure
from markfiles.filters import PathFilter
from markfiles.models import FileRecord


logger = logging.getLogger(__name__)


def _sha256_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def _created_at(stat: os.stat_result) -> int:
    # st_birthtime is the creation time where the platform exposes one; on
    # Windows before 3.12 st_ctime already is.
    birthtime = getattr(stat, "st_birthtime", None)
    if birthtime is not None:
        return int(birthtime)
    return int(stat.st_ctime)


def discover_files(
    root: Path,
    path_filter: PathFilter | None = None,
    *,
    excluded: Iterable[Path] = (),
) -> list[str]:
    """Return root-relative POSIX paths of every regular file under `root`.

    Hidden directories are pruned without being descended into; `excluded`
    holds absolute paths (the snapshot file, the lock file) that are never
    inventoried.
    """
    root = root.resolve()
    path_filter = path_filter or PathFilter()
    skip = {Path(p).resolve() for p in excluded}
    found: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if path_filter.allows_directory(name))
        current = Path(dirpath)
        for name in filenames:
            file_path = current / name
            if file_path in skip:
                continue
            if file_path.is_symlink() or not file_path.is_file():
                continue
            relative_path = file_path.relative_to(root).as_posix()
            if not path_filter.matches(relative_path):
                continue
            found.append(relative_path)

    found.sort()
    logger.debug("discovered %d file(s) under %s", len(found), root)
    return found


def probe_file(root: Path, relative_path: str) -> FileRecord:
    """Fingerprint one file and read its creation/modification times."""
    file_path = root / Path(relative_path)
    try:
        stat = file_path.stat()
        fingerprint = _sha256_file(file_path)
    except OSError as exc:
        raise ProbeFailure(relative_path, exc.strerror or str(exc)) from exc

    return FileRecord(
        path=relative_path,
        fingerprint=fingerprint,
        created_at=_created_at(stat),
        modified_at=int(stat.st_mtime),
    )
