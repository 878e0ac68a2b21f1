from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import portalocker

from markfiles.errors import LockError


logger = logging.getLogger(__name__)


@contextmanager
def exclusive_run(lock_path: Path, *, timeout: float) -> Iterator[Path]:
    """Hold the machine-wide mark-files lock for the duration of the block."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = portalocker.Lock(str(lock_path), "a", timeout=timeout)
    try:
        lock.acquire()
    except portalocker.exceptions.LockException as exc:
        raise LockError(
            f"another mark-files run holds {lock_path} (waited {timeout:g}s)"
        ) from exc

    logger.debug("acquired lock %s", lock_path)
    try:
        yield lock_path
    finally:
        lock.release()
        logger.debug("released lock %s", lock_path)
