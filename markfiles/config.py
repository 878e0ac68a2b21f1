from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from markfiles.errors import ConfigurationError
from markfiles.filters import PathFilter


PROGRAM_NAME = "mark-files"
PROGRAM_VERSION = "1.0.0"

LOCK_FILENAME = "mark-files.lock"
DEFAULT_LOCK_TIMEOUT = 300.0

WORKERS_ENV = "MARKFILES_WORKERS"
LOCK_FILE_ENV = "MARKFILES_LOCK_FILE"
LOCK_TIMEOUT_ENV = "MARKFILES_LOCK_TIMEOUT"


@dataclass(slots=True)
class MarkFilesConfig:
    root: Path
    output: Path
    restore: bool = False
    workers: int | None = None
    include_hidden: bool = False
    lock_path: Path | None = None
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT

    @property
    def path_filter(self) -> PathFilter:
        return PathFilter(include_hidden=self.include_hidden)

    @property
    def resolved_lock_path(self) -> Path:
        return self.lock_path or default_lock_path()


def default_lock_path() -> Path:
    value = os.getenv(LOCK_FILE_ENV, "").strip()
    if value:
        return Path(value).expanduser().resolve()
    return Path(tempfile.gettempdir()) / LOCK_FILENAME


def default_workers() -> int | None:
    value = os.getenv(WORKERS_ENV, "").strip()
    if not value:
        return None
    return _parse_workers(value, source=WORKERS_ENV)


def default_lock_timeout() -> float:
    value = os.getenv(LOCK_TIMEOUT_ENV, "").strip()
    if not value:
        return DEFAULT_LOCK_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        raise ConfigurationError(f"{LOCK_TIMEOUT_ENV} must be a number, got {value!r}") from None
    if timeout < 0:
        raise ConfigurationError(f"{LOCK_TIMEOUT_ENV} must not be negative, got {value!r}")
    return timeout


def _parse_workers(value: str | int, *, source: str) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{source} must be an integer, got {value!r}") from None
    if workers < 1:
        raise ConfigurationError(f"{source} must be at least 1, got {workers}")
    return workers


def validate_root(root: Path) -> Path:
    root = root.expanduser()
    if not root.exists():
        raise ConfigurationError(f"the directory: \"{root}\" doesn't exist")
    if not root.is_dir():
        raise ConfigurationError(f"\"{root}\" is not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise ConfigurationError(f"the directory: \"{root}\" is not readable")
    return root.resolve()


def build_config(
    root: Path,
    output: Path,
    *,
    restore: bool = False,
    workers: int | None = None,
    include_hidden: bool = False,
    lock_path: Path | None = None,
    lock_timeout: float | None = None,
) -> MarkFilesConfig:
    """Validate CLI/API input and fill the gaps from the environment."""
    return MarkFilesConfig(
        root=validate_root(root),
        output=output.expanduser().resolve(),
        restore=restore,
        workers=_parse_workers(workers, source="workers") if workers is not None else default_workers(),
        include_hidden=include_hidden,
        lock_path=lock_path.expanduser().resolve() if lock_path is not None else None,
        lock_timeout=lock_timeout if lock_timeout is not None else default_lock_timeout(),
    )
