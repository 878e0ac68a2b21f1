from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Protocol

from markfiles.errors import RestoreFailure


logger = logging.getLogger(__name__)

# Seconds between 1601-01-01 (FILETIME epoch) and 1970-01-01.
_FILETIME_EPOCH_OFFSET = 11644473600
_FILETIME_TICKS_PER_SECOND = 10_000_000


class TimestampWriter(Protocol):
    @property
    def supports_creation_time(self) -> bool:
        """Whether a non-zero `created_at` can be written at all."""
        ...

    def set_timestamps(self, path: str, created_at: int, modified_at: int) -> None:
        """Write the given times onto `path`; 0 leaves that field untouched."""
        ...


def can_set_creation_time() -> bool:
    return sys.platform == "win32"


def _set_creation_time_windows(path: Path, created_at: int) -> None:
    import ctypes
    from ctypes import wintypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    kernel32.CreateFileW.restype = wintypes.HANDLE
    kernel32.CreateFileW.argtypes = [
        wintypes.LPCWSTR,
        wintypes.DWORD,
        wintypes.DWORD,
        wintypes.LPVOID,
        wintypes.DWORD,
        wintypes.DWORD,
        wintypes.HANDLE,
    ]
    kernel32.SetFileTime.argtypes = [
        wintypes.HANDLE,
        ctypes.POINTER(wintypes.FILETIME),
        ctypes.POINTER(wintypes.FILETIME),
        ctypes.POINTER(wintypes.FILETIME),
    ]
    kernel32.CloseHandle.argtypes = [wintypes.HANDLE]

    file_write_attributes = 0x0100
    share_all = 0x00000001 | 0x00000002 | 0x00000004
    open_existing = 3
    flag_backup_semantics = 0x02000000
    invalid_handle = wintypes.HANDLE(-1).value

    handle = kernel32.CreateFileW(
        str(path),
        file_write_attributes,
        share_all,
        None,
        open_existing,
        flag_backup_semantics,
        None,
    )
    if handle is None or handle == invalid_handle:
        raise ctypes.WinError(ctypes.get_last_error())
    try:
        ticks = (created_at + _FILETIME_EPOCH_OFFSET) * _FILETIME_TICKS_PER_SECOND
        creation = wintypes.FILETIME(ticks & 0xFFFFFFFF, ticks >> 32)
        if not kernel32.SetFileTime(handle, ctypes.byref(creation), None, None):
            raise ctypes.WinError(ctypes.get_last_error())
    finally:
        kernel32.CloseHandle(handle)


class OsTimestampWriter:
    """Writes timestamps onto files below `root`.

    Modification time goes through `os.utime` with the access time preserved.
    Creation time can only be written on Windows; elsewhere a request to
    change it fails before anything on disk is touched, so callers check
    `supports_creation_time` and pass 0 instead. Values the OS can't
    represent surface as `RestoreFailure`, never as a raw OverflowError.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def supports_creation_time(self) -> bool:
        return can_set_creation_time()

    def set_timestamps(self, path: str, created_at: int, modified_at: int) -> None:
        file_path = self.root / Path(path)
        if created_at and not self.supports_creation_time:
            raise RestoreFailure(path, f"creation time can't be set on {sys.platform}")

        try:
            stat = file_path.stat()
            if created_at:
                _set_creation_time_windows(file_path, created_at)
            if modified_at:
                os.utime(file_path, ns=(stat.st_atime_ns, modified_at * 1_000_000_000))
        except OSError as exc:
            raise RestoreFailure(path, exc.strerror or str(exc)) from exc
        except (OverflowError, ValueError) as exc:
            raise RestoreFailure(path, f"timestamp out of range ({exc})") from exc
        logger.debug("restored %s (ctime=%s, mtime=%s)", path, created_at or "-", modified_at or "-")
