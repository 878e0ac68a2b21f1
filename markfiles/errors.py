"""Typed exceptions for mark-files.

File-level errors (`ProbeFailure`, `RestoreFailure`) are recovered by the
caller and never abort a batch. Directory- and store-level errors abort the run.
"""

from __future__ import annotations


class MarkFilesError(RuntimeError):
    """Base class for all mark-files errors."""


class ConfigurationError(MarkFilesError):
    """Invalid run configuration (missing root directory, bad worker count)."""


class ProbeFailure(MarkFilesError):
    """A single file could not be stat'ed or hashed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"can't probe file: \"{path}\" ({reason})")


class EmptyInventoryError(MarkFilesError):
    """The inventory ended up empty."""


class SnapshotParseError(MarkFilesError):
    """A stored snapshot is missing, unreadable or malformed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"can't parse snapshot: \"{path}\" ({reason})")


class WriteFailure(MarkFilesError):
    """The output snapshot could not be written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"can't write file: \"{path}\" ({reason})")


class RestoreFailure(MarkFilesError):
    """Timestamps could not be written back onto a file."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"can't restore timestamps: \"{path}\" ({reason})")


class LockError(MarkFilesError):
    """Another mark-files run holds the exclusivity lock."""
