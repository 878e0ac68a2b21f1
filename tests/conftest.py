"""Shared test fixtures."""

from pathlib import Path

import pytest

from markfiles.errors import RestoreFailure
from markfiles.models import FileRecord


class RecordingWriter:
    """TimestampWriter double that records calls and fails on demand."""

    def __init__(self, fail_paths=(), supports_creation_time=True):
        self.calls = []
        self.fail_paths = set(fail_paths)
        self.supports_creation_time = supports_creation_time

    def set_timestamps(self, path, created_at, modified_at):
        if path in self.fail_paths:
            raise RestoreFailure(path, "permission denied")
        self.calls.append((path, created_at, modified_at))


@pytest.fixture
def make_record():
    """Factory for FileRecord values with sensible defaults."""
    def make(path, sha="X", ctime=100, mtime=100):
        return FileRecord(path=path, fingerprint=sha, created_at=ctime, modified_at=mtime)
    return make


@pytest.fixture
def writer():
    return RecordingWriter()


@pytest.fixture
def failing_writer():
    def make(*paths):
        return RecordingWriter(fail_paths=paths)
    return make


@pytest.fixture
def tree(tmp_path):
    """Create a small directory tree, including hidden entries."""
    root = tmp_path / "tree"
    files = {
        "a.txt": "alpha",
        "b.txt": "bravo",
        "docs/readme.md": "# readme",
        "docs/nested/deep.bin": "deep",
        ".hidden.txt": "hidden file",
        ".git/config": "[core]",
        "docs/.cache/blob": "cached",
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def lock_file(tmp_path, monkeypatch):
    """Keep the cross-process lock inside the test directory."""
    path = tmp_path / "mark-files.lock"
    monkeypatch.setenv("MARKFILES_LOCK_FILE", str(path))
    return path


@pytest.fixture
def mtime_only_writer():
    """Writer that, like POSIX, can't set creation time."""
    return RecordingWriter(supports_creation_time=False)
