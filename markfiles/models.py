from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator


@dataclass(frozen=True, slots=True)
class FileRecord:
    path: str
    fingerprint: str
    created_at: int
    modified_at: int


@dataclass(slots=True)
class Snapshot:
    """Path -> FileRecord inventory of one run, in insertion order."""

    files: dict[str, FileRecord] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[FileRecord]) -> "Snapshot":
        snapshot = cls()
        for record in records:
            snapshot.add(record)
        return snapshot

    def add(self, record: FileRecord) -> None:
        if not record.fingerprint:
            raise ValueError(f"empty fingerprint for {record.path!r}")
        if record.path in self.files:
            raise ValueError(f"duplicate snapshot entry for {record.path!r}")
        self.files[record.path] = record

    def get(self, path: str) -> FileRecord | None:
        return self.files.get(path)

    def records(self) -> list[FileRecord]:
        return list(self.files.values())

    def sorted_records(self) -> list[FileRecord]:
        return sorted(self.files.values(), key=lambda r: r.path)

    def __getitem__(self, path: str) -> FileRecord:
        return self.files[path]

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True, slots=True)
class RestorationRecord:
    path: str
    ctime_changed: bool
    old_ctime: int
    new_ctime: int
    mtime_changed: bool
    old_mtime: int
    new_mtime: int
