from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath


def is_hidden_name(name: str) -> bool:
    return name.startswith(".") and name not in {".", ".."}


@dataclass(slots=True)
class PathFilter:
    include_hidden: bool = False

    def allows_directory(self, name: str) -> bool:
        """Whether traversal should descend into a directory with this name."""
        return self.include_hidden or not is_hidden_name(name)

    def matches(self, path: str) -> bool:
        if self.include_hidden:
            return True
        return not any(is_hidden_name(part) for part in PurePosixPath(path).parts)
