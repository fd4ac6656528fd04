from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from gitmirror.gitcli import remove_tree


def normalize_remote_path(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


@dataclass(slots=True, frozen=True)
class FileRecord:
    path: str
    last_commit_timestamp: datetime | None = None
    last_commit_message: str = ""
    download_url: str | None = None


@dataclass(slots=True, frozen=True)
class RepoMetadata:
    remote_url: str
    branch: str
    files: dict[str, FileRecord] = field(default_factory=dict)


@dataclass(slots=True)
class FileSet:
    newer: dict[str, FileRecord] = field(default_factory=dict)
    older_or_equal: dict[str, FileRecord] = field(default_factory=dict)

    @property
    def has_updates(self) -> bool:
        return bool(self.newer)


@dataclass(slots=True)
class CheckoutResult:
    """Files materialized by a sparse checkout.

    `local_path` is a temporary directory owned by this object; it is removed by
    `cleanup()` or on leaving the `with` block. It is `None` when no paths were
    requested.
    """

    remote_url: str
    branch: str
    local_path: Path | None
    files: list[str] = field(default_factory=list)

    def cleanup(self) -> None:
        if self.local_path is not None and self.local_path.exists():
            remove_tree(self.local_path)
        self.local_path = None

    def __enter__(self) -> "CheckoutResult":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
