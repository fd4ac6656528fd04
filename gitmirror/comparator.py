from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Mapping

from gitmirror.models import FileRecord, FileSet, normalize_remote_path


logger = logging.getLogger(__name__)


def local_path_for(local_root: Path, remote_path: str) -> Path:
    """Map a repo-relative POSIX path onto ``local_root`` using the platform separator."""
    return local_root.joinpath(*PurePosixPath(normalize_remote_path(remote_path)).parts)


def local_mtime_utc(path: Path) -> datetime | None:
    try:
        stat = path.stat()
    except (FileNotFoundError, NotADirectoryError):
        return None
    if not path.is_file():
        return None
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


def _remote_is_newer(record: FileRecord, local_mtime: datetime | None) -> bool:
    if local_mtime is None:
        return True
    # No remote timestamp means no baseline to trust.
    if record.last_commit_timestamp is None:
        return True
    return local_mtime < record.last_commit_timestamp


def partition(remote_files: Mapping[str, FileRecord], local_root: Path) -> FileSet:
    """Split remote files into those newer than the local copy and the rest.

    ``local_root`` is created when missing; every remote file is then newer.
    An existing ``local_root`` that is not a directory raises
    :class:`NotADirectoryError`.
    """
    local_root = Path(local_root)
    newer: dict[str, FileRecord] = {}
    older_or_equal: dict[str, FileRecord] = {}

    if local_root.exists() and not local_root.is_dir():
        raise NotADirectoryError(f"Local destination is not a directory: {local_root}")

    if not local_root.exists():
        logger.info("Creating destination %s", local_root)
        local_root.mkdir(parents=True, exist_ok=True)
        for path, record in remote_files.items():
            newer[normalize_remote_path(path)] = record
        return FileSet(newer=newer, older_or_equal=older_or_equal)

    for path, record in remote_files.items():
        key = normalize_remote_path(path)
        local_mtime = local_mtime_utc(local_path_for(local_root, key))
        if _remote_is_newer(record, local_mtime):
            newer[key] = record
        else:
            older_or_equal[key] = record

    logger.debug(
        "Partitioned %d remote file(s): %d newer, %d up to date",
        len(remote_files),
        len(newer),
        len(older_or_equal),
    )
    return FileSet(newer=newer, older_or_equal=older_or_equal)
