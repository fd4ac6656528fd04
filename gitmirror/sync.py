from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable

from gitmirror.checkout import fetch_files
from gitmirror.comparator import partition
from gitmirror.mirror import (
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_SECONDS,
    CopyMode,
    MirrorOptions,
    mirror,
    purge_extra,
)
from gitmirror.remote import fetch_remote_file_info


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncResult:
    remote_file_count: int
    updated_paths: list[str] = field(default_factory=list)
    skipped_paths: list[str] = field(default_factory=list)
    deleted_local_paths: list[str] = field(default_factory=list)
    failed_paths: list[str] = field(default_factory=list)


def _ancestor_dirs(paths: Iterable[str]) -> set[str]:
    dirs: set[str] = set()
    for path in paths:
        for parent in PurePosixPath(path).parents:
            if str(parent) != ".":
                dirs.add(parent.as_posix())
    return dirs


def sync_remote_to_local(
    remote_url: str,
    branch: str,
    local_destination: Path,
    purge_extra_files: bool = False,
    *,
    retry_count: int = DEFAULT_RETRY_COUNT,
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
) -> SyncResult:
    """Bring ``local_destination`` up to date with the tip of ``branch``.

    Only files whose last commit is newer than the local copy are fetched,
    through a sparse checkout. With ``purge_extra_files`` local entries that
    are not tracked on the branch are deleted afterwards. There is no
    rollback; rerunning converges.
    """
    local_root = Path(local_destination)

    metadata = fetch_remote_file_info(remote_url, branch)
    fileset = partition(metadata.files, local_root)
    result = SyncResult(
        remote_file_count=len(metadata.files),
        skipped_paths=sorted(fileset.older_or_equal),
    )

    if fileset.newer:
        logger.info("%d file(s) need updating from %s@%s", len(fileset.newer), remote_url, branch)
        with fetch_files(remote_url, branch, fileset.newer) as checkout:
            if checkout.local_path is not None:
                copied = mirror(
                    checkout.local_path,
                    local_root,
                    MirrorOptions(
                        mode=CopyMode.ALL,
                        purge_extra=False,
                        retry_count=retry_count,
                        retry_delay=retry_delay,
                    ),
                )
                result.updated_paths = sorted(copied.copied)
                result.failed_paths = sorted(failure.path for failure in copied.failed)
    else:
        logger.info("%s is up to date with %s@%s", local_root, remote_url, branch)

    if purge_extra_files:
        tracked = set(metadata.files)
        result.deleted_local_paths = purge_extra(local_root, tracked, _ancestor_dirs(tracked))
        if result.deleted_local_paths:
            logger.info("Removed %d untracked local path(s)", len(result.deleted_local_paths))

    return result
