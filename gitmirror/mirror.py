from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from gitmirror.exceptions import CopyFailed


DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0

logger = logging.getLogger(__name__)


class CopyMode(str, Enum):
    MISSING = "missing"
    SMART_SYNC = "smart"
    ALL = "all"


@dataclass(slots=True)
class MirrorOptions:
    mode: CopyMode = CopyMode.SMART_SYNC
    purge_extra: bool = False
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS


@dataclass(slots=True)
class MirrorResult:
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    purged: list[str] = field(default_factory=list)
    failed: list[CopyFailed] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _walk(root: Path) -> tuple[set[str], set[str]]:
    """Return (files, directories) under ``root`` as relative POSIX paths."""
    files: set[str] = set()
    dirs: set[str] = set()
    if not root.is_dir():
        return files, dirs
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        for name in dirnames:
            dirs.add((base / name).relative_to(root).as_posix())
        for name in filenames:
            files.add((base / name).relative_to(root).as_posix())
    return files, dirs


def _depth(relative_path: str) -> int:
    return relative_path.count("/")


def _needs_copy(source: Path, target: Path, mode: CopyMode) -> bool:
    if not target.is_file():
        return True
    if mode is CopyMode.MISSING:
        return False
    if mode is CopyMode.ALL:
        return True
    src_stat = source.stat()
    dst_stat = target.stat()
    # Size and mtime only; same-size edits with an older source go unnoticed.
    return src_stat.st_size != dst_stat.st_size or dst_stat.st_mtime < src_stat.st_mtime


def copy_with_retry(
    source: Path,
    target: Path,
    relative_path: str,
    *,
    retry_count: int,
    retry_delay: float,
    replace_directory: bool = False,
) -> CopyFailed | None:
    """Copy one file, retrying ``retry_count`` times. Returns the failure instead of raising.

    A directory occupying ``target`` is removed first with ``replace_directory``;
    otherwise the file is reported as failed.
    """
    if target.is_dir() and not target.is_symlink():
        if not replace_directory:
            failure = CopyFailed(relative_path, "target is a directory")
            logger.error("%s", failure)
            return failure
        logger.info("Replacing directory %s with a file", target)

    attempt = 0
    while True:
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            return None
        except OSError as exc:
            if attempt >= retry_count:
                failure = CopyFailed(relative_path, str(exc))
                logger.error("%s (after %d attempt(s))", failure, attempt + 1)
                return failure
            attempt += 1
            logger.warning(
                "Copy of %s failed (%s); retry %d/%d in %.1fs",
                relative_path,
                exc,
                attempt,
                retry_count,
                retry_delay,
            )
            time.sleep(retry_delay)


def purge_extra(destination: Path, keep_files: set[str], keep_dirs: set[str]) -> list[str]:
    """Remove entries under ``destination`` absent from the keep sets, deepest first."""
    dest_files, dest_dirs = _walk(destination)
    extra = [path for path in dest_files if path not in keep_files]
    extra += [path for path in dest_dirs if path not in keep_dirs]

    purged: list[str] = []
    for relative_path in sorted(extra, key=lambda item: (-_depth(item), item)):
        path = destination / relative_path
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            else:
                continue
        except OSError as exc:
            logger.error("Could not remove %s: %s", path, exc)
            continue
        purged.append(relative_path)
    return sorted(purged)


def mirror(source: Path, destination: Path, options: MirrorOptions | None = None) -> MirrorResult:
    """Copy the ``source`` tree onto ``destination``.

    Files are copied according to ``options.mode``; with ``purge_extra``
    anything in ``destination`` without a counterpart in ``source`` is removed
    first. A file that still fails after its retries is reported in
    ``MirrorResult.failed`` and the pass continues.
    """
    options = options or MirrorOptions()
    source = Path(source)
    destination = Path(destination)
    if not source.is_dir():
        raise FileNotFoundError(f"Source directory does not exist: {source}")
    destination.mkdir(parents=True, exist_ok=True)

    source_files, source_dirs = _walk(source)
    result = MirrorResult()

    if options.purge_extra:
        result.purged = purge_extra(destination, source_files, source_dirs)

    for relative_path in sorted(source_dirs):
        try:
            (destination / relative_path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Could not create directory %s: %s", destination / relative_path, exc)

    for relative_path in sorted(source_files):
        src = source / relative_path
        dst = destination / relative_path
        try:
            wanted = _needs_copy(src, dst, options.mode)
        except OSError as exc:
            failure = CopyFailed(relative_path, str(exc))
            logger.error("%s", failure)
            result.failed.append(failure)
            continue
        if not wanted:
            result.skipped.append(relative_path)
            continue

        failure = copy_with_retry(
            src,
            dst,
            relative_path,
            retry_count=max(0, options.retry_count),
            retry_delay=max(0.0, options.retry_delay),
            replace_directory=options.mode is CopyMode.ALL,
        )
        if failure is None:
            result.copied.append(relative_path)
        else:
            result.failed.append(failure)

    logger.info(
        "Mirrored %s -> %s: %d copied, %d skipped, %d purged, %d failed",
        source,
        destination,
        len(result.copied),
        len(result.skipped),
        len(result.purged),
        len(result.failed),
    )
    return result
