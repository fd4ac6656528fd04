from __future__ import annotations

import logging
import os
import shutil
import stat
import subprocess
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from gitmirror.exceptions import GitCommandFailed


GIT_BINARY = "git"
TEMP_PREFIX = "gitmirror_"

logger = logging.getLogger(__name__)


def run_git(
    args: Sequence[str],
    *,
    cwd: Path | str | None = None,
    input: str | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run ``git`` with captured text output.

    Non-ASCII paths are never octal-quoted (``core.quotepath=off``). With
    ``check`` a non-zero exit raises :class:`GitCommandFailed` holding stderr.
    """
    argv = [GIT_BINARY, "-c", "core.quotepath=off", *args]
    logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd or os.getcwd())
    try:
        result = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            input=input,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as exc:
        raise GitCommandFailed(list(args), 127, f"git executable not found: {exc}") from exc

    if check and result.returncode != 0:
        raise GitCommandFailed(list(args), result.returncode, result.stderr)
    return result


def _clear_readonly_and_retry(func, path, _exc) -> None:
    os.chmod(path, stat.S_IWRITE)
    func(path)


def remove_tree(path: Path) -> None:
    # Packed objects under .git are read-only on Windows.
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_clear_readonly_and_retry)
    else:
        shutil.rmtree(path, onerror=_clear_readonly_and_retry)


@contextmanager
def scoped_temp_dir(prefix: str = TEMP_PREFIX) -> Iterator[Path]:
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        if path.exists():
            try:
                remove_tree(path)
            except OSError as exc:
                logger.warning("Could not remove temporary directory %s: %s", path, exc)
