from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Iterable

from gitmirror.comparator import local_path_for
from gitmirror.exceptions import CheckoutFailed, GitCommandFailed
from gitmirror.gitcli import remove_tree, run_git
from gitmirror.models import CheckoutResult, normalize_remote_path
from gitmirror.remote import blobless_clone


GITIGNORE_SPECIAL = "\\*?[!#"

logger = logging.getLogger(__name__)


def sparse_pattern(path: str) -> str:
    """Turn a repo-relative path into an anchored, literal non-cone sparse pattern."""
    escaped = "".join(f"\\{char}" if char in GITIGNORE_SPECIAL else char for char in path)
    stripped = escaped.rstrip(" ")
    escaped = stripped + "\\ " * (len(escaped) - len(stripped))
    return "/" + escaped


def fetch_files(remote_url: str, branch: str, paths: Iterable[str]) -> CheckoutResult:
    """Materialize only ``paths`` of ``branch`` into a new temporary directory.

    The returned :class:`CheckoutResult` owns that directory and holds no
    ``.git`` metadata. An empty ``paths`` returns an empty result without any
    network access.
    """
    wanted = sorted({normalize_remote_path(path) for path in paths if path})
    if not wanted:
        return CheckoutResult(remote_url=remote_url, branch=branch, local_path=None, files=[])

    # Not scoped_temp_dir: on success the directory belongs to the returned CheckoutResult.
    workdir = Path(tempfile.mkdtemp(prefix="gitmirror_checkout_"))
    try:
        blobless_clone(remote_url, branch, workdir)
        patterns = "".join(f"{sparse_pattern(path)}\n" for path in wanted)
        run_git(["sparse-checkout", "set", "--no-cone", "--stdin"], cwd=workdir, input=patterns)
        run_git(["checkout", "--quiet", branch], cwd=workdir)
        remove_tree(workdir / ".git")
    except GitCommandFailed as exc:
        remove_tree(workdir)
        raise CheckoutFailed(
            f"Sparse checkout of {len(wanted)} path(s) from {remote_url}@{branch} failed",
            diagnostic=exc.stderr,
        ) from exc
    except BaseException:
        remove_tree(workdir)
        raise

    files = [path for path in wanted if local_path_for(workdir, path).is_file()]
    missing = len(wanted) - len(files)
    if missing:
        logger.warning("%d requested path(s) were not present on %s@%s", missing, remote_url, branch)
    logger.info("Checked out %d file(s) into %s", len(files), workdir)
    return CheckoutResult(remote_url=remote_url, branch=branch, local_path=workdir, files=files)
