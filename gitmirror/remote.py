from __future__ import annotations

import logging
from pathlib import Path

from gitmirror.exceptions import (
    BranchNotFound,
    GitCommandFailed,
    RemoteUnavailable,
    TimestampParseFailed,
)
from gitmirror.gitcli import run_git, scoped_temp_dir
from gitmirror.gitparse import (
    COMMIT_FORMAT,
    parse_commit_line,
    parse_ls_remote,
    parse_ls_tree,
    split_commit_line,
)
from gitmirror.models import FileRecord, RepoMetadata


logger = logging.getLogger(__name__)


def resolve_branch_head(remote_url: str, branch: str) -> str:
    """Return the commit id the remote branch points at."""
    try:
        result = run_git(["ls-remote", "--heads", remote_url, branch])
    except GitCommandFailed as exc:
        raise RemoteUnavailable(
            f"Cannot reach remote {remote_url}", diagnostic=exc.stderr
        ) from exc

    head = parse_ls_remote(result.stdout, branch)
    if head is None:
        raise BranchNotFound(f"Branch '{branch}' does not exist on {remote_url}")
    return head


def blobless_clone(remote_url: str, branch: str, target: Path) -> Path:
    """Clone commits and trees of a single branch, without blobs or a checkout."""
    run_git(
        [
            "clone",
            "--quiet",
            "--filter=blob:none",
            "--no-checkout",
            "--single-branch",
            "--branch",
            branch,
            remote_url,
            str(target),
        ]
    )
    return target


def list_files(repo_dir: Path) -> list[str]:
    result = run_git(["ls-tree", "-r", "-z", "--name-only", "HEAD"], cwd=repo_dir)
    return parse_ls_tree(result.stdout)


def last_commit_record(repo_dir: Path, path: str) -> FileRecord:
    result = run_git(
        ["--literal-pathspecs", "log", "-1", f"--format={COMMIT_FORMAT}", "HEAD", "--", path],
        cwd=repo_dir,
    )
    try:
        info = parse_commit_line(result.stdout, path=path)
    except TimestampParseFailed as exc:
        logger.warning("%s; treating it as having no timestamp", exc)
        _, subject = split_commit_line(result.stdout.strip("\r\n"))
        return FileRecord(path=path, last_commit_timestamp=None, last_commit_message=subject)

    if info is None:
        return FileRecord(path=path)
    return FileRecord(
        path=path,
        last_commit_timestamp=info.timestamp,
        last_commit_message=info.subject,
    )


def fetch_remote_file_info(remote_url: str, branch: str) -> RepoMetadata:
    """Enumerate files at the tip of ``branch`` with their last commit time and subject.

    Works on a blob-less, checkout-less clone in a temporary directory that is
    removed on every exit path.
    """
    resolve_branch_head(remote_url, branch)

    with scoped_temp_dir("gitmirror_meta_") as workdir:
        repo_dir = workdir / "repo"
        try:
            blobless_clone(remote_url, branch, repo_dir)
            paths = list_files(repo_dir)
            logger.info(
                "Reading commit metadata for %d file(s) on %s@%s", len(paths), remote_url, branch
            )
            files = {path: last_commit_record(repo_dir, path) for path in sorted(paths)}
        except GitCommandFailed as exc:
            raise RemoteUnavailable(
                f"Cannot read branch '{branch}' from {remote_url}", diagnostic=exc.stderr
            ) from exc

    return RepoMetadata(remote_url=remote_url, branch=branch, files=files)
