from __future__ import annotations

import logging
from pathlib import Path

from gitmirror.exceptions import GitCommandFailed, NoRemoteConfigured, NotARepository
from gitmirror.gitcli import run_git
from gitmirror.gitparse import BRANCH_FORMAT, parse_branch_list, repo_name_from_url


DEFAULT_REMOTE = "origin"

logger = logging.getLogger(__name__)


def top_level_directory(cwd: Path | str | None = None) -> Path:
    try:
        result = run_git(["rev-parse", "--show-toplevel"], cwd=cwd)
    except GitCommandFailed as exc:
        raise NotARepository(
            f"Not inside a git working copy: {Path(cwd or '.').resolve()}",
            diagnostic=exc.stderr,
        ) from exc
    return Path(result.stdout.strip()).resolve()


def current_branch(cwd: Path | str | None = None) -> str:
    """Return the checked-out branch.

    On a detached HEAD, returns the first branch git lists as containing the
    current commit (git's listing order, not sorted), or the raw commit id
    when no branch contains it.
    """
    # Exit 1 means detached; symbolic-ref also names an unborn branch.
    symbolic = run_git(["symbolic-ref", "--short", "-q", "HEAD"], cwd=cwd, check=False)
    if symbolic.returncode == 0 and symbolic.stdout.strip():
        return symbolic.stdout.strip()
    if symbolic.returncode != 1:
        raise NotARepository(
            f"Cannot resolve HEAD in {Path(cwd or '.').resolve()}",
            diagnostic=symbolic.stderr,
        )

    try:
        commit = run_git(["rev-parse", "HEAD"], cwd=cwd).stdout.strip()
    except GitCommandFailed as exc:
        raise NotARepository(
            f"Cannot resolve HEAD in {Path(cwd or '.').resolve()}",
            diagnostic=exc.stderr,
        ) from exc
    listing = run_git(
        ["branch", "-a", "--contains", commit, f"--format={BRANCH_FORMAT}"],
        cwd=cwd,
        check=False,
    )
    branches = parse_branch_list(listing.stdout) if listing.returncode == 0 else []
    if branches:
        logger.debug("Detached HEAD %s is contained in %s", commit, ", ".join(branches))
        return branches[0]
    return commit


def remote_url(cwd: Path | str | None = None, remote: str = DEFAULT_REMOTE) -> str:
    top_level_directory(cwd)
    result = run_git(["config", "--get", f"remote.{remote}.url"], cwd=cwd, check=False)
    url = result.stdout.strip()
    if result.returncode != 0 or not url:
        raise NoRemoteConfigured(f"No URL configured for remote '{remote}'.")
    return url


def repository_name(cwd: Path | str | None = None, remote: str = DEFAULT_REMOTE) -> str:
    return repo_name_from_url(remote_url(cwd, remote))
