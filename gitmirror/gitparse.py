"""Parsers for the textual output of the ``git`` commands gitmirror runs.

Each parser documents the exact command and format it expects. Keep these in
sync with the argv built by the callers; a format drift in git output shows up
here first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from gitmirror.exceptions import TimestampParseFailed
from gitmirror.models import normalize_remote_path


# `git log -1 --format=<COMMIT_FORMAT> -- <path>`: "<strict ISO-8601>\t<subject>"
COMMIT_FORMAT = "%cI%x09%s"
# `git branch --format=<BRANCH_FORMAT>`: one short ref name per line
BRANCH_FORMAT = "%(refname:short)"


@dataclass(slots=True, frozen=True)
class CommitInfo:
    timestamp: datetime | None
    subject: str


def parse_timestamp(raw: str, *, path: str = "") -> datetime:
    """Parse an ISO-8601 instant with an explicit offset and return it in UTC."""
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise TimestampParseFailed(path, raw) from exc
    if parsed.tzinfo is None:
        raise TimestampParseFailed(path, raw)
    return parsed.astimezone(timezone.utc)


def parse_commit_line(output: str, *, path: str = "") -> CommitInfo | None:
    """Parse ``%cI%x09%s`` output. Empty output (no commit) returns ``None``.

    Raises :class:`TimestampParseFailed` when the date part is unreadable; the
    subject is still available on the caller side through ``split_commit_line``.
    """
    line = output.strip("\r\n")
    if not line.strip():
        return None
    raw_timestamp, subject = split_commit_line(line)
    return CommitInfo(timestamp=parse_timestamp(raw_timestamp, path=path), subject=subject)


def split_commit_line(line: str) -> tuple[str, str]:
    first_line = line.splitlines()[0] if line else ""
    raw_timestamp, _, subject = first_line.partition("\t")
    return raw_timestamp.strip(), subject.strip()


def parse_ls_tree(output: str) -> list[str]:
    """Parse ``git ls-tree -r -z --name-only`` output (NUL-separated paths)."""
    return [normalize_remote_path(entry) for entry in output.split("\0") if entry.strip("\n")]


def parse_ls_remote(output: str, branch: str) -> str | None:
    """Return the commit id of ``refs/heads/<branch>`` in ``git ls-remote`` output.

    ``ls-remote`` matches patterns by suffix, so ``main`` also lists
    ``refs/heads/feature/main``; only the exact ref is accepted.
    """
    wanted = f"refs/heads/{branch}"
    for line in output.splitlines():
        sha, _, ref = line.strip().partition("\t")
        if ref.strip() == wanted and sha:
            return sha.strip()
    return None


def parse_branch_list(output: str) -> list[str]:
    """Parse ``git branch --format=%(refname:short)`` keeping git's order.

    Pseudo entries such as ``(HEAD detached at 1a2b3c4)`` and symbolic
    ``origin/HEAD`` lines are dropped.
    """
    branches: list[str] = []
    for line in output.splitlines():
        name = line.strip()
        if not name or name.startswith("("):
            continue
        if name.endswith("/HEAD") or " -> " in name:
            continue
        branches.append(name)
    return branches


def repo_name_from_url(url: str) -> str:
    """``https://host/org/repo.git`` / ``git@host:org/repo.git`` -> ``repo``."""
    value = url.strip().rstrip("/")
    if value.endswith(".git"):
        value = value[:-4]
    segment = value.replace("\\", "/").rsplit("/", 1)[-1]
    return segment.rsplit(":", 1)[-1]
