from __future__ import annotations

import dataclasses
import logging
import math
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

import requests

from gitmirror.auth import request_headers
from gitmirror.comparator import local_path_for
from gitmirror.config import DEFAULT_ASSET_URL_TEMPLATE
from gitmirror.exceptions import DownloadFailed
from gitmirror.models import FileRecord, RepoMetadata
from gitmirror.remote import fetch_remote_file_info
from gitmirror.transfer_ui import DownloadProgress, DownloadTask, download_task


CHUNK_SIZE = 1024 * 256
PARTIAL_SUFFIX = ".part"
DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssetPlan:
    matched: list[FileRecord] = field(default_factory=list)
    missing: list[FileRecord] = field(default_factory=list)
    stale: list[FileRecord] = field(default_factory=list)


@dataclass(slots=True)
class AssetMirrorResult:
    removed: list[str] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)
    matched: list[str] = field(default_factory=list)
    failed: list[DownloadFailed] = field(default_factory=list)


def _strip_remote(remote_url: str) -> str:
    value = remote_url.strip().rstrip("/")
    if value.endswith(".git"):
        value = value[:-4]
    return value


def build_download_url(template: str, remote_url: str, branch: str, path: str) -> str:
    return template.format(
        remote=_strip_remote(remote_url),
        branch=quote(branch, safe=""),
        path=quote(path, safe="/"),
    )


def fetch_remote_asset_info(
    remote_url: str,
    branch: str,
    url_template: str = DEFAULT_ASSET_URL_TEMPLATE,
) -> RepoMetadata:
    """Remote file metadata plus a direct download URL per file."""
    metadata = fetch_remote_file_info(remote_url, branch)
    files = {
        path: dataclasses.replace(
            record,
            download_url=build_download_url(url_template, remote_url, branch, path),
        )
        for path, record in metadata.files.items()
    }
    return RepoMetadata(remote_url=metadata.remote_url, branch=metadata.branch, files=files)


def _whole_seconds(value: float) -> int:
    return math.floor(value)


def _matches_remote(local_mtime: float, remote: datetime | None) -> bool:
    if remote is None:
        return False
    return _whole_seconds(local_mtime) == _whole_seconds(remote.timestamp())


def classify_assets(metadata: RepoMetadata, destination: Path) -> AssetPlan:
    plan = AssetPlan()
    for path in sorted(metadata.files):
        record = metadata.files[path]
        local = local_path_for(destination, path)
        if not local.is_file():
            plan.missing.append(record)
        elif _matches_remote(local.stat().st_mtime, record.last_commit_timestamp):
            plan.matched.append(record)
        else:
            plan.stale.append(record)
    return plan


def _delete_local_file(local_root: Path, relative_path: str) -> bool:
    path = local_path_for(local_root, relative_path)
    if not path.is_file():
        return False
    path.unlink()
    current = path.parent
    while current != local_root:
        try:
            current.rmdir()
        except OSError:
            break
        current = current.parent
    return True


def remove_untracked(destination: Path, tracked: set[str]) -> list[str]:
    """Delete files under ``destination`` that the remote does not list."""
    if not destination.is_dir():
        return []
    extra = sorted(
        relative
        for relative in (
            path.relative_to(destination).as_posix()
            for path in destination.rglob("*")
            if path.is_file()
        )
        if relative not in tracked
    )
    removed: list[str] = []
    for relative in extra:
        try:
            if _delete_local_file(destination, relative):
                removed.append(relative)
        except OSError as exc:
            logger.error("Could not remove %s: %s", relative, exc)
    return removed


def download_asset(
    session: requests.Session,
    record: FileRecord,
    target: Path,
    *,
    headers: dict[str, str],
    timeout: float,
    task: DownloadTask | None = None,
) -> None:
    """GET ``record.download_url`` into ``target`` and stamp it with the commit time."""
    if task is None:
        task = download_task(None, record.path)
    if not record.download_url:
        task.fail()
        raise DownloadFailed(record.path, "no download URL")

    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + PARTIAL_SUFFIX)
    try:
        with session.get(record.download_url, headers=headers, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            length = resp.headers.get("Content-Length")
            total = int(length) if length and length.isdigit() else None
            task.begin(total)
            with partial.open("wb") as fh:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    task.advance(len(chunk))
        os.replace(partial, target)
    except (requests.RequestException, OSError) as exc:
        partial.unlink(missing_ok=True)
        task.fail()
        raise DownloadFailed(record.path, str(exc)) from exc

    if record.last_commit_timestamp is not None:
        stamp = record.last_commit_timestamp.timestamp()
        os.utime(target, (stamp, stamp))
    task.finish()


def mirror_assets(
    metadata: RepoMetadata,
    destination: Path,
    *,
    session: requests.Session | None = None,
    token: str | None = None,
    ui: DownloadProgress | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> AssetMirrorResult:
    """Mirror remote files into ``destination`` over plain HTTP.

    Untracked local files are removed first; then missing files are downloaded,
    followed by stale ones. A failed download is recorded and skipped; the next
    run picks it up again.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    result = AssetMirrorResult()
    result.removed = remove_untracked(destination, set(metadata.files))

    plan = classify_assets(metadata, destination)
    result.matched = [record.path for record in plan.matched]
    queue = [*plan.missing, *plan.stale]
    logger.info(
        "Assets: %d matched, %d missing, %d stale, %d removed",
        len(plan.matched),
        len(plan.missing),
        len(plan.stale),
        len(result.removed),
    )
    if not queue:
        return result

    owns_session = session is None
    session = session or requests.Session()
    try:
        tasks = {record.path: download_task(ui, record.path) for record in queue}
        for record in queue:
            target = local_path_for(destination, record.path)
            try:
                download_asset(
                    session,
                    record,
                    target,
                    headers=request_headers(record.download_url or "", token),
                    timeout=timeout,
                    task=tasks[record.path],
                )
            except DownloadFailed as exc:
                logger.error("%s", exc)
                result.failed.append(exc)
                continue
            result.downloaded.append(record.path)
    finally:
        if owns_session:
            session.close()

    return result
