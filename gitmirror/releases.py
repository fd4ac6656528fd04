from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import requests

from gitmirror.auth import request_headers
from gitmirror.config import DEFAULT_GITHUB_API
from gitmirror.exceptions import (
    DestinationFileExists,
    DownloadFailed,
    ReleaseNotFound,
    RemoteUnavailable,
)
from gitmirror.transfer_ui import DownloadProgress, download_task


CHUNK_SIZE = 1024 * 256
DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ReleaseAsset:
    name: str
    url: str
    size: int | None = None


@dataclass(slots=True)
class Release:
    tag: str
    name: str
    assets: list[ReleaseAsset] = field(default_factory=list)

    def asset(self, name: str) -> ReleaseAsset | None:
        for item in self.assets:
            if item.name == name:
                return item
        return None


def github_slug(remote_url: str) -> str:
    """Return ``owner/repo`` for any GitHub remote URL form."""
    value = remote_url.strip()
    if value.startswith("git@"):
        path = value.split(":", 1)[1] if ":" in value else ""
    elif "://" in value:
        path = urlparse(value).path
    else:
        path = value
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        raise ValueError(f"Cannot derive owner/repo from {remote_url!r}")
    return f"{parts[0]}/{parts[1]}"


def _api_headers(url: str, token: str | None) -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    headers.update(request_headers(url, token))
    return headers


def latest_release(
    repo_slug: str,
    *,
    token: str | None = None,
    api_base: str = DEFAULT_GITHUB_API,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> Release:
    url = f"{api_base.rstrip('/')}/repos/{repo_slug}/releases/latest"
    http = session or requests
    try:
        resp = http.get(url, headers=_api_headers(url, token), timeout=timeout)
    except requests.RequestException as exc:
        raise RemoteUnavailable(f"Cannot reach {url}", diagnostic=str(exc)) from exc

    if resp.status_code == 404:
        raise ReleaseNotFound(f"No published release for {repo_slug}")
    if not resp.ok:
        raise RemoteUnavailable(
            f"Release lookup for {repo_slug} failed ({resp.status_code})",
            diagnostic=resp.text,
        )

    body = resp.json()
    assets = [
        ReleaseAsset(
            name=str(item.get("name", "")),
            url=str(item.get("browser_download_url", "")),
            size=int(item["size"]) if item.get("size") is not None else None,
        )
        for item in body.get("assets") or []
    ]
    return Release(tag=str(body.get("tag_name", "")), name=str(body.get("name") or ""), assets=assets)


def _extract_zip(archive: Path, target_dir: Path) -> list[str]:
    target_dir.mkdir(parents=True, exist_ok=True)
    root = target_dir.resolve()
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            resolved = (root / member).resolve()
            if resolved != root and root not in resolved.parents:
                raise DownloadFailed(archive.name, f"archive member escapes target: {member}")
        zf.extractall(root)
        return sorted(name for name in zf.namelist() if not name.endswith("/"))


def download_file(
    url: str,
    destination: Path,
    *,
    overwrite: bool = False,
    extract: bool = False,
    token: str | None = None,
    session: requests.Session | None = None,
    ui: DownloadProgress | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> Path:
    """Stream ``url`` to ``destination``.

    Refuses to replace an existing file unless ``overwrite``. With ``extract``
    the ZIP is unpacked into ``<parent>/<stem>/`` (``<name>_extracted/`` when
    there is no suffix) and the archive removed; the extraction directory is
    returned in that case.
    """
    destination = Path(destination)
    if destination.exists() and not overwrite:
        raise DestinationFileExists(str(destination))
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")

    http = session or requests
    task = download_task(ui, destination.name)
    try:
        with http.get(url, headers=request_headers(url, token), stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            length = resp.headers.get("Content-Length")
            task.begin(int(length) if length and length.isdigit() else None)
            with partial.open("wb") as fh:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
                        task.advance(len(chunk))
        os.replace(partial, destination)
    except (requests.RequestException, OSError) as exc:
        partial.unlink(missing_ok=True)
        task.fail()
        raise DownloadFailed(destination.name, str(exc)) from exc
    task.finish()

    logger.info("Downloaded %s -> %s", url, destination)
    if not extract:
        return destination

    if not zipfile.is_zipfile(destination):
        raise DownloadFailed(destination.name, "not a ZIP archive, cannot extract")
    if destination.suffix:
        target_dir = destination.with_suffix("")
    else:
        target_dir = destination.with_name(destination.name + "_extracted")
    members = _extract_zip(destination, target_dir)
    destination.unlink()
    logger.info("Extracted %d file(s) into %s", len(members), target_dir)
    return target_dir
