from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable

import requests
import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from gitmirror.assets import fetch_remote_asset_info, mirror_assets
from gitmirror.auth import resolve_token
from gitmirror.checkout import fetch_files
from gitmirror.comparator import local_path_for, partition
from gitmirror.config import CONFIG_FILENAME, GitMirrorConfig, config_path, load_config, save_config
from gitmirror.exceptions import DestinationFileExists, GitMirrorError
from gitmirror.inspector import current_branch, repository_name, top_level_directory
from gitmirror.log import configure_logging
from gitmirror.mirror import CopyMode, MirrorOptions, mirror
from gitmirror.models import FileRecord, normalize_remote_path
from gitmirror.releases import download_file, github_slug, latest_release
from gitmirror.remote import fetch_remote_file_info
from gitmirror.sync import sync_remote_to_local
from gitmirror.transfer_ui import DownloadProgress


app = typer.Typer(help="Inspect and mirror git repository state.")
console = Console()
err_console = Console(stderr=True)


def _config() -> GitMirrorConfig:
    try:
        return load_config()
    except (ValueError, OSError) as exc:
        err_console.print(f"[red]Invalid {CONFIG_FILENAME}:[/red] {exc}")
        raise typer.Exit(code=1)


def _run(action: str, func: Callable[[], int]) -> int:
    try:
        return func()
    except KeyboardInterrupt:
        err_console.print(f"[yellow]{action} interrupted.[/yellow] Rerun to finish; completed files are kept.")
        return 130
    except (GitMirrorError, OSError, ValueError, requests.RequestException) as exc:
        err_console.print(Text.assemble((f"{action} failed: ", "red"), str(exc)), highlight=False)
        return 1


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(f"  {path}", markup=False, soft_wrap=True)


def _render_records(title: str, records: list[FileRecord]) -> None:
    if not records:
        return
    table = Table(title=title)
    table.add_column("Path")
    table.add_column("Last commit (UTC)")
    table.add_column("Subject")
    for record in records:
        stamp = record.last_commit_timestamp
        table.add_row(
            record.path,
            stamp.strftime("%Y-%m-%d %H:%M:%S") if stamp is not None else "-",
            record.last_commit_message,
        )
    console.print(table)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
    log_dir: str | None = typer.Option(
        None,
        "--log-dir",
        help="Append logs to a daily per-process file in this directory.",
    ),
) -> None:
    config = _config()
    configure_logging(
        verbose=verbose,
        log_dir=Path(log_dir).expanduser() if log_dir else config.log_dir_path,
        console=err_console,
    )


@app.command()
def init(force: bool = typer.Option(False, "--force", help="Overwrite an existing config file.")) -> None:
    """Write a default .gitmirror.json in the current directory."""
    path = config_path()
    if path.exists() and not force:
        err_console.print(f"[red]{path} already exists.[/red] Use --force to overwrite it.")
        raise typer.Exit(code=1)
    save_config(GitMirrorConfig())
    console.print(f"[green]Wrote[/green] {path}")


@app.command()
def toplevel() -> None:
    """Print the root directory of the enclosing working copy."""
    def _do() -> int:
        console.print(str(top_level_directory()), markup=False, soft_wrap=True)
        return 0

    raise typer.Exit(code=_run("toplevel", _do))


@app.command()
def branch() -> None:
    """Print the current branch (or commit id on a detached HEAD outside any branch)."""
    def _do() -> int:
        console.print(current_branch(), markup=False, soft_wrap=True)
        return 0

    raise typer.Exit(code=_run("branch", _do))


@app.command()
def name(remote: str = typer.Option("origin", "--remote", help="Remote to read the URL from.")) -> None:
    """Print the repository name derived from the remote URL."""
    def _do() -> int:
        console.print(repository_name(remote=remote), markup=False, soft_wrap=True)
        return 0

    raise typer.Exit(code=_run("name", _do))


@app.command("ls-remote")
def ls_remote(remote_url: str, branch_name: str = typer.Argument(..., metavar="BRANCH")) -> None:
    """List files on a remote branch with their last commit, without downloading contents."""
    def _do() -> int:
        with console.status(f"Reading {remote_url}@{branch_name} ..."):
            metadata = fetch_remote_file_info(remote_url, branch_name)
        _render_records(f"{remote_url}@{branch_name}", list(metadata.files.values()))
        console.print(f"Files: {len(metadata.files)}")
        return 0

    raise typer.Exit(code=_run("ls-remote", _do))


@app.command()
def status(
    remote_url: str,
    branch_name: str = typer.Argument(..., metavar="BRANCH"),
    destination: Path = typer.Argument(..., help="Local directory to compare against."),
) -> None:
    """Show which remote files are newer than the local copy."""
    def _do() -> int:
        with console.status(f"Reading {remote_url}@{branch_name} ..."):
            metadata = fetch_remote_file_info(remote_url, branch_name)
        fileset = partition(metadata.files, destination)
        _render_records("Remote newer", list(fileset.newer.values()))
        if not fileset.newer:
            console.print("[green]Local copy is up to date.[/green]")
        console.print(
            f"Remote files: {len(metadata.files)} | Newer: {len(fileset.newer)} "
            f"| Up to date: {len(fileset.older_or_equal)}"
        )
        return 0

    raise typer.Exit(code=_run("status", _do))


@app.command()
def fetch(
    remote_url: str,
    branch_name: str = typer.Argument(..., metavar="BRANCH"),
    destination: Path = typer.Argument(..., help="Directory to place the files in."),
    paths: list[str] = typer.Argument(..., help="Repository-relative paths to check out."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace files that already exist."),
) -> None:
    """Sparse-checkout only the given paths into DESTINATION."""
    def _do() -> int:
        wanted = sorted({normalize_remote_path(path) for path in paths if path})
        if not overwrite:
            for path in wanted:
                target = local_path_for(destination, path)
                if target.exists():
                    raise DestinationFileExists(str(target))

        fetched: list[str] = []
        with fetch_files(remote_url, branch_name, wanted) as checkout:
            if checkout.local_path is not None:
                for path in checkout.files:
                    target = local_path_for(destination, path)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(local_path_for(checkout.local_path, path), target)
                    fetched.append(path)

        _render_path_summary("Fetched", fetched, "green")
        _render_path_summary("Not on remote", sorted(set(wanted) - set(fetched)), "yellow")
        return 0

    raise typer.Exit(code=_run("fetch", _do))


@app.command("mirror")
def mirror_command(
    source: Path,
    destination: Path,
    mode: str = typer.Option("smart", "--mode", help="missing, smart or all."),
    purge: bool = typer.Option(False, "--purge", help="Delete destination entries absent from SOURCE."),
    retries: int | None = typer.Option(None, "--retries", help="Retries per failed file copy."),
    retry_delay: float | None = typer.Option(None, "--retry-delay", help="Seconds between retries."),
) -> None:
    """Copy SOURCE onto DESTINATION."""
    config = _config()

    def _do() -> int:
        try:
            copy_mode = CopyMode(mode.lower().strip())
        except ValueError:
            err_console.print("[red]Invalid --mode value. Use 'missing', 'smart' or 'all'.[/red]")
            return 1
        result = mirror(
            source,
            destination,
            MirrorOptions(
                mode=copy_mode,
                purge_extra=purge,
                retry_count=config.retry_count if retries is None else retries,
                retry_delay=config.retry_delay if retry_delay is None else retry_delay,
            ),
        )
        _render_path_summary("Copied", result.copied, "green")
        _render_path_summary("Purged", result.purged, "yellow")
        _render_path_summary("Failed", [failure.path for failure in result.failed], "red")
        console.print(f"Skipped unchanged: {len(result.skipped)}")
        return 0 if result.ok else 1

    raise typer.Exit(code=_run("mirror", _do))


@app.command()
def sync(
    remote_url: str,
    branch_name: str = typer.Argument(..., metavar="BRANCH"),
    destination: Path = typer.Argument(..., help="Local directory to bring up to date."),
    purge: bool = typer.Option(False, "--purge", help="Delete local files not tracked on BRANCH."),
) -> None:
    """Update DESTINATION with files that changed on the remote branch."""
    config = _config()

    def _do() -> int:
        result = sync_remote_to_local(
            remote_url,
            branch_name,
            destination,
            purge,
            retry_count=config.retry_count,
            retry_delay=config.retry_delay,
        )
        _render_path_summary("Updated", result.updated_paths, "green")
        _render_path_summary("Deleted (not on remote)", result.deleted_local_paths, "yellow")
        _render_path_summary("Failed", result.failed_paths, "red")
        if not result.updated_paths and not result.deleted_local_paths:
            console.print("[green]Local copy already matches the remote branch.[/green]")
        console.print(
            f"Remote files: {result.remote_file_count} | Skipped unchanged: {len(result.skipped_paths)}"
        )
        return 0 if not result.failed_paths else 1

    raise typer.Exit(code=_run("sync", _do))


@app.command()
def assets(
    remote_url: str,
    branch_name: str = typer.Argument(..., metavar="BRANCH"),
    destination: Path = typer.Argument(..., help="Local directory to mirror into."),
    url_template: str | None = typer.Option(
        None,
        "--url-template",
        help="Download URL template with {remote}, {branch} and {path}.",
    ),
) -> None:
    """Mirror a repository's files over direct HTTP downloads."""
    config = _config()

    def _do() -> int:
        with console.status(f"Reading {remote_url}@{branch_name} ..."):
            metadata = fetch_remote_asset_info(
                remote_url,
                branch_name,
                url_template or config.asset_url_template,
            )
        token = resolve_token(config.token, remote_url)
        with DownloadProgress(console=console) as ui:
            result = mirror_assets(
                metadata,
                destination,
                token=token,
                ui=ui,
                timeout=config.http_timeout,
            )
        _render_path_summary("Downloaded", result.downloaded, "green")
        _render_path_summary("Removed (not on remote)", result.removed, "yellow")
        _render_path_summary("Failed (rerun to retry)", [failure.path for failure in result.failed], "red")
        console.print(f"Remote files: {len(metadata.files)} | Matched: {len(result.matched)}")
        return 0 if not result.failed else 1

    raise typer.Exit(code=_run("assets", _do))


@app.command()
def release(
    remote_url: str,
    destination: Path = typer.Argument(..., help="Directory to download the asset into."),
    asset: str | None = typer.Option(None, "--asset", help="Asset name; required when several exist."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing file."),
    extract: bool = typer.Option(False, "--extract", help="Unpack a ZIP asset after download."),
) -> None:
    """Download an asset of the latest GitHub release."""
    config = _config()

    def _do() -> int:
        token = resolve_token(config.token, "https://github.com")
        latest = latest_release(
            github_slug(remote_url),
            token=token,
            api_base=config.github_api,
            timeout=config.http_timeout,
        )
        if asset is not None:
            chosen = latest.asset(asset)
        elif len(latest.assets) == 1:
            chosen = latest.assets[0]
        else:
            chosen = None
        if chosen is None:
            names = ", ".join(item.name for item in latest.assets) or "none"
            err_console.print(f"[red]Choose an asset of {latest.tag} with --asset.[/red] Available: {names}")
            return 1

        with DownloadProgress(console=console) as ui:
            path = download_file(
                chosen.url,
                destination / chosen.name,
                overwrite=overwrite,
                extract=extract,
                token=token,
                ui=ui,
                timeout=config.http_timeout,
            )
        console.print(f"[green]{latest.tag}[/green] {chosen.name} -> {path}")
        return 0

    raise typer.Exit(code=_run("release", _do))
