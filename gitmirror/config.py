from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path


CONFIG_FILENAME = ".gitmirror.json"
DEFAULT_ASSET_URL_TEMPLATE = "{remote}/resolve/{branch}/{path}"
DEFAULT_GITHUB_API = "https://api.github.com"
LOG_DIR_ENV = "GITMIRROR_LOG_DIR"


@dataclass(slots=True)
class GitMirrorConfig:
    asset_url_template: str = DEFAULT_ASSET_URL_TEMPLATE
    retry_count: int = 3
    retry_delay: float = 1.0
    http_timeout: float = 60.0
    log_dir: str = ""
    token: str = ""
    github_api: str = DEFAULT_GITHUB_API

    @property
    def log_dir_path(self) -> Path | None:
        value = os.getenv(LOG_DIR_ENV, "").strip() or self.log_dir.strip()
        return Path(value).expanduser() if value else None


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def load_config(base_dir: Path | None = None) -> GitMirrorConfig:
    """Read ``.gitmirror.json``; a missing file yields the defaults."""
    path = config_path(base_dir)
    if not path.exists():
        return GitMirrorConfig()

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {path}")

    known = {item.name for item in fields(GitMirrorConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")

    config = GitMirrorConfig(**data)
    config.retry_count = int(config.retry_count)
    config.retry_delay = float(config.retry_delay)
    config.http_timeout = float(config.http_timeout)
    return config


def save_config(config: GitMirrorConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(asdict(config), fh, indent=2)
        fh.write("\n")
    return path
