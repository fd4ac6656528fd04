from __future__ import annotations

import os
from urllib.parse import urlparse

from huggingface_hub import get_token
from huggingface_hub.utils import build_hf_headers


HF_HOSTS = {"huggingface.co", "www.huggingface.co", "hf.co", "www.hf.co"}
GITHUB_HOSTS = {"github.com", "www.github.com", "api.github.com"}

_TOKEN_ENV = {
    "github": ("GITHUB_TOKEN", "GH_TOKEN"),
    "huggingface": ("HF_TOKEN", "HUGGING_FACE_HUB_TOKEN"),
}


def host_of(url: str) -> str:
    value = (url or "").strip()
    # scp-like `git@host:org/repo.git`
    if "://" not in value and "@" in value and ":" in value:
        return value.split("@", 1)[1].split(":", 1)[0].lower()
    return (urlparse(value).hostname or "").lower()


def host_kind(url: str) -> str | None:
    host = host_of(url)
    if host in HF_HOSTS:
        return "huggingface"
    if host in GITHUB_HOSTS or host.endswith(".githubusercontent.com"):
        return "github"
    return None


def resolve_token(config_token: str | None = None, url: str = "") -> str | None:
    """Resolve a token for ``url`` from env, config, or the local huggingface_hub login cache."""
    kind = host_kind(url)
    env_names = _TOKEN_ENV.get(kind, ()) if kind else ()
    for env_name in env_names:
        value = os.getenv(env_name, "").strip()
        if value:
            return value

    if config_token and config_token.strip():
        return config_token.strip()

    if kind == "huggingface":
        # Honours `hf auth login` and HF_HOME the same way the library does.
        value = get_token()
        if value:
            return str(value).strip() or None

    return None


def request_headers(url: str, token: str | None) -> dict[str, str]:
    if host_kind(url) == "huggingface":
        return dict(build_hf_headers(token=token or False, library_name="gitmirror"))
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}
