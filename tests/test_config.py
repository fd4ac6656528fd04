import json
import logging
from datetime import date
from pathlib import Path

import pytest

from gitmirror import auth
from gitmirror.auth import host_kind, request_headers, resolve_token
from gitmirror.config import CONFIG_FILENAME, GitMirrorConfig, load_config, save_config
from gitmirror.log import configure_logging, daily_log_path


def test_missing_config_gives_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config == GitMirrorConfig()
    assert config.log_dir_path is None


def test_config_round_trip(tmp_path):
    save_config(GitMirrorConfig(retry_count=5, asset_url_template="{remote}/raw/{branch}/{path}"), tmp_path)

    loaded = load_config(tmp_path)

    assert loaded.retry_count == 5
    assert loaded.asset_url_template == "{remote}/raw/{branch}/{path}"


def test_unknown_keys_are_rejected(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text(json.dumps({"retries": 2}), encoding="utf-8")
    with pytest.raises(ValueError, match="retries"):
        load_config(tmp_path)


def test_log_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("GITMIRROR_LOG_DIR", str(tmp_path / "logs"))
    assert GitMirrorConfig(log_dir="/elsewhere").log_dir_path == tmp_path / "logs"


@pytest.mark.parametrize(
    "url, kind",
    [
        ("https://huggingface.co/org/model", "huggingface"),
        ("https://hf.co/org/model", "huggingface"),
        ("git@github.com:org/repo.git", "github"),
        ("https://objects.githubusercontent.com/x", "github"),
        ("https://gitlab.example/org/repo", None),
    ],
)
def test_host_kind(url, kind):
    assert host_kind(url) == kind


def test_env_token_wins_over_config(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    assert resolve_token("from-config", "https://github.com/org/repo") == "from-env"


def test_config_token_used_for_unknown_hosts(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    assert resolve_token("from-config", "https://git.example/repo") == "from-config"
    assert resolve_token("", "https://git.example/repo") is None


def test_huggingface_login_cache_is_consulted(monkeypatch):
    monkeypatch.delenv("HF_TOKEN", raising=False)
    monkeypatch.delenv("HUGGING_FACE_HUB_TOKEN", raising=False)
    monkeypatch.setattr(auth, "get_token", lambda: "hf_cached")
    assert resolve_token(None, "https://huggingface.co/org/model") == "hf_cached"


def test_request_headers():
    assert request_headers("https://cdn.example/file", None) == {}
    assert request_headers("https://cdn.example/file", "tok") == {"Authorization": "Bearer tok"}
    hf_headers = request_headers("https://huggingface.co/org/model/resolve/main/x", "hf_test")
    assert "Bearer hf_test" in hf_headers.values()


def test_daily_log_path():
    path = daily_log_path(Path("/var/log/gm"), today=date(2024, 3, 9), pid=4242)
    assert path == Path("/var/log/gm/gitmirror_20240309_4242.log")


def test_file_log_format(tmp_path):
    log_file = configure_logging(log_dir=tmp_path)
    try:
        logging.getLogger("gitmirror.sync").info("copied %d file(s) to %s", 3, "dest")
        for handler in logging.getLogger("gitmirror").handlers:
            handler.flush()
        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
    finally:
        configure_logging()

    assert line.endswith("[gitmirror.sync] copied 3 file(s) to dest")
    assert " INF]" in line
    assert line.startswith("[")
