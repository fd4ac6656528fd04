import os
import shutil
import subprocess
from pathlib import Path

import pytest
import requests


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def _git_env(date=None):
    env = os.environ.copy()
    env.update(
        {
            "GIT_AUTHOR_NAME": "Test Author",
            "GIT_AUTHOR_EMAIL": "author@example.com",
            "GIT_COMMITTER_NAME": "Test Author",
            "GIT_COMMITTER_EMAIL": "author@example.com",
            "GIT_CONFIG_NOSYSTEM": "1",
        }
    )
    if date is not None:
        env["GIT_AUTHOR_DATE"] = date
        env["GIT_COMMITTER_DATE"] = date
    return env


def git(cwd, *args, date=None):
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        env=_git_env(date),
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


class GitRepo:
    """A throwaway working repository used as a remote in tests."""

    def __init__(self, path: Path, branch: str = "main"):
        self.path = path
        self.branch = branch
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "--quiet", "-b", branch)
        git(path, "config", "uploadpack.allowFilter", "true")
        git(path, "config", "uploadpack.allowAnySHA1InWant", "true")

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def commit(self, files, message, date="2024-01-01T00:00:00+00:00"):
        """Write (str) or delete (None) files, then commit them all at ``date``."""
        for relative, content in files.items():
            target = self.path / relative
            if content is None:
                target.unlink()
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        git(self.path, "add", "-A")
        git(self.path, "commit", "--quiet", "-m", message, date=date)
        return git(self.path, "rev-parse", "HEAD").strip()


@pytest.fixture
def isolated_tmp(tmp_path, monkeypatch):
    """Keep git from discovering a repository above ``tmp_path``."""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    return tmp_path


@pytest.fixture
def remote_repo(isolated_tmp):
    return GitRepo(isolated_tmp / "remote")


@pytest.fixture
def scratch_tempdir(tmp_path, monkeypatch):
    """Route ``tempfile`` into a directory the test can inspect for leftovers."""
    import tempfile

    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


class FakeResponse:
    def __init__(self, body=b"", status_code=200, json_body=None):
        self.body = body
        self.status_code = status_code
        self._json = json_body
        self.headers = {"Content-Length": str(len(body))}

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return self.body.decode("utf-8", errors="replace")

    def json(self):
        return self._json

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None


class FakeSession:
    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, headers=None, stream=False, timeout=None):
        self.calls.append(url)
        response = self.routes.get(url)
        if isinstance(response, Exception):
            raise response
        return response if response is not None else FakeResponse(b"not found", 404)

    def close(self):
        pass


@pytest.fixture
def fake_session():
    return FakeSession
