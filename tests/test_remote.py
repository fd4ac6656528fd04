import subprocess
from datetime import datetime, timezone

import pytest

from conftest import requires_git
from gitmirror import remote
from gitmirror.exceptions import BranchNotFound, RemoteUnavailable
from gitmirror.remote import fetch_remote_file_info, last_commit_record, resolve_branch_head


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@requires_git
def test_fetch_remote_file_info_lists_files_with_last_commit(remote_repo, scratch_tempdir):
    remote_repo.commit({"a.txt": "a", "docs/b.md": "b"}, "Initial import", date="2024-01-01T00:00:00+00:00")
    remote_repo.commit({"docs/b.md": "b2"}, "Update docs", date="2024-06-01T02:00:00+02:00")

    metadata = fetch_remote_file_info(remote_repo.url, "main")

    assert metadata.remote_url == remote_repo.url
    assert metadata.branch == "main"
    assert set(metadata.files) == {"a.txt", "docs/b.md"}
    assert metadata.files["a.txt"].last_commit_timestamp == _utc(2024, 1, 1)
    assert metadata.files["a.txt"].last_commit_message == "Initial import"
    assert metadata.files["docs/b.md"].last_commit_timestamp == _utc(2024, 6, 1)
    assert metadata.files["docs/b.md"].last_commit_message == "Update docs"
    assert metadata.files["docs/b.md"].download_url is None
    assert list(scratch_tempdir.iterdir()) == []


@requires_git
def test_deleted_files_are_not_listed(remote_repo):
    remote_repo.commit({"keep.txt": "k", "gone.txt": "g"}, "add")
    remote_repo.commit({"gone.txt": None}, "remove")

    metadata = fetch_remote_file_info(remote_repo.url, "main")

    assert set(metadata.files) == {"keep.txt"}


@requires_git
def test_glob_characters_in_file_names_are_literal(remote_repo):
    remote_repo.commit({"star*.txt": "1"}, "first", date="2024-01-01T00:00:00+00:00")
    remote_repo.commit({"starX.txt": "2"}, "second", date="2024-02-01T00:00:00+00:00")

    metadata = fetch_remote_file_info(remote_repo.url, "main")

    assert metadata.files["star*.txt"].last_commit_message == "first"


@requires_git
def test_unknown_branch(remote_repo, scratch_tempdir):
    remote_repo.commit({"a.txt": "a"}, "initial")
    with pytest.raises(BranchNotFound):
        fetch_remote_file_info(remote_repo.url, "no-such-branch")
    assert list(scratch_tempdir.iterdir()) == []


@requires_git
def test_branch_suffix_match_is_not_enough(remote_repo):
    remote_repo.commit({"a.txt": "a"}, "initial")
    subprocess.run(["git", "branch", "feature/dev"], cwd=remote_repo.path, check=True)
    with pytest.raises(BranchNotFound):
        resolve_branch_head(remote_repo.url, "dev")


@requires_git
def test_unreachable_remote(isolated_tmp):
    missing = (isolated_tmp / "nowhere").as_uri()
    with pytest.raises(RemoteUnavailable) as excinfo:
        fetch_remote_file_info(missing, "main")
    assert excinfo.value.diagnostic


def test_unparseable_timestamp_degrades_to_absent(monkeypatch, tmp_path):
    def fake_run_git(args, **kwargs):
        return subprocess.CompletedProcess(args, 0, stdout="not-a-date\tsubject line\n", stderr="")

    monkeypatch.setattr(remote, "run_git", fake_run_git)

    record = last_commit_record(tmp_path, "weird.txt")

    assert record.path == "weird.txt"
    assert record.last_commit_timestamp is None
    assert record.last_commit_message == "subject line"
