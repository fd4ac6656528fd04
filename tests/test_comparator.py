import os
import random
from datetime import datetime, timedelta, timezone

import pytest

from gitmirror.comparator import local_path_for, partition
from gitmirror.models import FileRecord


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _touch(path, when):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x", encoding="utf-8")
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))


def test_remote_newer_and_local_newer(tmp_path):
    remote = {
        "a.txt": FileRecord("a.txt", _utc(2024, 1, 1)),
        "b.txt": FileRecord("b.txt", _utc(2024, 6, 1)),
    }
    _touch(tmp_path / "a.txt", _utc(2024, 1, 2))

    fileset = partition(remote, tmp_path)

    assert set(fileset.newer) == {"b.txt"}
    assert set(fileset.older_or_equal) == {"a.txt"}


def test_missing_destination_is_created_and_everything_is_newer(tmp_path):
    destination = tmp_path / "does" / "not" / "exist"
    remote = {f"f{i}.txt": FileRecord(f"f{i}.txt", _utc(2020, 1, 1)) for i in range(5)}

    fileset = partition(remote, destination)

    assert destination.is_dir()
    assert set(fileset.newer) == set(remote)
    assert fileset.older_or_equal == {}


def test_equal_timestamp_is_up_to_date(tmp_path):
    when = _utc(2024, 3, 1, 12, 0, 0)
    _touch(tmp_path / "same.txt", when)

    fileset = partition({"same.txt": FileRecord("same.txt", when)}, tmp_path)

    assert set(fileset.older_or_equal) == {"same.txt"}


def test_local_older_is_newer_remote(tmp_path):
    _touch(tmp_path / "old.txt", _utc(2023, 1, 1))
    fileset = partition({"old.txt": FileRecord("old.txt", _utc(2024, 1, 1))}, tmp_path)
    assert set(fileset.newer) == {"old.txt"}


def test_absent_remote_timestamp_is_always_newer(tmp_path):
    _touch(tmp_path / "unknown.txt", _utc(2030, 1, 1))
    fileset = partition({"unknown.txt": FileRecord("unknown.txt", None)}, tmp_path)
    assert set(fileset.newer) == {"unknown.txt"}


def test_nested_paths_use_platform_separator(tmp_path):
    _touch(tmp_path / "dir" / "sub" / "file.txt", _utc(2025, 1, 1))
    remote = {"dir/sub/file.txt": FileRecord("dir/sub/file.txt", _utc(2024, 1, 1))}

    fileset = partition(remote, tmp_path)

    assert set(fileset.older_or_equal) == {"dir/sub/file.txt"}
    assert local_path_for(tmp_path, "dir/sub/file.txt") == tmp_path / "dir" / "sub" / "file.txt"


def test_backslash_keys_are_canonicalized(tmp_path):
    _touch(tmp_path / "dir" / "file.txt", _utc(2025, 1, 1))
    remote = {"dir\\file.txt": FileRecord("dir/file.txt", _utc(2024, 1, 1))}

    fileset = partition(remote, tmp_path)

    assert set(fileset.older_or_equal) == {"dir/file.txt"}


def test_directory_with_same_name_is_not_a_local_file(tmp_path):
    (tmp_path / "thing").mkdir()
    fileset = partition({"thing": FileRecord("thing", _utc(2000, 1, 1))}, tmp_path)
    assert set(fileset.newer) == {"thing"}


def test_file_where_a_parent_directory_is_expected(tmp_path):
    (tmp_path / "thing").write_text("x", encoding="utf-8")
    fileset = partition({"thing/inner.txt": FileRecord("thing/inner.txt", _utc(2000, 1, 1))}, tmp_path)
    assert set(fileset.newer) == {"thing/inner.txt"}


def test_destination_that_is_a_file_is_rejected(tmp_path):
    not_a_dir = tmp_path / "local"
    not_a_dir.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        partition({"a.txt": FileRecord("a.txt", _utc(2024, 1, 1))}, not_a_dir)


@pytest.mark.parametrize("seed", range(5))
def test_partition_is_complete_and_disjoint(tmp_path, seed):
    rng = random.Random(seed)
    base = _utc(2024, 1, 1)
    remote = {}
    for index in range(40):
        path = f"d{rng.randint(0, 3)}/file{index}.bin"
        stamp = None if rng.random() < 0.1 else base + timedelta(days=rng.randint(-30, 30))
        remote[path] = FileRecord(path, stamp)
        if rng.random() < 0.7:
            _touch(tmp_path / path, base + timedelta(days=rng.randint(-30, 30)))

    fileset = partition(remote, tmp_path)

    assert set(fileset.newer) | set(fileset.older_or_equal) == set(remote)
    assert not set(fileset.newer) & set(fileset.older_or_equal)
    for path in remote:
        if not (tmp_path / path).exists() or remote[path].last_commit_timestamp is None:
            assert path in fileset.newer
