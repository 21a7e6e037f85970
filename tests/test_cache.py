"""Tests for dirsnap.cache — bootstrap, atomic commit, read-back."""

from __future__ import annotations

import os
import stat
import threading
from pathlib import Path

import pytest

from dirsnap import CacheNotFoundError, CacheReadError, CacheWriteError, cache
from dirsnap.cache import CacheStore, commit, ensure_exists, read_cache, read_paths, serialize


def _tmp_files(directory: Path) -> list[Path]:
    return [p for p in directory.iterdir() if p.name.endswith(".tmp")]


class TestSerialize:
    def test_one_path_per_line(self) -> None:
        assert serialize(["/a", "/a/b"]) == "/a\n/a/b\n"

    def test_empty(self) -> None:
        assert serialize([]) == ""


class TestEnsureExists:
    def test_creates_empty_file(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "dirs.txt"
        assert ensure_exists(target) == target
        assert target.read_text() == ""

    def test_does_not_truncate(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        target.write_text("/keep\n")
        ensure_exists(target)
        assert target.read_text() == "/keep\n"

    def test_failure_raises_write_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(CacheWriteError):
            ensure_exists(blocker / "dirs.txt")


class TestCommitAndRead:
    def test_round_trip(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        records = ["/a", "/a/b", "/a/b c", "/a/ünï"]
        commit(records, target)
        assert read_cache(target) == serialize(records)
        assert read_paths(target) == records

    def test_replaces_previous_snapshot(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/old", "/old/x", "/old/y"], target)
        commit(["/new"], target)
        assert read_paths(target) == ["/new"]

    def test_empty_snapshot(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        commit([], target)
        assert read_cache(target) == ""
        assert read_paths(target) == []

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/a"], target)
        assert _tmp_files(tmp_path) == []

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        target = tmp_path / "sub" / "dirs.txt"
        commit(["/a"], target)
        assert read_paths(target) == ["/a"]

    def test_read_missing_raises_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(CacheNotFoundError):
            read_cache(tmp_path / "never-built.txt")

    def test_read_directory_raises_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(CacheReadError):
            read_cache(tmp_path)

    def test_read_paths_without_trailing_newline(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        target.write_text("/a\n/b", encoding="utf-8")
        assert read_paths(target) == ["/a", "/b"]

    def test_undecodable_name_keeps_its_bytes(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        name = b"/data/bad\xff".decode("utf-8", "surrogateescape")
        commit([name, "/data/ok"], target)
        assert target.read_bytes() == b"/data/bad\xff\n/data/ok\n"
        assert read_paths(target) == [name, "/data/ok"]

    def test_newline_in_name_splits_record(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/a/two\nlines"], target)
        assert read_paths(target) == ["/a/two", "lines"]


class TestCommitFailures:
    def test_temp_file_creation_failure_keeps_snapshot(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/prior"], target)

        def deny(*args: object, **kwargs: object) -> None:
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(cache, "NamedTemporaryFile", deny)
        with pytest.raises(CacheWriteError) as excinfo:
            commit(["/new"], target)
        assert excinfo.value.tmp_path is None
        assert read_cache(target) == "/prior\n"

    def test_write_failure_removes_temp_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/prior"], target)

        def broken_fsync(fd: int) -> None:
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(cache.os, "fsync", broken_fsync)
        with pytest.raises(CacheWriteError):
            commit(["/new"], target)
        assert read_cache(target) == "/prior\n"
        assert _tmp_files(tmp_path) == []

    def test_interrupted_write_removes_temp_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/prior"], target)

        def interrupted_fsync(fd: int) -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr(cache.os, "fsync", interrupted_fsync)
        with pytest.raises(KeyboardInterrupt):
            commit(["/new"], target)
        assert read_cache(target) == "/prior\n"
        assert _tmp_files(tmp_path) == []

    def test_unencodable_record_raises_write_error(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/prior"], target)
        # A lone high surrogate has no byte form, even with surrogateescape.
        with pytest.raises(CacheWriteError, match="Cannot write snapshot"):
            commit(["/a/\ud800"], target)
        assert read_cache(target) == "/prior\n"
        assert _tmp_files(tmp_path) == []

    def test_rename_failure_leaves_temp_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/prior"], target)

        def broken_replace(src: object, dst: object) -> None:
            raise OSError(18, "Invalid cross-device link")

        monkeypatch.setattr(cache.os, "replace", broken_replace)
        with pytest.raises(CacheWriteError) as excinfo:
            commit(["/new"], target)

        tmp = excinfo.value.tmp_path
        assert tmp is not None
        assert tmp.exists()
        assert tmp.parent == tmp_path
        assert tmp.read_text() == "/new\n"
        assert read_cache(target) == "/prior\n"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
class TestCommitPermissions:
    @pytest.mark.parametrize("mode", [0o644, 0o640, 0o600])
    def test_existing_mode_is_kept(self, tmp_path: Path, mode: int) -> None:
        target = tmp_path / "dirs.txt"
        ensure_exists(target)
        target.chmod(mode)
        commit(["/a"], target)
        assert stat.S_IMODE(target.stat().st_mode) == mode

    def test_new_file_is_world_readable(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        commit(["/a"], target)
        assert stat.S_IMODE(target.stat().st_mode) == cache.DEFAULT_MODE


@pytest.mark.skipif(os.name == "nt", reason="open files block os.replace on Windows")
class TestConcurrentReaders:
    def test_reader_sees_only_complete_snapshots(self, tmp_path: Path) -> None:
        target = tmp_path / "dirs.txt"
        old = [f"/old/{i:06d}" for i in range(20000)]
        new = [f"/new/{i:06d}" for i in range(30000)]
        valid = {serialize(old), serialize(new)}
        commit(old, target)

        stop = threading.Event()
        bad: list[int] = []
        reads = 0

        def reader() -> None:
            nonlocal reads
            while not stop.is_set():
                if read_cache(target) not in valid:
                    bad.append(reads)
                reads += 1

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(40):
                commit(new if i % 2 == 0 else old, target)
        finally:
            stop.set()
            thread.join()

        assert bad == []
        assert reads > 0


class TestCacheStore:
    def test_bound_operations(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path / "dirs.txt")
        assert store.exists() is False
        with pytest.raises(CacheNotFoundError):
            store.read()
        store.ensure_exists()
        assert store.exists() is True
        assert store.read() == ""
        store.commit(["/a", "/b"])
        assert store.read_paths() == ["/a", "/b"]

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        store = CacheStore(os.fspath(tmp_path / "dirs.txt"))
        assert store.path == tmp_path / "dirs.txt"
        assert "dirs.txt" in repr(store)
