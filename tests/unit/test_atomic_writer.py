from __future__ import annotations

import json
import os
import stat

import pytest

from forest.errors import DataPersistenceError
from forest.memory import atomic
from forest.memory.atomic import TEMP_SUFFIX, atomic_write_bytes, atomic_write_json


def _temp_files(directory) -> list:
    return [entry.name for entry in directory.iterdir() if entry.name.endswith(TEMP_SUFFIX)]


def test_creates_missing_directories(tmp_path) -> None:
    target = tmp_path / "projects" / "p1" / "config.json"
    atomic_write_json(target, {"goal": "Learn X"})

    assert json.loads(target.read_text(encoding="utf-8")) == {"goal": "Learn X"}
    assert _temp_files(target.parent) == []


def test_failed_rename_keeps_original_and_removes_temp(tmp_path, monkeypatch) -> None:
    target = tmp_path / "doc.json"
    atomic_write_bytes(target, b"original\n")

    def broken_replace(src, dst) -> None:
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(atomic.os, "replace", broken_replace)
    with pytest.raises(DataPersistenceError) as excinfo:
        atomic_write_bytes(target, b"replacement\n")

    assert isinstance(excinfo.value, OSError)
    assert excinfo.value.operation == "write"
    assert target.read_bytes() == b"original\n"
    assert _temp_files(tmp_path) == []


def test_interrupted_write_cleans_up(tmp_path, monkeypatch) -> None:
    target = tmp_path / "doc.json"

    def interrupted_fsync(fd) -> None:
        raise KeyboardInterrupt

    monkeypatch.setattr(atomic.os, "fsync", interrupted_fsync)
    with pytest.raises(KeyboardInterrupt):
        atomic_write_bytes(target, b"partial")

    assert not target.exists()
    assert _temp_files(tmp_path) == []


def test_unserialisable_document_is_rejected_before_touching_disk(tmp_path) -> None:
    target = tmp_path / "doc.json"
    with pytest.raises(ValueError):
        atomic_write_json(target, {"when": object()})
    assert not target.exists()


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="permission bits not enforced")
def test_unwritable_directory_surfaces_persistence_error(tmp_path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        with pytest.raises(DataPersistenceError):
            atomic_write_bytes(locked / "doc.json", b"{}")
    finally:
        locked.chmod(0o700)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_new_files_use_umask_default_mode(tmp_path) -> None:
    target = tmp_path / "doc.json"
    atomic_write_bytes(target, b"{}")

    umask = os.umask(0)
    os.umask(umask)
    assert stat.S_IMODE(target.stat().st_mode) == atomic.DEFAULT_FILE_MODE & ~umask


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_existing_file_mode_survives_replacement(tmp_path) -> None:
    target = tmp_path / "doc.json"
    target.write_bytes(b"{}")
    target.chmod(0o640)

    atomic_write_bytes(target, b'{"goal": "Learn X"}')

    assert stat.S_IMODE(target.stat().st_mode) == 0o640
    assert target.read_bytes() == b'{"goal": "Learn X"}'
