"""Tests for file I/O helpers and advisory locks."""
from __future__ import annotations

import threading
from pathlib import Path

import pytest

from strata.core.utils.io import (
    LockTimeoutError,
    acquire_file_lock,
    ensure_directory,
    read_json,
    read_text,
    write_json_atomic,
)


def test_read_text_strips_bom_and_normalizes_newlines(tmp_path: Path) -> None:
    path = tmp_path / "doc.md"
    path.write_bytes("\ufeffline one\r\nline two\r".encode("utf-8"))
    assert read_text(path) == "line one\nline two\n"


def test_json_round_trip_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "meta.json"
    write_json_atomic(target, {"b": 1, "a": [1, 2]})

    assert read_json(target) == {"a": [1, 2], "b": 1}
    assert [p.name for p in target.parent.iterdir()] == ["meta.json"]
    assert read_json(tmp_path / "missing.json", default=None) is None
    with pytest.raises(FileNotFoundError):
        read_json(tmp_path / "missing.json")


def test_ensure_directory(tmp_path: Path) -> None:
    assert ensure_directory(tmp_path / "a" / "b").is_dir()
    (tmp_path / "file").write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        ensure_directory(tmp_path / "file")
    with pytest.raises(FileNotFoundError):
        ensure_directory(tmp_path / "nope", create=False)


def test_lock_times_out_while_held(tmp_path: Path) -> None:
    target = tmp_path / "mirror"
    held, done = threading.Event(), threading.Event()

    def holder() -> None:
        with acquire_file_lock(target, timeout=5):
            held.set()
            done.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(timeout=5)
        with pytest.raises(LockTimeoutError):
            with acquire_file_lock(target, timeout=0.2, poll_interval=0.01):
                pass
    finally:
        done.set()
        thread.join(timeout=5)

    with acquire_file_lock(target, timeout=1):
        assert (tmp_path / "mirror.lock").exists()


def test_lock_rejects_non_positive_timeout(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        with acquire_file_lock(tmp_path / "x", timeout=0):
            pass
