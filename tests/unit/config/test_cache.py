"""Tests for the configuration cache."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from helpers.io_utils import write_yaml
from strata.core.config import clear_all_caches, get_cached_config


def test_same_inputs_return_same_instance(workspace: Path) -> None:
    first = get_cached_config(workspace)
    assert get_cached_config(workspace) is first


def test_config_file_change_invalidates(workspace: Path) -> None:
    path = write_yaml(workspace / "strata.yaml", {"search": {"default_limit": 3}})
    first = get_cached_config(workspace)

    write_yaml(path, {"search": {"default_limit": 30}})
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    second = get_cached_config(workspace)
    assert second is not first
    assert second.config.search.default_limit == 30


def test_env_change_invalidates(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_cached_config(workspace)
    monkeypatch.setenv("STRATA_SEARCH__DEFAULT_LIMIT", "2")
    second = get_cached_config(workspace)
    assert second is not first
    assert second.config.search.default_limit == 2


def test_clear_all_caches_forces_reload(workspace: Path) -> None:
    first = get_cached_config(workspace)

    clear_all_caches()

    assert get_cached_config(workspace) is not first
