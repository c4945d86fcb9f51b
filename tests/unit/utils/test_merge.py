"""Tests for the configuration merge helpers."""
from __future__ import annotations

from strata.core.utils.merge import deep_merge, merge_by_key


def test_deep_merge_recurses_without_mutating_inputs() -> None:
    base = {"a": 1, "b": {"c": 2, "d": [1, 2]}}
    override = {"b": {"c": 3, "d": [9]}, "e": True}

    merged = deep_merge(base, override)

    assert merged == {"a": 1, "b": {"c": 3, "d": [9]}, "e": True}
    assert base == {"a": 1, "b": {"c": 2, "d": [1, 2]}}


def test_deep_merge_scalar_replaces_mapping() -> None:
    assert deep_merge({"a": {"x": 1}}, {"a": None}) == {"a": None}


def test_merge_by_key_merges_matching_entries_in_place() -> None:
    base = [{"name": "embedded", "priority": 0}, {"name": "project", "priority": 100}]
    override = [{"name": "project", "enabled": False}, {"name": "team", "priority": 75}]

    merged = merge_by_key(base, override)

    assert [e["name"] for e in merged] == ["embedded", "project", "team"]
    assert merged[1] == {"name": "project", "priority": 100, "enabled": False}


def test_merge_by_key_appends_entries_without_key() -> None:
    merged = merge_by_key([{"name": "a"}], [{"priority": 5}])
    assert merged == [{"name": "a"}, {"priority": 5}]
