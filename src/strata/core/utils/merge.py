"""Canonical deep merge utilities for configuration.

Features:
- Recursive dictionary merging without mutating inputs
- Arrays replace by default
- Arrays of mappings that carry a key field (``name`` for layers) merge
  entry-by-entry, keeping first-declaration order
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge dictionaries without mutating inputs.

    Args:
        base: Base dictionary (lower priority)
        override: Override dictionary (higher priority)

    Returns:
        New merged dictionary

    Example:
        >>> deep_merge({"a": 1, "b": {"c": 2}}, {"b": {"d": 3}})
        {'a': 1, 'b': {'c': 2, 'd': 3}}
    """
    result: Dict[str, Any] = dict(base)
    for key, value in (override or {}).items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def merge_by_key(base: List[Any], override: List[Any], *, key: str = "name") -> List[Any]:
    """Merge two lists of mappings entry-by-entry on ``key``.

    Entries present in both lists are deep-merged (override wins per field);
    new entries are appended in override order. Entries without the key
    field are appended untouched.

    Example:
        >>> merge_by_key([{"name": "a", "x": 1}], [{"name": "a", "x": 2}, {"name": "b"}])
        [{'name': 'a', 'x': 2}, {'name': 'b'}]
    """
    result: List[Any] = list(base)
    positions: Dict[Any, int] = {}
    for idx, entry in enumerate(result):
        if isinstance(entry, Mapping) and key in entry:
            positions.setdefault(entry[key], idx)

    for entry in override or []:
        if isinstance(entry, Mapping) and key in entry and entry[key] in positions:
            idx = positions[entry[key]]
            result[idx] = deep_merge(result[idx], entry)
            continue
        if isinstance(entry, Mapping) and key in entry:
            positions[entry[key]] = len(result)
        result.append(entry)
    return result


__all__ = ["deep_merge", "merge_by_key"]
