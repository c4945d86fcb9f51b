"""JSON I/O utilities with atomic writes."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from .core import atomic_write, read_text

DEFAULT_JSON_CONFIG: Dict[str, Any] = {
    "indent": 2,
    "sort_keys": True,
    "ensure_ascii": False,
}

_MISSING = object()  # Sentinel for unset default


def read_json(file_path: Path | str, *, default: Any = _MISSING) -> Any:
    """Read JSON from ``file_path``.

    Args:
        file_path: Path to JSON file
        default: Value to return if file doesn't exist (optional).
                 If not provided, FileNotFoundError is raised.

    Raises:
        FileNotFoundError: If the file does not exist and no default is provided
        json.JSONDecodeError: If the file is not valid JSON
    """
    path = Path(file_path)
    if not path.exists():
        if default is not _MISSING:
            return default
        raise FileNotFoundError(f"JSON file not found: {path}")
    return json.loads(read_text(path))


def write_json_atomic(file_path: Path | str, data: Any) -> None:
    """Atomically write ``data`` as pretty-printed JSON."""

    def _writer(f):
        json.dump(
            data,
            f,
            indent=DEFAULT_JSON_CONFIG["indent"],
            sort_keys=DEFAULT_JSON_CONFIG["sort_keys"],
            ensure_ascii=DEFAULT_JSON_CONFIG["ensure_ascii"],
        )
        f.write("\n")

    atomic_write(Path(file_path), _writer)


__all__ = ["read_json", "write_json_atomic", "DEFAULT_JSON_CONFIG"]
