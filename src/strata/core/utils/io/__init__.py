"""File I/O helpers: atomic writes, JSON reads and advisory locks."""
from __future__ import annotations

from .core import atomic_write, ensure_directory, ensure_parent_dir, read_text
from .json import read_json, write_json_atomic
from .locking import LockTimeoutError, acquire_file_lock

__all__ = [
    "atomic_write",
    "ensure_directory",
    "ensure_parent_dir",
    "read_text",
    "read_json",
    "write_json_atomic",
    "acquire_file_lock",
    "LockTimeoutError",
]
