"""File helpers shared by config loading, content loading and the git cache.

Text reads drop a UTF-8 byte order mark and normalize newlines so content
authored on any platform parses the same. Writes of cache metadata go
through ``atomic_write`` so a crash never leaves a half-written file.
"""
from __future__ import annotations

import fcntl
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, TextIO, Union

PathLike = Union[str, Path]


def ensure_parent_dir(path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def ensure_directory(path: Path, create: bool = True) -> Path:
    """Return ``path`` as a directory, creating it unless ``create`` is False.

    Raises:
        NotADirectoryError: ``path`` exists and is a file.
        FileNotFoundError: ``path`` is missing and ``create`` is False.
    """
    path = Path(path)
    if path.exists():
        if not path.is_dir():
            raise NotADirectoryError(f"Path exists but is not a directory: {path}")
        return path
    if not create:
        raise FileNotFoundError(f"Directory does not exist: {path}")
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: Path, write_fn: Callable[[TextIO], None], *, encoding: str = "utf-8") -> None:
    """Write ``path`` through a sibling temp file, fsync it, then rename over.

    Readers see either the old file or the complete new one. The temp file
    is removed if ``write_fn`` raises.
    """
    path = Path(path)
    ensure_parent_dir(path)
    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile("w", encoding=encoding, dir=str(path.parent), delete=False) as f:
            tmp_path = Path(f.name)
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            write_fn(f)
            f.flush()
            os.fsync(f.fileno())
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.replace(str(tmp_path), str(path))
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def read_text(path: PathLike) -> str:
    """Read a UTF-8 knowledge or config file with ``\\n`` line endings.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Text file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = ["ensure_parent_dir", "ensure_directory", "atomic_write", "read_text"]
