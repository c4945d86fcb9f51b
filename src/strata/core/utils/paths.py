"""User and workspace path resolution.

The user directory defaults to ``~/.strata`` and can be moved with the
``STRATA_HOME`` environment variable. The workspace root is the directory
project configuration and relative layer paths are resolved against.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from .io import ensure_directory

DEFAULT_USER_CONFIG_PRIMARY = ".strata"


def get_user_config_dir(*, create: bool = False) -> Path:
    """Return the user config directory (``$STRATA_HOME`` or ``~/.strata``).

    Relative values are treated as relative to the user's home directory
    (not CWD).
    """
    raw = os.environ.get("STRATA_HOME", "").strip() or DEFAULT_USER_CONFIG_PRIMARY
    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = Path.home() / p

    resolved = p.resolve()
    if create:
        ensure_directory(resolved)
    return resolved


def resolve_workspace_root(workspace_root: Optional[Path | str] = None) -> Path:
    """Return the absolute workspace root (defaults to the current directory)."""
    if workspace_root is None:
        return Path.cwd().resolve()
    return Path(workspace_root).expanduser().resolve()


def resolve_path(raw: str, *, base: Path) -> Path:
    """Expand ``~`` and ``$VARS`` in ``raw``; relative results hang off ``base``."""
    p = Path(os.path.expandvars(os.path.expanduser(str(raw))))
    if not p.is_absolute():
        p = base / p
    return p.resolve()


__all__ = [
    "DEFAULT_USER_CONFIG_PRIMARY",
    "get_user_config_dir",
    "resolve_workspace_root",
    "resolve_path",
]
