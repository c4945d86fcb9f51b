"""Centralized configuration caching.

Provides a single source of truth for loaded configuration. The cache key
covers the workspace root, every ``STRATA_*`` environment variable and the
mtime/size of each participating config file, so edits to any of them are
picked up on the next call without an explicit clear.
"""
from __future__ import annotations

import hashlib
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from strata.core.utils.paths import resolve_workspace_root

if TYPE_CHECKING:
    from .model import ConfigLoadResult

_config_cache: Dict[str, "ConfigLoadResult"] = {}
_cache_guard = threading.Lock()


def _fingerprint_files(paths: List[Path]) -> List[Tuple[str, int, int]]:
    files: List[Tuple[str, int, int]] = []
    for p in paths:
        try:
            st = p.stat()
            files.append((str(p), int(st.st_mtime_ns), int(st.st_size)))
        except OSError:
            files.append((str(p), 0, 0))
    return files


def _cache_key(workspace_root: Path) -> str:
    from .manager import ConfigManager

    env_items = sorted((k, v) for k, v in os.environ.items() if k.startswith("STRATA_"))
    env_fp = hashlib.sha256(repr(env_items).encode("utf-8")).hexdigest()[:12]

    files = ConfigManager(workspace_root).config_files()
    cfg_fp = hashlib.sha256(repr(_fingerprint_files(files)).encode("utf-8")).hexdigest()[:12]

    return f"{workspace_root}:env={env_fp}:cfg={cfg_fp}"


def get_cached_config(workspace_root: Optional[Path] = None) -> "ConfigLoadResult":
    """Get the configuration load result with caching.

    Returns the same ``ConfigLoadResult`` instance while the workspace,
    environment and config files are unchanged. Treat it as immutable.
    """
    root = resolve_workspace_root(workspace_root)
    key = _cache_key(root)

    with _cache_guard:
        cached = _config_cache.get(key)
    if cached is not None:
        return cached

    from .manager import ConfigManager

    result = ConfigManager(root).load()
    with _cache_guard:
        return _config_cache.setdefault(key, result)


def clear_all_caches() -> None:
    """Clear all configuration caches.

    Call this when configuration has changed in a way the fingerprint
    cannot see.
    """
    with _cache_guard:
        _config_cache.clear()


__all__ = ["get_cached_config", "clear_all_caches"]
