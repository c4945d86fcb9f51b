"""Domain-specific configuration for the git mirror cache."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Optional

from strata.core.utils.paths import get_user_config_dir, resolve_path

from ..base import BaseDomainConfig


class CacheConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "cache"

    @cached_property
    def git_dir(self) -> Path:
        """Root directory for git mirrors (default ``$STRATA_HOME/cache/git``)."""
        user_dir = get_user_config_dir(create=False)
        raw = self.section.get("git_dir")
        if not raw:
            return user_dir / "cache" / "git"
        return resolve_path(str(raw), base=user_dir)

    @cached_property
    def git_ttl_seconds(self) -> Optional[float]:
        """Skip network sync while the last success is younger than this.

        ``None`` (the default) pulls on every sync.
        """
        raw = self.section.get("git_ttl_seconds")
        if raw is None:
            return None
        return float(raw)


__all__ = ["CacheConfig"]
