"""Base class for domain-specific configuration accessors.

Provides a standardized pattern for all domain configs with:
- Centralized caching via cache.py
- Type-safe section access over one merged settings mapping
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


class BaseDomainConfig(ABC):
    """Abstract base class for domain-specific configuration accessors.

    Usage:
        class MyConfig(BaseDomainConfig):
            def _config_section(self) -> str:
                return "mySection"

            @cached_property
            def my_setting(self) -> str:
                return self.section.get("mySetting", "default")

        cfg = MyConfig(settings)                      # explicit merged dict
        cfg = MyConfig(workspace_root=Path("/proj"))  # loaded via the cache
    """

    def __init__(
        self,
        settings: Optional[Mapping[str, Any]] = None,
        *,
        workspace_root: Optional[Path] = None,
    ) -> None:
        """Initialize domain config.

        Args:
            settings: Merged configuration mapping. Loaded through
                ``get_cached_config`` when omitted.
            workspace_root: Workspace used for the cached load.
        """
        if settings is None:
            from .cache import get_cached_config

            settings = get_cached_config(workspace_root).raw
        self._config = settings

    @abstractmethod
    def _config_section(self) -> str:
        """Return the top-level config key for this domain."""
        ...

    @cached_property
    def section(self) -> Dict[str, Any]:
        """Get this domain's configuration section (empty dict when absent)."""
        return dict(self._config.get(self._config_section(), {}) or {})


__all__ = ["BaseDomainConfig"]
