"""Domain-specific configuration for topic and specialist search."""
from __future__ import annotations

from functools import cached_property
from typing import Optional

from ..base import BaseDomainConfig

DEFAULT_SEARCH_LIMIT = 10
DEFAULT_CACHE_SIZE = 256
DEFAULT_CACHE_TTL_SECONDS = 300.0


class SearchConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "search"

    @cached_property
    def default_limit(self) -> int:
        return int(self.section.get("default_limit", DEFAULT_SEARCH_LIMIT))

    @cached_property
    def cache_size(self) -> int:
        """Maximum cached search results; ``0`` turns the result cache off."""
        return int(self.section.get("cache_size", DEFAULT_CACHE_SIZE))

    @cached_property
    def cache_ttl_seconds(self) -> Optional[float]:
        """Lifetime of a cached result. ``None`` keeps it until the next reload."""
        if "cache_ttl_seconds" not in self.section:
            return DEFAULT_CACHE_TTL_SECONDS
        raw = self.section.get("cache_ttl_seconds")
        return None if raw is None else float(raw)


__all__ = ["SearchConfig", "DEFAULT_SEARCH_LIMIT", "DEFAULT_CACHE_SIZE", "DEFAULT_CACHE_TTL_SECONDS"]
