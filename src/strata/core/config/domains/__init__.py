"""Domain-specific configuration accessors.

Each class provides typed, cached access to one section of the merged
Strata configuration:

- CacheConfig: git mirror cache location and freshness
- TimeoutsConfig: git and lock timeouts
- SearchConfig: search defaults
- DiagnosticsConfig: error reporting limits
- LoggingConfig: log level and destination
"""
from __future__ import annotations

from .cache import CacheConfig
from .diagnostics import DiagnosticsConfig
from .logging import LoggingConfig
from .search import SearchConfig
from .timeouts import TimeoutsConfig

__all__ = [
    "CacheConfig",
    "DiagnosticsConfig",
    "LoggingConfig",
    "SearchConfig",
    "TimeoutsConfig",
]
