"""Configuration loading, validation and typed accessors."""
from __future__ import annotations

from .cache import clear_all_caches, get_cached_config
from .manager import ConfigManager, load_config
from .model import (
    AuthSpec,
    AuthType,
    ConfigLoadResult,
    ConfigValidationError,
    LayerSpec,
    SourceSpec,
    SourceType,
    StrataConfig,
)

__all__ = [
    "ConfigManager",
    "load_config",
    "get_cached_config",
    "clear_all_caches",
    "AuthSpec",
    "AuthType",
    "ConfigLoadResult",
    "ConfigValidationError",
    "LayerSpec",
    "SourceSpec",
    "SourceType",
    "StrataConfig",
]
