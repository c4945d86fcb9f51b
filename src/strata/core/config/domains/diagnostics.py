"""Domain-specific configuration for diagnostics output."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class DiagnosticsConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "diagnostics"

    @cached_property
    def max_errors(self) -> int:
        """How many per-layer errors diagnostics expose (default 10)."""
        return int(self.section.get("max_errors", 10))


__all__ = ["DiagnosticsConfig"]
