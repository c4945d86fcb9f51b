"""Domain-specific configuration for operation timeouts.

Provides cached access to timeout settings for various operations.
"""
from __future__ import annotations

from functools import cached_property
from typing import Dict

from ..base import BaseDomainConfig

_REQUIRED_TIMEOUT_KEYS = (
    "git_operations_seconds",
    "lock_seconds",
)


class TimeoutsConfig(BaseDomainConfig):
    """Domain-specific configuration accessor for operation timeouts."""

    def _config_section(self) -> str:
        return "timeouts"

    def _validate_required_keys(self) -> None:
        """Validate that all required timeout keys are present."""
        if not self.section:
            raise RuntimeError("timeouts section missing from configuration")

        for key in _REQUIRED_TIMEOUT_KEYS:
            if key not in self.section:
                raise RuntimeError(f"timeouts.{key} missing from configuration")

    @cached_property
    def git_operations_seconds(self) -> float:
        """Get timeout for a single git clone/fetch/reset in seconds."""
        self._validate_required_keys()
        return float(self.section["git_operations_seconds"])

    @cached_property
    def lock_seconds(self) -> float:
        """Get timeout for acquiring a git cache lock in seconds."""
        self._validate_required_keys()
        return float(self.section["lock_seconds"])

    def get_all_settings(self) -> Dict[str, float]:
        """Get all timeout settings as a dict."""
        return {
            "git_operations_seconds": self.git_operations_seconds,
            "lock_seconds": self.lock_seconds,
        }


__all__ = ["TimeoutsConfig"]
