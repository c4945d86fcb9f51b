"""Domain-specific configuration for Strata logging.

This config controls the log level and whether records go to a file or to
stderr. stdout is never used so it stays free for protocol traffic.
"""
from __future__ import annotations

import logging
from functools import cached_property
from pathlib import Path
from typing import Optional

from strata.core.utils.paths import get_user_config_dir, resolve_path

from ..base import BaseDomainConfig


class LoggingConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def level(self) -> int:
        raw = self.section.get("level", "WARNING")
        if isinstance(raw, int):
            return raw
        value = logging.getLevelName(str(raw).upper())
        return value if isinstance(value, int) else logging.WARNING

    @cached_property
    def path(self) -> Optional[Path]:
        raw = self.section.get("path")
        if not raw:
            return None
        return resolve_path(str(raw), base=get_user_config_dir(create=False))


__all__ = ["LoggingConfig"]
