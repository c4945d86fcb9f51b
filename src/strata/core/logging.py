from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from strata.core.utils.io import ensure_directory

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_CONFIGURED_TARGET: Optional[str] = None
_STRATA_HANDLER: Optional[logging.Handler] = None


def _level_from_name(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: Union[str, int] = "WARNING", log_path: Optional[Path] = None) -> None:
    """Install the single Strata handler on the ``strata`` logger.

    Records go to ``log_path`` when given, otherwise to stderr; stdout is
    left alone for protocol traffic. Idempotent per process: calling again
    with the same target only adjusts the level.
    """
    global _CONFIGURED_TARGET, _STRATA_HANDLER

    target = str(Path(log_path).resolve()) if log_path else "<stderr>"
    logger = logging.getLogger("strata")
    logger.setLevel(_level_from_name(level))

    if _CONFIGURED_TARGET == target and _STRATA_HANDLER is not None:
        _STRATA_HANDLER.setLevel(_level_from_name(level))
        return

    if _STRATA_HANDLER is not None:
        logger.removeHandler(_STRATA_HANDLER)
        _STRATA_HANDLER.close()
        _STRATA_HANDLER = None

    if log_path:
        ensure_directory(Path(target).parent)
        handler: logging.Handler = logging.FileHandler(target, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(_level_from_name(level))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    _STRATA_HANDLER = handler
    _CONFIGURED_TARGET = target


def reset_logging_for_tests() -> None:
    """Test-only: remove the Strata handler."""
    global _CONFIGURED_TARGET, _STRATA_HANDLER
    if _STRATA_HANDLER is not None:
        logging.getLogger("strata").removeHandler(_STRATA_HANDLER)
        _STRATA_HANDLER.close()
    _CONFIGURED_TARGET = None
    _STRATA_HANDLER = None


__all__ = ["configure_logging", "reset_logging_for_tests", "LOG_FORMAT"]
