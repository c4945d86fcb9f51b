"""Tests for Strata logging setup."""
from __future__ import annotations

import logging
from pathlib import Path

from strata.core.logging import configure_logging


def _strata_handlers() -> list[logging.Handler]:
    return list(logging.getLogger("strata").handlers)


def test_configure_is_idempotent_per_target() -> None:
    configure_logging("INFO")
    configure_logging("DEBUG")

    handlers = _strata_handlers()
    assert len(handlers) == 1
    assert handlers[0].level == logging.DEBUG
    assert logging.getLogger("strata").level == logging.DEBUG


def test_file_target_replaces_stderr_handler(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "strata.log"
    configure_logging("WARNING")
    configure_logging("INFO", log_file)

    logging.getLogger("strata.core.layers.engine").info("layer loaded")
    for handler in _strata_handlers():
        handler.flush()

    assert len(_strata_handlers()) == 1
    assert "INFO strata.core.layers.engine: layer loaded" in log_file.read_text(encoding="utf-8")


def test_logging_config_section(workspace: Path, monkeypatch) -> None:
    from strata.core.config import load_config

    monkeypatch.setenv("STRATA_LOGGING__LEVEL", "debug")
    monkeypatch.setenv("STRATA_LOGGING__PATH", str(workspace / "out.log"))

    cfg = load_config(workspace).config.logging

    assert cfg.level == logging.DEBUG
    assert cfg.path == workspace / "out.log"
