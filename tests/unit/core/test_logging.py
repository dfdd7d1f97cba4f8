"""Tests for logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from nodestrap.core.logging import add_log_file, configure_logging, get_logger


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.parametrize(
        "flags,level",
        [
            ({}, logging.WARNING),
            ({"verbose": True}, logging.INFO),
            ({"debug": True}, logging.DEBUG),
            ({"debug": True, "quiet": True}, logging.ERROR),
        ],
    )
    def test_levels(self, flags, level) -> None:
        with patch("nodestrap.core.logging.logging.basicConfig") as basic_config:
            configure_logging(**flags)
        assert basic_config.call_args.kwargs["level"] == level


def test_add_log_file(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "nodestrap.log"
    handler = add_log_file(path)
    try:
        get_logger("nodestrap.test").error("written to file")
        handler.flush()
        assert "written to file" in path.read_text(encoding="utf-8")
    finally:
        logging.getLogger().removeHandler(handler)
        handler.close()


def test_get_logger_name() -> None:
    assert get_logger("nodestrap.x").name == "nodestrap.x"
