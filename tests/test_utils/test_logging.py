"""
Tests for catalog_engine/utils/logging.py.

What we test
------------
  - Text and JSON formatters; ``extra=`` fields land in the JSON object.
  - configure_logging writes to the configured file and honours the level.
  - debug=True lets catalog_engine DEBUG records through at level WARNING.
"""

from __future__ import annotations

import json
import logging

import pytest

from catalog_engine.config import LoggingConfig
from catalog_engine.utils.logging import (
    PACKAGE_LOGGER,
    JsonLineFormatter,
    build_formatter,
    configure_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    package = logging.getLogger(PACKAGE_LOGGER)
    saved = (root.handlers[:], root.level, package.level)
    yield
    for handler in root.handlers:
        if handler not in saved[0]:
            handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    package.setLevel(saved[2])


def _record(msg: str = "scored %d", *args, **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({
        "name": "catalog_engine.scoring.engine",
        "levelno": logging.INFO,
        "levelname": "INFO",
        "msg": msg,
        "args": args or (3,),
    })
    record.__dict__.update(extra)
    return record


class TestFormatters:
    def test_text_format(self):
        line = build_formatter(json_format=False).format(_record())
        assert "INFO" in line
        assert "catalog_engine.scoring.engine | scored 3" in line

    def test_json_format(self):
        payload = json.loads(JsonLineFormatter().format(_record()))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "catalog_engine.scoring.engine"
        assert payload["message"] == "scored 3"
        assert payload["time"].endswith("Z")

    def test_json_includes_extra(self):
        payload = json.loads(JsonLineFormatter().format(_record(session="s-1")))
        assert payload["session"] == "s-1"

    def test_build_formatter_json(self):
        assert isinstance(build_formatter(json_format=True), JsonLineFormatter)


class TestConfigureLogging:
    def test_writes_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        configure_logging(LoggingConfig(level="INFO", log_file=str(log_file), json_format=True))
        logging.getLogger("catalog_engine.test").info("hello %s", "file")
        logging.getLogger("catalog_engine.test").debug("hidden")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["message"] for line in lines] == ["hello file"]

    def test_debug_overrides_level_for_package(self, tmp_path):
        log_file = tmp_path / "engine.log"
        configure_logging(LoggingConfig(level="WARNING", log_file=str(log_file)), debug=True)
        logging.getLogger("catalog_engine.comparison").debug("tray changed")
        logging.getLogger("somelib").info("not ours")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "tray changed" in text
        assert "not ours" not in text

    def test_no_file_handler_without_log_file(self):
        configure_logging(LoggingConfig(level="INFO", log_file=""))
        assert not any(
            isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers
        )
