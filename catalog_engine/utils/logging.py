"""
Root logger setup for CLI runs.

``configure_logging`` is called once per CLI command. Library modules only
ever do ``logger = logging.getLogger(__name__)``.

Output goes to stderr (commands print JSON on stdout) and, when
``log_file`` is set, to that file as well. With ``json_format = true`` each
record becomes one JSON line::

    {"time": "2025-06-01T12:00:00Z", "level": "INFO",
     "logger": "catalog_engine.pipeline.base", "message": "..."}

Anything passed through ``extra=`` (``session``, ``product_id`` ...) is
copied into the JSON object.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from catalog_engine.config import LoggingConfig

PACKAGE_LOGGER = "catalog_engine"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(TIME_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (k, v) for k, v in vars(record).items()
            if k not in _RESERVED and not k.startswith("_")
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    formatter = logging.Formatter(TEXT_FORMAT, datefmt=TIME_FORMAT)
    formatter.converter = time.gmtime
    return formatter


def _build_handlers(config: "LoggingConfig") -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        path = Path(config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    return handlers


def configure_logging(config: "LoggingConfig", debug: bool = False) -> None:
    """Install handlers on the root logger.

    Args:
        config: ``AppConfig.logging``.
        debug:  ``AppConfig.debug``; forces DEBUG for ``catalog_engine.*``
                whatever ``config.level`` says.
    """
    level = logging.getLevelName(config.level)
    formatter = build_formatter(config.json_format)
    handlers = _build_handlers(config)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if debug else logging.NOTSET)
    logging.getLogger("pyarrow").setLevel(logging.WARNING)
