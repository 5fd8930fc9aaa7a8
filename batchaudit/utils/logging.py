"""
Structured logging utilities for batch-audit.

One `configure_logging()` call wires the root logger for the CLI, the seed
script and the test suite. Batch lifecycle messages carry their context in
`extra=` (table, record counts, durations); the console format prints the
message only, while `LOG_JSON=true` switches to one JSON object per line with
every extra field promoted to a top-level key.

Usage:
    from batchaudit.utils.logging import configure_logging, get_logger

    configure_logging()  # level and format from settings
    log = get_logger(__name__)
    log.info("[BATCH SAVED] documents", extra={"table": "documents", "inserts": 10})
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from batchaudit.config import get_settings

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}

# Driver loggers are chatty at DEBUG (every pool check-out); keep them quieter.
_DRIVER_LOGGERS = ("psycopg", "psycopg.pool")


def _render_json(record: logging.LogRecord) -> str:
    payload: Dict[str, Any] = {
        "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key, value in vars(record).items():
        if key not in _RESERVED_ATTRS and not key.startswith("_"):
            payload[key] = value
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extras promoted to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _render_json(record)


def _logging_config(level: str, json_logs: bool) -> Dict[str, Any]:
    driver_level = "INFO" if level.upper() == "DEBUG" else "WARNING"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_logs else "console",
                "level": level,
            }
        },
        "loggers": {name: {"level": driver_level} for name in _DRIVER_LOGGERS},
        "root": {"handlers": ["default"], "level": level},
    }


def configure_logging(
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    force: bool = True,
) -> None:
    """
    Configure root logging.

    Parameters
    ----------
    level : str | None
        Logging level name; defaults to settings.log_level (LOG_LEVEL).
    json_logs : bool | None
        Emit JSON lines instead of console text; defaults to settings.log_json.
    force : bool
        Replace handlers someone else installed. With False an already
        configured root logger only has its level adjusted.
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    json_logs = settings.log_json if json_logs is None else json_logs

    root = logging.getLogger()
    if root.handlers and not force:
        root.setLevel(level)
        return
    logging.config.dictConfig(_logging_config(level, json_logs))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger"]
