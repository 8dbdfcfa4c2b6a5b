"""
Structured logging for AgroFácil.

The CLI, the sync engine and both stores log through the standard library.
`configure_logging` installs either a one-line console format or JSON lines;
structured context (collection, table, record id, counts) travels in
`extra=` and becomes top-level keys in JSON output.

Usage:
    from agrofacil.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=True, app_env="production")
    log = get_logger(__name__)
    log.info("Loaded remote snapshot", extra={"collection": "products", "rows": 3})
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as one JSON line."""
    payload: Dict[str, Any] = {
        "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key, value in vars(record).items():
        if key not in _RESERVED_ATTRS and not key.startswith("_"):
            payload[key] = value
    # Older call sites pass a single `extra` dict as an attribute.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


class EnvironmentFilter(logging.Filter):
    """Stamp every record with the deployment environment (`env`)."""

    def __init__(self, app_env: str) -> None:
        super().__init__()
        self.app_env = app_env

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "env"):
            record.env = self.app_env
        return True


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    app_env: Optional[str] = None,
) -> None:
    """
    Configure root logging, replacing any handlers installed before.

    Parameters
    ----------
    level : str
        Level name, case-insensitive ("debug", "INFO", ...).
    json_logs : bool
        Emit JSON lines instead of the console format.
    app_env : str | None
        When set, added to every record as `env`.
    """
    level = level.upper()
    handler: Dict[str, Any] = {
        "class": "logging.StreamHandler",
        "formatter": "json" if json_logs else "console",
        "level": level,
    }
    filters: Dict[str, Any] = {}
    if app_env:
        filters["environment"] = {"()": EnvironmentFilter, "app_env": app_env}
        handler["filters"] = ["environment"]

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": filters,
            "formatters": {
                "console": {
                    "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {"stderr": handler},
            "root": {"handlers": ["stderr"], "level": level},
            # asyncpg reports every pool connection attempt at DEBUG.
            "loggers": {"asyncpg": {"level": "WARNING"}},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter", "EnvironmentFilter"]
