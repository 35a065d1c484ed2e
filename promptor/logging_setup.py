"""Logger naming and one-time base configuration for promptor.

Library modules only call ``get_logger``; handlers are attached by the CLI
through ``setup_base_logger`` so embedding applications keep control of
their own logging configuration.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

BASE_LOGGER_NAME = "promptor"


class JsonLogFormatter(logging.Formatter):
    """Emit one compact JSON object per record.

    Fields are ``ts`` (UTC, millisecond precision), ``level``, ``module``
    (logger name) and ``msg``. A ``context`` dict attached through
    ``extra={"context": ...}`` is added as ``ctx``.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, object] = {
            "ts": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }
        ctx = getattr(record, "context", None)
        if isinstance(ctx, dict) and ctx:
            payload["ctx"] = ctx
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_base_logger(
    *,
    level: int = logging.WARNING,
    json_logs: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the base ``promptor`` logger once and return it.

    Repeated calls only adjust the level; the first call decides the handler
    and formatter.
    """
    base = logging.getLogger(BASE_LOGGER_NAME)
    if base.handlers:
        base.setLevel(level)
        return base

    base.setLevel(level)
    base.propagate = False
    handler = logging.StreamHandler(stream or sys.stderr)
    if json_logs:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    base.addHandler(handler)
    return base


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger namespaced under ``promptor``."""
    if not name or name == BASE_LOGGER_NAME:
        return logging.getLogger(BASE_LOGGER_NAME)
    if name.startswith(f"{BASE_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{BASE_LOGGER_NAME}.{name}")


__all__ = [
    "BASE_LOGGER_NAME",
    "JsonLogFormatter",
    "setup_base_logger",
    "get_logger",
]
