"""Logging setup for the order monitor (plain or structured JSON)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Request-per-tick polling makes the HTTP client's INFO lines pure noise.
_QUIET_LOGGERS = ("httpx", "httpcore")

# Passed through ``extra=`` and lifted to top-level keys so log lines can be
# filtered by poll loop, maintenance event or order.
CONTEXT_FIELDS = ("loop", "event_id", "order_id", "action")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Any of :data:`CONTEXT_FIELDS` set on the record becomes its own key;
    a free-form ``extra_data`` mapping is nested under ``data``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        extra_data = getattr(record, "extra_data", None)
        if extra_data is not None:
            log_entry["data"] = extra_data
        return json.dumps(log_entry, default=str)


def parse_level(level: str | int) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_structured_logging(
    *,
    log_file: Path | None = None,
    level: int = logging.INFO,
) -> None:
    """Configure the root logger with structured JSON output.

    Args:
        log_file: If provided, also write JSON logs to this file.
        level: Logging level (default INFO).
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    formatter = JSONFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file))
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    quiet_http_clients()


def setup_plain_logging(level: int = logging.INFO) -> None:
    """Configure human-readable console logging."""
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    quiet_http_clients()


def quiet_http_clients() -> None:
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
