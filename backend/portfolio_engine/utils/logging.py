# backend/portfolio_engine/utils/logging.py
"""
Logging configuration for the portfolio engine.

One stdout handler on the root logger, stamped with the request
correlation ID, in either a human-readable text layout or one JSON
object per line for log aggregation.

Usage:
    from portfolio_engine.utils import setup_logging

    setup_logging()                      # level/format from settings
    setup_logging(level="DEBUG")         # cache hits/misses, adapter payloads

Level conventions used across the services:
    DEBUG   - cache hits/misses, coalesced waits, raw adapter fields
    INFO    - resolved quotes, forced refreshes, FX rate refreshes
    WARNING - adapter failures and fallbacks, stale serves, retries
    ERROR   - every source exhausted for a symbol
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from portfolio_engine.config import settings
from portfolio_engine.utils.context import get_correlation_id

# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

# Third-party loggers lowered to WARNING
NOISY_LOGGERS = [
    "yfinance",
    "peewee",
    "urllib3",
    "httpx",
    "httpcore",
    "asyncio",
]

# LogRecord attributes that are not user-supplied "extra" fields
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation_id"}


# =============================================================================
# FILTER / FORMATTER
# =============================================================================

class CorrelationIdFilter(logging.Filter):
    """Adds `correlation_id` to every record passing through the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Fields passed via `extra=` are nested under "extra"; values that are
    not JSON serializable are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


# =============================================================================
# SETUP
# =============================================================================

def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure the root logger. Safe to call more than once.

    Args:
        level: Log level name; defaults to settings.log_level
        log_format: "text" or "json"; defaults to settings.log_format

    Raises:
        ValueError: If the level name is unknown
    """
    level_name = (level or settings.log_level).upper().strip()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        raise ValueError(f"Invalid log level: '{level_name}'")

    format_type = (log_format or settings.log_format).lower()
    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level_name}, format={format_type}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
