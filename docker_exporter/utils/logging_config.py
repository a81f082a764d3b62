"""
Logging configuration: JSON-lines records on stdout (and optionally a file)
with per-scrape correlation IDs.
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render a record as one compact JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        rec: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "caller": f"{record.module}:{record.lineno}",
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            rec[key] = value
        if record.exc_info:
            rec["stacktrace"] = self.formatException(record.exc_info)
        return json.dumps(rec, separators=(",", ":"), ensure_ascii=False, default=str)


def parse_log_level(level: str) -> int:
    """Map a textual level to a logging constant; unknown values mean INFO."""
    return LOG_LEVELS.get((level or "").lower(), logging.INFO)


def setup_logging(level: str = "info", log_path: Optional[str] = None) -> logging.Logger:
    """Configure the root logger for the exporter process.

    Records always go to stdout. When ``log_path`` is given they are also
    appended to that file; a file that cannot be opened is reported and
    skipped rather than aborting startup.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = JsonFormatter()
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_path:
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            root.warning("Could not open log file %s: %s", log_path, e)
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    root.setLevel(parse_log_level(level))
    # docker-py logs every HTTP round trip through urllib3 at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return root


def generate_correlation_id() -> str:
    """Generate a short correlation ID for one scrape."""
    return uuid.uuid4().hex[:12]


class SystemLogger:
    """Logger wrapper that stamps every record with a correlation ID."""

    def __init__(self, name: str, correlation_id: Optional[str] = None):
        self.name = name
        self.correlation_id = correlation_id or "system"
        self._logger = logging.getLogger(name)

    def _log_with_context(self, level: int, message: str, exc_info: bool = False, **kwargs) -> None:
        extra = {"correlation_id": self.correlation_id}
        if kwargs:
            extra.update(kwargs)
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        self._log_with_context(logging.ERROR, message, exc_info=True, **kwargs)

    def set_correlation_id(self, correlation_id: str) -> None:
        """Set the correlation ID for this logger."""
        self.correlation_id = correlation_id


def get_logger(name: str, correlation_id: Optional[str] = None) -> SystemLogger:
    """Get a standardized logger instance."""
    return SystemLogger(name, correlation_id)
