"""
Structured logging for the REST API, the gateway and the CLI.

Keyword arguments passed to a logger call travel with the record as
``extra_data``. Production renders one JSON object per line; development
renders a colored single line with the context appended.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "redis": logging.WARNING,
}


def _request_id(record: logging.LogRecord) -> str | None:
    request_id = getattr(record, "request_id", None)
    return request_id if request_id and request_id != "-" else None


class StructuredFormatter(logging.Formatter):
    """One JSON document per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if request_id := _request_id(record):
            entry["request_id"] = request_id
        if data := getattr(record, "extra_data", None):
            entry["data"] = data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.filename}:{record.lineno} {record.funcName}"
        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Readable console output: ``[12:01:33] INFO  [a1b2c3d4] rest_api.kitchen: msg (k=v)``."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        parts = [f"{color}[{datetime.now():%H:%M:%S}] {record.levelname:8}{self.RESET}"]
        if request_id := _request_id(record):
            parts.append(f"{self.DIM}[{request_id[:8]}]{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")
        line = " ".join(parts)

        if data := getattr(record, "extra_data", None):
            line += " (" + ", ".join(f"{key}={value}" for key, value in data.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose keyword arguments become structured context::

        logger.info("Ticket advanced", ticket_id=7, status="READY")
        logger.error("Publish failed", topic="admins", exc_info=True)
    """

    def _log_with_data(self, level: int, msg: str, args: tuple, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        extra = kwargs.pop("extra", None) or {}
        extra["extra_data"] = kwargs or None
        self._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Safe to call more than once."""
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers[:] = [handler]

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_email(email: str | None) -> str:
    """``"mozo@demo.com"`` -> ``"mo***@demo.com"``, for login logs."""
    if not email:
        return "<no-email>"
    local, sep, domain = email.partition("@")
    if not sep:
        return "***@invalid"
    return f"{local[:2] if len(local) > 2 else local[:1]}***@{domain}"


rest_api_logger = get_logger("rest_api")
ws_gateway_logger = get_logger("ws_gateway")
kitchen_logger = get_logger("rest_api.kitchen")
tables_logger = get_logger("rest_api.tables")
orders_logger = get_logger("rest_api.orders")
auth_logger = get_logger("rest_api.auth")
