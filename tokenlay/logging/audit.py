"""Structured JSON logging for SDK calls.

The SDK never installs handlers on its own; applications that want JSON
lines on stdout call setup_logging() once at startup. Optional file output
via the AUDIT_LOG_FILE env var.

Every line carries the SDK version and, while a completion is being logged,
the proxy's x-request-id so entries can be matched against Tokenlay's
dashboard. Credential-bearing fields are masked before serialization.
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone

from tokenlay.config.settings import get_settings
from tokenlay.version import VERSION

AUDIT_LOGGER_NAME = "tokenlay.audit"

# Field names (lowercased) whose values never reach a log line
SENSITIVE_FIELDS = frozenset({
    "authorization",
    "api_key",
    "tokenlay_key",
    "provider_api_key",
    "x-tokenlay-provider-key",
})
MASK = "***"

# x-request-id of the completion currently being logged
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """Formats SDK log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "sdk_version": VERSION,
        }
        request_id = request_id_var.get("")
        if request_id:
            log_entry["request_id"] = request_id
        if hasattr(record, "audit_data"):
            log_entry.update(mask_sensitive(record.audit_data))
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def mask_sensitive(data: dict) -> dict:
    """Copy of data with credential fields replaced by a mask, recursively."""
    masked = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            masked[key] = MASK
        elif isinstance(value, dict):
            masked[key] = mask_sensitive(value)
        else:
            masked[key] = value
    return masked


def setup_logging() -> None:
    """Attach a JSON handler to the tokenlay.audit logger."""
    settings = get_settings()

    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = JSONFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if settings.audit_log_file:
        file_handler = logging.FileHandler(settings.audit_log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Host application's root handlers would print every line twice
    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


class RequestTimer:
    """Context manager measuring wall-clock latency of one SDK call in ms."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
