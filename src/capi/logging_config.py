"""Structured logging configuration for the CAPI client.

- JSON structured logging with StructuredFormatter
- Logger hierarchy under the ``capi`` namespace
- Environment variable control (CAPI_LOG_LEVEL, CAPI_LOG_FORMAT)
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

# Keys redacted from structured output. Proxy and auth headers may end up in
# extras when requests are logged.
SENSITIVE_KEYS = {
    "password",
    "token",
    "secret",
    "authorization",
    "proxy_authorization",
    "credential",
    "auth",
    "bearer",
    "cookie",
}

# Attributes every LogRecord carries; anything else came in through extra=.
_STANDARD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    }
)


class StructuredFormatter(logging.Formatter):
    """JSON log formatter.

    Outputs one JSON object per record with:
    - timestamp: UTC ISO 8601 with 'Z' suffix
    - level: Log level name
    - logger: Logger name (capi hierarchy)
    - message: Log message (snake_case event name by convention)
    - context: Extras passed through ``extra=``, sensitive keys redacted
    - exception: Formatted traceback when exc_info is set
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else v)
            for k, v in record.__dict__.items()
            if k not in _STANDARD_FIELDS and not k.startswith("_")
        }
        if extras:
            log_data["context"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter, selected with CAPI_LOG_FORMAT=text."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure the ``capi`` logger.

    Args:
        level: Log level override. Defaults to CAPI_LOG_LEVEL (INFO).
        fmt: Output format override, ``json`` or ``text``. Defaults to
            CAPI_LOG_FORMAT (json).
    """
    if level is None:
        level = os.getenv("CAPI_LOG_LEVEL", "INFO")
    log_level = getattr(logging, level.upper(), logging.INFO)

    if fmt is None:
        fmt = os.getenv("CAPI_LOG_FORMAT", "json")
    formatter = TextFormatter() if fmt.lower() == "text" else StructuredFormatter()

    logger = logging.getLogger("capi")
    logger.setLevel(log_level)

    # Idempotent: repeated calls swap the formatter instead of stacking handlers
    if not logger.handlers:
        logger.addHandler(logging.StreamHandler())
    for handler in logger.handlers:
        handler.setFormatter(formatter)

    logger.propagate = False
