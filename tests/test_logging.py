"""Unit tests for structured logging infrastructure.

- StructuredFormatter produces valid JSON with context and redaction
- configure_logging honours overrides and environment variables
- Repeated configuration does not stack handlers
"""

import json
import logging
import sys
from io import StringIO

import pytest

from capi.logging_config import StructuredFormatter, TextFormatter, configure_logging


def make_record(msg="capi_response", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="capi.transport",
        level=level,
        pathname="transport.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def capi_logger():
    """Restore the capi logger after tests that reconfigure it."""
    logger = logging.getLogger("capi")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    logger.handlers = []
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestStructuredFormatter:
    def test_required_fields(self):
        log_data = json.loads(StructuredFormatter().format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "capi.transport"
        assert log_data["message"] == "capi_response"
        assert log_data["timestamp"].endswith("Z")
        assert "context" not in log_data

    def test_extras_in_context(self):
        record = make_record(method="GET", status_code=200, duration_ms=12.5)

        log_data = json.loads(StructuredFormatter().format(record))

        assert log_data["context"] == {"method": "GET", "status_code": 200, "duration_ms": 12.5}

    def test_sensitive_keys_redacted(self):
        record = make_record(authorization="bearer abc", Proxy_Authorization="basic xyz", url="http://x")

        context = json.loads(StructuredFormatter().format(record))["context"]

        assert context["authorization"] == "[REDACTED]"
        assert context["Proxy_Authorization"] == "[REDACTED]"
        assert context["url"] == "http://x"

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        log_data = json.loads(StructuredFormatter().format(record))

        assert "RuntimeError: boom" in log_data["exception"]

    def test_non_serializable_extra(self):
        record = make_record(error=ValueError("bad"))

        log_data = json.loads(StructuredFormatter().format(record))

        assert log_data["context"]["error"] == "bad"


class TestConfigureLogging:
    def test_explicit_overrides(self, capi_logger):
        configure_logging("DEBUG", "text")

        assert capi_logger.level == logging.DEBUG
        assert capi_logger.propagate is False
        assert len(capi_logger.handlers) == 1
        assert isinstance(capi_logger.handlers[0].formatter, TextFormatter)

    def test_environment(self, capi_logger, monkeypatch):
        monkeypatch.setenv("CAPI_LOG_LEVEL", "warning")
        monkeypatch.setenv("CAPI_LOG_FORMAT", "json")

        configure_logging()

        assert capi_logger.level == logging.WARNING
        assert isinstance(capi_logger.handlers[0].formatter, StructuredFormatter)

    def test_unknown_level_falls_back_to_info(self, capi_logger):
        configure_logging("LOUD", "json")

        assert capi_logger.level == logging.INFO

    def test_idempotent(self, capi_logger):
        configure_logging("INFO", "json")
        configure_logging("INFO", "text")

        assert len(capi_logger.handlers) == 1
        assert isinstance(capi_logger.handlers[0].formatter, TextFormatter)

    def test_child_loggers_emit_json(self, capi_logger):
        stream = StringIO()
        capi_logger.addHandler(logging.StreamHandler(stream))
        configure_logging("INFO", "json")

        logging.getLogger("capi.client").info("capi_run_task", extra={"app_guid": "app-1"})

        log_data = json.loads(stream.getvalue().strip())
        assert log_data["logger"] == "capi.client"
        assert log_data["context"] == {"app_guid": "app-1"}
