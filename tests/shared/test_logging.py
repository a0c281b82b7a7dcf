"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging

import pytest

from clipvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from clipvault.shared.logging import (
    StructuredFormatter,
    log_operation_error,
    log_operation_success,
    setup_structured_logger,
)


@pytest.fixture
def error() -> InfrastructureError:
    return InfrastructureError(
        ErrorCode.STORAGE_WRITE_FAILED,
        "write failed",
        ErrorContext(operation="blob_set", additional_data={"key": "clips:liked"}),
    )


class TestStructuredFormatter:
    """JSON rendering of log records."""

    def test_formats_extras_as_json(self):
        record = logging.LogRecord("clipvault", logging.INFO, __file__, 1, "hello %s", ("x",), None)
        record.operation = "fetch_page"
        record.duration_ms = 1.5

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello x"
        assert entry["level"] == "INFO"
        assert entry["operation"] == "fetch_page"
        assert entry["duration_ms"] == 1.5


class TestLogOperationError:
    """Error logging with context."""

    def test_logs_code_and_context(self, caplog, error):
        logger = logging.getLogger("test.clipvault")

        with caplog.at_level(logging.WARNING, logger="test.clipvault"):
            log_operation_error(logger, error, additional_context={"attempt": 2}, level=logging.WARNING)

        [record] = caplog.records
        assert record.levelno == logging.WARNING
        assert record.error_code == "STORAGE_WRITE_FAILED"
        assert record.operation == "blob_set"
        assert record.context["additional_data"] == {"key": "clips:liked"}
        assert record.context["attempt"] == 2

    def test_explicit_operation_wins(self, caplog, error):
        logger = logging.getLogger("test.clipvault")

        with caplog.at_level(logging.ERROR, logger="test.clipvault"):
            log_operation_error(logger, error, operation="flush")

        assert caplog.records[0].operation == "flush"


class TestLogOperationSuccess:
    """Debug records for successful operations."""

    def test_logs_duration(self, caplog):
        logger = logging.getLogger("test.clipvault")

        with caplog.at_level(logging.DEBUG, logger="test.clipvault"):
            log_operation_success(logger, "fetch_page", 12.34567, {"count": 2})

        [record] = caplog.records
        assert record.levelno == logging.DEBUG
        assert record.duration_ms == 12.346
        assert record.result_info == {"count": 2}


class TestSetupStructuredLogger:
    """Logger configuration."""

    def test_json_console_and_file(self, tmp_path):
        log_file = tmp_path / "clipvault.log"

        logger = setup_structured_logger(
            "clipvault.setup_test",
            level="DEBUG",
            log_file=str(log_file),
            use_rich_console=False,
        )
        logger.info("ready")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 2
        assert json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])["message"] == "ready"

        for handler in logger.handlers:
            handler.close()

    def test_rich_console_handler(self):
        from rich.logging import RichHandler

        logger = setup_structured_logger("clipvault.rich_test")

        assert isinstance(logger.handlers[0], RichHandler)
