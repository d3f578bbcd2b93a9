"""
Unit tests for logging and metrics helpers
"""
import io
import json
import logging

import pytest

from siteledger.core.errors import DuplicateKeyError, SiteNotFoundError
from siteledger.observability.logger import log_operation, setup_logger
from siteledger.observability.metrics import (
    REGISTRY,
    generate_metrics,
    record_store_error,
)


@pytest.fixture
def json_logger(monkeypatch):
    """Logger writing JSON lines into an in-memory buffer"""
    buffer = io.StringIO()
    monkeypatch.setattr("sys.stdout", buffer)
    logger = setup_logger("siteledger_test_json", level="DEBUG", format_type="json")
    yield logger, buffer
    logger.handlers.clear()


def read_records(buffer):
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestLogger:
    """Tests for structured logging"""

    def test_json_fields(self, json_logger):
        logger, buffer = json_logger

        logger.info("Site created", extra={"primary_key": "ACME_P0001"})

        record = read_records(buffer)[0]
        assert record["message"] == "Site created"
        assert record["level"] == "INFO"
        assert record["logger"] == "siteledger_test_json"
        assert record["primary_key"] == "ACME_P0001"
        assert "timestamp" in record

    def test_text_format(self, monkeypatch):
        buffer = io.StringIO()
        monkeypatch.setattr("sys.stdout", buffer)
        logger = setup_logger("siteledger_test_text", level="INFO", format_type="text")

        logger.info("plain message")
        logger.debug("hidden")
        logger.handlers.clear()

        output = buffer.getvalue()
        assert "plain message" in output
        assert "hidden" not in output

    def test_level_from_argument(self):
        logger = setup_logger("siteledger_test_level", level="warning")
        try:
            assert logger.level == logging.WARNING
        finally:
            logger.handlers.clear()


class TestLogOperation:
    """Tests for the log_operation context manager"""

    def test_success(self, json_logger):
        logger, buffer = json_logger

        with log_operation("Create production site", logger=logger, category="production"):
            pass

        records = read_records(buffer)
        assert records[0]["message"] == "Starting: Create production site"
        assert records[1]["status"] == "success"
        assert records[1]["category"] == "production"
        assert "duration_seconds" in records[1]

    def test_failure_is_logged_and_propagated(self, json_logger):
        logger, buffer = json_logger

        with pytest.raises(KeyError):
            with log_operation("Delete site", logger=logger):
                raise KeyError("ACME_P0001")

        failure = read_records(buffer)[-1]
        assert failure["level"] == "ERROR"
        assert failure["status"] == "error"
        assert failure["error_type"] == "KeyError"

    def test_retryable_failure_logged_as_warning(self, json_logger):
        """Test a lost creation race is a warning carrying its error code"""
        logger, buffer = json_logger

        with pytest.raises(DuplicateKeyError):
            with log_operation("Create production site", logger=logger):
                raise DuplicateKeyError("ACME_P0001")

        failure = read_records(buffer)[-1]
        assert failure["level"] == "WARNING"
        assert failure["error_type"] == "DuplicateKeyError"
        assert failure["error_code"] == "DUPLICATE_KEY"
        assert "exc_info" not in failure

    def test_error_code_attached_to_exception_records(self, json_logger):
        logger, buffer = json_logger

        try:
            raise SiteNotFoundError("ACME_P0009")
        except SiteNotFoundError:
            logger.exception("lookup failed")

        record = read_records(buffer)[-1]
        assert record["error_code"] == "SITE_NOT_FOUND"
        assert record["retryable"] is False


class TestMetrics:
    """Tests for metrics helpers"""

    def test_record_store_error(self):
        labels = {"operation": "scan", "error_type": "TimeoutError"}
        before = REGISTRY.get_sample_value("siteledger_store_errors_total", labels) or 0

        record_store_error("scan", TimeoutError("slow"))

        assert REGISTRY.get_sample_value("siteledger_store_errors_total", labels) == before + 1

    def test_generate_metrics(self):
        output = generate_metrics().decode()

        assert "siteledger_sites_created_total" in output
        assert "siteledger_id_allocation_duration_seconds" in output
