"""
Structured logging for siteledger

Every module logs through a child of the ``siteledger`` logger, which writes
one JSON object per line to stdout (or a plain text line for local runs).
Site ledger errors attach their error code and retryability to the record,
so a collision that the caller will retry is distinguishable from a real
store failure without parsing messages.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "siteledger"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(module)s:%(funcName)s - %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding timestamp, level, logger, module, function and thread.

    When the record carries a SiteLedgerError in ``exc_info`` its
    ``error_code`` and ``retryable`` flag are copied into the output.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = (log_record.get("level") or record.levelname).upper()
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        # Concurrent creations run on pool threads
        log_record["thread"] = record.threadName

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            if hasattr(error, "error_code"):
                log_record.setdefault("error_code", error.error_code)
                log_record.setdefault("retryable", getattr(error, "retryable", False))


def _build_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return CustomJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure a logger with a single stdout handler.

    Calling it again replaces the handler, so the CLI can reconfigure the
    package logger once settings are loaded.

    Args:
        name: Logger name
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (defaults to env var LOG_LEVEL)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT, then json)

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(_build_formatter(format_type or os.getenv("LOG_FORMAT") or "json"))

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Return a logger under the ``siteledger`` hierarchy.

    The package logger is configured from the environment on first use;
    module loggers (``siteledger.core.site_service`` etc.) propagate to it.
    """
    package_logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not package_logger.handlers:
        setup_logger(DEFAULT_LOGGER_NAME)

    return logging.getLogger(name)


class log_operation:
    """
    Context manager logging the start, outcome and duration of an operation.

    Retryable site ledger errors (a duplicate key after a lost race, a
    transient store failure) are logged at WARNING without a traceback;
    anything else is logged at ERROR with one. Exceptions always propagate.

    Usage:
        with log_operation("Create production site", logger=logger, company_id="ACME"):
            ...
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time = None

    def _fields(self, **fields) -> dict:
        return {"operation": self.operation_name, **fields, **self.extra_fields}

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.debug(f"Starting: {self.operation_name}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = round(time.monotonic() - self.start_time, 3)

        if exc_type is None:
            self.logger.info(
                f"Completed: {self.operation_name}",
                extra=self._fields(duration_seconds=duration, status="success"),
            )
            return False

        fields = self._fields(
            duration_seconds=duration,
            status="error",
            error_type=exc_type.__name__,
            error_message=str(exc_val),
        )
        if hasattr(exc_val, "error_code"):
            fields["error_code"] = exc_val.error_code
        if getattr(exc_val, "retryable", False):
            self.logger.warning(f"Failed (retryable): {self.operation_name}", extra=fields)
        else:
            self.logger.error(
                f"Failed: {self.operation_name}",
                extra=fields,
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
