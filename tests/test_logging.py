"""Tests for the structured logging system (homestay_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from homestay_kernel.domain.values import Category
from homestay_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "homestay_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("submitted", extra={"seq": 42, "status": "submitted"})

        record = _parse_log(stream)
        assert record["seq"] == 42
        assert record["status"] == "submitted"

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info(
            "quoted",
            extra={
                "total_fee": Decimal("3150.00"),
                "category": Category.GOLD,
                "expiry_date": date(2026, 4, 1),
                "kinds": frozenset({"renewal", "delete_rooms"}),
            },
        )

        record = _parse_log(stream)
        assert record["total_fee"] == "3150.00"
        assert record["category"] == "gold"
        assert record["expiry_date"] == "2026-04-01"
        assert record["kinds"] == ["delete_rooms", "renewal"]

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", record_id="app-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["record_id"] == "app-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from homestay_kernel.exceptions import PreconditionNotMetError

        try:
            raise PreconditionNotMetError("app-1", "submit", ["gstin", "document:revenue_papers"])
        except PreconditionNotMetError:
            logger.error("submit_refused", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PRECONDITION_NOT_MET"
        assert record["exc_type"] == "PreconditionNotMetError"
        assert record["exc_action"] == "submit"
        assert record["exc_missing"] == ["gstin", "document:revenue_papers"]

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "record_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"service_request_id": uid})

        record = _parse_log(stream)
        assert record["service_request_id"] == str(uid)

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", record_id="y")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "record_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(actor_role="dealing_assistant")
        with LogContext.bind(actor_role="district_tourism_officer"):
            assert LogContext.get_all()["actor_role"] == "district_tourism_officer"
        assert LogContext.get_all()["actor_role"] == "dealing_assistant"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "record_id" not in LogContext.get_all()
        with LogContext.bind(record_id="temp"):
            assert LogContext.get_all()["record_id"] == "temp"
        assert "record_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        LogContext.set(actor_id="owner-1")
        with LogContext.bind(actor_id=None, record_id="app-1"):
            assert LogContext.get_all() == {"actor_id": "owner-1", "record_id": "app-1"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            record_id="r",
            actor_id="a",
            actor_role="admin",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["actor_role"] == "admin"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("homestay_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.workflow_executor")
        assert logger.name == "homestay_kernel.services.workflow_executor"

    def test_logger_hierarchy(self):
        """Child loggers inherit the homestay_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "homestay_kernel.deep.nested.module"
