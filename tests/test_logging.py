"""Tests for the structured logging system (procure_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from procure_kernel.domain.workflow import DocumentStatus
from procure_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's DEBUG setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


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
        assert record["logger"] == "procure_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("document_created", extra={"document_id": 42, "code": "FB-0042-03-2026"})

        record = _parse_log(stream)
        assert record["document_id"] == 42
        assert record["code"] == "FB-0042-03-2026"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", document_ref="BUDGET:4")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["document_ref"] == "BUDGET:4"

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "typed",
            extra={
                "amount": Decimal("500000.00"),
                "status": DocumentStatus.VALIDATED,
                "at": datetime(2026, 3, 2, 9, tzinfo=timezone.utc),
            },
        )

        record = _parse_log(stream)
        assert record["amount"] == "500000.00"
        assert record["status"] == "VALIDATED"
        assert record["at"] == "2026-03-02T09:00:00+00:00"

    def test_unknown_types_fall_back_to_str(self):
        class Shelf:
            def __str__(self):
                return "shelf-4"

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("opaque", extra={"where": Shelf()})

        assert _parse_log(stream)["where"] == "shelf-4"

    def test_kernel_exception_fields_extracted(self):
        """Kernel exceptions carry a .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from procure_kernel.exceptions import InvalidTransitionError

        try:
            raise InvalidTransitionError("BUDGET", 4, "REJECTED", "validate", "document is rejected")
        except InvalidTransitionError:
            get_logger("test").error("transition_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_TRANSITION"
        assert record["exc_type"] == "InvalidTransitionError"
        assert record["exc_current_status"] == "REJECTED"
        assert record["exc_reason"] == "document is rejected"
        assert "traceback" in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "actor_id" not in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="7")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "7"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_outer_value(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_stringifies_values(self):
        with LogContext.bind(actor_id=12, organization_id=7):
            assert LogContext.get_all() == {"actor_id": "12", "organization_id": "7"}
        assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            organization_id="o",
            document_ref="PAYMENT_ORDER:1",
        )
        assert len(LogContext.get_all()) == 4


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        handlers = logging.getLogger("procure_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="DEBUG")
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "procure_kernel.deep.nested.module"

    def test_get_logger_returns_child(self):
        assert get_logger("services.workflow_engine").name == "procure_kernel.services.workflow_engine"
