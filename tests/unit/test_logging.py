"""Tests for the structured logging system (billing_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.exceptions import OverAllocationError
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


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
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "billing_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("allocation_proposed", extra={"allocation_count": 2})

        assert _parse_log(stream)["allocation_count"] == 2

    def test_decimal_and_uuid_serialized_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("x", extra={"amount": Decimal("10.50"), "ref": uid})

        record = _parse_log(stream)
        assert record["amount"] == "10.50"
        assert record["ref"] == str(uid)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(tenant_id="1", document_id="PINV-1")
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["tenant_id"] == "1"
        assert record["document_id"] == "PINV-1"

    def test_exception_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise OverAllocationError("pay-1", Decimal("900"), Decimal("800"))
        except OverAllocationError:
            get_logger("test").exception("failed")

        record = _parse_log(stream)
        assert record["exc_type"] == "OverAllocationError"
        assert record["exc_code"] == "OVER_ALLOCATION"
        assert record["exc_excess"] == "100"
        assert "traceback" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_only_updates_given_fields(self):
        LogContext.set(tenant_id="1")
        LogContext.set(user_id="7")
        assert LogContext.get_all() == {"tenant_id": "1", "user_id": "7"}

    def test_clear(self):
        LogContext.set(correlation_id="c")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_values(self):
        LogContext.set(document_id="outer")
        with LogContext.bind(document_id="inner"):
            assert LogContext.get_all()["document_id"] == "inner"
        assert LogContext.get_all()["document_id"] == "outer"

    def test_bind_stringifies_values(self):
        with LogContext.bind(tenant_id=5):
            assert LogContext.get_all()["tenant_id"] == "5"

    def test_bind_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            LogContext.bind(patient_id="x")


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=_make_handler()[0])
        assert len(logging.getLogger("billing_kernel").handlers) == 1

    def test_level_filters_records(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        log = get_logger("test")
        log.info("dropped")
        log.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]

    def test_reset_allows_reconfiguration(self):
        configure_logging(handler=_make_handler()[0])
        reset_logging()
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("again")

        assert _parse_log(stream)["message"] == "again"
