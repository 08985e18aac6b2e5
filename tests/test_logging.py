"""Tests for the structured logging system (attendance_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from attendance_kernel.domain.records import DtrStatus
from attendance_kernel.exceptions import ScheduleAmbiguityError
from attendance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
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
        assert record["logger"] == "attendance_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("computed", extra={"late_minutes": 2, "status": "present"})

        record = _parse_log(stream)
        assert record["late_minutes"] == 2
        assert record["status"] == "present"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(employee_id="emp-1", work_date="2025-02-13"):
            get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["employee_id"] == "emp-1"
        assert record["work_date"] == "2025-02-13"

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("values", extra={
            "record_id": uid,
            "work_date": date(2025, 2, 13),
            "rate": Decimal("1.10"),
            "status_enum": DtrStatus.PRESENT,
        })

        record = _parse_log(stream)
        assert record["record_id"] == str(uid)
        assert record["work_date"] == "2025-02-13"
        assert record["rate"] == "1.10"
        assert record["status_enum"] == "present"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        """Kernel exceptions carry a .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ScheduleAmbiguityError("emp-1", date(2025, 2, 13), ["a1", "a2"])
        except ScheduleAmbiguityError:
            get_logger("test").error("schedule_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "SCHEDULE_AMBIGUOUS"
        assert record["exc_work_date"] == "2025-02-13"
        assert record["exc_assignment_ids"] == ["a1", "a2"]

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "employee_id" not in record
        assert "batch_id" not in record

    def test_debug_suppressed_at_info(self):
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

    def test_bind_and_get(self):
        with LogContext.bind(employee_id="x", batch_id="y"):
            assert LogContext.get_all() == {"employee_id": "x", "batch_id": "y"}

    def test_clear(self):
        with LogContext.bind(employee_id="x"):
            LogContext.clear()
            assert LogContext.get_all() == {}

    def test_nested_bind_restores_outer_value(self):
        with LogContext.bind(work_date="2025-02-13"):
            with LogContext.bind(work_date="2025-02-14"):
                assert LogContext.get_all()["work_date"] == "2025-02-14"
            assert LogContext.get_all()["work_date"] == "2025-02-13"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        with LogContext.bind(batch_id="temp"):
            assert LogContext.get_all()["batch_id"] == "temp"
        assert "batch_id" not in LogContext.get_all()

    def test_bind_stringifies_and_ignores_unknown(self):
        uid = uuid4()
        with LogContext.bind(employee_id=uid, not_a_field="z"):
            assert LogContext.get_all() == {"employee_id": str(uid)}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("attendance_kernel").handlers == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("modules.dtr.service").name == "attendance_kernel.modules.dtr.service"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "attendance_kernel.deep.nested.module"
