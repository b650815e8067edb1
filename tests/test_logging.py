"""Tests for ledger_kernel.logging_config."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import DocumentNotFoundError, PeriodClosedError
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging(monkeypatch):
    """Each test configures logging itself; the suite setup is restored afterwards."""
    monkeypatch.delenv("LEDGER_LOG_LEVEL", raising=False)
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def stream():
    out = StringIO()
    configure_logging(stream=out)
    return out


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def test_envelope(self, stream):
        get_logger("services.ledger").info("journal_entry_posted", extra={"seq": 3})

        (record,) = _records(stream)
        assert record["message"] == "journal_entry_posted"
        assert record["logger"] == "ledger_kernel.services.ledger"
        assert record["level"] == "INFO"
        assert record["seq"] == 3
        assert record["ts"].endswith("+00:00")

    def test_domain_values_serialized(self, stream):
        entry_id = uuid4()
        get_logger("test").info(
            "document_booked",
            extra={
                "entry_id_value": entry_id,
                "tax_rate": Decimal("19.00"),
                "booking_date": date(2024, 5, 2),
                "title": "Bürobedarf",
            },
        )

        (record,) = _records(stream)
        assert record["entry_id_value"] == str(entry_id)
        assert record["tax_rate"] == "19.00"
        assert record["booking_date"] == "2024-05-02"
        assert "Bürobedarf" in stream.getvalue()

    def test_context_fields(self, stream):
        with LogContext.bind(correlation_id="req-1", document_id="doc-9"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _records(stream)
        assert (inside["correlation_id"], inside["document_id"]) == ("req-1", "doc-9")
        assert "correlation_id" not in outside

    def test_context_and_extra_together(self, stream):
        LogContext.set(entry_id="from-context")
        get_logger("test").info("msg", extra={"amount": 500})
        (record,) = _records(stream)
        assert (record["entry_id"], record["amount"]) == ("from-context", 500)

    def test_plain_exception(self, stream):
        try:
            raise RuntimeError("kaputt")
        except RuntimeError:
            get_logger("test").exception("storage_error")

        (record,) = _records(stream)
        assert (record["exc_type"], record["exc_message"]) == ("RuntimeError", "kaputt")
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_ledger_error_fields(self, stream):
        try:
            raise PeriodClosedError("2024-05", "2024-05-15")
        except PeriodClosedError:
            get_logger("test").error("post_rejected", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_code"] == "PERIOD_CLOSED"
        assert record["exc_period_code"] == "2024-05"
        assert record["exc_booking_date"] == "2024-05-15"
        assert record["exc_step"] == "post"

    def test_document_not_found_fields(self, stream):
        try:
            raise DocumentNotFoundError("abc", "invoice")
        except DocumentNotFoundError:
            get_logger("test").warning("lookup_failed", exc_info=True)
        assert _records(stream)[0]["exc_code"] == "DOCUMENT_NOT_FOUND"


class TestLogContext:
    def test_bind_restores_previous_value(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", entry_id="e1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "entry_id": "e1"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(ValueError):
            with LogContext.bind(actor_id="a"):
                raise ValueError
        assert LogContext.get_all() == {}

    def test_none_ignored(self):
        LogContext.set(actor_id=None, document_id="d")
        with LogContext.bind(entry_id=None):
            assert LogContext.get_all() == {"document_id": "d"}

    def test_values_stored_as_strings(self):
        uid = uuid4()
        LogContext.set(document_id=uid)
        assert LogContext.get_all()["document_id"] == str(uid)

    @pytest.mark.parametrize("call", ["set", "bind"])
    def test_unknown_field_rejected(self, call):
        with pytest.raises(KeyError):
            if call == "set":
                LogContext.set(trace_id="t")
            else:
                with LogContext.bind(trace_id="t"):
                    pass


class TestConfigureLogging:
    def test_second_call_is_a_no_op(self):
        first = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=logging.StreamHandler(StringIO()))
        # pytest's own capture handler may sit on the logger as well
        ours = [
            h
            for h in logging.getLogger("ledger_kernel").handlers
            if not type(h).__module__.startswith("_pytest")
        ]
        assert ours == [first]
        assert isinstance(first.formatter, StructuredFormatter)

    def test_default_level_is_info(self, stream):
        logger = get_logger("test")
        logger.debug("hidden")
        logger.info("shown")
        assert [r["message"] for r in _records(stream)] == ["shown"]

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "warning")
        configure_logging(stream=StringIO())
        assert logging.getLogger("ledger_kernel").level == logging.WARNING

    def test_bad_environment_level(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "LAUT")
        with pytest.raises(ValueError, match="LEDGER_LOG_LEVEL"):
            configure_logging(stream=StringIO())

    def test_does_not_propagate_to_root(self, stream):
        assert logging.getLogger("ledger_kernel").propagate is False
