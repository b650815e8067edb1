"""
Tests for SequenceService and PeriodService.

Covers:
- counters start at 1, increase by one, are independent per name
- a rolled back savepoint gives its value back
- period overlap, close twice, unknown period
"""

from datetime import date

import pytest

from ledger_kernel.exceptions import (
    InvalidStateError,
    PeriodNotFoundError,
    PeriodOverlapError,
    ValidationError,
)
from ledger_kernel.services.sequence_service import SequenceService


class TestSequenceService:
    def test_starts_at_one_and_increments(self, session):
        sequences = SequenceService(session)
        assert [sequences.next_value("x") for _ in range(3)] == [1, 2, 3]
        assert sequences.current_value("x") == 3

    def test_independent_names(self, session):
        sequences = SequenceService(session)
        sequences.next_value("a")
        sequences.next_value("a")
        assert sequences.next_value("b") == 1

    def test_unused_sequence_has_no_value(self, session):
        assert SequenceService(session).current_value("never") is None

    def test_document_sequence_per_prefix_and_year(self):
        assert SequenceService.document_sequence("BEL", 2024) == "document:BEL:2024"

    def test_rolled_back_savepoint_returns_value(self, session):
        sequences = SequenceService(session)
        sequences.next_value("x")
        savepoint = session.begin_nested()
        sequences.next_value("x")
        savepoint.rollback()
        assert sequences.next_value("x") == 2


class TestPeriodService:
    def test_create_and_lookup(self, periods):
        periods.create_period("2024-01", "Januar", date(2024, 1, 1), date(2024, 1, 31))
        assert periods.period_for_date(date(2024, 1, 15)).period_code == "2024-01"
        assert periods.period_for_date(date(2024, 2, 1)) is None
        periods.create_period("2023-12", "Dezember", date(2023, 12, 1), date(2023, 12, 31))
        assert [p.period_code for p in periods.list_periods()] == ["2023-12", "2024-01"]

    def test_overlap_rejected(self, periods):
        periods.create_period("2024-01", "Januar", date(2024, 1, 1), date(2024, 1, 31))
        with pytest.raises(PeriodOverlapError):
            periods.create_period("2024-Q1", "Q1", date(2024, 1, 15), date(2024, 3, 31))

    def test_inverted_range_rejected(self, periods):
        with pytest.raises(ValidationError):
            periods.create_period("x", "x", date(2024, 2, 1), date(2024, 1, 1))

    def test_close_is_one_way(self, periods, clock):
        periods.create_period("2024-01", "Januar", date(2024, 1, 1), date(2024, 1, 31))
        closed = periods.close_period("2024-01")
        assert closed.is_closed
        assert closed.closed_at == clock.now()
        with pytest.raises(InvalidStateError):
            periods.close_period("2024-01")

    def test_unknown_period(self, periods):
        with pytest.raises(PeriodNotFoundError):
            periods.close_period("1999-01")
