"""
Tests for LedgerService (post / reverse / verify_integrity).

Covers:
- balanced entries persist with strictly increasing seq
- imbalance, malformed drafts, unknown and inactive accounts rejected
  before anything is written
- closed periods refuse postings and stornos
- reverse swaps every side and links back; only once
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.domain.dtos import JournalEntryDraft, LineDraft, LineSide
from ledger_kernel.exceptions import (
    EntryAlreadyReversedError,
    EntryNotFoundError,
    ImbalancedEntryError,
    PeriodClosedError,
    UnknownAccountError,
    ValidationError,
)
from ledger_kernel.models.journal import JournalEntry, JournalLine


def _count_entries(session) -> int:
    return session.execute(select(func.count()).select_from(JournalEntry)).scalar_one()


RENT = [("4210", "debit", 50000), ("1200", "credit", 50000)]


class TestPost:
    def test_balanced_entry_persists(self, post_entry, session):
        record = post_entry(date(2024, 3, 1), "Miete März", RENT, reference="M-03")
        assert record.seq == 1
        assert record.total_debits == record.total_credits == 50000
        assert [line.account_code for line in record.lines] == ["4210", "1200"]
        assert record.reference == "M-03"
        assert _count_entries(session) == 1

    def test_seq_strictly_increasing(self, post_entry):
        seqs = [post_entry(date(2024, 3, d), f"Miete {d}", RENT).seq for d in (5, 1, 3)]
        assert seqs == [1, 2, 3]

    def test_split_entry_with_tax_attributes(self, ledger, chart):
        record = ledger.post(
            JournalEntryDraft(
                booking_date=date(2024, 4, 2),
                description="Büromaterial",
                lines=(
                    LineDraft.debit(
                        chart["4930"].id,
                        10000,
                        tax_key_code="VSt19",
                        tax_rate=Decimal("19"),
                        tax_amount=1900,
                    ),
                    LineDraft.debit(chart["1576"].id, 1900),
                    LineDraft.credit(chart["1200"].id, 11900),
                ),
            )
        )
        net_line = record.lines[0]
        assert net_line.tax_amount == 1900
        assert net_line.tax_rate == Decimal("19")
        # Default tax key comes from the account when the line has none
        assert record.lines[2].tax_key_code is None

    def test_imbalanced_entry_rejected_and_logged(self, post_entry, session, captured_logs):
        with pytest.raises(ImbalancedEntryError) as exc_info:
            post_entry(date(2024, 3, 1), "Falsch", [("4210", "debit", 100), ("1200", "credit", 99)])
        assert exc_info.value.debits == 100
        assert exc_info.value.credits == 99
        assert _count_entries(session) == 0
        assert any(r["message"] == "imbalanced_entry_rejected" for r in captured_logs())

    def test_single_line_rejected(self, post_entry):
        with pytest.raises(ValidationError, match="at least two lines"):
            post_entry(date(2024, 3, 1), "Einzeln", [("4210", "debit", 100)])

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_rejected(self, post_entry, amount):
        with pytest.raises(ValidationError):
            post_entry(date(2024, 3, 1), "Null", [("4210", "debit", amount), ("1200", "credit", amount)])

    def test_blank_description_rejected(self, post_entry):
        with pytest.raises(ValidationError):
            post_entry(date(2024, 3, 1), "  ", RENT)

    def test_unknown_account_rejected(self, ledger, chart, session):
        draft = JournalEntryDraft(
            booking_date=date(2024, 3, 1),
            description="Unbekannt",
            lines=(LineDraft.debit(uuid4(), 100), LineDraft.credit(chart["1200"].id, 100)),
        )
        with pytest.raises(UnknownAccountError):
            ledger.post(draft)
        assert _count_entries(session) == 0

    def test_inactive_account_rejected(self, registry, chart, post_entry):
        registry.deactivate(chart["4210"].id)
        with pytest.raises(UnknownAccountError, match="inactive"):
            post_entry(date(2024, 3, 1), "Miete", RENT)

    def test_closed_period_rejected(self, periods, post_entry, session):
        periods.create_period("2024-03", "März 2024", date(2024, 3, 1), date(2024, 3, 31))
        periods.close_period("2024-03")
        with pytest.raises(PeriodClosedError):
            post_entry(date(2024, 3, 15), "Miete", RENT)
        assert _count_entries(session) == 0

    def test_date_outside_any_period_accepted(self, periods, post_entry):
        periods.create_period("2024-03", "März 2024", date(2024, 3, 1), date(2024, 3, 31))
        assert post_entry(date(2024, 7, 1), "Miete", RENT).seq == 1


class TestReverse:
    def test_reverse_swaps_sides(self, ledger, post_entry):
        original = post_entry(date(2024, 3, 1), "Miete", RENT)
        storno = ledger.reverse(original.id)

        assert storno.reversal_of_id == original.id
        assert storno.description == "Storno: Miete"
        assert [(l.account_code, l.side) for l in storno.lines] == [
            ("4210", LineSide.CREDIT),
            ("1200", LineSide.DEBIT),
        ]
        assert storno.seq == original.seq + 1

    def test_reverse_defaults_to_today_but_not_before_original(self, ledger, post_entry, clock):
        past = post_entry(date(2024, 3, 1), "Miete", RENT)
        future = post_entry(date(2024, 9, 1), "Miete", RENT)
        assert ledger.reverse(past.id).booking_date == clock.today()
        assert ledger.reverse(future.id).booking_date == date(2024, 9, 1)

    def test_reverse_twice_rejected(self, ledger, post_entry):
        original = post_entry(date(2024, 3, 1), "Miete", RENT)
        ledger.reverse(original.id)
        with pytest.raises(EntryAlreadyReversedError):
            ledger.reverse(original.id)

    def test_reverse_unknown_entry(self, ledger, chart):
        with pytest.raises(EntryNotFoundError):
            ledger.reverse(uuid4())

    def test_reverse_on_inactive_account_allowed(self, ledger, registry, chart, post_entry):
        original = post_entry(date(2024, 3, 1), "Miete", RENT)
        registry.deactivate(chart["4210"].id)
        assert ledger.reverse(original.id).reversal_of_id == original.id

    def test_reverse_into_closed_period_rejected(self, ledger, periods, post_entry):
        original = post_entry(date(2024, 3, 1), "Miete", RENT)
        periods.create_period("2024-06", "Juni 2024", date(2024, 6, 1), date(2024, 6, 30))
        periods.close_period("2024-06")
        with pytest.raises(PeriodClosedError):
            ledger.reverse(original.id)

    def test_original_untouched(self, ledger, post_entry, session):
        original = post_entry(date(2024, 3, 1), "Miete", RENT)
        ledger.reverse(original.id)
        lines = session.execute(
            select(JournalLine).where(JournalLine.journal_entry_id == original.id)
        ).scalars().all()
        assert sorted((l.side, l.amount) for l in lines) == [("credit", 50000), ("debit", 50000)]


class TestVerifyIntegrity:
    def test_clean_ledger(self, ledger, post_entry):
        post_entry(date(2024, 3, 1), "Miete", RENT)
        assert ledger.verify_integrity() == []

    def test_corrupted_rows_reported(self, ledger, post_entry, session):
        first = post_entry(date(2024, 3, 1), "Miete", RENT)
        post_entry(date(2024, 3, 2), "Miete", RENT)
        third = post_entry(date(2024, 3, 3), "Miete", RENT)

        unregister_immutability_listeners()
        try:
            session.get(JournalEntry, third.id).seq = 4
            debit = session.execute(
                select(JournalLine).where(
                    JournalLine.journal_entry_id == first.id, JournalLine.side == "debit"
                )
            ).scalar_one()
            debit.amount = 40000
            session.flush()
        finally:
            register_immutability_listeners()

        problems = {(issue.seq, issue.problem) for issue in ledger.verify_integrity()}
        assert (1, "imbalanced: debits=40000 credits=50000") in problems
        assert (4, "sequence gap: expected seq 3") in problems
        assert (4, "sequence counter at 3, last stored seq 4") in problems
        assert len(problems) == 3
