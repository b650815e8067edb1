"""
Tests for Beleg booking (DocumentService).

Covers:
- numbering BEL-<year>-<seq>
- 119 EUR purchase on 4900 / 1576 / 1200
- sales Beleg on 1400 / 8400 / 1776
- default tax key vs explicit rate, exempt bookings
- category 'sonstige' with explicit accounts
- payment and storno
- a failed booking leaves the Beleg in draft and the ledger untouched
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import LineSide
from ledger_kernel.exceptions import (
    AlreadyBookedError,
    InvalidStateError,
    PeriodClosedError,
    UnknownAccountError,
    ValidationError,
)
from ledger_kernel.models.journal import JournalEntry
from ledger_modules.documents import BelegCategory, BelegStatus


def _entry_count(session) -> int:
    return session.execute(select(func.count()).select_from(JournalEntry)).scalar_one()


def _lines(selector, entry_id):
    return [(l.account_code, l.side, l.amount) for l in selector.get_entry(entry_id).lines]


class TestCreate:
    def test_numbering_and_defaults(self, documents):
        first = documents.create_beleg("Büromaterial", 11900, document_date=date(2024, 4, 2))
        second = documents.create_beleg("Porto", 500, document_date=date(2024, 4, 3))
        assert first.document_number == "BEL-2024-0001"
        assert second.document_number == "BEL-2024-0002"
        assert first.status == BelegStatus.DRAFT.value
        assert first.category == BelegCategory.INCOMING
        assert first.version == 1

    def test_numbering_restarts_per_year(self, documents):
        documents.create_beleg("A", 100, document_date=date(2024, 12, 31))
        assert documents.create_beleg("B", 100, document_date=date(2025, 1, 1)).document_number == (
            "BEL-2025-0001"
        )

    def test_preview_totals(self, documents):
        beleg = documents.create_beleg("Büromaterial", 11900)
        assert (beleg.amount, beleg.net_amount, beleg.tax_amount) == (11900, 10000, 1900)

    @pytest.mark.parametrize("amount", [0, -100, 119.0, "11900"])
    def test_invalid_amount(self, documents, amount):
        with pytest.raises(ValidationError):
            documents.create_beleg("Büromaterial", amount)

    def test_blank_title(self, documents):
        with pytest.raises(ValidationError):
            documents.create_beleg(" ", 100)

    def test_unknown_category(self, documents):
        with pytest.raises(ValidationError, match="category"):
            documents.create_beleg("X", 100, category="privat")

    def test_unknown_account_code(self, documents):
        with pytest.raises(UnknownAccountError):
            documents.create_beleg("X", 100, account_code="4711")

    def test_rate_out_of_range(self, documents):
        with pytest.raises(ValidationError):
            documents.create_beleg("X", 100, tax_rate=Decimal("120"))


class TestBookPurchase:
    def test_119_euro_paid_from_bank(self, documents, selector, reports):
        beleg = documents.create_beleg(
            "Büromaterial", 11900, document_date=date(2024, 4, 2), contra_account_code="1200"
        )
        booked = documents.book(beleg.id)

        assert booked.status == BelegStatus.BOOKED.value
        assert booked.version == 2
        assert booked.tax_rate == Decimal("19.00")
        assert booked.account_code == "4900"
        assert _lines(selector, booked.journal_entry_id) == [
            ("4900", LineSide.DEBIT, 10000),
            ("1576", LineSide.DEBIT, 1900),
            ("1200", LineSide.CREDIT, 11900),
        ]

        entry = selector.get_entry(booked.journal_entry_id)
        assert entry.booking_date == date(2024, 4, 2)
        assert entry.reference == "BEL-2024-0001"
        assert entry.document_id == beleg.id
        assert entry.lines[0].tax_key_code == "VSt19"
        assert entry.lines[0].tax_amount == 1900

        trial = {l.account_code: l for l in reports.trial_balance().lines}
        assert trial["1200"].total_credit == 11900
        assert trial["1200"].balance == -11900
        assert trial["4900"].total_debit == 10000

    def test_default_contra_is_payable(self, documents, selector):
        booked = documents.book(documents.create_beleg("Tanken", 5950, account_code="4530").id)
        assert _lines(selector, booked.journal_entry_id)[-1] == ("1600", LineSide.CREDIT, 5950)

    def test_explicit_rate_overrides_account_key(self, documents, selector):
        beleg = documents.create_beleg(
            "Lebensmittel", 10700, account_code="3300", tax_rate=Decimal("7")
        )
        booked = documents.book(beleg.id)
        assert _lines(selector, booked.journal_entry_id) == [
            ("3300", LineSide.DEBIT, 10000),
            ("1571", LineSide.DEBIT, 700),
            ("1600", LineSide.CREDIT, 10700),
        ]

    def test_account_without_tax_key_books_exempt(self, documents, selector):
        booked = documents.book(documents.create_beleg("Miete", 80000, account_code="4210").id)
        entry = selector.get_entry(booked.journal_entry_id)
        assert [(l.account_code, l.amount) for l in entry.lines] == [("4210", 80000), ("1600", 80000)]
        assert entry.lines[0].tax_key_code == "frei"
        assert booked.tax_amount == 0

    def test_explicit_booking_date(self, documents, selector):
        beleg = documents.create_beleg("Porto", 500, document_date=date(2024, 4, 2))
        booked = documents.book(beleg.id, booking_date=date(2024, 4, 5))
        assert selector.get_entry(booked.journal_entry_id).booking_date == date(2024, 4, 5)

    def test_book_logs(self, documents, captured_logs):
        booked = documents.book(documents.create_beleg("Porto", 500).id)
        records = [r for r in captured_logs() if r["message"] == "document_booked"]
        assert records[0]["document_id"] == str(booked.id)
        assert records[0]["gross"] == 500


class TestBookSales:
    def test_outgoing_beleg(self, documents, selector):
        beleg = documents.create_beleg("Barverkauf", 23800, category="ausgang")
        booked = documents.book(beleg.id)
        assert _lines(selector, booked.journal_entry_id) == [
            ("1400", LineSide.DEBIT, 23800),
            ("8400", LineSide.CREDIT, 20000),
            ("1776", LineSide.CREDIT, 3800),
        ]


class TestOtherCategory:
    def test_explicit_accounts_without_split(self, documents, selector):
        beleg = documents.create_beleg(
            "Privateinlage",
            500000,
            category="sonstige",
            account_code="1200",
            contra_account_code="1890",
        )
        booked = documents.book(beleg.id)
        assert _lines(selector, booked.journal_entry_id) == [
            ("1200", LineSide.DEBIT, 500000),
            ("1890", LineSide.CREDIT, 500000),
        ]
        assert booked.tax_amount == 0

    def test_needs_accounts(self, documents):
        with pytest.raises(ValidationError):
            documents.create_beleg("Umbuchung", 100, category="sonstige")

    def test_tax_rate_rejected(self, documents):
        with pytest.raises(ValidationError):
            documents.create_beleg(
                "Umbuchung",
                100,
                category="sonstige",
                account_code="1200",
                contra_account_code="1000",
                tax_rate=Decimal("19"),
            )


class TestAtMostOnce:
    def test_second_book_rejected(self, documents, session):
        beleg = documents.create_beleg("Porto", 500)
        documents.book(beleg.id)
        with pytest.raises(AlreadyBookedError):
            documents.book(beleg.id)
        assert _entry_count(session) == 1

    def test_failed_booking_leaves_draft(self, documents, periods, session):
        periods.create_period("2024-04", "April", date(2024, 4, 1), date(2024, 4, 30))
        periods.close_period("2024-04")
        beleg = documents.create_beleg("Porto", 500, document_date=date(2024, 4, 10))
        with pytest.raises(PeriodClosedError):
            documents.book(beleg.id)
        assert documents.get(beleg.id).status == BelegStatus.DRAFT.value
        assert _entry_count(session) == 0
        # Same Beleg books fine on an open date
        assert documents.book(beleg.id, booking_date=date(2024, 5, 2)).status == "booked"

    def test_inactive_account_blocks_booking(self, documents, registry, chart, session):
        beleg = documents.create_beleg("Porto", 500, account_code="4930")
        registry.deactivate(chart["4930"].id)
        with pytest.raises(UnknownAccountError):
            documents.book(beleg.id)
        assert documents.get(beleg.id).status == "draft"
        assert _entry_count(session) == 0


class TestPaymentAndCancel:
    def test_payment_settles_payable(self, documents, selector, chart):
        beleg = documents.book(documents.create_beleg("Telefon", 5950, account_code="4920").id)
        paid = documents.record_payment(beleg.id, payment_date=date(2024, 6, 1))
        assert paid.status == BelegStatus.PAID.value
        assert paid.paid_at == date(2024, 6, 1)
        assert _lines(selector, paid.payment_entry_id) == [
            ("1600", LineSide.DEBIT, 5950),
            ("1200", LineSide.CREDIT, 5950),
        ]
        assert selector.balance_range(chart["1600"].id).closing_balance == 0

    def test_payment_against_cash(self, documents, selector):
        beleg = documents.book(documents.create_beleg("Porto", 500).id)
        paid = documents.record_payment(beleg.id, payment_account_code="1000")
        assert _lines(selector, paid.payment_entry_id)[1][0] == "1000"

    def test_payment_on_draft_rejected(self, documents):
        beleg = documents.create_beleg("Porto", 500)
        with pytest.raises(InvalidStateError):
            documents.record_payment(beleg.id)

    def test_payment_when_booked_against_bank_rejected(self, documents):
        beleg = documents.create_beleg("Porto", 500, contra_account_code="1200")
        documents.book(beleg.id)
        with pytest.raises(ValidationError):
            documents.record_payment(beleg.id)
        assert documents.get(beleg.id).status == "booked"

    def test_cancel_draft_posts_nothing(self, documents, session):
        cancelled = documents.cancel(documents.create_beleg("Porto", 500).id)
        assert cancelled.status == BelegStatus.CANCELLED.value
        assert cancelled.reversal_entry_id is None
        assert _entry_count(session) == 0

    def test_cancel_booked_posts_storno(self, documents, selector, chart):
        booked = documents.book(documents.create_beleg("Porto", 500).id)
        cancelled = documents.cancel(booked.id)
        storno = selector.get_entry(cancelled.reversal_entry_id)
        assert storno.reversal_of_id == booked.journal_entry_id
        for code in ("4900", "1576", "1600"):
            assert selector.balance_range(chart[code].id).closing_balance == 0

    def test_cancel_paid_rejected(self, documents):
        beleg = documents.book(documents.create_beleg("Porto", 500).id)
        documents.record_payment(beleg.id)
        with pytest.raises(InvalidStateError):
            documents.cancel(beleg.id)

    def test_cancelled_cannot_be_booked(self, documents):
        beleg = documents.cancel(documents.create_beleg("Porto", 500).id)
        with pytest.raises(InvalidStateError):
            documents.book(beleg.id)
