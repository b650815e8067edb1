"""
Tests for outgoing invoices.

Covers:
- line-based invoices: net per line, tax per rate, receivable first
- mixed rates and per-line revenue accounts
- book -> send -> pay; 238 EUR paid into the bank account
- at-most-once booking
- draft editing with version check, deletion
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import LineSide
from ledger_kernel.exceptions import (
    AlreadyBookedError,
    ConflictError,
    DocumentNotFoundError,
    InvalidStateError,
    ValidationError,
)
from ledger_kernel.models.journal import JournalEntry
from ledger_modules.documents import DocumentLineInput, InvoiceStatus


def _lines(selector, entry_id):
    return [(l.account_code, l.side, l.amount) for l in selector.get_entry(entry_id).lines]


def _consulting(hours="2", price=10000, **kwargs):
    return DocumentLineInput(
        description="Beratung", quantity=Decimal(hours), unit_price=price, **kwargs
    )


class TestCreate:
    def test_totals_from_lines(self, documents):
        invoice = documents.create_invoice("Beratung März", [_consulting()])
        assert invoice.document_number.startswith("RE-2024-")
        assert invoice.status == InvoiceStatus.DRAFT.value
        assert (invoice.net_amount, invoice.tax_amount, invoice.amount) == (20000, 3800, 23800)
        assert invoice.lines[0].net_amount == 20000

    def test_fractional_quantity_rounds_half_up(self, documents):
        invoice = documents.create_invoice(
            "Kleinteile", [DocumentLineInput("Schrauben", Decimal("1.5"), 333)]
        )
        # 1.5 * 333 = 499.5 -> 500
        assert invoice.net_amount == 500

    def test_needs_lines_or_amount(self, documents):
        with pytest.raises(ValidationError):
            documents.create_invoice("Leer")

    def test_line_needs_description(self, documents):
        with pytest.raises(ValidationError):
            documents.create_invoice("X", [DocumentLineInput(" ", Decimal("1"), 100)])

    def test_line_needs_positive_quantity(self, documents):
        with pytest.raises(ValidationError):
            documents.create_invoice("X", [DocumentLineInput("Y", Decimal("0"), 100)])

    def test_gross_amount_invoice(self, documents):
        invoice = documents.create_invoice("Pauschale", amount=11900)
        assert (invoice.net_amount, invoice.tax_amount) == (10000, 1900)


class TestBook:
    def test_single_rate(self, documents, selector):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        booked = documents.book(invoice.id)
        assert _lines(selector, booked.journal_entry_id) == [
            ("1400", LineSide.DEBIT, 23800),
            ("8400", LineSide.CREDIT, 20000),
            ("1776", LineSide.CREDIT, 3800),
        ]
        assert booked.tax_rate == Decimal("19.00")

    def test_mixed_rates(self, documents, selector):
        invoice = documents.create_invoice(
            "Catering",
            [
                DocumentLineInput("Speisen", Decimal("1"), 10000, account_code="8300"),
                DocumentLineInput("Getränke", Decimal("1"), 5000),
                DocumentLineInput("Service", Decimal("1"), 5000),
            ],
        )
        booked = documents.book(invoice.id)
        assert _lines(selector, booked.journal_entry_id) == [
            ("1400", LineSide.DEBIT, 10700 + 11900),
            ("8300", LineSide.CREDIT, 10000),
            ("8400", LineSide.CREDIT, 10000),
            ("1771", LineSide.CREDIT, 700),
            ("1776", LineSide.CREDIT, 1900),
        ]
        assert booked.tax_rate is None
        assert booked.amount == 22600

    def test_line_rate_overrides_invoice_rate(self, documents, selector):
        invoice = documents.create_invoice(
            "Bücher",
            [_consulting(hours="1", tax_rate=Decimal("7"))],
            tax_rate=Decimal("19"),
        )
        booked = documents.book(invoice.id)
        assert ("1771", LineSide.CREDIT, 700) in _lines(selector, booked.journal_entry_id)

    def test_exempt_invoice(self, documents, selector):
        invoice = documents.create_invoice("Export", [_consulting()], account_code="8120")
        booked = documents.book(invoice.id)
        assert _lines(selector, booked.journal_entry_id) == [
            ("1400", LineSide.DEBIT, 20000),
            ("8120", LineSide.CREDIT, 20000),
        ]

    def test_zero_priced_invoice_rejected(self, documents):
        with pytest.raises(ValidationError, match="Nothing to book"):
            documents.create_invoice("Gratis", [_consulting(price=0)])

    def test_double_booking_rejected(self, documents, session):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.book(invoice.id)
        with pytest.raises(AlreadyBookedError):
            documents.book(invoice.id)
        count = session.execute(select(func.count()).select_from(JournalEntry)).scalar_one()
        assert count == 1


class TestLifecycle:
    def test_book_send_pay(self, documents, selector, chart):
        invoice = documents.create_invoice("Beratung", [_consulting()], document_date=date(2024, 5, 2))
        documents.book(invoice.id)
        sent = documents.mark_sent(invoice.id)
        assert sent.status == InvoiceStatus.SENT.value
        assert sent.sent_at is not None
        # Sending twice changes nothing
        assert documents.mark_sent(invoice.id).version == sent.version

        paid = documents.record_payment(invoice.id, payment_date=date(2024, 5, 20))
        assert paid.status == InvoiceStatus.PAID.value
        assert _lines(selector, paid.payment_entry_id) == [
            ("1200", LineSide.DEBIT, 23800),
            ("1400", LineSide.CREDIT, 23800),
        ]
        assert selector.balance_range(chart["1200"].id).closing_balance == 23800
        assert selector.balance_range(chart["1400"].id).closing_balance == 0

    def test_pay_without_sending(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.book(invoice.id)
        assert documents.record_payment(invoice.id).status == "paid"

    def test_send_draft_rejected(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        with pytest.raises(InvalidStateError):
            documents.mark_sent(invoice.id)

    def test_send_unknown_invoice(self, documents, chart):
        beleg = documents.create_beleg("Porto", 500)
        with pytest.raises(DocumentNotFoundError):
            documents.mark_sent(beleg.id)

    def test_cancel_sent_posts_storno(self, documents, selector, chart):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.book(invoice.id)
        documents.mark_sent(invoice.id)
        cancelled = documents.cancel(invoice.id)
        assert cancelled.status == InvoiceStatus.CANCELLED.value
        assert selector.balance_range(chart["8400"].id).closing_balance == 0
        assert selector.balance_range(chart["1776"].id).closing_balance == 0


class TestEditing:
    def test_update_draft_recomputes_totals(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        updated = documents.update(
            invoice.id, title="Beratung April", lines=[_consulting(hours="3")]
        )
        assert updated.title == "Beratung April"
        assert updated.net_amount == 30000
        assert len(updated.lines) == 1
        assert updated.version == invoice.version + 1

    def test_amount_rejected_when_lines_exist(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        with pytest.raises(ValidationError, match="computed from the lines"):
            documents.update(invoice.id, amount=50000)
        unchanged = documents.get(invoice.id)
        assert (unchanged.amount, unchanged.version) == (23800, invoice.version)

    def test_amount_rejected_together_with_new_lines(self, documents):
        invoice = documents.create_invoice("Pauschale", amount=11900)
        with pytest.raises(ValidationError):
            documents.update(invoice.id, amount=5000, lines=[_consulting()])

    def test_amount_of_gross_invoice_editable(self, documents):
        invoice = documents.create_invoice("Pauschale", amount=11900)
        updated = documents.update(invoice.id, amount=23800)
        assert (updated.net_amount, updated.tax_amount) == (20000, 3800)

    def test_stale_version_rejected(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.update(invoice.id, notes="erste Änderung")
        with pytest.raises(ConflictError):
            documents.update(invoice.id, expected_version=invoice.version, notes="veraltet")

    def test_unknown_field_rejected(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        with pytest.raises(ValidationError):
            documents.update(invoice.id, status="paid")

    def test_booked_invoice_not_editable(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.book(invoice.id)
        with pytest.raises(InvalidStateError):
            documents.update(invoice.id, title="Neu")

    def test_delete_draft(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.delete(invoice.id)
        with pytest.raises(DocumentNotFoundError):
            documents.get(invoice.id)
        # Numbers are not reused
        assert documents.create_invoice("Neu", [_consulting()]).document_number == "RE-2024-0002"

    def test_delete_booked_rejected(self, documents):
        invoice = documents.create_invoice("Beratung", [_consulting()])
        documents.book(invoice.id)
        with pytest.raises(InvalidStateError):
            documents.delete(invoice.id)

    def test_list_filters(self, documents):
        documents.create_invoice("A", [_consulting()], document_date=date(2024, 1, 5))
        b = documents.create_invoice("B", [_consulting()], document_date=date(2024, 2, 5))
        documents.book(b.id)
        documents.create_beleg("C", 100)
        assert [d.title for d in documents.list("invoice")] == ["A", "B"]
        assert [d.title for d in documents.list("invoice", status="booked")] == ["B"]
        assert [d.title for d in documents.list(from_date=date(2024, 2, 1), to_date=date(2024, 2, 28))] == ["B"]
