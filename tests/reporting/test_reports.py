"""
Integration tests for ReportService against a booked ledger.

Scenario (2024):
    02.04.  Beleg  119,00 EUR Bürobedarf, paid from the bank   4900/1576 an 1200
    02.05.  Rechnung 238,00 EUR Beratung                        1400 an 8400/1776
    20.05.  Zahlung der Rechnung                                 1200 an 1400
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import AccountNotFoundError, ValidationError
from ledger_modules.documents import DocumentLineInput
from ledger_modules.reporting import ReportType, render_to_dict


@pytest.fixture
def booked_ledger(documents):
    beleg = documents.create_beleg(
        "Bürobedarf", 11900, document_date=date(2024, 4, 2), contra_account_code="1200"
    )
    documents.book(beleg.id)
    invoice = documents.create_invoice(
        "Beratung",
        [DocumentLineInput("Beratung", Decimal("2"), 10000)],
        document_date=date(2024, 5, 2),
    )
    documents.book(invoice.id)
    documents.record_payment(invoice.id, payment_date=date(2024, 5, 20))
    return {"beleg": beleg, "invoice": invoice}


class TestTrialBalance:
    def test_balanced_with_expected_totals(self, reports, booked_ledger):
        report = reports.trial_balance()
        assert report.is_balanced
        assert report.total_debit == report.total_credit == 11900 + 23800 + 23800
        lines = {l.account_code: l for l in report.lines}
        assert (lines["1200"].total_debit, lines["1200"].total_credit) == (23800, 11900)
        assert lines["1200"].balance == 11900
        assert lines["1400"].balance == 0
        assert report.metadata.period_start == date(2024, 1, 1)
        assert report.metadata.period_end == date(2024, 12, 31)
        assert report.metadata.entity_name == "Musterfirma GmbH"

    def test_period_filter(self, reports, booked_ledger):
        report = reports.trial_balance(date(2024, 5, 1), date(2024, 5, 31))
        assert "4900" not in {l.account_code for l in report.lines}

    def test_inverted_period_rejected(self, reports):
        with pytest.raises(ValidationError):
            reports.trial_balance(date(2024, 6, 1), date(2024, 5, 1))

    def test_generation_logged(self, reports, booked_ledger, captured_logs):
        reports.trial_balance()
        records = [r for r in captured_logs() if r["message"] == "report_generated"]
        assert records[-1]["report_type"] == "trial_balance"
        assert records[-1]["is_balanced"] is True


class TestProfitAndLoss:
    def test_net_profit(self, reports, booked_ledger):
        report = reports.profit_and_loss()
        assert report.total_revenue == 20000
        assert report.total_expense == 10000
        assert report.net_profit == 10000
        assert [l.account_code for l in report.revenue.lines] == ["8400"]
        assert [l.account_code for l in report.expense.lines] == ["4900"]

    def test_empty_period(self, reports, booked_ledger):
        report = reports.profit_and_loss(date(2024, 7, 1), date(2024, 7, 31))
        assert report.net_profit == 0
        assert report.revenue.lines == ()


class TestBalanceSheet:
    def test_balances_with_running_result(self, reports, booked_ledger):
        report = reports.balance_sheet(date(2024, 12, 31))
        assets = {l.account_code: l.balance for l in report.assets.lines}
        assert assets == {"1200": 11900, "1576": 1900}
        assert report.total_liabilities == 3800
        assert report.calculated_profit_loss == 10000
        assert report.total_assets == report.total_liabilities_and_equity == 13800
        assert report.is_balanced

    def test_as_of_excludes_later_entries(self, reports, booked_ledger):
        report = reports.balance_sheet(date(2024, 4, 30))
        assert report.total_assets == 1900 - 11900
        assert report.is_balanced

    def test_personal_accounts_folded_into_collective_account(
        self, reports, registry, post_entry, chart
    ):
        debtor = registry.create("10001", "Kunde Müller", "asset")
        chart["10001"] = debtor
        post_entry(date(2024, 3, 1), "Rechnung Müller", [("10001", "debit", 5000), ("8120", "credit", 5000)])
        post_entry(date(2024, 3, 2), "Sammelposten", [("1400", "debit", 700), ("8120", "credit", 700)])

        report = reports.balance_sheet(date(2024, 12, 31))
        (line,) = [l for l in report.assets.lines if l.account_code == "1400"]
        assert line.balance == 5700
        assert line.is_aggregated
        assert line.detail_count == 1
        assert "10001" not in {l.account_code for l in report.assets.lines}


class TestJournalExport:
    def test_entries_in_ledger_order(self, reports, booked_ledger):
        report = reports.journal_export()
        assert report.entry_count == 3
        assert [e.booking_date for e in report.entries] == [
            date(2024, 4, 2),
            date(2024, 5, 2),
            date(2024, 5, 20),
        ]
        assert report.entries[0].reference == "BEL-2024-0001"
        assert report.entries[0].total == 11900
        assert report.total_debit == report.total_credit == 59500


class TestTaxReport:
    def test_output_and_input_tax(self, reports, booked_ledger):
        report = reports.tax_report()
        lines = {l.tax_key_code: l for l in report.lines}
        assert (lines["USt19"].base_amount, lines["USt19"].tax_amount) == (20000, 3800)
        assert (lines["VSt19"].base_amount, lines["VSt19"].tax_amount) == (10000, 1900)
        assert lines["USt19"].kind == "output"
        assert report.output_tax == 3800
        assert report.input_tax == 1900
        assert report.payable == 1900

    def test_storno_cancels_tax(self, reports, documents, booked_ledger):
        documents.cancel(booked_ledger["beleg"].id)
        lines = {l.tax_key_code: l for l in reports.tax_report().lines}
        assert lines["VSt19"].tax_amount == 0
        assert lines["VSt19"].line_count == 2


class TestAccountStatement:
    def test_opening_and_running_balance(self, reports, chart, booked_ledger):
        statement = reports.account_statement(chart["1200"].id, date(2024, 5, 1), date(2024, 5, 31))
        assert statement.account.code == "1200"
        assert statement.summary.opening_balance == -11900
        assert statement.summary.total_debit == 23800
        assert statement.summary.current_balance == 11900
        assert [t.balance for t in statement.transactions] == [11900]

    def test_unknown_account(self, reports, chart):
        from uuid import uuid4

        with pytest.raises(AccountNotFoundError):
            reports.account_statement(uuid4())


class TestRendering:
    def test_render_trial_balance(self, reports, booked_ledger):
        data = render_to_dict(reports.trial_balance())
        assert data["metadata"]["report_type"] == ReportType.TRIAL_BALANCE.value
        assert data["metadata"]["as_of_date"] == "2024-12-31"
        assert data["is_balanced"] is True
        assert isinstance(data["total_debit"], int)
        assert isinstance(data["lines"][0]["account_id"], str)
