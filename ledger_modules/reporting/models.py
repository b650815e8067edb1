"""
Report Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for the report outputs: trial balance,
profit and loss (GuV), balance sheet (Bilanz), journal export, tax report
(USt-Voranmeldung helper) and account statement.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``statements.py``, returned by ``ReportService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are integer cents -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReportType(str, Enum):
    TRIAL_BALANCE = "trial_balance"
    PROFIT_LOSS = "profit_loss"
    BALANCE_SHEET = "balance_sheet"
    JOURNAL_EXPORT = "journal_export"
    TAX_REPORT = "tax_report"
    ACCOUNT_STATEMENT = "account_statement"


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every report."""

    report_type: ReportType
    entity_name: str
    currency: str
    as_of_date: date
    generated_at: str  # ISO timestamp from the injected clock
    period_start: date | None = None
    period_end: date | None = None


# =========================================================================
# Trial balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLineItem:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    total_debit: int
    total_credit: int
    balance: int  # positive on the account's normal side


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[TrialBalanceLineItem, ...]
    total_debit: int
    total_credit: int
    is_balanced: bool


# =========================================================================
# Profit and loss
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLossSection:
    label: str
    lines: tuple[TrialBalanceLineItem, ...]
    total: int


@dataclass(frozen=True)
class ProfitAndLossReport:
    """net_profit = total_revenue - total_expense."""

    metadata: ReportMetadata
    revenue: ProfitAndLossSection
    expense: ProfitAndLossSection
    total_revenue: int
    total_expense: int
    net_profit: int


# =========================================================================
# Balance sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetLine:
    """
    One balance sheet position.

    Aggregated lines fold personal accounts (Debitoren/Kreditoren) into
    their collective account; ``detail_count`` is the number folded in.
    """

    account_code: str
    account_name: str
    balance: int
    is_aggregated: bool = False
    detail_count: int = 0


@dataclass(frozen=True)
class BalanceSheetSection:
    label: str
    lines: tuple[BalanceSheetLine, ...]
    total: int


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Balance sheet at ``as_of_date``.

    total_assets == total_liabilities + total_equity + calculated_profit_loss
    holds exactly for every balanced ledger; ``is_balanced`` records it.
    """

    metadata: ReportMetadata
    assets: BalanceSheetSection
    liabilities: BalanceSheetSection
    equity: BalanceSheetSection
    total_assets: int
    total_liabilities: int
    total_equity: int
    calculated_profit_loss: int
    total_liabilities_and_equity: int
    is_balanced: bool


# =========================================================================
# Journal export
# =========================================================================


@dataclass(frozen=True)
class JournalExportLine:
    line_seq: int
    account_code: str
    account_name: str
    side: str
    amount: int
    debit: int
    credit: int
    description: str | None = None
    tax_key_code: str | None = None
    tax_rate: Decimal | None = None
    tax_amount: int = 0


@dataclass(frozen=True)
class JournalExportEntry:
    entry_id: UUID
    seq: int
    booking_date: date
    description: str
    reference: str | None
    document_id: UUID | None
    reversal_of_id: UUID | None
    lines: tuple[JournalExportLine, ...]
    total: int


@dataclass(frozen=True)
class JournalExportReport:
    metadata: ReportMetadata
    entries: tuple[JournalExportEntry, ...]
    entry_count: int
    total_debit: int
    total_credit: int


# =========================================================================
# Tax report
# =========================================================================


@dataclass(frozen=True)
class TaxReportLine:
    """
    Totals of one tax key.

    Amounts are signed on the account's normal side, so a storno cancels
    the entry it reverses.
    """

    tax_key_code: str
    tax_key_name: str
    kind: str
    rate: Decimal | None
    base_amount: int
    tax_amount: int
    line_count: int


@dataclass(frozen=True)
class TaxReport:
    metadata: ReportMetadata
    lines: tuple[TaxReportLine, ...]
    total_base_amount: int
    total_tax_amount: int
    output_tax: int
    input_tax: int
    payable: int  # output_tax - input_tax; negative means refund


# =========================================================================
# Account statement
# =========================================================================


@dataclass(frozen=True)
class AccountStatementLine:
    date: date
    description: str
    reference: str | None
    contact: UUID | None
    debit: int
    credit: int
    balance: int
    entry_id: UUID | None = None
    seq: int | None = None


@dataclass(frozen=True)
class AccountStatementSummary:
    opening_balance: int
    total_debit: int
    total_credit: int
    current_balance: int


@dataclass(frozen=True)
class AccountStatementAccount:
    id: UUID
    code: str
    name: str
    type: str
    normal_balance: str
    is_active: bool
    tax_key_code: str | None = None


@dataclass(frozen=True)
class AccountStatement:
    metadata: ReportMetadata
    account: AccountStatementAccount
    summary: AccountStatementSummary
    transactions: tuple[AccountStatementLine, ...]
