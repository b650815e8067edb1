"""
Report statement builders (``ledger_modules.reporting.statements``).

Responsibility
--------------
Pure transformation functions that turn selector rows (trial balance rows,
ledger lines, account ranges) into the frozen report models.  No I/O, no
session, no clock: the caller passes the metadata in.

Invariants enforced
-------------------
* Balances use ``ledger_kernel.domain.balance`` and nothing else.
* Trial balance: total_debit == total_credit for any balanced ledger.
* Balance sheet: total_assets == total_liabilities + total_equity +
  calculated_profit_loss, with the profit computed independently from the
  revenue and expense accounts.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.tax import TaxKey, TaxKind
from ledger_kernel.domain.balance import natural_balance, normal_balance_for, signed_amount
from ledger_kernel.domain.dtos import AccountType, LineSide
from ledger_kernel.selectors.ledger_selector import AccountRange, LedgerLine, TrialBalanceRow
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountStatement,
    AccountStatementAccount,
    AccountStatementLine,
    AccountStatementSummary,
    BalanceSheetLine,
    BalanceSheetReport,
    BalanceSheetSection,
    JournalExportEntry,
    JournalExportLine,
    JournalExportReport,
    ProfitAndLossReport,
    ProfitAndLossSection,
    ReportMetadata,
    TaxReport,
    TaxReportLine,
    TrialBalanceLineItem,
    TrialBalanceReport,
)


# =========================================================================
# Trial balance
# =========================================================================


def to_line_item(row: TrialBalanceRow) -> TrialBalanceLineItem:
    return TrialBalanceLineItem(
        account_id=row.account_id,
        account_code=row.account_code,
        account_name=row.account_name,
        account_type=AccountType(row.account_type).value,
        total_debit=row.debit_total,
        total_credit=row.credit_total,
        balance=natural_balance(row.account_type, row.debit_total, row.credit_total),
    )


def build_trial_balance(
    metadata: ReportMetadata,
    rows: Iterable[TrialBalanceRow],
    include_zero_balances: bool = True,
) -> TrialBalanceReport:
    """
    Trial balance from per-account totals.

    Accounts whose debits and credits cancel are kept by default: they had
    activity in the range.
    """
    items = [to_line_item(row) for row in rows]
    if not include_zero_balances:
        items = [i for i in items if i.total_debit or i.total_credit]
    total_debit = sum(i.total_debit for i in items)
    total_credit = sum(i.total_credit for i in items)
    return TrialBalanceReport(
        metadata=metadata,
        lines=tuple(items),
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=total_debit == total_credit,
    )


# =========================================================================
# Profit and loss
# =========================================================================


def _section(label: str, items: Sequence[TrialBalanceLineItem]) -> ProfitAndLossSection:
    return ProfitAndLossSection(label=label, lines=tuple(items), total=sum(i.balance for i in items))


def build_profit_and_loss(
    metadata: ReportMetadata,
    rows: Iterable[TrialBalanceRow],
    include_zero_balances: bool = False,
) -> ProfitAndLossReport:
    revenue: list[TrialBalanceLineItem] = []
    expense: list[TrialBalanceLineItem] = []
    for row in rows:
        item = to_line_item(row)
        if item.balance == 0 and not include_zero_balances:
            continue
        if row.account_type == AccountType.REVENUE:
            revenue.append(item)
        elif row.account_type == AccountType.EXPENSE:
            expense.append(item)

    revenue_section = _section("Erloese", revenue)
    expense_section = _section("Aufwendungen", expense)
    return ProfitAndLossReport(
        metadata=metadata,
        revenue=revenue_section,
        expense=expense_section,
        total_revenue=revenue_section.total,
        total_expense=expense_section.total,
        net_profit=revenue_section.total - expense_section.total,
    )


def compute_profit_loss(rows: Iterable[TrialBalanceRow]) -> int:
    """Revenue minus expense over the given rows."""
    profit = 0
    for row in rows:
        balance = natural_balance(row.account_type, row.debit_total, row.credit_total)
        if row.account_type == AccountType.REVENUE:
            profit += balance
        elif row.account_type == AccountType.EXPENSE:
            profit -= balance
    return profit


# =========================================================================
# Balance sheet
# =========================================================================


def _balance_sheet_section(
    label: str,
    rows: Sequence[TrialBalanceRow],
    config: ReportingConfig,
) -> BalanceSheetSection:
    names = {row.account_code: row.account_name for row in rows}
    positions: dict[str, list[int]] = {}  # code -> [balance, detail_count]
    order: list[str] = []

    for row in rows:
        balance = natural_balance(row.account_type, row.debit_total, row.credit_total)
        group = config.group_for(row.account_code)
        code = group.target_code if group is not None else row.account_code
        if code not in positions:
            positions[code] = [0, 0]
            order.append(code)
        positions[code][0] += balance
        if group is not None:
            positions[code][1] += 1
            names.setdefault(code, group.label)

    lines = []
    for code in sorted(order):
        balance, detail_count = positions[code]
        if balance == 0 and not config.include_zero_balances:
            continue
        lines.append(
            BalanceSheetLine(
                account_code=code,
                account_name=names[code],
                balance=balance,
                is_aggregated=detail_count > 0,
                detail_count=detail_count,
            )
        )
    return BalanceSheetSection(label=label, lines=tuple(lines), total=sum(l.balance for l in lines))


def build_balance_sheet(
    metadata: ReportMetadata,
    rows: Sequence[TrialBalanceRow],
    config: ReportingConfig,
) -> BalanceSheetReport:
    """
    Balance sheet from cumulative balances up to the reporting date.

    The running result (revenue - expense since the first entry) is shown
    as ``calculated_profit_loss`` next to equity, since nothing closes the
    income accounts into equity.
    """
    by_type: dict[AccountType, list[TrialBalanceRow]] = {t: [] for t in AccountType}
    for row in rows:
        by_type[AccountType(row.account_type)].append(row)

    assets = _balance_sheet_section("Aktiva", by_type[AccountType.ASSET], config)
    liabilities = _balance_sheet_section("Verbindlichkeiten", by_type[AccountType.LIABILITY], config)
    equity = _balance_sheet_section("Eigenkapital", by_type[AccountType.EQUITY], config)
    profit = compute_profit_loss(rows)

    total_le = liabilities.total + equity.total + profit
    return BalanceSheetReport(
        metadata=metadata,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        total_assets=assets.total,
        total_liabilities=liabilities.total,
        total_equity=equity.total,
        calculated_profit_loss=profit,
        total_liabilities_and_equity=total_le,
        is_balanced=assets.total == total_le,
    )


# =========================================================================
# Journal export
# =========================================================================


def build_journal_export(
    metadata: ReportMetadata,
    lines: Iterable[LedgerLine],
) -> JournalExportReport:
    """Group ledger-ordered lines by entry."""
    entries: list[JournalExportEntry] = []
    current: list[LedgerLine] = []

    def flush() -> None:
        if not current:
            return
        head = current[0]
        export_lines = tuple(
            JournalExportLine(
                line_seq=l.line_seq,
                account_code=l.account_code,
                account_name=l.account_name,
                side=LineSide(l.side).value,
                amount=l.amount,
                debit=l.debit,
                credit=l.credit,
                description=l.description,
                tax_key_code=l.tax_key_code,
                tax_rate=l.tax_rate,
                tax_amount=l.tax_amount,
            )
            for l in current
        )
        entries.append(
            JournalExportEntry(
                entry_id=head.entry_id,
                seq=head.seq,
                booking_date=head.booking_date,
                description=head.entry_description,
                reference=head.reference,
                document_id=head.document_id,
                reversal_of_id=head.reversal_of_id,
                lines=export_lines,
                total=sum(l.debit for l in export_lines),
            )
        )
        current.clear()

    for line in lines:
        if current and current[0].entry_id != line.entry_id:
            flush()
        current.append(line)
    flush()

    return JournalExportReport(
        metadata=metadata,
        entries=tuple(entries),
        entry_count=len(entries),
        total_debit=sum(sum(l.debit for l in e.lines) for e in entries),
        total_credit=sum(sum(l.credit for l in e.lines) for e in entries),
    )


# =========================================================================
# Tax report
# =========================================================================


def build_tax_report(
    metadata: ReportMetadata,
    lines: Iterable[LedgerLine],
    tax_keys: Mapping[str, TaxKey],
) -> TaxReport:
    """
    Group tax-bearing lines by tax key.

    A line counts when it carries a tax key or a tax amount.  Base and tax
    are signed like the line's contribution to its account, so the storno
    of a booking cancels it.
    """
    totals: dict[str, list] = {}  # key -> [base, tax, count, rate]
    for line in lines:
        if line.tax_key_code is None and not line.tax_amount:
            continue
        code = line.tax_key_code or "ohne"
        sign = 1 if signed_amount(line.account_type, line.side, 1) > 0 else -1
        bucket = totals.setdefault(code, [0, 0, 0, line.tax_rate])
        bucket[0] += sign * line.amount
        bucket[1] += sign * line.tax_amount
        bucket[2] += 1
        if bucket[3] is None:
            bucket[3] = line.tax_rate

    report_lines = []
    output_tax = input_tax = 0
    for code in sorted(totals):
        base, tax, count, rate = totals[code]
        key = tax_keys.get(code)
        kind = key.kind if key is not None else TaxKind.NONE
        if key is not None:
            rate = key.rate
        if kind == TaxKind.OUTPUT:
            output_tax += tax
        elif kind == TaxKind.INPUT:
            input_tax += tax
        report_lines.append(
            TaxReportLine(
                tax_key_code=code,
                tax_key_name=key.name if key is not None else code,
                kind=TaxKind(kind).value,
                rate=Decimal(rate) if rate is not None else None,
                base_amount=base,
                tax_amount=tax,
                line_count=count,
            )
        )

    return TaxReport(
        metadata=metadata,
        lines=tuple(report_lines),
        total_base_amount=sum(l.base_amount for l in report_lines),
        total_tax_amount=sum(l.tax_amount for l in report_lines),
        output_tax=output_tax,
        input_tax=input_tax,
        payable=output_tax - input_tax,
    )


# =========================================================================
# Account statement
# =========================================================================


def build_account_statement(metadata: ReportMetadata, account_range: AccountRange) -> AccountStatement:
    account = account_range.account
    return AccountStatement(
        metadata=metadata,
        account=AccountStatementAccount(
            id=account.id,
            code=account.code,
            name=account.name,
            type=AccountType(account.account_type).value,
            normal_balance=normal_balance_for(account.account_type).value,
            is_active=account.is_active,
            tax_key_code=account.tax_key_code,
        ),
        summary=AccountStatementSummary(
            opening_balance=account_range.opening_balance,
            total_debit=account_range.total_debit,
            total_credit=account_range.total_credit,
            current_balance=account_range.closing_balance,
        ),
        transactions=tuple(
            AccountStatementLine(
                date=m.booking_date,
                description=m.description,
                reference=m.reference,
                contact=m.contact_id,
                debit=m.debit,
                credit=m.credit,
                balance=m.running_balance,
                entry_id=m.entry_id,
                seq=m.seq,
            )
            for m in account_range.movements
        ),
    )


# =========================================================================
# Serialization
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - int cents stay int
    """
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float)):
        return obj
    return str(obj)
