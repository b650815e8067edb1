"""Report endpoints: ``GET /reports/{kind}?from_date&to_date``."""

from datetime import date
from enum import Enum

from fastapi import APIRouter, Depends

from ledger_api.dependencies import get_reports
from ledger_modules.reporting.service import ReportService
from ledger_modules.reporting.statements import render_to_dict

router = APIRouter(prefix="/reports", tags=["reports"])


class ReportKind(str, Enum):
    TRIAL_BALANCE = "trial-balance"
    PROFIT_LOSS = "profit-loss"
    BALANCE_SHEET = "balance-sheet"
    JOURNAL_EXPORT = "journal-export"
    TAX_REPORT = "tax-report"


@router.get("/{kind}")
def get_report(
    kind: ReportKind,
    from_date: date | None = None,
    to_date: date | None = None,
    as_of: date | None = None,
    reports: ReportService = Depends(get_reports),
):
    """The balance sheet is cumulative up to ``as_of`` (or ``to_date``)."""
    if kind == ReportKind.BALANCE_SHEET:
        report = reports.balance_sheet(as_of or to_date)
    elif kind == ReportKind.TRIAL_BALANCE:
        report = reports.trial_balance(from_date, to_date)
    elif kind == ReportKind.PROFIT_LOSS:
        report = reports.profit_and_loss(from_date, to_date)
    elif kind == ReportKind.JOURNAL_EXPORT:
        report = reports.journal_export(from_date, to_date)
    else:
        report = reports.tax_report(from_date, to_date)
    return render_to_dict(report)
