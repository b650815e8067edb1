"""
Report Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Generates the reports -- trial balance, profit and loss, balance sheet,
journal export, tax report and account statement -- by bridging
``LedgerSelector`` to the pure builders in ``statements.py``.  This is a
**read-only** service: no journal entries are posted.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config`` (+ optional tax engine for the tax key catalogue).

Invariants enforced
-------------------
* Read-only; every report reads inside one ``snapshot_scope`` so that
  entries posted concurrently never show up half-way through a report.
* Default period is the current calendar year from the injected clock.

Failure modes
-------------
* from_date after to_date -> ``ValidationError`` before any query.
* Unknown account on the statement -> ``AccountNotFoundError``.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig, get_active_config
from ledger_engines.tax import TaxEngine
from ledger_kernel.db.engine import snapshot_scope
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountStatement,
    BalanceSheetReport,
    JournalExportReport,
    ProfitAndLossReport,
    ReportMetadata,
    ReportType,
    TaxReport,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_account_statement,
    build_balance_sheet,
    build_journal_export,
    build_profit_and_loss,
    build_tax_report,
    build_trial_balance,
)

logger = get_logger("modules.reporting.service")


class ReportService:
    """
    Report generation service.

    Contract
    --------
    * Every public method returns a frozen report model; pass it through
      ``render_to_dict`` for the wire.
    * Same ledger + same arguments -> same report (apart from
      ``generated_at``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        tax_engine: TaxEngine | None = None,
        ledger_config: LedgerConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        if config is None or tax_engine is None:
            ledger_config = ledger_config or get_active_config()
        self._config = config or ReportingConfig.from_dict(
            ledger_config.reporting, currency=ledger_config.currency
        )
        self._tax = tax_engine or TaxEngine.from_definitions(ledger_config.tax_keys)
        self._ledger = LedgerSelector(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _period(self, from_date: date | None, to_date: date | None) -> tuple[date, date]:
        today = self._clock.today()
        start = from_date or date(today.year, 1, 1)
        end = to_date or date(today.year, 12, 31)
        if start > end:
            raise ValidationError(
                f"from_date {start} is after to_date {end}", field="from_date", step="validate"
            )
        return start, end

    def _metadata(
        self,
        report_type: ReportType,
        as_of: date,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            entity_name=self._config.entity_name,
            currency=self._config.default_currency,
            as_of_date=as_of,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
        )

    def _log(self, report_type: ReportType, **extra) -> None:
        logger.info("report_generated", extra={"report_type": report_type.value, **extra})

    # =========================================================================
    # Reports
    # =========================================================================

    def trial_balance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> TrialBalanceReport:
        """Summen- und Saldenliste for every account with activity in range."""
        start, end = self._period(from_date, to_date)
        with snapshot_scope(self._session):
            rows = self._ledger.trial_balance(start, end)
        report = build_trial_balance(
            self._metadata(ReportType.TRIAL_BALANCE, end, start, end), rows
        )
        self._log(
            ReportType.TRIAL_BALANCE,
            period_start=str(start),
            period_end=str(end),
            account_count=len(report.lines),
            is_balanced=report.is_balanced,
        )
        if not report.is_balanced:
            logger.error(
                "trial_balance_out_of_balance",
                extra={"total_debit": report.total_debit, "total_credit": report.total_credit},
            )
        return report

    def profit_and_loss(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> ProfitAndLossReport:
        """Gewinn- und Verlustrechnung over the range."""
        start, end = self._period(from_date, to_date)
        with snapshot_scope(self._session):
            rows = self._ledger.trial_balance(start, end)
        report = build_profit_and_loss(
            self._metadata(ReportType.PROFIT_LOSS, end, start, end),
            rows,
            include_zero_balances=self._config.include_zero_balances,
        )
        self._log(
            ReportType.PROFIT_LOSS,
            period_start=str(start),
            period_end=str(end),
            net_profit=report.net_profit,
        )
        return report

    def balance_sheet(self, as_of: date | None = None) -> BalanceSheetReport:
        """Bilanz at ``as_of`` (default today), cumulative from the first entry."""
        as_of = as_of or self._clock.today()
        with snapshot_scope(self._session):
            rows = self._ledger.account_balances(as_of)
        report = build_balance_sheet(
            self._metadata(ReportType.BALANCE_SHEET, as_of, period_end=as_of),
            rows,
            self._config,
        )
        self._log(
            ReportType.BALANCE_SHEET,
            as_of=str(as_of),
            total_assets=report.total_assets,
            is_balanced=report.is_balanced,
        )
        if not report.is_balanced:
            logger.error(
                "balance_sheet_out_of_balance",
                extra={
                    "total_assets": report.total_assets,
                    "total_liabilities_and_equity": report.total_liabilities_and_equity,
                },
            )
        return report

    def journal_export(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> JournalExportReport:
        """All entries in range with their lines, in ledger order."""
        start, end = self._period(from_date, to_date)
        with snapshot_scope(self._session):
            lines = self._ledger.lines(start, end)
        report = build_journal_export(
            self._metadata(ReportType.JOURNAL_EXPORT, end, start, end), lines
        )
        self._log(
            ReportType.JOURNAL_EXPORT,
            period_start=str(start),
            period_end=str(end),
            entry_count=report.entry_count,
        )
        return report

    def tax_report(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> TaxReport:
        """Base and tax per tax key, with the VAT payable for the range."""
        start, end = self._period(from_date, to_date)
        with snapshot_scope(self._session):
            lines = self._ledger.lines(start, end)
        report = build_tax_report(
            self._metadata(ReportType.TAX_REPORT, end, start, end),
            lines,
            {key.code: key for key in self._tax.keys},
        )
        self._log(
            ReportType.TAX_REPORT,
            period_start=str(start),
            period_end=str(end),
            payable=report.payable,
        )
        return report

    def account_statement(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
        carry_forward: bool = True,
    ) -> AccountStatement:
        """Kontoblatt: opening balance, movements with running balance, totals."""
        start, end = self._period(from_date, to_date)
        with snapshot_scope(self._session):
            account_range = self._ledger.balance_range(
                account_id, start, end, carry_forward=carry_forward
            )
        report = build_account_statement(
            self._metadata(ReportType.ACCOUNT_STATEMENT, end, start, end), account_range
        )
        self._log(
            ReportType.ACCOUNT_STATEMENT,
            account_code=report.account.code,
            movement_count=len(report.transactions),
        )
        return report
