"""
PeriodService -- fiscal periods and posting-date validation.

Responsibility:
    Creates and closes fiscal periods and checks that a booking date is
    still open before LedgerService writes anything.

Invariants enforced:
    - Periods never overlap.
    - OPEN -> CLOSED is one-way.
    - No posting (including a storno) into a closed period.

Decision:
    A booking date not covered by any period is accepted.  Periods are a
    lock on already reconciled months, not a prerequisite for booking.

Failure modes:
    - PeriodClosedError, PeriodOverlapError, PeriodNotFoundError.
    - ValidationError when start_date > end_date.
"""

from datetime import date

from sqlalchemy import select

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    InvalidStateError,
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService[FiscalPeriod]):
    """Fiscal period lifecycle."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_period(
        self,
        period_code: str,
        name: str,
        start_date: date,
        end_date: date,
    ) -> FiscalPeriod:
        if start_date > end_date:
            raise ValidationError(
                f"Period {period_code}: start_date {start_date} is after end_date {end_date}",
                field="start_date",
            )

        overlapping = self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
        ).scalars().first()
        if overlapping is not None:
            raise PeriodOverlapError(period_code, overlapping.period_code)

        period = FiscalPeriod(
            period_code=period_code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.OPEN.value,
        )
        self.session.add(period)
        self.session.flush()
        logger.info(
            "fiscal_period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return period

    def get_period(self, period_code: str) -> FiscalPeriod:
        period = self.session.execute(
            select(FiscalPeriod).where(FiscalPeriod.period_code == period_code)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(period_code)
        return period

    def period_for_date(self, day: date) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= day,
                FiscalPeriod.end_date >= day,
            )
        ).scalar_one_or_none()

    def list_periods(self) -> list[FiscalPeriod]:
        return list(
            self.session.execute(select(FiscalPeriod).order_by(FiscalPeriod.start_date)).scalars()
        )

    def close_period(self, period_code: str) -> FiscalPeriod:
        period = self.get_period(period_code)
        if period.is_closed:
            raise InvalidStateError(
                f"Period {period_code} is already closed",
                current_status=period.status,
                action="close",
            )
        period.status = PeriodStatus.CLOSED.value
        period.closed_at = self._clock.now()
        self.session.flush()
        logger.info("fiscal_period_closed", extra={"period_code": period_code})
        return period

    def validate_posting_date(self, booking_date: date) -> None:
        """
        Raise PeriodClosedError if booking_date lies in a closed period.
        """
        period = self.period_for_date(booking_date)
        if period is not None and period.is_closed:
            logger.warning(
                "posting_into_closed_period_rejected",
                extra={"period_code": period.period_code, "booking_date": str(booking_date)},
            )
            raise PeriodClosedError(period.period_code, str(booking_date))
