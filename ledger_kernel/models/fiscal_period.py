"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for fiscal periods, the unit of period locking.
Architecture position: Kernel > Models.

Invariants enforced:
    - period_code is unique; periods never overlap (PeriodService).
    - OPEN -> CLOSED only.  A closed period rejects every posting whose
      booking_date falls inside it.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class PeriodStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class FiscalPeriod(TrackedBase):
    """A date range of the ledger (typically a month) that can be locked."""

    __tablename__ = "fiscal_periods"

    __table_args__ = (UniqueConstraint("period_code", name="uq_period_code"),)

    # e.g. "2024-01"
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(10),
        nullable=False,
        default=PeriodStatus.OPEN.value,
    )

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_closed(self) -> bool:
        return self.status == PeriodStatus.CLOSED

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date
