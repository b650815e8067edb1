"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for posted journal entries and their lines.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - seq is unique and assigned from SequenceService; entries are ordered by
      (booking_date, seq).
    - Every line amount is strictly positive; side is debit or credit.
    - At most one reversal per entry (unique reversal_of_id).
    - Rows are append-only.  There is no draft state: an entry row exists
      only once it is balanced and posted.  Any UPDATE or DELETE is refused
      by db/immutability.py.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import LineSide

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account

__all__ = ["JournalEntry", "JournalLine", "LineSide"]


class JournalEntry(TrackedBase):
    """
    A posted, balanced journal entry (Buchungssatz).

    Guarantees:
        - sum of debit lines == sum of credit lines (checked before insert).
        - reversal_of_id links a storno to the entry it cancels.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_journal_seq"),
        UniqueConstraint("reversal_of_id", name="uq_journal_reversal_of"),
        Index("idx_journal_booking_date", "booking_date", "seq"),
        Index("idx_journal_document", "document_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    booking_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Source document (Beleg, invoice); no FK so documents may point back here
    document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    contact_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        "JournalLine",
        back_populates="entry",
        order_by="JournalLine.line_seq",
    )

    @property
    def total_debits(self) -> int:
        return sum(line.amount for line in self.lines if line.side == LineSide.DEBIT)

    @property
    def total_credits(self) -> int:
        return sum(line.amount for line in self.lines if line.side == LineSide.CREDIT)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def __repr__(self) -> str:
        return f"<JournalEntry seq={self.seq} {self.booking_date} {self.description!r}>"


class JournalLine(TrackedBase):
    """One debit or credit line of a journal entry."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_seq", name="uq_journal_line_seq"),
        CheckConstraint("amount > 0", name="ck_journal_line_amount_positive"),
        CheckConstraint("side IN ('debit', 'credit')", name="ck_journal_line_side"),
        Index("idx_journal_line_account", "account_id"),
        Index("idx_journal_line_tax_key", "tax_key_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    side: Mapped[LineSide] = mapped_column(String(6), nullable=False)

    # Minor units, always positive
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Tax split as computed at booking time; never recomputed
    tax_key_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    tax_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    entry: Mapped[JournalEntry] = relationship("JournalEntry", back_populates="lines")
    account: Mapped["Account"] = relationship("Account", back_populates="journal_lines")

    @property
    def debit(self) -> int:
        return self.amount if self.side == LineSide.DEBIT else 0

    @property
    def credit(self) -> int:
        return self.amount if self.side == LineSide.CREDIT else 0
