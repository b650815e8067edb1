"""
DTOs -- immutable data transfer objects for the posting pipeline.

Responsibility:
    Defines the value objects that cross the service boundary:
    LineDraft and JournalEntryDraft (input to LedgerService.post),
    JournalLineRecord and JournalEntryRecord (what posting returns),
    AccountInfo (registry read model).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` converters exist for
    the service layer; domain logic never touches ORM rows.

Invariants enforced:
    - Amounts are integer cents and strictly positive on every line.
    - A draft knows its own debit and credit totals; LedgerService decides
      whether an imbalance is an error.

Data flow:
    DocumentService / API -> JournalEntryDraft -> LedgerService.post
        -> JournalEntryRecord
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.journal import JournalEntry


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account's balance is positive."""

    DEBIT = "debit"
    CREDIT = "credit"


class LineSide(str, Enum):
    """Soll (debit) or Haben (credit)."""

    DEBIT = "debit"
    CREDIT = "credit"

    def opposite(self) -> LineSide:
        return LineSide.CREDIT if self is LineSide.DEBIT else LineSide.DEBIT


@dataclass(frozen=True)
class AccountInfo:
    """Read model of a chart-of-accounts entry."""

    id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    is_active: bool = True
    tax_key_code: str | None = None

    @classmethod
    def from_model(cls, model: Account) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=AccountType(model.account_type),
            normal_balance=NormalBalance(model.normal_balance),
            is_active=model.is_active,
            tax_key_code=model.tax_key_code,
        )


@dataclass(frozen=True)
class LineDraft:
    """
    One proposed journal line.

    Tax attributes are optional.  ``tax_amount`` is the tax computed for this
    line's net amount; the tax itself is posted on its own line against the
    tax account.
    """

    account_id: UUID
    side: LineSide
    amount: int
    description: str | None = None
    tax_key_code: str | None = None
    tax_rate: Decimal | None = None
    tax_amount: int = 0

    @classmethod
    def debit(cls, account_id: UUID, amount: int, **kwargs) -> LineDraft:
        return cls(account_id=account_id, side=LineSide.DEBIT, amount=amount, **kwargs)

    @classmethod
    def credit(cls, account_id: UUID, amount: int, **kwargs) -> LineDraft:
        return cls(account_id=account_id, side=LineSide.CREDIT, amount=amount, **kwargs)


@dataclass(frozen=True)
class JournalEntryDraft:
    """
    A journal entry ready to be validated and persisted.

    Guarantees:
        - Immutable; ``lines`` is a tuple.
        - total_debits/total_credits are plain sums, no validation.
    """

    booking_date: date
    description: str
    lines: tuple[LineDraft, ...]
    reference: str | None = None
    document_id: UUID | None = None
    contact_id: UUID | None = None
    reversal_of_id: UUID | None = None
    actor_id: UUID | None = None

    @property
    def total_debits(self) -> int:
        return sum(line.amount for line in self.lines if line.side == LineSide.DEBIT)

    @property
    def total_credits(self) -> int:
        return sum(line.amount for line in self.lines if line.side == LineSide.CREDIT)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


@dataclass(frozen=True)
class JournalLineRecord:
    """A persisted journal line."""

    line_seq: int
    account_id: UUID
    account_code: str
    side: LineSide
    amount: int
    description: str | None = None
    tax_key_code: str | None = None
    tax_rate: Decimal | None = None
    tax_amount: int = 0


@dataclass(frozen=True)
class JournalEntryRecord:
    """
    A posted journal entry.

    Contract:
        Read-side DTO returned by LedgerService.post/reverse.  ``seq`` is the
        strictly increasing ledger sequence number.
    """

    id: UUID
    seq: int
    booking_date: date
    description: str
    lines: tuple[JournalLineRecord, ...]
    reference: str | None = None
    document_id: UUID | None = None
    contact_id: UUID | None = None
    reversal_of_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def total_debits(self) -> int:
        return sum(line.amount for line in self.lines if line.side == LineSide.DEBIT)

    @property
    def total_credits(self) -> int:
        return sum(line.amount for line in self.lines if line.side == LineSide.CREDIT)

    @classmethod
    def from_model(cls, model: JournalEntry) -> JournalEntryRecord:
        lines = tuple(
            JournalLineRecord(
                line_seq=line.line_seq,
                account_id=line.account_id,
                account_code=line.account.code if line.account else "",
                side=LineSide(line.side),
                amount=line.amount,
                description=line.description,
                tax_key_code=line.tax_key_code,
                tax_rate=line.tax_rate,
                tax_amount=line.tax_amount or 0,
            )
            for line in sorted(model.lines, key=lambda x: x.line_seq)
        )
        return cls(
            id=model.id,
            seq=model.seq,
            booking_date=model.booking_date,
            description=model.description,
            lines=lines,
            reference=model.reference,
            document_id=model.document_id,
            contact_id=model.contact_id,
            reversal_of_id=model.reversal_of_id,
            created_at=model.created_at,
        )
