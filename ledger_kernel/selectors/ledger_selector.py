"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: line scans, trial balance totals,
    account balances and the running account statement (balance_range).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Lines are always ordered by (booking_date, seq, line_seq).
    - Each method reads its rows with a single SELECT, so one call sees one
      consistent state of the journal.
    - Balances follow the sign convention of domain/balance.py.

Decision:
    balance_range() reports window totals (total_debit/total_credit) for the
    requested window only, while opening_balance and closing_balance cover
    the account's full history up to the window bounds.  Callers that want
    window-only balances pass ``carry_forward=False``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import selectinload

from ledger_kernel.domain.balance import natural_balance, signed_amount
from ledger_kernel.domain.dtos import AccountInfo, AccountType, JournalEntryRecord, LineSide
from ledger_kernel.exceptions import AccountNotFoundError, EntryNotFoundError, ValidationError
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerLine:
    """A journal line flattened with its entry and account."""

    entry_id: UUID
    seq: int
    booking_date: date
    entry_description: str
    reference: str | None
    document_id: UUID | None
    contact_id: UUID | None
    reversal_of_id: UUID | None
    line_seq: int
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    side: LineSide
    amount: int
    description: str | None
    tax_key_code: str | None
    tax_rate: Decimal | None
    tax_amount: int

    @property
    def debit(self) -> int:
        return self.amount if self.side == LineSide.DEBIT else 0

    @property
    def credit(self) -> int:
        return self.amount if self.side == LineSide.CREDIT else 0


@dataclass(frozen=True)
class TrialBalanceRow:
    """Debit/credit totals of one account."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: int
    credit_total: int

    @property
    def balance(self) -> int:
        return natural_balance(self.account_type, self.debit_total, self.credit_total)


@dataclass(frozen=True)
class AccountMovement:
    """One line of an account statement with the running balance after it."""

    entry_id: UUID
    seq: int
    booking_date: date
    description: str
    reference: str | None
    contact_id: UUID | None
    side: LineSide
    amount: int
    running_balance: int

    @property
    def debit(self) -> int:
        return self.amount if self.side == LineSide.DEBIT else 0

    @property
    def credit(self) -> int:
        return self.amount if self.side == LineSide.CREDIT else 0


@dataclass(frozen=True)
class AccountRange:
    """Result of balance_range()."""

    account: AccountInfo
    from_date: date | None
    to_date: date | None
    opening_balance: int
    movements: tuple[AccountMovement, ...]
    total_debit: int
    total_credit: int
    closing_balance: int


class LedgerSelector(BaseSelector):
    """Read side of the journal."""

    def _line_query(self):
        return (
            select(JournalLine, JournalEntry, Account)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalLine.account_id == Account.id)
            .order_by(JournalEntry.booking_date, JournalEntry.seq, JournalLine.line_seq)
        )

    @staticmethod
    def _to_ledger_line(line: JournalLine, entry: JournalEntry, account: Account) -> LedgerLine:
        return LedgerLine(
            entry_id=entry.id,
            seq=entry.seq,
            booking_date=entry.booking_date,
            entry_description=entry.description,
            reference=entry.reference,
            document_id=entry.document_id,
            contact_id=entry.contact_id,
            reversal_of_id=entry.reversal_of_id,
            line_seq=line.line_seq,
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            account_type=AccountType(account.account_type),
            side=LineSide(line.side),
            amount=line.amount,
            description=line.description,
            tax_key_code=line.tax_key_code,
            tax_rate=line.tax_rate,
            tax_amount=line.tax_amount or 0,
        )

    @staticmethod
    def _check_range(from_date: date | None, to_date: date | None) -> None:
        if from_date is not None and to_date is not None and from_date > to_date:
            raise ValidationError(
                f"from_date {from_date} is after to_date {to_date}", field="from_date"
            )

    def lines(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        account_id: UUID | None = None,
    ) -> list[LedgerLine]:
        """All journal lines in [from_date, to_date], in ledger order."""
        self._check_range(from_date, to_date)
        stmt = self._line_query()
        if from_date is not None:
            stmt = stmt.where(JournalEntry.booking_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(JournalEntry.booking_date <= to_date)
        if account_id is not None:
            stmt = stmt.where(JournalLine.account_id == account_id)
        return [self._to_ledger_line(*row) for row in self.session.execute(stmt).all()]

    def entries(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[JournalEntryRecord]:
        """Journal entries with their lines, ordered by (booking_date, seq)."""
        self._check_range(from_date, to_date)
        stmt = (
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines).selectinload(JournalLine.account))
            .order_by(JournalEntry.booking_date, JournalEntry.seq)
        )
        if from_date is not None:
            stmt = stmt.where(JournalEntry.booking_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(JournalEntry.booking_date <= to_date)
        return [JournalEntryRecord.from_model(e) for e in self.session.execute(stmt).scalars()]

    def get_entry(self, entry_id: UUID) -> JournalEntryRecord:
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .options(selectinload(JournalEntry.lines).selectinload(JournalLine.account))
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return JournalEntryRecord.from_model(entry)

    def trial_balance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[TrialBalanceRow]:
        """Per-account debit/credit totals for accounts with activity, by code."""
        self._check_range(from_date, to_date)
        debit_sum = func.coalesce(
            func.sum(case((JournalLine.side == LineSide.DEBIT.value, JournalLine.amount), else_=0)),
            0,
        )
        credit_sum = func.coalesce(
            func.sum(case((JournalLine.side == LineSide.CREDIT.value, JournalLine.amount), else_=0)),
            0,
        )
        stmt = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                debit_sum.label("debit_total"),
                credit_sum.label("credit_total"),
            )
            .join(JournalLine, JournalLine.account_id == Account.id)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )
        if from_date is not None:
            stmt = stmt.where(JournalEntry.booking_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(JournalEntry.booking_date <= to_date)

        return [
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=AccountType(row.account_type),
                debit_total=int(row.debit_total),
                credit_total=int(row.credit_total),
            )
            for row in self.session.execute(stmt).all()
        ]

    def account_balances(self, as_of: date | None = None) -> list[TrialBalanceRow]:
        """Every account (with or without activity) and its balance up to as_of."""
        active = {row.account_id: row for row in self.trial_balance(to_date=as_of)}
        result = []
        for account in self.session.execute(select(Account).order_by(Account.code)).scalars():
            row = active.get(account.id)
            result.append(
                row
                if row is not None
                else TrialBalanceRow(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=AccountType(account.account_type),
                    debit_total=0,
                    credit_total=0,
                )
            )
        return result

    def balance_range(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
        carry_forward: bool = True,
    ) -> AccountRange:
        """
        Account statement for [from_date, to_date].

        The opening balance is the signed sum of every line before
        ``from_date``.  Each movement carries the running balance after it.
        The closing balance equals opening balance plus the signed window
        movements.  With ``carry_forward=False`` the opening balance is
        treated as zero.

        Raises:
            AccountNotFoundError: Unknown account.
            ValidationError: from_date after to_date.
        """
        self._check_range(from_date, to_date)
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        info = AccountInfo.from_model(account)

        # One scan over the history up to to_date
        history = self.lines(to_date=to_date, account_id=account_id)

        opening = 0
        movements: list[AccountMovement] = []
        total_debit = total_credit = 0
        running = None
        for line in history:
            contribution = signed_amount(info.account_type, line.side, line.amount)
            if from_date is not None and line.booking_date < from_date:
                opening += contribution
                continue
            if running is None:
                running = opening if carry_forward else 0
            running += contribution
            if line.side == LineSide.DEBIT:
                total_debit += line.amount
            else:
                total_credit += line.amount
            movements.append(
                AccountMovement(
                    entry_id=line.entry_id,
                    seq=line.seq,
                    booking_date=line.booking_date,
                    description=line.description or line.entry_description,
                    reference=line.reference,
                    contact_id=line.contact_id,
                    side=line.side,
                    amount=line.amount,
                    running_balance=running,
                )
            )

        if not carry_forward:
            opening = 0
        closing = opening + natural_balance(info.account_type, total_debit, total_credit)

        return AccountRange(
            account=info,
            from_date=from_date,
            to_date=to_date,
            opening_balance=opening,
            movements=tuple(movements),
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=closing,
        )
