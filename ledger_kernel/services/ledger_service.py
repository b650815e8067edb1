"""
Ledger service - the write side of the journal.

The Ledger is responsible for:
- Validating a JournalEntryDraft (shape, balance, accounts, period lock)
- Assigning the journal sequence number transactionally
- Persisting JournalEntry and JournalLine rows (append-only)
- Posting the storno of an entry (reverse)

The Ledger does NOT:
- Decide which accounts a document books against (documents.policy)
- Compute tax splits (ledger_engines.tax)
- Commit: everything happens inside the caller's transaction
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    JournalEntryDraft,
    JournalEntryRecord,
    LineDraft,
    LineSide,
)
from ledger_kernel.exceptions import (
    EntryAlreadyReversedError,
    EntryNotFoundError,
    ImbalancedEntryError,
    UnknownAccountError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")

STORNO_PREFIX = "Storno: "


@dataclass(frozen=True)
class IntegrityIssue:
    """One finding of verify_integrity(); ``entry_id`` is None for ledger-wide problems."""

    entry_id: UUID | None
    seq: int
    problem: str


class LedgerService:
    """
    Persistence layer for journal entries.

    Contract:
        ``post`` takes a JournalEntryDraft and either writes the complete
        entry or raises before anything is flushed.  ``reverse`` posts a new
        entry with every side swapped; the original is never touched.

    Guarantees:
        - Every persisted entry is balanced (sum debit == sum credit).
        - Every persisted entry has a unique, strictly increasing ``seq``.
        - Every line references an existing, active account.
        - No entry lands in a closed fiscal period.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        period_service: PeriodService | None = None,
        sequence_service: SequenceService | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._periods = period_service or PeriodService(session, self._clock)
        self._sequences = sequence_service or SequenceService(session)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_shape(self, draft: JournalEntryDraft) -> None:
        if not isinstance(draft.booking_date, date):
            raise ValidationError("booking_date must be a date", field="booking_date", step="validate")
        if not (draft.description or "").strip():
            raise ValidationError("Journal entry needs a description", field="description", step="validate")
        if len(draft.lines) < 2:
            raise ValidationError(
                f"Journal entry needs at least two lines, got {len(draft.lines)}",
                field="lines",
                step="validate",
            )
        for index, line in enumerate(draft.lines, start=1):
            if isinstance(line.amount, bool) or not isinstance(line.amount, int):
                raise ValidationError(
                    f"Line {index}: amount must be an integer number of cents",
                    field="amount",
                    step="validate",
                )
            if line.amount <= 0:
                raise ValidationError(
                    f"Line {index}: amount must be positive, got {line.amount}",
                    field="amount",
                    step="validate",
                )
            if line.tax_amount < 0:
                raise ValidationError(
                    f"Line {index}: tax_amount must not be negative",
                    field="tax_amount",
                    step="validate",
                )
            try:
                LineSide(line.side)
            except ValueError:
                raise ValidationError(
                    f"Line {index}: side must be debit or credit, got {line.side!r}",
                    field="side",
                    step="validate",
                ) from None

    def _check_balance(self, draft: JournalEntryDraft) -> None:
        if not draft.is_balanced:
            logger.error(
                "imbalanced_entry_rejected",
                extra={
                    "total_debits": draft.total_debits,
                    "total_credits": draft.total_credits,
                    "booking_date": str(draft.booking_date),
                    "description": draft.description,
                },
            )
            raise ImbalancedEntryError(draft.total_debits, draft.total_credits)

    def _resolve_accounts(
        self,
        draft: JournalEntryDraft,
        allow_inactive: bool = False,
    ) -> dict[UUID, Account]:
        ids = {line.account_id for line in draft.lines}
        found = {
            account.id: account
            for account in self.session.execute(
                select(Account).where(Account.id.in_(ids))
            ).scalars()
        }
        for account_id in ids:
            account = found.get(account_id)
            if account is None:
                raise UnknownAccountError(str(account_id))
            if not account.is_active and not allow_inactive:
                raise UnknownAccountError(account.code, reason="account is inactive")
        return found

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post(self, draft: JournalEntryDraft) -> JournalEntryRecord:
        """
        Validate and persist a balanced journal entry.

        Raises:
            ValidationError: Malformed draft (fewer than two lines,
                non-positive amounts, missing description).
            ImbalancedEntryError: sum(debit) != sum(credit).
            UnknownAccountError: Missing or inactive account.
            PeriodClosedError: booking_date in a closed period.
        """
        return self._post(draft)

    def _post(self, draft: JournalEntryDraft, allow_inactive: bool = False) -> JournalEntryRecord:
        self._validate_shape(draft)
        self._check_balance(draft)
        accounts = self._resolve_accounts(draft, allow_inactive=allow_inactive)
        self._periods.validate_posting_date(draft.booking_date)

        seq = self._sequences.next_value(SequenceService.JOURNAL_ENTRY)

        entry = JournalEntry(
            seq=seq,
            booking_date=draft.booking_date,
            description=draft.description.strip(),
            reference=draft.reference,
            document_id=draft.document_id,
            contact_id=draft.contact_id,
            reversal_of_id=draft.reversal_of_id,
            created_by_id=draft.actor_id,
        )
        for line_seq, line in enumerate(draft.lines, start=1):
            account = accounts[line.account_id]
            entry.lines.append(
                JournalLine(
                    account=account,
                    side=LineSide(line.side).value,
                    amount=line.amount,
                    line_seq=line_seq,
                    description=line.description,
                    tax_key_code=line.tax_key_code or account.tax_key_code,
                    tax_rate=line.tax_rate,
                    tax_amount=line.tax_amount,
                    created_by_id=draft.actor_id,
                )
            )
        self.session.add(entry)
        self.session.flush()

        with LogContext.bind(entry_id=entry.id):
            logger.info(
                "journal_entry_posted",
                extra={
                    "seq": seq,
                    "booking_date": str(draft.booking_date),
                    "line_count": len(draft.lines),
                    "total": draft.total_debits,
                    "reversal_of_id": draft.reversal_of_id,
                },
            )
        return JournalEntryRecord.from_model(entry)

    def _load_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .options(selectinload(JournalEntry.lines))
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def reverse(
        self,
        entry_id: UUID,
        booking_date: date | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> JournalEntryRecord:
        """
        Post the storno of an entry.

        The new entry repeats every line with debit and credit swapped and
        links back through ``reversal_of_id``.  Without an explicit date it
        is booked today, but never before the original.

        Raises:
            EntryNotFoundError: Unknown entry.
            EntryAlreadyReversedError: A storno already exists.
            PeriodClosedError: Storno date in a closed period.
        """
        original = self._load_entry(entry_id)

        existing = self.session.execute(
            select(JournalEntry.id).where(JournalEntry.reversal_of_id == original.id)
        ).scalar_one_or_none()
        if existing is not None:
            raise EntryAlreadyReversedError(str(original.id), str(existing))

        if booking_date is None:
            booking_date = max(original.booking_date, self._clock.today())

        lines = tuple(
            LineDraft(
                account_id=line.account_id,
                side=LineSide(line.side).opposite(),
                amount=line.amount,
                description=line.description,
                tax_key_code=line.tax_key_code,
                tax_rate=line.tax_rate,
                tax_amount=line.tax_amount,
            )
            for line in original.lines
        )
        draft = JournalEntryDraft(
            booking_date=booking_date,
            description=description or f"{STORNO_PREFIX}{original.description}",
            lines=lines,
            reference=original.reference,
            document_id=original.document_id,
            contact_id=original.contact_id,
            reversal_of_id=original.id,
            actor_id=actor_id,
        )
        record = self._post(draft, allow_inactive=True)
        logger.info(
            "journal_entry_reversed",
            extra={"original_entry_id": original.id, "reversal_entry_id": record.id},
        )
        return record

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def verify_integrity(self) -> list[IntegrityIssue]:
        """
        Re-check every stored entry: at least two lines, balanced, positive
        amounts.  ``seq`` must run 1, 2, 3, ... without gaps and end at the
        journal entry counter.  Returns the problems found (empty list when
        clean).
        """
        issues: list[IntegrityIssue] = []
        entries = self.session.execute(
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .order_by(JournalEntry.seq)
        ).scalars()
        last_seq = 0
        for entry in entries:
            if entry.seq != last_seq + 1:
                issues.append(
                    IntegrityIssue(
                        entry.id, entry.seq, f"sequence gap: expected seq {last_seq + 1}"
                    )
                )
            last_seq = entry.seq
            if len(entry.lines) < 2:
                issues.append(IntegrityIssue(entry.id, entry.seq, "fewer than two lines"))
            if any(line.amount <= 0 for line in entry.lines):
                issues.append(IntegrityIssue(entry.id, entry.seq, "non-positive line amount"))
            if not entry.is_balanced:
                issues.append(
                    IntegrityIssue(
                        entry.id,
                        entry.seq,
                        f"imbalanced: debits={entry.total_debits} credits={entry.total_credits}",
                    )
                )

        counter = self._sequences.current_value(SequenceService.JOURNAL_ENTRY) or 0
        if counter != last_seq:
            issues.append(
                IntegrityIssue(
                    None, last_seq, f"sequence counter at {counter}, last stored seq {last_seq}"
                )
            )

        if issues:
            logger.error("ledger_integrity_violations", extra={"issue_count": len(issues)})
        else:
            logger.info("ledger_integrity_verified")
        return issues
