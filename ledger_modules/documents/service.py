"""
Document Service - lifecycle of Belege, invoices and orders.

Thin glue layer that:
1. Asks ``workflows.next_status`` whether an action is allowed
2. Asks PostingPolicy (and through it the TaxEngine) for journal lines
3. Calls LedgerService to post or reverse the entry
4. Moves the document with an optimistic compare-and-set

Every lifecycle operation runs in a SAVEPOINT inside the caller's
transaction.  The status change is

    UPDATE documents SET status=:new, version=version+1
    WHERE id=:id AND status=:expected AND version=:seen

so of two concurrent ``book()`` calls exactly one succeeds; the loser's
savepoint (journal entry included) is rolled back and it gets
AlreadyBookedError or ConflictError.  The caller commits.

Usage:
    with session_scope() as session:
        documents = DocumentService(session)
        beleg = documents.create_beleg("Bueromaterial", 11900, account_code="4930")
        documents.book(beleg.id)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_config import LedgerConfig, get_active_config
from ledger_engines.tax import TaxEngine
from ledger_kernel.db.types import coerce_rate
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import JournalEntryDraft
from ledger_kernel.exceptions import (
    AlreadyBookedError,
    ConflictError,
    DocumentNotFoundError,
    InvalidStateError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.documents.models import (
    BOOKED_STATUSES,
    BelegCategory,
    BelegStatus,
    Document,
    DocumentAction,
    DocumentLineInput,
    DocumentType,
    InvoiceStatus,
    OrderStatus,
)
from ledger_modules.documents.orm import (
    BelegModel,
    DocumentLineModel,
    DocumentModel,
    InvoiceModel,
    OrderModel,
)
from ledger_modules.documents.policy import PolicyAccounts, PostingPolicy
from ledger_modules.documents.workflows import Transition, next_status

logger = get_logger("modules.documents.service")

_MODEL_BY_TYPE: dict[DocumentType, type[DocumentModel]] = {
    DocumentType.BELEG: BelegModel,
    DocumentType.INVOICE: InvoiceModel,
    DocumentType.ORDER: OrderModel,
}

_DEFAULT_PREFIXES = {
    DocumentType.BELEG: "BEL",
    DocumentType.INVOICE: "RE",
    DocumentType.ORDER: "AU",
}

# Statuses in which a document may still be edited or deleted
_EDITABLE_STATUSES = frozenset({BelegStatus.DRAFT.value, OrderStatus.OPEN.value})

_EDITABLE_FIELDS = frozenset({
    "title",
    "amount",
    "document_date",
    "due_date",
    "category",
    "tax_rate",
    "account_code",
    "contra_account_code",
    "contact_id",
    "notes",
    "lines",
})


class DocumentService:
    """
    Orchestrates document lifecycles through the policy, the tax engine and
    the ledger.

    Transaction boundary: flush-only.  Each operation is atomic through its
    own SAVEPOINT; committing is the caller's job (``session_scope``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        tax_engine: TaxEngine | None = None,
        ledger: LedgerService | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._tax = tax_engine or TaxEngine.from_definitions(self._config.tax_keys)
        self._ledger = ledger or LedgerService(session, self._clock)
        self._accounts = AccountRegistry(session, tax_key_codes=self._tax.codes())
        self._sequences = SequenceService(session)
        self._policy = PostingPolicy(
            self._tax,
            PolicyAccounts.from_config(self._config.posting_policy),
            self._accounts.get_by_code,
            self._accounts.get,
        )

    @property
    def policy(self) -> PostingPolicy:
        return self._policy

    # =========================================================================
    # Lookups
    # =========================================================================

    def _load(self, document_id: UUID, document_type: DocumentType | None = None) -> DocumentModel:
        document = self.session.get(DocumentModel, document_id)
        if document is None or (
            document_type is not None and document.document_type != document_type.value
        ):
            raise DocumentNotFoundError(
                str(document_id), document_type.value if document_type else None
            )
        return document

    def get(self, document_id: UUID, document_type: DocumentType | str | None = None) -> Document:
        kind = DocumentType(document_type) if document_type else None
        return self._load(document_id, kind).to_dto()

    def list(
        self,
        document_type: DocumentType | str | None = None,
        status: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[Document]:
        stmt = select(DocumentModel)
        if document_type is not None:
            stmt = stmt.where(DocumentModel.document_type == DocumentType(document_type).value)
        if status is not None:
            stmt = stmt.where(DocumentModel.status == status)
        if from_date is not None:
            stmt = stmt.where(DocumentModel.document_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(DocumentModel.document_date <= to_date)
        stmt = stmt.order_by(DocumentModel.document_date, DocumentModel.document_number)
        return [d.to_dto() for d in self.session.execute(stmt).scalars()]

    # =========================================================================
    # Input validation
    # =========================================================================

    @staticmethod
    def _check_title(title: str | None) -> str:
        if not (title or "").strip():
            raise ValidationError("Document needs a title", field="title", step="validate")
        return title.strip()

    @staticmethod
    def _check_cents(value: Any, field: str, allow_zero: bool = False) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"{field} must be an integer number of cents", field=field, step="validate"
            )
        if value < 0 or (value == 0 and not allow_zero):
            raise ValidationError(
                f"{field} must be positive, got {value}", field=field, step="validate"
            )
        return value

    @staticmethod
    def _check_quantity(value: Any, field: str = "quantity") -> Decimal:
        try:
            quantity = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Invalid {field}: {value!r}", field=field, step="validate") from None
        if not quantity.is_finite() or quantity <= 0:
            raise ValidationError(f"{field} must be positive, got {value}", field=field, step="validate")
        return quantity

    @staticmethod
    def _check_rate(rate: Any) -> Decimal | None:
        if rate is None:
            return None
        try:
            value = coerce_rate(Decimal(str(rate)))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Invalid tax rate: {rate!r}", field="tax_rate", step="validate") from None
        if not Decimal(0) <= value <= Decimal(100):
            raise ValidationError(
                f"Tax rate must be between 0 and 100, got {value}", field="tax_rate", step="validate"
            )
        return value

    @staticmethod
    def _check_category(category: BelegCategory | str) -> str:
        try:
            return BelegCategory(category).value
        except ValueError:
            raise ValidationError(
                f"Unknown Beleg category {category!r}; expected one of "
                f"{[c.value for c in BelegCategory]}",
                field="category",
                step="validate",
            ) from None

    def _account_id(self, code: str | None) -> UUID | None:
        if code is None:
            return None
        return self._policy.account(code).id

    def _build_lines(self, lines: Sequence[DocumentLineInput]) -> list[DocumentLineModel]:
        models = []
        for line_no, line in enumerate(lines, start=1):
            if not (line.description or "").strip():
                raise ValidationError(
                    f"Line {line_no}: description is required", field="description", step="validate"
                )
            models.append(
                DocumentLineModel(
                    line_no=line_no,
                    description=line.description.strip(),
                    quantity=self._check_quantity(line.quantity),
                    unit_price=self._check_cents(line.unit_price, "unit_price", allow_zero=True),
                    account_id=self._account_id(line.account_code),
                    tax_rate=self._check_rate(line.tax_rate),
                    delivered_quantity=Decimal("0"),
                    invoiced_quantity=Decimal("0"),
                )
            )
        return models

    # =========================================================================
    # Numbering, totals, compare-and-set
    # =========================================================================

    def _next_number(self, document_type: DocumentType, document_date: date) -> str:
        prefix = self._config.document_prefixes.get(
            document_type.value, _DEFAULT_PREFIXES[document_type]
        )
        year = document_date.year
        seq = self._sequences.next_value(SequenceService.document_sequence(prefix, year))
        return f"{prefix}-{year}-{seq:04d}"

    def _apply_totals(self, document: DocumentModel) -> None:
        plan = self._policy.preview(document)
        document.amount = plan.gross
        document.net_amount = plan.net
        document.tax_amount = plan.tax

    def _transition(
        self,
        document: DocumentModel,
        action: DocumentAction,
        target: str | None = None,
    ) -> Transition:
        return next_status(
            document.document_type, document.status, action, target, str(document.id)
        )

    def _compare_and_set(
        self,
        document: DocumentModel,
        expected_status: str,
        new_status: str,
        action: DocumentAction | None = None,
        **values: Any,
    ) -> None:
        """Move ``document`` from ``expected_status`` unless someone else did first."""
        result = self.session.execute(
            update(DocumentModel)
            .where(
                DocumentModel.id == document.id,
                DocumentModel.status == expected_status,
                DocumentModel.version == document.version,
            )
            .values(status=new_status, version=DocumentModel.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._lost_race(document, expected_status, action)
        self.session.refresh(document)

    def _lost_race(
        self,
        document: DocumentModel,
        expected_status: str,
        action: DocumentAction | None,
    ) -> None:
        current = self.session.execute(
            select(DocumentModel.status).where(DocumentModel.id == document.id)
        ).scalar_one_or_none()
        logger.warning(
            "document_transition_conflict",
            extra={
                "document_id": document.id,
                "expected_status": expected_status,
                "actual_status": current,
                "action": action.value if action else None,
            },
        )
        if current is None:
            raise DocumentNotFoundError(str(document.id), document.document_type)
        if action == DocumentAction.BOOK and current in BOOKED_STATUSES:
            raise AlreadyBookedError(str(document.id), current_status=current)
        raise ConflictError(str(document.id), expected_status, current)

    def _move(self, document: DocumentModel, transition: Transition, **values: Any) -> None:
        self._compare_and_set(
            document, transition.from_state, transition.to_state, transition.action, **values
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def _create(
        self,
        document_type: DocumentType,
        *,
        title: str,
        document_date: date | None,
        status: str,
        actor_id: UUID | None,
        **columns: Any,
    ) -> DocumentModel:
        day = document_date or self._clock.today()
        document = _MODEL_BY_TYPE[document_type](
            document_number=self._next_number(document_type, day),
            status=status,
            version=1,
            title=self._check_title(title),
            document_date=day,
            created_by_id=actor_id,
            **columns,
        )
        return document

    def _persist_new(self, document: DocumentModel) -> Document:
        self._apply_totals(document)
        self.session.add(document)
        self.session.flush()
        with LogContext.bind(document_id=document.id):
            logger.info(
                "document_created",
                extra={
                    "document_type": document.document_type,
                    "document_number": document.document_number,
                    "amount": document.amount,
                    "line_count": len(document.lines),
                },
            )
        return document.to_dto()

    def create_beleg(
        self,
        title: str,
        amount: int,
        *,
        category: BelegCategory | str = BelegCategory.INCOMING,
        document_date: date | None = None,
        tax_rate: Decimal | None = None,
        account_code: str | None = None,
        contra_account_code: str | None = None,
        due_date: date | None = None,
        contact_id: UUID | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Create a Beleg in ``draft``.

        ``amount`` is the gross amount in cents.  Without ``tax_rate`` the
        rate of the account's default tax key applies at booking time.
        """
        with self.session.begin_nested():
            document = self._create(
                DocumentType.BELEG,
                title=title,
                document_date=document_date,
                status=BelegStatus.DRAFT.value,
                actor_id=actor_id,
                amount=self._check_cents(amount, "amount"),
                category=self._check_category(category),
                tax_rate=self._check_rate(tax_rate),
                account_id=self._account_id(account_code),
                contra_account_id=self._account_id(contra_account_code),
                due_date=due_date,
                contact_id=contact_id,
                notes=notes,
            )
            return self._persist_new(document)

    def create_invoice(
        self,
        title: str,
        lines: Sequence[DocumentLineInput] = (),
        *,
        amount: int | None = None,
        document_date: date | None = None,
        tax_rate: Decimal | None = None,
        account_code: str | None = None,
        contra_account_code: str | None = None,
        due_date: date | None = None,
        contact_id: UUID | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Create an outgoing invoice in ``draft``.

        Either ``lines`` (net unit prices) or a gross ``amount`` is required.
        """
        if not lines and amount is None:
            raise ValidationError(
                "Invoice needs lines or a gross amount", field="lines", step="validate"
            )
        with self.session.begin_nested():
            document = self._create(
                DocumentType.INVOICE,
                title=title,
                document_date=document_date,
                status=InvoiceStatus.DRAFT.value,
                actor_id=actor_id,
                amount=0 if lines else self._check_cents(amount, "amount"),
                tax_rate=self._check_rate(tax_rate),
                account_id=self._account_id(account_code),
                contra_account_id=self._account_id(contra_account_code),
                due_date=due_date,
                contact_id=contact_id,
                notes=notes,
            )
            document.lines = self._build_lines(lines)
            return self._persist_new(document)

    def create_order(
        self,
        title: str,
        lines: Sequence[DocumentLineInput],
        *,
        document_date: date | None = None,
        tax_rate: Decimal | None = None,
        account_code: str | None = None,
        contra_account_code: str | None = None,
        due_date: date | None = None,
        contact_id: UUID | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """Create a customer order in ``open``.  Orders need at least one line."""
        if not lines:
            raise ValidationError("Order needs at least one line", field="lines", step="validate")
        with self.session.begin_nested():
            document = self._create(
                DocumentType.ORDER,
                title=title,
                document_date=document_date,
                status=OrderStatus.OPEN.value,
                actor_id=actor_id,
                tax_rate=self._check_rate(tax_rate),
                account_id=self._account_id(account_code),
                contra_account_id=self._account_id(contra_account_code),
                due_date=due_date,
                contact_id=contact_id,
                notes=notes,
            )
            document.lines = self._build_lines(lines)
            return self._persist_new(document)

    # =========================================================================
    # Draft editing
    # =========================================================================

    def _check_editable(self, document: DocumentModel, operation: str) -> None:
        touched = any(
            line.delivered_quantity or line.invoiced_quantity for line in document.lines
        )
        if document.status not in _EDITABLE_STATUSES or touched:
            raise InvalidStateError(
                f"Cannot {operation} {document.document_type} {document.document_number} "
                f"in status {document.status!r}",
                current_status=document.status,
                action=operation,
                step="validate",
            )

    def update(
        self,
        document_id: UUID,
        *,
        expected_version: int | None = None,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> Document:
        """
        Edit a draft Beleg/invoice or an untouched open order.

        Accepted fields: title, amount, document_date, due_date, category,
        tax_rate, account_code, contra_account_code, contact_id, notes,
        lines.  ``expected_version`` turns the edit into a compare-and-set
        against what the caller last saw.

        ``amount`` only applies to Belege and invoices without lines; with
        lines the totals are computed.  Invoices created from an order keep
        the order's lines.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be edited: {sorted(unknown)}", field=sorted(unknown)[0], step="validate"
            )
        with self.session.begin_nested():
            document = self._load(document_id)
            self._check_editable(document, "update")
            if document.document_type != DocumentType.BELEG.value:
                lines_after = changes["lines"] if "lines" in changes else document.lines
                if "amount" in changes and lines_after:
                    raise ValidationError(
                        f"{document.document_number}: amount is computed from the lines",
                        field="amount",
                        step="validate",
                    )
                if "lines" in changes and document.source_order_id is not None:
                    raise ValidationError(
                        f"Invoice {document.document_number} was created from an order; "
                        "its lines follow the order",
                        field="lines",
                        step="validate",
                    )
            if expected_version is not None and expected_version != document.version:
                raise ConflictError(str(document.id), document.status, document.status)
            self._compare_and_set(
                document, document.status, document.status, updated_by_id=actor_id
            )

            if "title" in changes:
                document.title = self._check_title(changes["title"])
            if "amount" in changes:
                document.amount = self._check_cents(changes["amount"], "amount")
            if "document_date" in changes and changes["document_date"] is not None:
                document.document_date = changes["document_date"]
            if "due_date" in changes:
                document.due_date = changes["due_date"]
            if "category" in changes and document.document_type == DocumentType.BELEG.value:
                document.category = self._check_category(changes["category"])
            if "tax_rate" in changes:
                document.tax_rate = self._check_rate(changes["tax_rate"])
            if "account_code" in changes:
                document.account_id = self._account_id(changes["account_code"])
            if "contra_account_code" in changes:
                document.contra_account_id = self._account_id(changes["contra_account_code"])
            if "contact_id" in changes:
                document.contact_id = changes["contact_id"]
            if "notes" in changes:
                document.notes = changes["notes"]
            if "lines" in changes and document.document_type != DocumentType.BELEG.value:
                new_lines = self._build_lines(changes["lines"])
                if document.document_type == DocumentType.ORDER.value and not new_lines:
                    raise ValidationError(
                        "Order needs at least one line", field="lines", step="validate"
                    )
                document.lines.clear()
                self.session.flush()
                document.lines.extend(new_lines)

            self._apply_totals(document)
            self.session.flush()

        with LogContext.bind(document_id=document.id):
            logger.info(
                "document_updated",
                extra={"fields": sorted(changes), "version": document.version},
            )
        return document.to_dto()

    def delete(self, document_id: UUID) -> None:
        """Delete a draft (or untouched open order).  Its number is not reused."""
        with self.session.begin_nested():
            document = self._load(document_id)
            self._check_editable(document, "delete")
            if document.source_order_id is not None:
                raise InvalidStateError(
                    f"Invoice {document.document_number} was created from an order; cancel it instead",
                    current_status=document.status,
                    action="delete",
                    step="validate",
                )
            self._compare_and_set(document, document.status, document.status)
            number = document.document_number
            self.session.delete(document)
            self.session.flush()
        logger.info("document_deleted", extra={"document_id": document_id, "document_number": number})

    def attach_file(self, document_id: UUID, file_name: str, file_path: str) -> Document:
        """Record where the uploaded scan of a document is stored."""
        if not (file_name or "").strip():
            raise ValidationError("file_name is required", field="file_name", step="validate")
        with self.session.begin_nested():
            document = self._load(document_id)
            self._compare_and_set(
                document,
                document.status,
                document.status,
                file_name=file_name.strip(),
                file_path=file_path,
            )
        with LogContext.bind(document_id=document.id):
            logger.info("document_file_attached", extra={"file_name": document.file_name})
        return document.to_dto()

    # =========================================================================
    # Booking, payment, sending, cancellation
    # =========================================================================

    def book(
        self,
        document_id: UUID,
        booking_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Book a draft Beleg or invoice.

        Splits the gross amount, posts the journal entry (dated on the
        document date unless ``booking_date`` is given) and moves the
        document to ``booked``; all or nothing.

        Raises:
            AlreadyBookedError: Document was booked before (also when a
                concurrent caller won the race).
            InvalidStateError: Document is cancelled, or is an order.
            ValidationError, UnknownAccountError, PeriodClosedError: the
                document stays in ``draft``.
        """
        with self.session.begin_nested():
            document = self._load(document_id)
            if document.document_type == DocumentType.ORDER.value:
                raise InvalidStateError(
                    "Orders are not booked; invoice them instead",
                    current_status=document.status,
                    action=DocumentAction.BOOK.value,
                )
            with LogContext.bind(document_id=document.id):
                transition = self._transition(document, DocumentAction.BOOK)
                plan = self._policy.plan_booking(document)
                entry = self._ledger.post(
                    JournalEntryDraft(
                        booking_date=booking_date or document.document_date,
                        description=f"{document.document_number} {document.title}",
                        lines=plan.lines,
                        reference=document.document_number,
                        document_id=document.id,
                        contact_id=document.contact_id,
                        actor_id=actor_id,
                    )
                )
                values: dict[str, Any] = {
                    "journal_entry_id": entry.id,
                    "amount": plan.gross,
                    "net_amount": plan.net,
                    "tax_amount": plan.tax,
                    "account_id": plan.account_id,
                    "contra_account_id": plan.contra_account_id,
                    "booked_at": self._clock.now(),
                    "updated_by_id": actor_id,
                }
                if document.tax_rate is None and plan.tax_rate is not None:
                    values["tax_rate"] = plan.tax_rate
                self._move(document, transition, **values)

                logger.info(
                    "document_booked",
                    extra={
                        "document_number": document.document_number,
                        "entry_id": entry.id,
                        "seq": entry.seq,
                        "gross": plan.gross,
                        "net": plan.net,
                        "tax": plan.tax,
                    },
                )
        return document.to_dto()

    def record_payment(
        self,
        document_id: UUID,
        payment_date: date | None = None,
        payment_account_code: str | None = None,
        payment_account_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Record the (single, full) payment of a booked Beleg or invoice.

        Raises:
            InvalidStateError: Document is draft, already paid or cancelled.
        """
        with self.session.begin_nested():
            document = self._load(document_id)
            with LogContext.bind(document_id=document.id):
                transition = self._transition(document, DocumentAction.PAY)
                if payment_account_id is not None:
                    payment_account = self._accounts.get(payment_account_id)
                else:
                    payment_account = self._policy.account(
                        payment_account_code or self._config.posting_policy.payment_account
                    )
                day = payment_date or self._clock.today()
                entry = self._ledger.post(
                    JournalEntryDraft(
                        booking_date=day,
                        description=f"Zahlung {document.document_number} {document.title}",
                        lines=self._policy.payment_lines(document, payment_account),
                        reference=document.document_number,
                        document_id=document.id,
                        contact_id=document.contact_id,
                        actor_id=actor_id,
                    )
                )
                self._move(
                    document,
                    transition,
                    payment_entry_id=entry.id,
                    paid_at=day,
                    updated_by_id=actor_id,
                )
                logger.info(
                    "document_payment_recorded",
                    extra={
                        "document_number": document.document_number,
                        "entry_id": entry.id,
                        "payment_account": payment_account.code,
                        "amount": document.amount,
                    },
                )
        return document.to_dto()

    def mark_sent(self, document_id: UUID, actor_id: UUID | None = None) -> Document:
        """``booked -> sent``; sending a sent invoice again changes nothing."""
        with self.session.begin_nested():
            document = self._load(document_id, DocumentType.INVOICE)
            if document.status == InvoiceStatus.SENT.value:
                return document.to_dto()
            transition = self._transition(document, DocumentAction.SEND)
            self._move(document, transition, sent_at=self._clock.now(), updated_by_id=actor_id)
        with LogContext.bind(document_id=document.id):
            logger.info("document_sent", extra={"document_number": document.document_number})
        return document.to_dto()

    def cancel(
        self,
        document_id: UUID,
        booking_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Cancel a document.

        Drafts and open orders are simply cancelled.  Booked or sent
        documents get the storno of their booking entry in the same
        transaction.  Paid documents cannot be cancelled.  An invoice
        created from an order gives its quantities back to the order,
        unless the order is already completed.
        """
        with self.session.begin_nested():
            document = self._load(document_id)
            with LogContext.bind(document_id=document.id):
                transition = self._transition(document, DocumentAction.CANCEL)
                values: dict[str, Any] = {
                    "cancelled_at": self._clock.now(),
                    "updated_by_id": actor_id,
                }
                if transition.posts_entry and document.journal_entry_id is not None:
                    storno = self._ledger.reverse(
                        document.journal_entry_id, booking_date=booking_date, actor_id=actor_id
                    )
                    values["reversal_entry_id"] = storno.id
                self._move(document, transition, **values)
                if document.source_order_id is not None:
                    self._release_order_lines(document, actor_id)
                logger.info(
                    "document_cancelled",
                    extra={
                        "document_number": document.document_number,
                        "from_status": transition.from_state,
                        "reversal_entry_id": values.get("reversal_entry_id"),
                    },
                )
        return document.to_dto()

    # =========================================================================
    # Orders
    # =========================================================================

    def _order_lines(
        self,
        order: DocumentModel,
        quantities: Mapping[UUID, Any],
    ) -> list[tuple[DocumentLineModel, Decimal]]:
        by_id = {line.id: line for line in order.lines}
        result = []
        for line_id, raw in quantities.items():
            line = by_id.get(line_id if isinstance(line_id, UUID) else UUID(str(line_id)))
            if line is None:
                raise ValidationError(
                    f"Line {line_id} does not belong to order {order.document_number}",
                    field="line_id",
                    step="validate",
                )
            result.append((line, self._check_quantity(raw)))
        if not result:
            raise ValidationError("No quantities given", field="quantities", step="validate")
        return result

    @staticmethod
    def _reopened_status(order: DocumentModel) -> OrderStatus:
        lines = order.lines
        if any(Decimal(line.invoiced_quantity) for line in lines):
            return OrderStatus.PARTIAL_INVOICED
        if all(Decimal(line.delivered_quantity) >= Decimal(line.quantity) for line in lines):
            return OrderStatus.DELIVERED
        if any(Decimal(line.delivered_quantity) for line in lines):
            return OrderStatus.PARTIAL_DELIVERED
        return OrderStatus.OPEN

    def _release_order_lines(self, invoice: DocumentModel, actor_id: UUID | None) -> None:
        order = self._load(invoice.source_order_id, DocumentType.ORDER)
        if order.status == OrderStatus.COMPLETED.value:
            logger.info(
                "order_release_skipped",
                extra={"order_number": order.document_number, "status": order.status},
            )
            return
        by_id = {line.id: line for line in order.lines}
        for invoice_line in invoice.lines:
            line = by_id[invoice_line.source_line_id]
            line.invoiced_quantity = Decimal(line.invoiced_quantity) - Decimal(invoice_line.quantity)
        target = self._reopened_status(order)
        transition = self._transition(order, DocumentAction.RELEASE, target.value)
        self._move(order, transition, updated_by_id=actor_id)
        logger.info(
            "order_quantities_released",
            extra={"order_number": order.document_number, "status": order.status},
        )

    def record_delivery(
        self,
        order_id: UUID,
        quantities: Mapping[UUID, Any],
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Record delivered quantities per order line.

        Raises:
            ValidationError: Delivering more than was ordered.
            InvalidStateError: Order already invoiced, completed or cancelled.
        """
        with self.session.begin_nested():
            order = self._load(order_id, DocumentType.ORDER)
            for line, quantity in self._order_lines(order, quantities):
                delivered = Decimal(line.delivered_quantity) + quantity
                if delivered > Decimal(line.quantity):
                    raise ValidationError(
                        f"Line {line.line_no}: delivering {delivered} exceeds ordered {line.quantity}",
                        field="quantity",
                        step="validate",
                    )
                line.delivered_quantity = delivered
            complete = all(
                Decimal(line.delivered_quantity) >= Decimal(line.quantity) for line in order.lines
            )
            target = OrderStatus.DELIVERED if complete else OrderStatus.PARTIAL_DELIVERED
            transition = self._transition(order, DocumentAction.DELIVER, target.value)
            self._move(order, transition, updated_by_id=actor_id)
        with LogContext.bind(document_id=order.id):
            logger.info(
                "order_delivery_recorded",
                extra={"document_number": order.document_number, "status": order.status},
            )
        return order.to_dto()

    def create_invoice_from_order(
        self,
        order_id: UUID,
        quantities: Mapping[UUID, Any] | None = None,
        document_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> Document:
        """
        Create a draft invoice from order lines.

        Without ``quantities`` every line is invoiced with its remaining
        quantity.  The order moves to ``partial_invoiced`` or ``invoiced``.

        Raises:
            ValidationError: Invoicing more than was ordered, or nothing left.
        """
        with self.session.begin_nested():
            order = self._load(order_id, DocumentType.ORDER)
            if quantities is None:
                picked = [
                    (line, Decimal(line.quantity) - Decimal(line.invoiced_quantity))
                    for line in order.lines
                    if Decimal(line.invoiced_quantity) < Decimal(line.quantity)
                ]
                if not picked:
                    raise ValidationError(
                        f"Order {order.document_number} has nothing left to invoice",
                        field="quantities",
                        step="validate",
                    )
            else:
                picked = self._order_lines(order, quantities)

            invoice_lines = []
            for line_no, (line, quantity) in enumerate(picked, start=1):
                invoiced = Decimal(line.invoiced_quantity) + quantity
                if invoiced > Decimal(line.quantity):
                    raise ValidationError(
                        f"Line {line.line_no}: invoicing {invoiced} exceeds ordered {line.quantity}",
                        field="quantity",
                        step="validate",
                    )
                line.invoiced_quantity = invoiced
                invoice_lines.append(
                    DocumentLineModel(
                        line_no=line_no,
                        description=line.description,
                        quantity=quantity,
                        unit_price=line.unit_price,
                        account_id=line.account_id,
                        tax_rate=line.tax_rate,
                        delivered_quantity=Decimal("0"),
                        invoiced_quantity=Decimal("0"),
                        source_line_id=line.id,
                    )
                )

            complete = all(
                Decimal(line.invoiced_quantity) >= Decimal(line.quantity) for line in order.lines
            )
            target = OrderStatus.INVOICED if complete else OrderStatus.PARTIAL_INVOICED
            transition = self._transition(order, DocumentAction.INVOICE, target.value)

            invoice = self._create(
                DocumentType.INVOICE,
                title=order.title,
                document_date=document_date,
                status=InvoiceStatus.DRAFT.value,
                actor_id=actor_id,
                tax_rate=order.tax_rate,
                account_id=order.account_id,
                contra_account_id=order.contra_account_id,
                contact_id=order.contact_id,
                source_order_id=order.id,
            )
            invoice.lines = invoice_lines
            created = self._persist_new(invoice)
            self._move(order, transition, updated_by_id=actor_id)

        with LogContext.bind(document_id=order.id):
            logger.info(
                "order_invoiced",
                extra={
                    "document_number": order.document_number,
                    "invoice_number": created.document_number,
                    "status": order.status,
                },
            )
        return created

    def complete_order(self, order_id: UUID, actor_id: UUID | None = None) -> Document:
        """``invoiced -> completed``."""
        with self.session.begin_nested():
            order = self._load(order_id, DocumentType.ORDER)
            transition = self._transition(order, DocumentAction.COMPLETE)
            self._move(order, transition, updated_by_id=actor_id)
        with LogContext.bind(document_id=order.id):
            logger.info("order_completed", extra={"document_number": order.document_number})
        return order.to_dto()
