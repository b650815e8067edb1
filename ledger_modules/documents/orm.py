"""
Document ORM Models (``ledger_modules.documents.orm``).

Responsibility
--------------
Persistence for Belege, invoices and orders.  One ``documents`` table with
single-table inheritance on ``document_type``; lines live in
``document_lines``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``.
MUST NOT be imported by ``ledger_kernel`` except through
``ledger_kernel.models.import_all_models``.

Invariants enforced
-------------------
* document_number is unique.
* ``version`` grows by one on every status change and every edit; the
  service's compare-and-set matches on (status, version).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import round_half_up
from ledger_kernel.models.account import Account
from ledger_modules.documents.models import (
    BelegCategory,
    Document,
    DocumentLine,
    DocumentType,
)


class DocumentModel(TrackedBase):
    """Common columns of every document kind."""

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("document_number", name="uq_document_number"),
        Index("idx_document_type_status", "document_type", "status"),
        Index("idx_document_date", "document_date"),
    )

    document_type: Mapped[str] = mapped_column(String(10), nullable=False)
    document_number: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    document_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Gross, net and tax in cents; net/tax are derived by the posting policy
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    net_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    contra_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    contact_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    payment_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    reversal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    source_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True
    )

    booked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    account: Mapped[Account | None] = relationship(Account, foreign_keys=[account_id])
    contra_account: Mapped[Account | None] = relationship(Account, foreign_keys=[contra_account_id])

    lines: Mapped[list["DocumentLineModel"]] = relationship(
        "DocumentLineModel",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLineModel.line_no",
    )

    __mapper_args__ = {
        "polymorphic_on": "document_type",
    }

    @property
    def kind(self) -> DocumentType:
        return DocumentType(self.document_type)

    def to_dto(self) -> Document:
        """Convert ORM model to frozen dataclass."""
        return Document(
            id=self.id,
            document_type=DocumentType(self.document_type),
            document_number=self.document_number,
            status=self.status,
            title=self.title,
            document_date=self.document_date,
            amount=self.amount,
            net_amount=self.net_amount,
            tax_amount=self.tax_amount,
            version=self.version,
            tax_rate=self.tax_rate,
            category=BelegCategory(self.category) if self.category else None,
            due_date=self.due_date,
            account_code=self.account.code if self.account else None,
            contra_account_code=self.contra_account.code if self.contra_account else None,
            contact_id=self.contact_id,
            journal_entry_id=self.journal_entry_id,
            payment_entry_id=self.payment_entry_id,
            reversal_entry_id=self.reversal_entry_id,
            source_order_id=self.source_order_id,
            booked_at=self.booked_at,
            sent_at=self.sent_at,
            paid_at=self.paid_at,
            cancelled_at=self.cancelled_at,
            notes=self.notes,
            file_name=self.file_name,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.document_number} [{self.status}]>"


class BelegModel(DocumentModel):
    """Receipt or voucher (Beleg)."""

    __mapper_args__ = {"polymorphic_identity": DocumentType.BELEG.value}


class InvoiceModel(DocumentModel):
    """Outgoing invoice (Ausgangsrechnung)."""

    __mapper_args__ = {"polymorphic_identity": DocumentType.INVOICE.value}


class OrderModel(DocumentModel):
    """Customer order (Auftrag); never booked itself."""

    __mapper_args__ = {"polymorphic_identity": DocumentType.ORDER.value}


class DocumentLineModel(TrackedBase):
    """Position of an invoice or order."""

    __tablename__ = "document_lines"

    __table_args__ = (
        UniqueConstraint("document_id", "line_no", name="uq_document_line_no"),
        Index("idx_document_line_document", "document_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    # Net unit price in cents
    unit_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    delivered_quantity: Mapped[Decimal] = mapped_column(
        Numeric(18, 3), nullable=False, default=Decimal("0")
    )
    invoiced_quantity: Mapped[Decimal] = mapped_column(
        Numeric(18, 3), nullable=False, default=Decimal("0")
    )
    # Order line an invoice line was created from
    source_line_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    document: Mapped[DocumentModel] = relationship("DocumentModel", back_populates="lines")
    account: Mapped[Account | None] = relationship(Account)

    @property
    def net_amount(self) -> int:
        return round_half_up(Decimal(self.quantity) * self.unit_price)

    def to_dto(self) -> DocumentLine:
        return DocumentLine(
            id=self.id,
            line_no=self.line_no,
            description=self.description,
            quantity=Decimal(self.quantity),
            unit_price=self.unit_price,
            net_amount=self.net_amount,
            account_code=self.account.code if self.account else None,
            tax_rate=self.tax_rate,
            delivered_quantity=Decimal(self.delivered_quantity or 0),
            invoiced_quantity=Decimal(self.invoiced_quantity or 0),
        )
