"""
Document Domain Models (``ledger_modules.documents.models``).

Responsibility
--------------
Closed status enums, actions and frozen value objects for the three document
kinds: Beleg (receipt or voucher), Invoice (Ausgangsrechnung) and Order
(Auftrag).

Architecture position
---------------------
**Modules layer** -- pure data definitions, zero I/O.

Invariants enforced
-------------------
* Every status is a member of a closed enum; transitions between them are
  defined only in ``workflows.py``.
* Amounts are integer cents, quantities are Decimals.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class DocumentType(str, Enum):
    BELEG = "beleg"
    INVOICE = "invoice"
    ORDER = "order"


class BelegCategory(str, Enum):
    """Booking direction of a Beleg."""

    OUTGOING = "ausgang"  # sales side: receivable / revenue / output tax
    INCOMING = "eingang"  # purchase side: expense / input tax / payable
    OPEN_ITEM = "offen"  # open vendor item, booked like INCOMING
    OTHER = "sonstige"  # explicit accounts, no tax split


class BelegStatus(str, Enum):
    DRAFT = "draft"
    BOOKED = "booked"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    BOOKED = "booked"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    OPEN = "open"
    PARTIAL_DELIVERED = "partial_delivered"
    DELIVERED = "delivered"
    PARTIAL_INVOICED = "partial_invoiced"
    INVOICED = "invoiced"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DocumentAction(str, Enum):
    BOOK = "book"
    SEND = "send"
    PAY = "pay"
    CANCEL = "cancel"
    DELIVER = "deliver"
    INVOICE = "invoice"
    COMPLETE = "complete"
    RELEASE = "release"


STATUS_ENUMS: dict[DocumentType, type[Enum]] = {
    DocumentType.BELEG: BelegStatus,
    DocumentType.INVOICE: InvoiceStatus,
    DocumentType.ORDER: OrderStatus,
}

# Statuses that imply the document has a booking entry
BOOKED_STATUSES = frozenset({"booked", "sent", "paid"})


@dataclass(frozen=True)
class DocumentLineInput:
    """One line as supplied by the caller (invoice or order)."""

    description: str
    quantity: Decimal
    unit_price: int
    account_code: str | None = None
    tax_rate: Decimal | None = None


@dataclass(frozen=True)
class DocumentLine:
    id: UUID
    line_no: int
    description: str
    quantity: Decimal
    unit_price: int
    net_amount: int
    account_code: str | None = None
    tax_rate: Decimal | None = None
    delivered_quantity: Decimal = Decimal("0")
    invoiced_quantity: Decimal = Decimal("0")


@dataclass(frozen=True)
class Document:
    """Read model of a Beleg, invoice or order."""

    id: UUID
    document_type: DocumentType
    document_number: str
    status: str
    title: str
    document_date: date
    amount: int
    net_amount: int
    tax_amount: int
    version: int
    tax_rate: Decimal | None = None
    category: BelegCategory | None = None
    due_date: date | None = None
    account_code: str | None = None
    contra_account_code: str | None = None
    contact_id: UUID | None = None
    journal_entry_id: UUID | None = None
    payment_entry_id: UUID | None = None
    reversal_entry_id: UUID | None = None
    source_order_id: UUID | None = None
    booked_at: datetime | None = None
    sent_at: datetime | None = None
    paid_at: date | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None
    file_name: str | None = None
    lines: tuple[DocumentLine, ...] = field(default_factory=tuple)
