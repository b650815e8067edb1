"""
Request bodies of the HTTP API.

Amounts are integer cents, dates ISO-8601, tax rates percent.  Responses
are plain dicts produced by ``render_to_dict``.
"""

from datetime import date
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from ledger_modules.documents.models import DocumentLineInput


class AccountCreate(BaseModel):
    code: str
    name: str
    type: str
    tax_key_code: str | None = None


class AccountUpdate(BaseModel):
    name: str | None = None
    type: str | None = None
    tax_key_code: str | None = None
    clear_tax_key: bool = False


class LineIn(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: int = Field(ge=0)
    account_code: str | None = None
    tax_rate: Decimal | None = None

    def to_input(self) -> DocumentLineInput:
        return DocumentLineInput(
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            account_code=self.account_code,
            tax_rate=self.tax_rate,
        )


class BelegCreate(BaseModel):
    title: str
    amount: int
    category: str = "eingang"
    document_date: date | None = None
    tax_rate: Decimal | None = None
    account_code: str | None = None
    contra_account_code: str | None = None
    due_date: date | None = None
    contact_id: UUID | None = None
    notes: str | None = None


class InvoiceCreate(BaseModel):
    title: str
    lines: list[LineIn] = []
    amount: int | None = None
    document_date: date | None = None
    tax_rate: Decimal | None = None
    account_code: str | None = None
    contra_account_code: str | None = None
    due_date: date | None = None
    contact_id: UUID | None = None
    notes: str | None = None


class OrderCreate(BaseModel):
    title: str
    lines: list[LineIn]
    document_date: date | None = None
    tax_rate: Decimal | None = None
    account_code: str | None = None
    contra_account_code: str | None = None
    due_date: date | None = None
    contact_id: UUID | None = None
    notes: str | None = None


class DocumentUpdate(BaseModel):
    """Partial edit; only fields present in the body are changed."""

    title: str | None = None
    amount: int | None = None
    category: str | None = None
    document_date: date | None = None
    tax_rate: Decimal | None = None
    account_code: str | None = None
    contra_account_code: str | None = None
    due_date: date | None = None
    contact_id: UUID | None = None
    notes: str | None = None
    lines: list[LineIn] | None = None
    expected_version: int | None = None

    def changes(self) -> dict:
        data = {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "expected_version"
        }
        if "lines" in data:
            data["lines"] = [line.to_input() for line in self.lines or []]
        return data


class BookRequest(BaseModel):
    booking_date: date | None = None


class PaymentRequest(BaseModel):
    payment_account_id: UUID | None = None
    payment_account_code: str | None = None
    payment_date: date | None = None


class CancelRequest(BaseModel):
    booking_date: date | None = None


class DeliveryRequest(BaseModel):
    quantities: dict[UUID, Decimal]


class OrderInvoiceRequest(BaseModel):
    quantities: dict[UUID, Decimal] | None = None
    document_date: date | None = None


class JournalLineIn(BaseModel):
    account_id: UUID | None = None
    account_code: str | None = None
    side: Literal["debit", "credit"]
    amount: int
    description: str | None = None
    tax_key_code: str | None = None


class JournalEntryCreate(BaseModel):
    booking_date: date
    description: str
    reference: str | None = None
    contact_id: UUID | None = None
    lines: list[JournalLineIn]


class ReverseRequest(BaseModel):
    booking_date: date | None = None
    description: str | None = None
