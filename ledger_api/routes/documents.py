"""Belege, invoices and orders."""

from datetime import date
from pathlib import Path
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile, status

from ledger_api.dependencies import RequestTransaction, get_documents, get_transaction
from ledger_api.schemas import (
    BelegCreate,
    BookRequest,
    CancelRequest,
    DeliveryRequest,
    DocumentUpdate,
    InvoiceCreate,
    OrderCreate,
    OrderInvoiceRequest,
    PaymentRequest,
)
from ledger_modules.documents.models import DocumentType
from ledger_modules.documents.service import DocumentService
from ledger_modules.reporting.statements import render_to_dict

belege = APIRouter(prefix="/belege", tags=["belege"])
invoices = APIRouter(prefix="/invoices", tags=["invoices"])
orders = APIRouter(prefix="/orders", tags=["orders"])


def _add_common_routes(router: APIRouter, document_type: DocumentType) -> None:
    """List, read, edit, delete and cancel work the same for every kind."""

    @router.get("")
    def list_documents(
        status_filter: str | None = Query(None, alias="status"),
        from_date: date | None = None,
        to_date: date | None = None,
        documents: DocumentService = Depends(get_documents),
    ):
        return render_to_dict(documents.list(document_type, status_filter, from_date, to_date))

    @router.get("/{document_id}")
    def get_document(document_id: UUID, documents: DocumentService = Depends(get_documents)):
        return render_to_dict(documents.get(document_id, document_type))

    @router.put("/{document_id}")
    def update_document(
        document_id: UUID,
        body: DocumentUpdate,
        documents: DocumentService = Depends(get_documents),
        tx: RequestTransaction = Depends(get_transaction),
    ):
        documents.get(document_id, document_type)
        updated = documents.update(
            document_id, expected_version=body.expected_version, **body.changes()
        )
        return render_to_dict(tx.commit(updated))

    @router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_document(
        document_id: UUID,
        documents: DocumentService = Depends(get_documents),
        tx: RequestTransaction = Depends(get_transaction),
    ):
        documents.get(document_id, document_type)
        documents.delete(document_id)
        tx.commit(None)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/{document_id}/cancel")
    def cancel_document(
        document_id: UUID,
        body: CancelRequest | None = None,
        documents: DocumentService = Depends(get_documents),
        tx: RequestTransaction = Depends(get_transaction),
    ):
        documents.get(document_id, document_type)
        booking_date = body.booking_date if body else None
        return render_to_dict(tx.commit(documents.cancel(document_id, booking_date=booking_date)))


def _add_booking_routes(router: APIRouter, document_type: DocumentType) -> None:
    @router.post("/{document_id}/book")
    def book_document(
        document_id: UUID,
        body: BookRequest | None = None,
        documents: DocumentService = Depends(get_documents),
        tx: RequestTransaction = Depends(get_transaction),
    ):
        documents.get(document_id, document_type)
        booked = documents.book(document_id, booking_date=body.booking_date if body else None)
        return render_to_dict(tx.commit(booked))

    @router.post("/{document_id}/payment")
    def record_payment(
        document_id: UUID,
        body: PaymentRequest | None = None,
        documents: DocumentService = Depends(get_documents),
        tx: RequestTransaction = Depends(get_transaction),
    ):
        documents.get(document_id, document_type)
        body = body or PaymentRequest()
        paid = documents.record_payment(
            document_id,
            payment_date=body.payment_date,
            payment_account_code=body.payment_account_code,
            payment_account_id=body.payment_account_id,
        )
        return render_to_dict(tx.commit(paid))


# -----------------------------------------------------------------------------
# Belege
# -----------------------------------------------------------------------------


@belege.post("", status_code=status.HTTP_201_CREATED)
def create_beleg(
    body: BelegCreate,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    created = documents.create_beleg(
        body.title,
        body.amount,
        category=body.category,
        document_date=body.document_date,
        tax_rate=body.tax_rate,
        account_code=body.account_code,
        contra_account_code=body.contra_account_code,
        due_date=body.due_date,
        contact_id=body.contact_id,
        notes=body.notes,
    )
    return render_to_dict(tx.commit(created))


@belege.post("/{document_id}/upload")
def upload_beleg_file(
    document_id: UUID,
    request: Request,
    file: UploadFile = File(...),
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    documents.get(document_id, DocumentType.BELEG)
    location = request.app.state.file_store.save(document_id, file.filename or "", file.file.read())
    attached = documents.attach_file(document_id, Path(location).name, location)
    return render_to_dict(tx.commit(attached))


_add_common_routes(belege, DocumentType.BELEG)
_add_booking_routes(belege, DocumentType.BELEG)


# -----------------------------------------------------------------------------
# Invoices
# -----------------------------------------------------------------------------


@invoices.post("", status_code=status.HTTP_201_CREATED)
def create_invoice(
    body: InvoiceCreate,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    created = documents.create_invoice(
        body.title,
        [line.to_input() for line in body.lines],
        amount=body.amount,
        document_date=body.document_date,
        tax_rate=body.tax_rate,
        account_code=body.account_code,
        contra_account_code=body.contra_account_code,
        due_date=body.due_date,
        contact_id=body.contact_id,
        notes=body.notes,
    )
    return render_to_dict(tx.commit(created))


@invoices.post("/{document_id}/send")
def send_invoice(
    document_id: UUID,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    return render_to_dict(tx.commit(documents.mark_sent(document_id)))


_add_common_routes(invoices, DocumentType.INVOICE)
_add_booking_routes(invoices, DocumentType.INVOICE)


# -----------------------------------------------------------------------------
# Orders
# -----------------------------------------------------------------------------


@orders.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    created = documents.create_order(
        body.title,
        [line.to_input() for line in body.lines],
        document_date=body.document_date,
        tax_rate=body.tax_rate,
        account_code=body.account_code,
        contra_account_code=body.contra_account_code,
        due_date=body.due_date,
        contact_id=body.contact_id,
        notes=body.notes,
    )
    return render_to_dict(tx.commit(created))


@orders.post("/{document_id}/deliveries")
def record_delivery(
    document_id: UUID,
    body: DeliveryRequest,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    return render_to_dict(tx.commit(documents.record_delivery(document_id, body.quantities)))


@orders.post("/{document_id}/invoices", status_code=status.HTTP_201_CREATED)
def invoice_order(
    document_id: UUID,
    body: OrderInvoiceRequest | None = None,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    body = body or OrderInvoiceRequest()
    invoice = documents.create_invoice_from_order(
        document_id, body.quantities, document_date=body.document_date
    )
    return render_to_dict(tx.commit(invoice))


@orders.post("/{document_id}/complete")
def complete_order(
    document_id: UUID,
    documents: DocumentService = Depends(get_documents),
    tx: RequestTransaction = Depends(get_transaction),
):
    return render_to_dict(tx.commit(documents.complete_order(document_id)))


_add_common_routes(orders, DocumentType.ORDER)
