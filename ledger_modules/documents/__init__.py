"""
Documents module: Belege, outgoing invoices and customer orders.

    models.py     enums and frozen read models
    orm.py        SQLAlchemy persistence
    workflows.py  closed state machines
    policy.py     which accounts a document books against
    service.py    DocumentService, the lifecycle operations
"""

from ledger_modules.documents.models import (
    BelegCategory,
    BelegStatus,
    Document,
    DocumentAction,
    DocumentLine,
    DocumentLineInput,
    DocumentType,
    InvoiceStatus,
    OrderStatus,
)
from ledger_modules.documents.service import DocumentService

__all__ = [
    "BelegCategory",
    "BelegStatus",
    "Document",
    "DocumentAction",
    "DocumentLine",
    "DocumentLineInput",
    "DocumentService",
    "DocumentType",
    "InvoiceStatus",
    "OrderStatus",
]
