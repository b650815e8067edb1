"""Manual journal entries and stornos."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ledger_api.dependencies import (
    RequestTransaction,
    get_accounts,
    get_ledger,
    get_selector,
    get_transaction,
)
from ledger_api.schemas import JournalEntryCreate, ReverseRequest
from ledger_kernel.domain.dtos import JournalEntryDraft, LineDraft, LineSide
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_service import LedgerService
from ledger_modules.reporting.statements import render_to_dict

router = APIRouter(prefix="/journal-entries", tags=["journal"])


@router.get("")
def list_entries(
    from_date: date | None = None,
    to_date: date | None = None,
    selector: LedgerSelector = Depends(get_selector),
):
    return render_to_dict(selector.entries(from_date, to_date))


@router.get("/{entry_id}")
def get_entry(entry_id: UUID, selector: LedgerSelector = Depends(get_selector)):
    return render_to_dict(selector.get_entry(entry_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def post_entry(
    body: JournalEntryCreate,
    ledger: LedgerService = Depends(get_ledger),
    accounts: AccountRegistry = Depends(get_accounts),
    tx: RequestTransaction = Depends(get_transaction),
):
    lines = []
    for index, line in enumerate(body.lines, start=1):
        if line.account_id is not None:
            account_id = line.account_id
        elif line.account_code is not None:
            account_id = accounts.get_by_code(line.account_code).id
        else:
            raise ValidationError(
                f"Line {index}: account_id or account_code is required",
                field="account_id",
                step="validate",
            )
        lines.append(
            LineDraft(
                account_id=account_id,
                side=LineSide(line.side),
                amount=line.amount,
                description=line.description,
                tax_key_code=line.tax_key_code,
            )
        )
    record = ledger.post(
        JournalEntryDraft(
            booking_date=body.booking_date,
            description=body.description,
            lines=tuple(lines),
            reference=body.reference,
            contact_id=body.contact_id,
        )
    )
    return render_to_dict(tx.commit(record))


@router.post("/{entry_id}/reverse", status_code=status.HTTP_201_CREATED)
def reverse_entry(
    entry_id: UUID,
    body: ReverseRequest | None = None,
    ledger: LedgerService = Depends(get_ledger),
    tx: RequestTransaction = Depends(get_transaction),
):
    body = body or ReverseRequest()
    record = ledger.reverse(entry_id, booking_date=body.booking_date, description=body.description)
    return render_to_dict(tx.commit(record))
