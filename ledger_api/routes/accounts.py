"""Chart of accounts and account statements."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from ledger_api.dependencies import RequestTransaction, get_accounts, get_reports, get_transaction
from ledger_api.schemas import AccountCreate, AccountUpdate
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_modules.reporting.service import ReportService
from ledger_modules.reporting.statements import render_to_dict

router = APIRouter(prefix="/accounts", tags=["accounts"])


def account_out(info: AccountInfo) -> dict:
    return {
        "id": str(info.id),
        "code": info.code,
        "name": info.name,
        "type": info.account_type.value,
        "normal_balance": info.normal_balance.value,
        "is_active": info.is_active,
        "tax_key_code": info.tax_key_code,
    }


@router.get("")
def list_accounts(
    type: str | None = None,
    include_inactive: bool = True,
    accounts: AccountRegistry = Depends(get_accounts),
):
    return [account_out(a) for a in accounts.list(type, include_inactive=include_inactive)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    body: AccountCreate,
    accounts: AccountRegistry = Depends(get_accounts),
    tx: RequestTransaction = Depends(get_transaction),
):
    return account_out(tx.commit(accounts.create(body.code, body.name, body.type, body.tax_key_code)))


@router.get("/{account_id}")
def account_statement(
    account_id: UUID,
    from_date: date | None = None,
    to_date: date | None = None,
    reports: ReportService = Depends(get_reports),
):
    """``{account, summary, transactions}`` for the range (default: current year)."""
    statement = reports.account_statement(account_id, from_date, to_date)
    return render_to_dict(statement)


@router.put("/{account_id}")
def update_account(
    account_id: UUID,
    body: AccountUpdate,
    accounts: AccountRegistry = Depends(get_accounts),
    tx: RequestTransaction = Depends(get_transaction),
):
    updated = accounts.update(
        account_id,
        name=body.name,
        tax_key_code=body.tax_key_code,
        account_type=body.type,
        clear_tax_key=body.clear_tax_key,
    )
    return account_out(tx.commit(updated))


@router.post("/{account_id}/deactivate")
def deactivate_account(
    account_id: UUID,
    accounts: AccountRegistry = Depends(get_accounts),
    tx: RequestTransaction = Depends(get_transaction),
):
    return account_out(tx.commit(accounts.deactivate(account_id)))


@router.post("/{account_id}/reactivate")
def reactivate_account(
    account_id: UUID,
    accounts: AccountRegistry = Depends(get_accounts),
    tx: RequestTransaction = Depends(get_transaction),
):
    return account_out(tx.commit(accounts.reactivate(account_id)))


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: UUID,
    accounts: AccountRegistry = Depends(get_accounts),
    tx: RequestTransaction = Depends(get_transaction),
):
    accounts.delete(account_id)
    tx.commit(None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
