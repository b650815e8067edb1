"""
Per-request session and services.

Every service of one request shares the session from ``get_session``.
Routes that write call ``RequestTransaction.commit`` before they build the
response, so a failing commit reaches the error handlers (500
``STORAGE_ERROR``) instead of following a 2xx.  The ``session_scope``
around the session rolls back whatever was not committed.
"""

from collections.abc import Iterator
from typing import TypeVar

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import session_scope
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.documents.service import DocumentService
from ledger_modules.reporting.service import ReportService

T = TypeVar("T")


def get_session(request: Request) -> Iterator[Session]:
    """One transaction per request; rolled back on error."""
    with session_scope(request.app.state.session_factory) as session:
        yield session


class RequestTransaction:
    def __init__(self, session: Session):
        self.session = session

    def commit(self, result: T) -> T:
        """Commit the request's work and hand ``result`` back."""
        self.session.commit()
        return result


def get_transaction(session: Session = Depends(get_session)) -> RequestTransaction:
    return RequestTransaction(session)


def get_accounts(request: Request, session: Session = Depends(get_session)) -> AccountRegistry:
    return AccountRegistry(session, tax_key_codes=request.app.state.tax_engine.codes())


def get_ledger(request: Request, session: Session = Depends(get_session)) -> LedgerService:
    return LedgerService(session, clock=request.app.state.clock)


def get_selector(session: Session = Depends(get_session)) -> LedgerSelector:
    return LedgerSelector(session)


def get_documents(request: Request, session: Session = Depends(get_session)) -> DocumentService:
    state = request.app.state
    return DocumentService(
        session,
        clock=state.clock,
        config=state.ledger_config,
        tax_engine=state.tax_engine,
    )


def get_reports(request: Request, session: Session = Depends(get_session)) -> ReportService:
    state = request.app.state
    return ReportService(
        session,
        clock=state.clock,
        config=state.reporting_config,
        tax_engine=state.tax_engine,
    )
