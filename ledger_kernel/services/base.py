"""
BaseService -- common constructor for kernel services.

Services receive a Session from the caller and persist with
``session.flush()``, never ``session.commit()``.  The caller (session_scope,
the HTTP request, a test) owns commit and rollback, which keeps multi-step
operations such as "book a document" atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle.
        - Read-only queries belong in ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
