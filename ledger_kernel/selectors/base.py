"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only selectors.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - Selectors return frozen DTOs, not ORM rows.
    - There are no stored balances: every figure is derived from journal
      lines at query time.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Read-only access through the caller's session."""

    def __init__(self, session: Session):
        self.session = session
