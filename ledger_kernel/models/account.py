"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts (SKR03 by default),
    the target of every journal line.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - code is unique (uq_account_code).
    - account_type and code are immutable once journal lines reference the
      account (db/immutability.py).
    - normal_balance is derived from account_type, never set independently.

Failure modes:
    - DuplicateCodeError on a second account with the same code.
    - UnknownAccountError when a posting targets a missing/inactive account.
    - AccountReferencedError on deletion of a referenced account.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.domain.dtos import AccountType, NormalBalance

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine

__all__ = ["Account", "AccountType", "NormalBalance"]


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        Account.code is globally unique.  Once referenced by a JournalLine,
        account_type and code MUST NOT change.

    Non-goals:
        - No account hierarchy; SKR03 account classes are implied by the
          leading digit of the code.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
    )

    code: Mapped[str] = mapped_column(String(10), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    # Default tax key stamped onto lines that do not name one
    tax_key_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        "JournalLine",
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
