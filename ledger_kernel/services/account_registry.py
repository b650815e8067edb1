"""
AccountRegistry -- the chart of accounts (Kontenrahmen).

Responsibility:
    Create, look up, edit, deactivate and delete accounts.  Seeds the
    configured chart (SKR03 by default) idempotently.

Architecture position:
    Kernel > Services.  Used by LedgerService (existence/active checks),
    the document posting policy (code -> id resolution) and the HTTP layer.

Invariants enforced:
    - Account codes are unique (DuplicateCodeError).
    - normal_balance always follows account_type (domain/balance.py).
    - account_type and code cannot change, and the account cannot be
      deleted, once journal lines reference it (AccountReferencedError,
      backed by the immutability listeners).

Failure modes:
    - ValidationError on malformed code, empty name, unknown type or tax key.
    - AccountNotFoundError on lookups of unknown ids/codes.
"""

import re
from collections.abc import Collection, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.immutability import account_has_postings
from ledger_kernel.domain.balance import normal_balance_for
from ledger_kernel.domain.dtos import AccountInfo, AccountType
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    DuplicateCodeError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")

_CODE_PATTERN = re.compile(r"^[0-9A-Za-z]{4,10}$")


class AccountRegistry(BaseService[Account]):
    """
    Chart-of-accounts service.

    Contract:
        Returns frozen ``AccountInfo`` DTOs.  Writes are flushed into the
        caller's transaction.

    Args:
        session: SQLAlchemy session.
        tax_key_codes: Known tax key codes.  When given, an account's default
            tax key must be one of them.
    """

    def __init__(self, session, tax_key_codes: Collection[str] | None = None):
        super().__init__(session)
        self._tax_key_codes = frozenset(tax_key_codes) if tax_key_codes is not None else None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_code(self, code: str) -> str:
        code = (code or "").strip()
        if not _CODE_PATTERN.match(code):
            raise ValidationError(
                f"Account code must be 4-10 alphanumeric characters, got {code!r}",
                field="code",
            )
        return code

    def _validate_name(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name must not be empty", field="name")
        return name

    def _validate_type(self, account_type: AccountType | str) -> AccountType:
        try:
            return AccountType(account_type)
        except ValueError:
            raise ValidationError(
                f"Unknown account type {account_type!r}", field="account_type"
            ) from None

    def _validate_tax_key(self, tax_key_code: str | None) -> str | None:
        if tax_key_code is None:
            return None
        if self._tax_key_codes is not None and tax_key_code not in self._tax_key_codes:
            raise ValidationError(f"Unknown tax key {tax_key_code!r}", field="tax_key_code")
        return tax_key_code

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _load(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _find_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get(self, account_id: UUID) -> AccountInfo:
        return AccountInfo.from_model(self._load(account_id))

    def get_by_code(self, code: str) -> AccountInfo:
        account = self._find_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return AccountInfo.from_model(account)

    def list(
        self,
        account_type: AccountType | str | None = None,
        include_inactive: bool = True,
    ) -> list[AccountInfo]:
        """All accounts ordered by code."""
        stmt = select(Account).order_by(Account.code)
        if account_type is not None:
            stmt = stmt.where(Account.account_type == self._validate_type(account_type).value)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        return [AccountInfo.from_model(a) for a in self.session.execute(stmt).scalars()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        tax_key_code: str | None = None,
    ) -> AccountInfo:
        """
        Create an account.

        Raises:
            ValidationError: Malformed input.
            DuplicateCodeError: Code already taken.
        """
        code = self._validate_code(code)
        name = self._validate_name(name)
        account_type = self._validate_type(account_type)
        tax_key_code = self._validate_tax_key(tax_key_code)

        if self._find_by_code(code) is not None:
            raise DuplicateCodeError(code)

        account = Account(
            code=code,
            name=name,
            account_type=account_type.value,
            normal_balance=normal_balance_for(account_type).value,
            tax_key_code=tax_key_code,
            is_active=True,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Lost a race against a concurrent create
            savepoint.rollback()
            raise DuplicateCodeError(code) from None

        logger.info(
            "account_created",
            extra={"account_code": code, "account_type": account_type.value},
        )
        return AccountInfo.from_model(account)

    def update(
        self,
        account_id: UUID,
        *,
        name: str | None = None,
        tax_key_code: str | None = None,
        account_type: AccountType | str | None = None,
        clear_tax_key: bool = False,
    ) -> AccountInfo:
        """Edit name, default tax key or (while unreferenced) type."""
        account = self._load(account_id)
        if name is not None:
            account.name = self._validate_name(name)
        if clear_tax_key:
            account.tax_key_code = None
        elif tax_key_code is not None:
            account.tax_key_code = self._validate_tax_key(tax_key_code)
        if account_type is not None:
            new_type = self._validate_type(account_type)
            if new_type.value != account.account_type:
                if account_has_postings(self.session.connection(), account.id):
                    raise AccountReferencedError(str(account.id), operation="change type of")
                account.account_type = new_type.value
                account.normal_balance = normal_balance_for(new_type).value
        self.session.flush()
        logger.info("account_updated", extra={"account_code": account.code})
        return AccountInfo.from_model(account)

    def deactivate(self, account_id: UUID) -> AccountInfo:
        """Inactive accounts keep their history but reject new postings."""
        account = self._load(account_id)
        account.is_active = False
        self.session.flush()
        logger.info("account_deactivated", extra={"account_code": account.code})
        return AccountInfo.from_model(account)

    def reactivate(self, account_id: UUID) -> AccountInfo:
        account = self._load(account_id)
        account.is_active = True
        self.session.flush()
        logger.info("account_reactivated", extra={"account_code": account.code})
        return AccountInfo.from_model(account)

    def delete(self, account_id: UUID) -> None:
        """Delete an account that has never been posted to."""
        account = self._load(account_id)
        if account_has_postings(self.session.connection(), account.id):
            raise AccountReferencedError(str(account.id))
        self.session.delete(account)
        self.session.flush()
        logger.info("account_deleted", extra={"account_code": account.code})

    def load_chart(self, accounts: Iterable) -> int:
        """
        Create every configured account that does not exist yet.

        ``accounts`` yields objects with ``code``, ``name``, ``account_type``
        and ``tax_key_code`` attributes (``ledger_config.schema.AccountDef``).

        Returns:
            Number of accounts created.
        """
        created = 0
        for definition in accounts:
            if self._find_by_code(definition.code) is not None:
                continue
            self.create(
                definition.code,
                definition.name,
                definition.account_type,
                tax_key_code=definition.tax_key_code,
            )
            created += 1
        logger.info("chart_loaded", extra={"accounts_created": created})
        return created
