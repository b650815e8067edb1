"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses describing one configuration set: the chart of accounts,
the tax keys and the posting policy that decides which accounts a document
books against.  Parsed from YAML by ``ledger_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class AccountDef:
    """One account of the configured chart."""

    code: str
    name: str
    account_type: str
    tax_key_code: str | None = None


@dataclass(frozen=True)
class TaxKeyDef:
    """One tax key; ``account_code`` receives the tax line."""

    code: str
    name: str
    rate: Decimal
    kind: str = "none"
    account_code: str | None = None


@dataclass(frozen=True)
class PostingPolicyDef:
    """
    Default accounts for document booking.

    Attributes:
        receivable_account: Forderungen (debited by outgoing documents).
        payable_account: Verbindlichkeiten (credited by incoming documents).
        revenue_account: Default Erloese account.
        expense_account: Default Aufwand account.
        payment_account: Default Bank account for payments.
    """

    receivable_account: str
    payable_account: str
    revenue_account: str
    expense_account: str
    payment_account: str


@dataclass(frozen=True)
class LedgerConfig:
    """A complete, parsed configuration set."""

    config_id: str
    version: int
    chart_name: str
    currency: str
    accounts: tuple[AccountDef, ...]
    tax_keys: tuple[TaxKeyDef, ...]
    posting_policy: PostingPolicyDef
    document_prefixes: dict[str, str] = field(default_factory=dict)
    reporting: dict[str, Any] = field(default_factory=dict)
    checksum: str = ""

    @property
    def tax_key_codes(self) -> frozenset[str]:
        return frozenset(key.code for key in self.tax_keys)

    @property
    def account_codes(self) -> frozenset[str]:
        return frozenset(account.code for account in self.accounts)
