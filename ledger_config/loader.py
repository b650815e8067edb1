"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses of
``ledger_config.schema``.  Runtime code goes through
``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* Cross references are checked: tax key accounts and posting policy
  accounts must exist in the chart, account tax keys must exist.
* ``compute_checksum`` is a deterministic SHA-256 over the raw data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Broken cross references  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import AccountDef, LedgerConfig, PostingPolicyDef, TaxKeyDef

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})
_TAX_KINDS = frozenset({"output", "input", "none"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_account(data: dict[str, Any]) -> AccountDef:
    account_type = data["type"]
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"Account {data['code']}: unknown type {account_type!r}")
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=account_type,
        tax_key_code=data.get("tax_key"),
    )


def parse_tax_key(data: dict[str, Any]) -> TaxKeyDef:
    kind = data.get("kind", "none")
    if kind not in _TAX_KINDS:
        raise ValueError(f"Tax key {data['code']}: unknown kind {kind!r}")
    account_code = data.get("account")
    return TaxKeyDef(
        code=str(data["code"]),
        name=data["name"],
        # str() first so YAML floats never leak binary fractions
        rate=Decimal(str(data["rate"])),
        kind=kind,
        account_code=str(account_code) if account_code is not None else None,
    )


def parse_posting_policy(data: dict[str, Any]) -> PostingPolicyDef:
    return PostingPolicyDef(
        receivable_account=str(data["receivable_account"]),
        payable_account=str(data["payable_account"]),
        revenue_account=str(data["revenue_account"]),
        expense_account=str(data["expense_account"]),
        payment_account=str(data["payment_account"]),
    )


def validate_config(config: LedgerConfig) -> list[str]:
    """Return a list of cross-reference errors (empty when valid)."""
    errors: list[str] = []
    codes = config.account_codes
    key_codes = config.tax_key_codes

    seen: set[str] = set()
    for account in config.accounts:
        if account.code in seen:
            errors.append(f"Duplicate account code {account.code}")
        seen.add(account.code)
        if account.tax_key_code is not None and account.tax_key_code not in key_codes:
            errors.append(f"Account {account.code}: unknown tax key {account.tax_key_code}")

    for key in config.tax_keys:
        if key.kind != "none" and key.account_code is None:
            errors.append(f"Tax key {key.code}: {key.kind} key needs a tax account")
        if key.account_code is not None and key.account_code not in codes:
            errors.append(f"Tax key {key.code}: account {key.account_code} not in chart")

    policy = config.posting_policy
    for name in (
        "receivable_account",
        "payable_account",
        "revenue_account",
        "expense_account",
        "payment_account",
    ):
        code = getattr(policy, name)
        if code not in codes:
            errors.append(f"Posting policy {name}: account {code} not in chart")
    return errors


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a raw configuration dict.

    Raises:
        KeyError: Missing required key.
        ValueError: Invalid values or broken cross references.
    """
    config = LedgerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        chart_name=data.get("chart", data["config_id"]),
        currency=data.get("currency", "EUR"),
        accounts=tuple(parse_account(a) for a in data["accounts"]),
        tax_keys=tuple(parse_tax_key(k) for k in data.get("tax_keys", [])),
        posting_policy=parse_posting_policy(data["posting_policy"]),
        document_prefixes=dict(data.get("document_prefixes", {})),
        reporting=dict(data.get("reporting", {})),
        checksum=compute_checksum(data),
    )
    errors = validate_config(config)
    if errors:
        raise ValueError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )
    return config


def load_config(path: Path) -> LedgerConfig:
    """Load and parse a configuration set from a YAML file."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
