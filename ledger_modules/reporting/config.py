"""
Reporting Configuration Schema.

Entity name, currency and the personal-account ranges that the balance
sheet folds into their collective accounts (Debitoren into 1400,
Kreditoren into 1600 in SKR03).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass(frozen=True)
class PersonalAccountGroup:
    """
    A numeric range of personal accounts shown as one balance sheet line.

    Codes are compared numerically; non-numeric codes never match.
    """

    label: str
    first_code: int
    last_code: int
    target_code: str

    def __post_init__(self) -> None:
        if self.first_code > self.last_code:
            raise ValueError(
                f"Personal account group {self.label!r}: first_code > last_code"
            )

    def contains(self, code: str) -> bool:
        if not code.isdigit():
            return False
        return self.first_code <= int(code) <= self.last_code


def _default_groups() -> tuple[PersonalAccountGroup, ...]:
    return (
        PersonalAccountGroup("Debitoren", 10000, 69999, "1400"),
        PersonalAccountGroup("Kreditoren", 70000, 99999, "1600"),
    )


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.
    """

    # Entity name shown on reports
    entity_name: str = "Company"

    # Report currency; amounts are always minor units of it
    default_currency: str = "EUR"

    # Whether to include accounts with zero balance in reports
    include_zero_balances: bool = False

    # Fold personal accounts into their collective account on the balance sheet
    aggregate_personal_accounts: bool = True
    personal_account_groups: tuple[PersonalAccountGroup, ...] = field(
        default_factory=_default_groups,
    )

    def __post_init__(self):
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")

    def group_for(self, code: str) -> PersonalAccountGroup | None:
        if not self.aggregate_personal_accounts:
            return None
        for group in self.personal_account_groups:
            if group.contains(code):
                return group
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any], currency: str | None = None) -> Self:
        """
        Create config from a dictionary, e.g. the ``reporting`` block of a
        configuration set.
        """
        data = dict(data)
        if "personal_account_groups" in data:
            data["personal_account_groups"] = tuple(
                PersonalAccountGroup(
                    label=g["label"],
                    first_code=int(g["first_code"]),
                    last_code=int(g["last_code"]),
                    target_code=str(g["target_code"]),
                )
                for g in data["personal_account_groups"]
            )
        if currency and "default_currency" not in data:
            data["default_currency"] = currency
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
