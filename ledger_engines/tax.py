"""
Tax Engine - German VAT (Umsatzsteuer / Vorsteuer) splits.

Pure functions with no I/O.  Amounts are integer cents; rates are percent
Decimals (``Decimal("19")``).  Rounding is ROUND_HALF_UP to the cent
(kaufmaennisches Runden), applied exactly once per split.

Usage:
    from decimal import Decimal
    from ledger_engines.tax import split_gross, split_from_net

    split_gross(11900, Decimal("19"))     # net=10000 tax=1900 gross=11900
    split_from_net(10000, Decimal("7"))   # net=10000 tax=700  gross=10700

Guarantees:
    - net + tax == gross, always.
    - split_from_net(split_gross(g, r).net, r).gross differs from g by at
      most one cent.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ledger_kernel.db.types import coerce_rate, round_half_up
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

_HUNDRED = Decimal(100)


class TaxKind(str, Enum):
    """Direction of a tax key."""

    OUTPUT = "output"  # Umsatzsteuer, owed on sales
    INPUT = "input"  # Vorsteuer, reclaimable on purchases
    NONE = "none"  # tax-free / not taxable


@dataclass(frozen=True)
class TaxKey:
    """
    A tax key (Steuerschluessel).

    ``account_code`` is the tax account that receives the tax line
    (e.g. 1776 for 19 % output tax in SKR03).
    """

    code: str
    name: str
    rate: Decimal
    kind: TaxKind = TaxKind.NONE
    account_code: str | None = None

    def __post_init__(self) -> None:
        _check_rate(self.rate)


@dataclass(frozen=True)
class TaxSplit:
    """Result of splitting an amount into net and tax."""

    net: int
    tax: int
    gross: int
    rate: Decimal


def _check_rate(rate: Decimal) -> Decimal:
    try:
        rate = coerce_rate(rate)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError(f"Invalid tax rate {rate!r}", field="tax_rate", step="tax_split") from None
    if rate < 0 or rate > _HUNDRED:
        raise ValidationError(
            f"Tax rate must be between 0 and 100 percent, got {rate}",
            field="tax_rate",
            step="tax_split",
        )
    return rate


def _check_amount(amount: int, name: str) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"{name} must be an integer number of cents", field=name, step="tax_split")
    if amount < 0:
        raise ValidationError(f"{name} must not be negative, got {amount}", field=name, step="tax_split")


def split_gross(gross: int, rate: Decimal) -> TaxSplit:
    """Split a tax-inclusive amount: net = round(gross * 100 / (100 + rate))."""
    _check_amount(gross, "gross")
    rate = _check_rate(rate)
    net = round_half_up(Decimal(gross) * _HUNDRED / (_HUNDRED + rate))
    return TaxSplit(net=net, tax=gross - net, gross=gross, rate=rate)


def split_from_net(net: int, rate: Decimal) -> TaxSplit:
    """Add tax on top of a net amount: tax = round(net * rate / 100)."""
    _check_amount(net, "net")
    rate = _check_rate(rate)
    tax = round_half_up(Decimal(net) * rate / _HUNDRED)
    return TaxSplit(net=net, tax=tax, gross=net + tax, rate=rate)


class TaxEngine:
    """
    Tax key catalogue plus the split functions.

    Contract:
        Holds the configured tax keys and resolves the key for a booking
        direction and rate, the way purchase documents pick 1576/1571 and
        sales documents pick 1776/1771.
    """

    def __init__(self, tax_keys: Iterable[TaxKey]):
        self._keys: dict[str, TaxKey] = {}
        for key in tax_keys:
            if key.code in self._keys:
                raise ValidationError(f"Duplicate tax key {key.code!r}", field="tax_key_code")
            self._keys[key.code] = key

    @classmethod
    def from_definitions(cls, definitions: Iterable) -> TaxEngine:
        """Build the engine from configured ``TaxKeyDef`` entries."""
        return cls(
            TaxKey(
                code=d.code,
                name=d.name,
                rate=Decimal(d.rate),
                kind=TaxKind(d.kind),
                account_code=d.account_code,
            )
            for d in definitions
        )

    @property
    def keys(self) -> tuple[TaxKey, ...]:
        return tuple(self._keys.values())

    def codes(self) -> frozenset[str]:
        return frozenset(self._keys)

    def get(self, code: str) -> TaxKey:
        try:
            return self._keys[code]
        except KeyError:
            raise ValidationError(f"Unknown tax key {code!r}", field="tax_key_code", step="tax_split") from None

    def resolve(self, kind: TaxKind | str, rate: Decimal) -> TaxKey | None:
        """
        Tax key for a direction and rate.

        A zero rate needs no tax line and resolves to None.

        Raises:
            ValidationError: No key configured for (kind, rate).
        """
        rate = _check_rate(rate)
        if rate == 0:
            return None
        kind = TaxKind(kind)
        for key in self._keys.values():
            if key.kind == kind and coerce_rate(key.rate) == rate:
                return key
        raise ValidationError(
            f"No {kind.value} tax key configured for {rate} %",
            field="tax_rate",
            step="tax_split",
        )

    def split_gross(self, gross: int, rate: Decimal) -> TaxSplit:
        result = split_gross(gross, rate)
        logger.debug(
            "tax_split_gross",
            extra={"gross": gross, "rate": str(result.rate), "net": result.net, "tax": result.tax},
        )
        return result

    def split_from_net(self, net: int, rate: Decimal) -> TaxSplit:
        result = split_from_net(net, rate)
        logger.debug(
            "tax_split_from_net",
            extra={"net": net, "rate": str(result.rate), "tax": result.tax, "gross": result.gross},
        )
        return result
