"""
Module: ledger_kernel.db.types
Responsibility: The single rounding function for monetary values and the
    normalisation of tax rates.
Architecture position: Kernel > DB.  Imported by models/, domain/, services/,
    engines.  MUST NOT import from any of those layers.

Invariants enforced:
    - Amounts are integers in minor units (cents).  No floats anywhere.
    - round_half_up() is the ONLY sanctioned rounding from a Decimal to
      cents.  Rounding mode is ROUND_HALF_UP (kaufmaennisches Runden).
"""

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_ROUNDING = ROUND_HALF_UP


def round_half_up(value: Decimal) -> int:
    """Round a Decimal amount of cents to an integer, half away from zero."""
    return int(value.quantize(Decimal(1), rounding=DEFAULT_ROUNDING))


def coerce_rate(value: Decimal | int | str) -> Decimal:
    """Normalise a tax rate percentage to two decimal places."""
    return Decimal(value).quantize(Decimal("0.01"), rounding=DEFAULT_ROUNDING)
