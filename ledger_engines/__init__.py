"""
Module: ledger_engines
Responsibility:
    Pure calculation engines.  Zero I/O: no database, no clock.  Inputs are
    passed in, results are returned as frozen value objects.

Usage:
    from ledger_engines.tax import TaxEngine, split_gross, split_from_net
"""

from ledger_engines.tax import (
    TaxEngine,
    TaxKey,
    TaxKind,
    TaxSplit,
    split_from_net,
    split_gross,
)

__all__ = [
    "TaxEngine",
    "TaxKey",
    "TaxKind",
    "TaxSplit",
    "split_from_net",
    "split_gross",
]
