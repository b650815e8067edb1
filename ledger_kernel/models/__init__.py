"""ORM models of the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.models.journal import JournalEntry, JournalLine, LineSide

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "FiscalPeriod",
    "PeriodStatus",
    "JournalEntry",
    "JournalLine",
    "LineSide",
    "import_all_models",
]


def import_all_models() -> None:
    """Import every ORM module so Base.metadata knows all tables."""
    import ledger_kernel.services.sequence_service  # noqa: F401  (SequenceCounter)
    import ledger_modules.documents.orm  # noqa: F401
