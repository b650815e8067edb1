"""
Reporting module: trial balance, GuV, Bilanz, journal export, tax report
and account statements, all derived read-only from the journal.
"""

from ledger_modules.reporting.config import PersonalAccountGroup, ReportingConfig
from ledger_modules.reporting.models import ReportMetadata, ReportType
from ledger_modules.reporting.service import ReportService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "PersonalAccountGroup",
    "ReportMetadata",
    "ReportService",
    "ReportType",
    "ReportingConfig",
    "render_to_dict",
]
