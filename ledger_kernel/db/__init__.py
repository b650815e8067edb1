"""Database layer - engine, base classes, types, immutability."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from ledger_kernel.db.types import coerce_rate, round_half_up

__all__ = [
    "UUID",
    "Base",
    "TrackedBase",
    "UUIDString",
    "coerce_rate",
    "round_half_up",
    "create_tables",
    "get_engine",
    "get_session",
    "session_scope",
]
