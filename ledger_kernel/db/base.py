"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all ORM models.  Provides the UUID
    primary key convention, the type annotation map, and the TrackedBase mixin
    for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target in the kernel.
    MUST NOT import from models/, services/, selectors/, domain/ or outer layers.

Invariants enforced:
    - UUID primary keys (uuid4, stored as String(36) for portability).
    - Money is never a float: ``int`` maps to BigInteger and every amount
      column holds minor units (cents).
    - Timestamps are timezone-aware.

Audit relevance:
    created_at/updated_at/created_by_id are audit metadata.  They may change on
    otherwise immutable rows (see db/immutability.py).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, func
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36); converts transparently in both directions."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Guarantees:
        - id is a uuid4 UUID.
        - Decimal maps to Numeric(5, 2): the only decimals stored are tax
          rates in percent.
        - int maps to BigInteger (cents, sequences).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(5, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and actor tracking.

    created_by_id is optional: the engine is single-tenant and the HTTP layer
    passes an actor only when one is authenticated.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
