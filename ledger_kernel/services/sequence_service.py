"""
SequenceService -- strictly increasing numbers from locked counter rows.

Responsibility:
    Source of ``JournalEntry.seq`` and of document numbers
    (``BEL-2024-0001``).  Each named sequence is one row in
    ``sequence_counters``.

Invariants enforced:
    - Values are strictly increasing per name.  ``MAX(seq) + 1`` is never
      used: the counter row is the only source of truth.
    - The increment is a single ``UPDATE ... SET current_value =
      current_value + 1``, so two writers serialise on the row lock on
      PostgreSQL and on the database write lock on SQLite.
    - Transactional: a rolled back transaction gives its value back.

Failure modes:
    - IntegrityError while two writers create the same counter row is
      absorbed by a savepoint and a retry.
"""

from sqlalchemy import BigInteger, String, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """Named counter row."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Allocates the next value of a named sequence.

    Non-goals:
        - Does NOT call ``session.commit()``.

    Usage:
        seq = SequenceService(session).next_value(SequenceService.JOURNAL_ENTRY)
    """

    JOURNAL_ENTRY = "journal_entry"

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def document_sequence(prefix: str, year: int) -> str:
        """Counter name for document numbers, one per prefix and year."""
        return f"document:{prefix}:{year}"

    def next_value(self, sequence_name: str) -> int:
        """
        Increment and return the named counter (always > 0).

        The counter row stays locked until the caller's transaction ends.
        """
        result = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .values(current_value=SequenceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # First use of this sequence; another writer may race us
            savepoint = self._session.begin_nested()
            try:
                self._session.add(SequenceCounter(name=sequence_name, current_value=1))
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                savepoint.rollback()
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                return self.next_value(sequence_name)

        value = self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
        ).scalar_one()

        assert value > 0, "sequence value must be strictly positive"
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
