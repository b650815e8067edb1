"""
Tests for the ORM immutability listeners.

Posted journal rows cannot be edited or deleted through the ORM; accounts
with postings keep their code and type.
"""

from datetime import date

import pytest
from sqlalchemy import select

from ledger_kernel.exceptions import AccountReferencedError, ImmutabilityViolationError
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalLine

RENT = [("4210", "debit", 50000), ("1200", "credit", 50000)]


@pytest.fixture
def posted(post_entry, session):
    record = post_entry(date(2024, 3, 1), "Miete", RENT)
    session.expire_all()
    return session.get(JournalEntry, record.id)


class TestJournalImmutability:
    def test_entry_update_blocked(self, posted, session):
        posted.description = "Anders"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "JournalEntry"

    def test_entry_delete_blocked(self, posted, session):
        session.delete(posted)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_line_amount_update_blocked(self, posted, session):
        line = session.execute(
            select(JournalLine).where(JournalLine.journal_entry_id == posted.id)
        ).scalars().first()
        line.amount = 1
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, posted, session, captured_logs):
        posted.booking_date = date(2024, 3, 2)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        assert any(r["message"] == "immutability_violation_blocked" for r in captured_logs())


class TestAccountImmutability:
    def test_code_change_blocked_with_postings(self, posted, session, chart):
        account = session.get(Account, chart["1200"].id)
        account.code = "1210"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked_with_postings(self, posted, session, chart):
        session.delete(session.get(Account, chart["4210"].id))
        with pytest.raises(AccountReferencedError):
            session.flush()

    def test_rename_allowed(self, posted, session, chart):
        account = session.get(Account, chart["1200"].id)
        account.name = "Hausbank"
        session.flush()
        assert account.name == "Hausbank"
