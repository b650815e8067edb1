"""
ORM-level immutability enforcement for the journal.

Posted journal rows are never modified; corrections are made by posting a
storno (see LedgerService.reverse).  The services expose no update or delete
for journal rows, and these listeners refuse any attempt that reaches the
ORM anyway:

Entity        | Immutable                               | Listener
--------------|-----------------------------------------|-------------------
JournalEntry  | always (rows exist only once posted)    | before_update/delete
JournalLine   | always                                  | before_update/delete
Account       | code/account_type once lines reference  | before_update
Account       | deletion once lines reference it        | Session before_flush

Bulk ``UPDATE``/``DELETE`` statements bypass mapper events; the kernel never
issues them against journal tables.

Usage:
    register_immutability_listeners()    # once at startup (idempotent)
    unregister_immutability_listeners()  # tests that need to bypass
"""

from sqlalchemy import event, text
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import AccountReferencedError, ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata may change even on immutable rows
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

ACCOUNT_STRUCTURAL_FIELDS = ("code", "account_type", "normal_balance")


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    from sqlalchemy import inspect

    changed = []
    for attr in inspect(target).mapper.column_attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if get_history(target, attr.key).has_changes():
            changed.append(attr.key)
    return changed


def _check_journal_entry_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _blocked(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Cannot modify field(s) {changed} on a posted journal entry",
            fields=changed,
        )


def _check_journal_entry_delete(mapper, connection, target):
    _blocked("JournalEntry", target.id, "DELETE", "Posted journal entries cannot be deleted")


def _check_journal_line_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _blocked(
            "JournalLine",
            target.id,
            "UPDATE",
            f"Cannot modify field(s) {changed} on a posted journal line",
            fields=changed,
        )


def _check_journal_line_delete(mapper, connection, target):
    _blocked("JournalLine", target.id, "DELETE", "Posted journal lines cannot be deleted")


def account_has_postings(connection, account_id) -> bool:
    """True if any journal line references the account."""
    result = connection.execute(
        text("SELECT EXISTS (SELECT 1 FROM journal_lines WHERE account_id = :account_id)"),
        {"account_id": str(account_id)},
    )
    return bool(result.scalar())


def _check_account_structural_update(mapper, connection, target):
    changed = [
        name for name in ACCOUNT_STRUCTURAL_FIELDS if get_history(target, name).has_changes()
    ]
    if not changed:
        return
    if account_has_postings(connection, target.id):
        _blocked(
            "Account",
            target.id,
            "UPDATE",
            f"Cannot modify structural field(s) {changed} on an account with postings",
            fields=changed,
        )


def _check_account_deletion_before_flush(session, flush_context, instances):
    from ledger_kernel.models.account import Account

    for obj in list(session.deleted):
        if not isinstance(obj, Account):
            continue
        with session.no_autoflush:
            referenced = account_has_postings(session.connection(), obj.id)
        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                },
            )
            raise AccountReferencedError(account_id=str(obj.id))


def _listeners():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return (
        (Session, "before_flush", _check_account_deletion_before_flush),
        (JournalEntry, "before_update", _check_journal_entry_update),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_update),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (Account, "before_update", _check_account_structural_update),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners.  Safe to call more than once."""
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  Only for tests that must bypass the guards."""
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
