"""
Typed exception hierarchy for the ledger kernel.

Every error the engine raises is a subclass of ``LedgerError`` and carries:

  1. A class-level ``code`` (machine-readable, API-safe).
  2. A class-level ``http_status`` used by the wire layer.
  3. Structured attributes describing the failure (never parse the message).

Hierarchy::

    LedgerError
    |
    +-- ValidationError
    |   +-- ImbalancedEntryError
    |   +-- UnknownAccountError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- EntryNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- PeriodNotFoundError
    |
    +-- DuplicateCodeError
    +-- AccountReferencedError
    |
    +-- InvalidStateError
    |   +-- AlreadyBookedError
    |   +-- EntryAlreadyReversedError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodOverlapError
    |
    +-- ConflictError
    +-- ImmutabilityViolationError

Codes:

    VALIDATION_ERROR         input rejected before any write
    IMBALANCED_ENTRY         sum(debit) != sum(credit)
    UNKNOWN_ACCOUNT          posting targets a missing or inactive account
    ACCOUNT_NOT_FOUND        registry lookup failed
    ENTRY_NOT_FOUND          journal entry lookup failed
    DOCUMENT_NOT_FOUND       document lookup failed
    PERIOD_NOT_FOUND         fiscal period lookup failed
    DUPLICATE_CODE           account code already taken
    ACCOUNT_REFERENCED       account has postings; structural change refused
    INVALID_STATE            transition not allowed from the current status
    ALREADY_BOOKED           document was booked before
    ENTRY_ALREADY_REVERSED   storno already exists for the entry
    PERIOD_CLOSED            booking date falls into a closed period
    PERIOD_OVERLAP           new period overlaps an existing one
    CONFLICT                 optimistic status check lost a race
    IMMUTABILITY_VIOLATION   attempt to change a posted row
"""


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    code: str = "LEDGER_ERROR"
    http_status: int = 400

    def __init__(self, message: str, *, step: str | None = None):
        self.message = message
        self.step = step
        super().__init__(message)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(LedgerError):
    """Input rejected before anything was written."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 422

    def __init__(self, message: str, *, field: str | None = None, step: str | None = None):
        self.field = field
        super().__init__(message, step=step)


class ImbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "IMBALANCED_ENTRY"

    def __init__(self, debits: int, credits: int, *, step: str | None = "post"):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Imbalanced entry: debits={debits}, credits={credits}",
            step=step,
        )


class UnknownAccountError(ValidationError):
    """Posting references an account that does not exist or is inactive."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, account: str, *, reason: str = "not found", step: str | None = "post"):
        self.account = account
        self.reason = reason
        super().__init__(f"Unknown account {account}: {reason}", step=step)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class NotFoundError(LedgerError):
    """Base for lookup failures."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class AccountNotFoundError(NotFoundError):
    """Account lookup by id or code failed."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"Account not found: {account}")


class EntryNotFoundError(NotFoundError):
    """Journal entry lookup failed."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class DocumentNotFoundError(NotFoundError):
    """Document lookup failed."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str, document_type: str | None = None):
        self.document_id = document_id
        self.document_type = document_type
        label = document_type or "Document"
        super().__init__(f"{label} not found: {document_id}")


class PeriodNotFoundError(NotFoundError):
    """Fiscal period lookup failed."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Fiscal period not found: {period_code}")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class DuplicateCodeError(LedgerError):
    """Account code already exists."""

    code: str = "DUPLICATE_CODE"
    http_status: int = 409

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountReferencedError(LedgerError):
    """Account has postings; structural change or deletion refused."""

    code: str = "ACCOUNT_REFERENCED"
    http_status: int = 409

    def __init__(self, account_id: str, operation: str = "delete"):
        self.account_id = account_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} account {account_id}: it is referenced by journal lines"
        )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class InvalidStateError(LedgerError):
    """Requested transition is not allowed from the current status."""

    code: str = "INVALID_STATE"
    http_status: int = 409

    def __init__(
        self,
        message: str,
        *,
        current_status: str | None = None,
        action: str | None = None,
        step: str | None = "transition",
    ):
        self.current_status = current_status
        self.action = action
        super().__init__(message, step=step)


class AlreadyBookedError(InvalidStateError):
    """Document was booked before; booking is at-most-once."""

    code: str = "ALREADY_BOOKED"

    def __init__(self, document_id: str, current_status: str | None = None):
        self.document_id = document_id
        super().__init__(
            f"Document {document_id} is already booked",
            current_status=current_status,
            action="book",
        )


class EntryAlreadyReversedError(InvalidStateError):
    """A storno for this journal entry already exists."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_entry_id: str):
        self.entry_id = entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(
            f"Journal entry {entry_id} was already reversed by {reversal_entry_id}",
            action="reverse",
            step="post",
        )


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


class PeriodError(LedgerError):
    """Base for fiscal period errors."""

    code: str = "PERIOD_ERROR"
    http_status: int = 409


class PeriodClosedError(PeriodError):
    """Booking date falls into a closed fiscal period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_code: str, booking_date: str):
        self.period_code = period_code
        self.booking_date = booking_date
        super().__init__(
            f"Cannot post on {booking_date}: fiscal period {period_code} is closed",
            step="post",
        )


class PeriodOverlapError(PeriodError):
    """New fiscal period overlaps an existing one."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_period_code: str, existing_period_code: str):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Period {new_period_code} overlaps existing period {existing_period_code}"
        )


# ---------------------------------------------------------------------------
# Concurrency and integrity
# ---------------------------------------------------------------------------


class ConflictError(LedgerError):
    """Optimistic status check failed: another writer changed the document."""

    code: str = "CONFLICT"
    http_status: int = 409

    def __init__(self, document_id: str, expected_status: str, actual_status: str | None):
        self.document_id = document_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Document {document_id} changed concurrently: "
            f"expected status {expected_status}, found {actual_status}",
            step="transition",
        )


class ImmutabilityViolationError(LedgerError):
    """Attempt to modify or delete a posted journal row."""

    code: str = "IMMUTABILITY_VIOLATION"
    http_status: int = 409

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
