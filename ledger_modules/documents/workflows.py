"""
Document Workflows.

Closed state machines for Belege, invoices and orders.  These tables are
the only place document transitions are defined; DocumentService asks
``next_status()`` before every status change.
"""

from dataclasses import dataclass

from ledger_kernel.exceptions import AlreadyBookedError, InvalidStateError
from ledger_kernel.logging_config import get_logger
from ledger_modules.documents.models import (
    BOOKED_STATUSES,
    BelegStatus,
    DocumentAction,
    DocumentType,
    InvoiceStatus,
    OrderStatus,
)

logger = get_logger("modules.documents.workflows")


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: str
    to_state: str
    action: DocumentAction
    posts_entry: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""

    name: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def candidates(self, current: str, action: DocumentAction) -> tuple[str, ...]:
        return tuple(
            t.to_state for t in self.transitions if t.from_state == current and t.action == action
        )

    def transition(self, current: str, action: DocumentAction, target: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == current and t.action == action and t.to_state == target:
                return t
        return None


# -----------------------------------------------------------------------------
# Beleg
# -----------------------------------------------------------------------------

_B = BelegStatus
_A = DocumentAction

BELEG_WORKFLOW = Workflow(
    name="beleg",
    initial_state=_B.DRAFT.value,
    states=tuple(s.value for s in BelegStatus),
    transitions=(
        Transition(_B.DRAFT.value, _B.BOOKED.value, _A.BOOK, posts_entry=True),
        Transition(_B.DRAFT.value, _B.CANCELLED.value, _A.CANCEL),
        Transition(_B.BOOKED.value, _B.PAID.value, _A.PAY, posts_entry=True),
        Transition(_B.BOOKED.value, _B.CANCELLED.value, _A.CANCEL, posts_entry=True),  # storno
    ),
)

# -----------------------------------------------------------------------------
# Invoice
# -----------------------------------------------------------------------------

_I = InvoiceStatus

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    initial_state=_I.DRAFT.value,
    states=tuple(s.value for s in InvoiceStatus),
    transitions=(
        Transition(_I.DRAFT.value, _I.BOOKED.value, _A.BOOK, posts_entry=True),
        Transition(_I.DRAFT.value, _I.CANCELLED.value, _A.CANCEL),
        Transition(_I.BOOKED.value, _I.SENT.value, _A.SEND),
        Transition(_I.BOOKED.value, _I.PAID.value, _A.PAY, posts_entry=True),
        Transition(_I.SENT.value, _I.PAID.value, _A.PAY, posts_entry=True),
        Transition(_I.BOOKED.value, _I.CANCELLED.value, _A.CANCEL, posts_entry=True),
        Transition(_I.SENT.value, _I.CANCELLED.value, _A.CANCEL, posts_entry=True),
    ),
)

# -----------------------------------------------------------------------------
# Order
# -----------------------------------------------------------------------------

_O = OrderStatus

ORDER_WORKFLOW = Workflow(
    name="order",
    initial_state=_O.OPEN.value,
    states=tuple(s.value for s in OrderStatus),
    transitions=(
        Transition(_O.OPEN.value, _O.PARTIAL_DELIVERED.value, _A.DELIVER),
        Transition(_O.OPEN.value, _O.DELIVERED.value, _A.DELIVER),
        Transition(_O.PARTIAL_DELIVERED.value, _O.PARTIAL_DELIVERED.value, _A.DELIVER),
        Transition(_O.PARTIAL_DELIVERED.value, _O.DELIVERED.value, _A.DELIVER),
        Transition(_O.OPEN.value, _O.PARTIAL_INVOICED.value, _A.INVOICE),
        Transition(_O.OPEN.value, _O.INVOICED.value, _A.INVOICE),
        Transition(_O.PARTIAL_DELIVERED.value, _O.PARTIAL_INVOICED.value, _A.INVOICE),
        Transition(_O.PARTIAL_DELIVERED.value, _O.INVOICED.value, _A.INVOICE),
        Transition(_O.DELIVERED.value, _O.PARTIAL_INVOICED.value, _A.INVOICE),
        Transition(_O.DELIVERED.value, _O.INVOICED.value, _A.INVOICE),
        Transition(_O.PARTIAL_INVOICED.value, _O.PARTIAL_INVOICED.value, _A.INVOICE),
        Transition(_O.PARTIAL_INVOICED.value, _O.INVOICED.value, _A.INVOICE),
        Transition(_O.INVOICED.value, _O.COMPLETED.value, _A.COMPLETE),
        Transition(_O.OPEN.value, _O.CANCELLED.value, _A.CANCEL),
        # a cancelled order invoice gives its quantities back
        *(
            Transition(state.value, target.value, _A.RELEASE)
            for state in (_O.PARTIAL_INVOICED, _O.INVOICED)
            for target in (
                _O.OPEN,
                _O.PARTIAL_DELIVERED,
                _O.DELIVERED,
                _O.PARTIAL_INVOICED,
            )
        ),
    ),
)

WORKFLOWS: dict[DocumentType, Workflow] = {
    DocumentType.BELEG: BELEG_WORKFLOW,
    DocumentType.INVOICE: INVOICE_WORKFLOW,
    DocumentType.ORDER: ORDER_WORKFLOW,
}

logger.debug(
    "document_workflows_registered",
    extra={
        "workflows": {
            wf.name: len(wf.transitions) for wf in WORKFLOWS.values()
        },
    },
)


def next_status(
    document_type: DocumentType | str,
    current: str,
    action: DocumentAction | str,
    target: str | None = None,
    document_id: str | None = None,
) -> Transition:
    """
    Look up the transition for ``action`` from ``current``.

    ``target`` picks among several allowed targets (orders); without it the
    action must have exactly one.

    Raises:
        AlreadyBookedError: BOOK on a document that was booked before.
        InvalidStateError: No such transition.
    """
    workflow = WORKFLOWS[DocumentType(document_type)]
    action = DocumentAction(action)
    candidates = workflow.candidates(current, action)

    if not candidates:
        if action == DocumentAction.BOOK and current in BOOKED_STATUSES:
            raise AlreadyBookedError(document_id or "?", current_status=current)
        raise InvalidStateError(
            f"Cannot {action.value} {workflow.name} in status {current!r}",
            current_status=current,
            action=action.value,
        )

    if target is None:
        if len(candidates) != 1:
            raise InvalidStateError(
                f"Ambiguous {action.value} from {current!r}: {candidates}",
                current_status=current,
                action=action.value,
            )
        target = candidates[0]

    transition = workflow.transition(current, action, target)
    if transition is None:
        raise InvalidStateError(
            f"Cannot move {workflow.name} from {current!r} to {target!r} via {action.value}",
            current_status=current,
            action=action.value,
        )
    return transition
