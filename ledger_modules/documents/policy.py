"""
Document posting policy.

Decides which accounts a document books against and builds the balanced
journal lines.  No database access: accounts are resolved through the
callables passed in, tax splits come from the TaxEngine.

Booking rules (SKR03 defaults in brackets):

    Beleg ausgang       Soll Forderungen [1400]   gross
                        Haben Erloese [8400]      net
                        Haben Umsatzsteuer [1776] tax
    Beleg eingang/offen Soll Aufwand [4900]       net
                        Soll Vorsteuer [1576]     tax
                        Haben Verbindlichk. [1600] gross
    Beleg sonstige      Soll account              gross
                        Haben contra account      gross
    Invoice             Soll Forderungen          gross total
                        Haben revenue per (account, rate)   net
                        Haben output tax per tax account    tax

Payments settle the contra account against the payment account [1200].
"""

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_engines.tax import TaxEngine, TaxKey, TaxKind
from ledger_kernel.db.types import coerce_rate
from ledger_kernel.domain.dtos import AccountInfo, LineDraft, LineSide
from ledger_kernel.exceptions import AccountNotFoundError, UnknownAccountError, ValidationError
from ledger_modules.documents.models import BelegCategory, DocumentType
from ledger_modules.documents.orm import DocumentModel

_ZERO = Decimal("0")


@dataclass(frozen=True)
class BookingPlan:
    """Lines and totals for booking one document."""

    lines: tuple[LineDraft, ...]
    gross: int
    net: int
    tax: int
    tax_rate: Decimal | None
    account_id: UUID
    contra_account_id: UUID


@dataclass(frozen=True)
class PolicyAccounts:
    """Account codes the policy falls back to."""

    receivable: str
    payable: str
    revenue: str
    expense: str
    payment: str

    @classmethod
    def from_config(cls, policy) -> "PolicyAccounts":
        return cls(
            receivable=policy.receivable_account,
            payable=policy.payable_account,
            revenue=policy.revenue_account,
            expense=policy.expense_account,
            payment=policy.payment_account,
        )


class PostingPolicy:
    """Builds booking and payment lines for documents."""

    def __init__(
        self,
        tax_engine: TaxEngine,
        accounts: PolicyAccounts,
        account_by_code: Callable[[str], AccountInfo],
        account_by_id: Callable[[UUID], AccountInfo],
    ):
        self._tax = tax_engine
        self._defaults = accounts
        self._by_code = account_by_code
        self._by_id = account_by_id

    # ------------------------------------------------------------------
    # Account resolution
    # ------------------------------------------------------------------

    def account(self, code: str) -> AccountInfo:
        try:
            return self._by_code(code)
        except AccountNotFoundError:
            raise UnknownAccountError(code, step="validate") from None

    def _account_id(self, account_id: UUID) -> AccountInfo:
        try:
            return self._by_id(account_id)
        except AccountNotFoundError:
            raise UnknownAccountError(str(account_id), step="validate") from None

    def _is_outgoing(self, document: DocumentModel) -> bool:
        if document.document_type in (DocumentType.INVOICE.value, DocumentType.ORDER.value):
            return True
        return document.category == BelegCategory.OUTGOING.value

    def main_account(self, document: DocumentModel) -> AccountInfo:
        """Revenue or expense account of the document."""
        if document.account_id is not None:
            return self._account_id(document.account_id)
        if document.category == BelegCategory.OTHER.value:
            raise ValidationError(
                "Beleg category 'sonstige' needs an explicit account",
                field="account_code",
                step="validate",
            )
        code = self._defaults.revenue if self._is_outgoing(document) else self._defaults.expense
        return self.account(code)

    def contra_account(self, document: DocumentModel) -> AccountInfo:
        """Receivable or payable side of the document."""
        if document.contra_account_id is not None:
            return self._account_id(document.contra_account_id)
        if document.category == BelegCategory.OTHER.value:
            raise ValidationError(
                "Beleg category 'sonstige' needs an explicit contra account",
                field="contra_account_code",
                step="validate",
            )
        code = self._defaults.receivable if self._is_outgoing(document) else self._defaults.payable
        return self.account(code)

    # ------------------------------------------------------------------
    # Tax
    # ------------------------------------------------------------------

    def effective_rate(self, explicit: Decimal | None, account: AccountInfo) -> Decimal:
        """Explicit rate, else the rate of the account's default tax key, else 0."""
        if explicit is not None:
            return coerce_rate(explicit)
        if account.tax_key_code and account.tax_key_code in self._tax.codes():
            return coerce_rate(self._tax.get(account.tax_key_code).rate)
        return coerce_rate(_ZERO)

    def _exempt_key(self) -> TaxKey | None:
        for key in self._tax.keys:
            if key.kind == TaxKind.NONE and coerce_rate(key.rate) == 0:
                return key
        return None

    def _key_for(self, kind: TaxKind, rate: Decimal) -> tuple[TaxKey | None, AccountInfo | None]:
        key = self._tax.resolve(kind, rate)
        if key is None:
            return self._exempt_key(), None
        return key, self.account(key.account_code)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def _require_positive(self, gross: int) -> None:
        if gross is None or gross <= 0:
            raise ValidationError(
                f"Nothing to book: gross amount is {gross}",
                field="amount",
                step="validate",
            )

    def plan_booking(self, document: DocumentModel) -> BookingPlan:
        if document.document_type == DocumentType.INVOICE.value and document.lines:
            return self._invoice_lines_booking(document)
        if document.document_type == DocumentType.ORDER.value:
            raise ValidationError("Orders are not booked; invoice them instead", step="validate")
        return self._single_amount_booking(document)

    def preview(self, document: DocumentModel) -> BookingPlan:
        """Totals a document would book with; also used for draft orders."""
        if document.document_type != DocumentType.BELEG.value and document.lines:
            return self._invoice_lines_booking(document)
        return self._single_amount_booking(document)

    def _single_amount_booking(self, document: DocumentModel) -> BookingPlan:
        gross = document.amount
        self._require_positive(gross)
        main = self.main_account(document)
        contra = self.contra_account(document)
        title = document.title

        if document.category == BelegCategory.OTHER.value:
            if document.tax_rate is not None and coerce_rate(document.tax_rate) != 0:
                raise ValidationError(
                    "Beleg category 'sonstige' books without tax split",
                    field="tax_rate",
                    step="tax_split",
                )
            lines = (
                LineDraft.debit(main.id, gross, description=title),
                LineDraft.credit(contra.id, gross, description=title),
            )
            return BookingPlan(lines, gross, gross, 0, None, main.id, contra.id)

        outgoing = self._is_outgoing(document)
        kind = TaxKind.OUTPUT if outgoing else TaxKind.INPUT
        rate = self.effective_rate(document.tax_rate, main)
        split = self._tax.split_gross(gross, rate)
        key, tax_account = self._key_for(kind, rate)

        main_side = LineSide.CREDIT if outgoing else LineSide.DEBIT
        lines = [
            LineDraft(
                account_id=main.id,
                side=main_side,
                amount=split.net,
                description=title,
                tax_key_code=key.code if key else None,
                tax_rate=split.rate,
                tax_amount=split.tax,
            )
        ]
        if split.tax:
            lines.append(
                LineDraft(
                    account_id=tax_account.id,
                    side=main_side,
                    amount=split.tax,
                    description=f"{key.name}: {title}",
                )
            )
        contra_line = LineDraft(
            account_id=contra.id,
            side=main_side.opposite(),
            amount=gross,
            description=title,
        )
        # Receivable first on sales, payable last on purchases
        lines = [contra_line, *lines] if outgoing else [*lines, contra_line]
        return BookingPlan(tuple(lines), gross, split.net, split.tax, split.rate, main.id, contra.id)

    def _invoice_lines_booking(self, invoice: DocumentModel) -> BookingPlan:
        contra = self.contra_account(invoice)
        default_revenue = self.main_account(invoice)

        groups: dict[tuple[UUID, Decimal], int] = {}
        accounts: dict[UUID, AccountInfo] = {default_revenue.id: default_revenue}
        for line in invoice.lines:
            account = (
                self._account_id(line.account_id) if line.account_id is not None else default_revenue
            )
            accounts[account.id] = account
            explicit = line.tax_rate if line.tax_rate is not None else invoice.tax_rate
            rate = self.effective_rate(explicit, account)
            groups[(account.id, rate)] = groups.get((account.id, rate), 0) + line.net_amount

        revenue_lines: list[LineDraft] = []
        tax_by_account: dict[UUID, tuple[AccountInfo, TaxKey, int]] = {}
        net_total = tax_total = 0
        for (account_id, rate), net in groups.items():
            if net <= 0:
                continue
            split = self._tax.split_from_net(net, rate)
            key, tax_account = self._key_for(TaxKind.OUTPUT, rate)
            revenue_lines.append(
                LineDraft(
                    account_id=account_id,
                    side=LineSide.CREDIT,
                    amount=net,
                    description=invoice.title,
                    tax_key_code=key.code if key else None,
                    tax_rate=split.rate,
                    tax_amount=split.tax,
                )
            )
            if split.tax:
                _, _, previous = tax_by_account.get(tax_account.id, (tax_account, key, 0))
                tax_by_account[tax_account.id] = (tax_account, key, previous + split.tax)
            net_total += net
            tax_total += split.tax

        gross = net_total + tax_total
        self._require_positive(gross)

        tax_lines = [
            LineDraft(
                account_id=account.id,
                side=LineSide.CREDIT,
                amount=amount,
                description=f"{key.name}: {invoice.title}",
            )
            for account, key, amount in sorted(tax_by_account.values(), key=lambda t: t[0].code)
        ]
        lines = (
            LineDraft.debit(contra.id, gross, description=invoice.title),
            *revenue_lines,
            *tax_lines,
        )
        rates = {rate for (_, rate) in groups}
        single_rate = rates.pop() if len(rates) == 1 else None
        return BookingPlan(
            lines, gross, net_total, tax_total, single_rate, default_revenue.id, contra.id
        )

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def payment_lines(
        self,
        document: DocumentModel,
        payment_account: AccountInfo,
    ) -> tuple[LineDraft, ...]:
        """Settle the document's gross amount against the payment account."""
        contra = self.contra_account(document)
        if contra.id == payment_account.id:
            raise ValidationError(
                f"Document was booked directly against {contra.code}; nothing to settle",
                field="payment_account_code",
                step="validate",
            )
        gross = document.amount
        self._require_positive(gross)
        text = f"Zahlung {document.document_number}"
        if self._is_outgoing(document):
            return (
                LineDraft.debit(payment_account.id, gross, description=text),
                LineDraft.credit(contra.id, gross, description=text),
            )
        return (
            LineDraft.debit(contra.id, gross, description=text),
            LineDraft.credit(payment_account.id, gross, description=text),
        )
