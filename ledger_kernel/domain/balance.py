"""
Sign convention for account balances.

Defined once here and used by the ledger selector and every report:

    asset, expense              debit-normal   balance = debit - credit
    liability, equity, revenue  credit-normal  balance = credit - debit

A positive balance therefore always means "the account carries its normal
balance".
"""

from ledger_kernel.domain.dtos import AccountType, LineSide, NormalBalance

_NORMAL_BALANCE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Return the normal balance side implied by an account type."""
    return _NORMAL_BALANCE[AccountType(account_type)]


def signed_amount(
    account_type: AccountType | str,
    side: LineSide | str,
    amount: int,
) -> int:
    """Contribution of one line to its account's balance."""
    normal = normal_balance_for(account_type)
    if LineSide(side).value == normal.value:
        return amount
    return -amount


def natural_balance(account_type: AccountType | str, debit_total: int, credit_total: int) -> int:
    """Balance from debit and credit totals, positive on the normal side."""
    if normal_balance_for(account_type) == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total
