"""
Balance arithmetic for prepaid client budgets.

Pure functions only: nothing here touches the database. The use cases read
the locked balance, ask this module for the outcome, and persist it.

All amounts are quantized to cents with banker's rounding.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from budgets.domain.exceptions import InvalidAmount

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
# DecimalField(max_digits=12, decimal_places=2) holds at most 9999999999.99
MONEY_LIMIT = Decimal(10) ** 10


def to_money(value):
    """Parses ``value`` into a cent-quantized Decimal, raising InvalidAmount if it is not a storable number."""
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(value, "amount must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(value, "amount must be a number")
    if not amount.is_finite():
        raise InvalidAmount(value, "amount must be finite")
    if abs(amount) >= MONEY_LIMIT:
        raise InvalidAmount(value, f"amount must be below {MONEY_LIMIT}")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_EVEN)
    if abs(amount) >= MONEY_LIMIT:
        raise InvalidAmount(value, f"amount must be below {MONEY_LIMIT}")
    return amount


@dataclass(frozen=True)
class BalanceChange:
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal


def apply_credit(balance, amount) -> BalanceChange:
    """Adds a strictly positive credit to ``balance``; the result must still be storable."""
    amount = to_money(amount)
    if amount <= ZERO:
        raise InvalidAmount(amount, "credit amount must be greater than zero")
    balance = to_money(balance)
    balance_after = balance + amount
    if balance_after >= MONEY_LIMIT:
        raise InvalidAmount(amount, f"resulting balance {balance_after} would exceed {MONEY_LIMIT}")
    return BalanceChange(amount=amount, balance_before=balance, balance_after=balance_after)


def apply_daily_consumption(balance, daily_budget) -> BalanceChange:
    """
    Debits one day of budget, capped at what is left.

    The recorded amount is min(daily_budget, balance); the balance never
    drops below zero. A zero balance yields a zero-amount change, which
    still counts as the day's debit.
    """
    balance = max(to_money(balance), ZERO)
    daily_budget = to_money(daily_budget)
    if daily_budget < ZERO:
        raise InvalidAmount(daily_budget, "daily budget must not be negative")
    debit = min(daily_budget, balance)
    return BalanceChange(amount=debit, balance_before=balance, balance_after=balance - debit)


def days_remaining(balance, daily_budget):
    """Whole days the balance covers, or None when there is no daily budget."""
    daily_budget = to_money(daily_budget)
    if daily_budget <= ZERO:
        return None
    return int(max(to_money(balance), ZERO) // daily_budget)
