"""
Read-only folds over a user's ledger.

All monetary inputs and outputs are integer cents. Transactions are any objects
exposing ``type``, ``amount_cents``, ``category``, ``account_id`` and ``date``
(``TransactionRecord`` in practice); accounts expose ``id``, ``name`` and
``opening_balance_cents``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from models import TransactionType
from periods import Period, month_key


@dataclass(frozen=True)
class AccountBalance:
    id: int
    name: str
    balance_cents: int


@dataclass(frozen=True)
class MonthlyTotal:
    month: str
    income_cents: int
    expense_cents: int


def _sum_type(transactions: Iterable, txn_type: TransactionType) -> int:
    return sum(t.amount_cents for t in transactions if t.type == txn_type)


def total_income(transactions: Iterable) -> int:
    return _sum_type(transactions, TransactionType.income)


def total_expense(transactions: Iterable) -> int:
    return _sum_type(transactions, TransactionType.expense)


def balance(accounts: Iterable, transactions: Sequence) -> int:
    base = sum(a.opening_balance_cents or 0 for a in accounts)
    return base + total_income(transactions) - total_expense(transactions)


def account_balances(accounts: Iterable, transactions: Sequence) -> list[AccountBalance]:
    result: list[AccountBalance] = []
    for account in accounts:
        own = [t for t in transactions if t.account_id == account.id]
        result.append(
            AccountBalance(
                id=account.id,
                name=account.name,
                balance_cents=(account.opening_balance_cents or 0)
                + total_income(own)
                - total_expense(own),
            )
        )
    return result


def group_by_category(
    transactions: Iterable, txn_type: TransactionType
) -> dict[str, int]:
    """Sum amounts per category name, keeping first-occurrence order."""
    grouped: dict[str, int] = {}
    for txn in transactions:
        if txn.type != txn_type:
            continue
        grouped[txn.category] = grouped.get(txn.category, 0) + txn.amount_cents
    return grouped


def percentage(value: int | float, total: int | float) -> float:
    if total == 0:
        return 0.0
    ratio = Decimal(value) / Decimal(total) * 100
    return float(ratio.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def savings_rate(accounts: Iterable, transactions: Sequence) -> float:
    income = total_income(transactions)
    if income == 0:
        return 0.0
    return percentage(balance(accounts, transactions), income)


def monthly_totals(transactions: Iterable, months: Sequence[Period]) -> list[MonthlyTotal]:
    buckets: dict[str, list[int]] = {p.slug: [0, 0] for p in months}
    for txn in transactions:
        bucket = buckets.get(month_key(txn.date))
        if bucket is None:
            continue
        if txn.type == TransactionType.income:
            bucket[0] += txn.amount_cents
        else:
            bucket[1] += txn.amount_cents
    return [
        MonthlyTotal(month=key, income_cents=income, expense_cents=expense)
        for key, (income, expense) in buckets.items()
    ]


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def category_display_color(
    name: str, variant: TransactionType = TransactionType.expense
) -> str:
    """
    Hash a category name into a stable ``hsl()`` color for charts.

    Matches the browser-side palette bit for bit, so the hash walks UTF-16 code
    units with 32-bit shift semantics. Never stored.
    """
    units = name.encode("utf-16-le")
    hash_ = 0
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        hash_ = code + (_int32(_int32(hash_) << 5) - hash_)
    base_hue = abs(hash_) % 360
    shift = 140 if variant == TransactionType.expense else 0
    hue = (base_hue + shift) % 360
    saturation = 55 + abs(_int32(hash_) >> 3) % 25
    lightness = 45 + abs(_int32(hash_) >> 5) % 12
    return f"hsl({hue}deg {saturation}% {lightness}%)"
