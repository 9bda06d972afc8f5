import datetime as dt
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from models import TransactionType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionDraft(CamelModel):
    """Raw create/update payload. Field checks happen in the ledger, in order."""

    type: Optional[Any] = None
    category: Optional[Any] = None
    amount: Optional[Any] = None
    description: Optional[Any] = None
    date: Optional[Any] = None
    account_id: Optional[Any] = None


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    type: TransactionType
    category: str
    amount_cents: int
    description: str
    date: dt.date
    account_id: int
    account_name: str


class TransactionOut(CamelModel):
    id: str
    type: TransactionType
    category: str
    amount: float
    description: str
    date: dt.date
    account_id: int
    account_name: str


class AccountOut(CamelModel):
    id: int
    name: str
    type: str
    institution: Optional[str] = None
    account_number: Optional[str] = None
    opening_balance: float


class DeletedOut(BaseModel):
    id: str


class MessageOut(BaseModel):
    message: str


class LoginIn(BaseModel):
    email: str = ""
    password: str = ""


class SessionUserOut(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


class CategoryTotalOut(CamelModel):
    name: str
    value: float
    percentage: float
    color: str


class AccountBalanceOut(CamelModel):
    id: int
    name: str
    balance: float


class MonthlyTotalOut(CamelModel):
    month: str
    income: float
    expense: float


class SummaryOut(CamelModel):
    total_income: float
    total_expense: float
    balance: float
    savings_rate: float
    transaction_count: int
    account_balances: list[AccountBalanceOut]
    income_by_category: list[CategoryTotalOut]
    expense_by_category: list[CategoryTotalOut]
    monthly: list[MonthlyTotalOut]
