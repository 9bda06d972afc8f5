from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCategory(str, Enum):
    unauthorized = "unauthorized"
    validation = "validation"
    referential = "referential"
    not_found = "not_found"
    configuration = "configuration"


class ErrorKind(str, Enum):
    unauthorized = "unauthorized"
    invalid_type = "invalid_type"
    missing_category = "missing_category"
    invalid_amount = "invalid_amount"
    missing_date = "missing_date"
    invalid_date = "invalid_date"
    missing_account = "missing_account"
    invalid_account = "invalid_account"
    no_accounts_configured = "no_accounts_configured"
    not_found = "not_found"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES = {
    ErrorKind.unauthorized: ErrorCategory.unauthorized,
    ErrorKind.invalid_type: ErrorCategory.validation,
    ErrorKind.missing_category: ErrorCategory.validation,
    ErrorKind.invalid_amount: ErrorCategory.validation,
    ErrorKind.missing_date: ErrorCategory.validation,
    ErrorKind.invalid_date: ErrorCategory.validation,
    ErrorKind.missing_account: ErrorCategory.validation,
    ErrorKind.invalid_account: ErrorCategory.referential,
    ErrorKind.no_accounts_configured: ErrorCategory.configuration,
    ErrorKind.not_found: ErrorCategory.not_found,
}

DEFAULT_MESSAGES = {
    ErrorKind.unauthorized: "Not authorized",
    ErrorKind.invalid_type: "Invalid transaction type",
    ErrorKind.missing_category: "Category is required",
    ErrorKind.invalid_amount: "Invalid amount",
    ErrorKind.missing_date: "Date is required",
    ErrorKind.invalid_date: "Date must be formatted as YYYY-MM-DD",
    ErrorKind.missing_account: "Account is required",
    ErrorKind.invalid_account: "Account not found",
    ErrorKind.no_accounts_configured: (
        "No accounts exist for this user. Add at least one account first."
    ),
    ErrorKind.not_found: "Transaction not found",
}


@dataclass(frozen=True)
class LedgerError:
    kind: ErrorKind
    message: str

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a ledger operation.

    Exactly one of three shapes: a value, an error, or a degraded success where
    the mutation went through but its post-state could not be read back.
    """

    value: Optional[T] = None
    error: Optional[LedgerError] = None
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: Optional[str] = None) -> Result[T]:
        return cls(error=LedgerError(kind, message or DEFAULT_MESSAGES[kind]))

    @classmethod
    def degraded_success(cls) -> Result[T]:
        return cls(degraded=True)
