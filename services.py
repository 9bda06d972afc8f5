from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import Select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import aggregation
from models import CATEGORY_COLORS, Account, Category, Transaction, TransactionType
from money import cents_to_amount, parse_amount
from periods import Period, trailing_months
from repository import UserScope
from results import ErrorKind, Result
from schemas import (
    AccountBalanceOut,
    AccountOut,
    CategoryTotalOut,
    MonthlyTotalOut,
    SummaryOut,
    TransactionDraft,
    TransactionOut,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

VALID_TYPES = {t.value for t in TransactionType}
ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class ValidDraft:
    type: TransactionType
    category: str
    amount_cents: int
    description: str
    date: date
    account_id: int


def _parse_account_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0 or number != int(number):
        return None
    return int(number)


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not ISO_DATE_RE.fullmatch(raw):
        raise ValueError("Date must be formatted as YYYY-MM-DD")
    return datetime.strptime(raw, "%Y-%m-%d").date()


def _description(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def validate_draft(draft: TransactionDraft) -> Result[ValidDraft]:
    """Check a raw draft field by field, stopping at the first failure."""
    if not isinstance(draft.type, str) or draft.type not in VALID_TYPES:
        return Result.failure(ErrorKind.invalid_type)

    if not isinstance(draft.category, str) or not draft.category.strip():
        return Result.failure(ErrorKind.missing_category)

    try:
        amount_cents = parse_amount(draft.amount)
    except ValueError:
        return Result.failure(ErrorKind.invalid_amount)

    if draft.date is None or draft.date == "":
        return Result.failure(ErrorKind.missing_date)
    try:
        txn_date = _parse_date(draft.date)
    except ValueError:
        return Result.failure(ErrorKind.invalid_date)

    if draft.account_id is None or draft.account_id == "":
        return Result.failure(ErrorKind.missing_account)
    account_id = _parse_account_id(draft.account_id)
    if account_id is None:
        return Result.failure(ErrorKind.invalid_account)

    return Result.success(
        ValidDraft(
            type=TransactionType(draft.type),
            category=draft.category.strip(),
            amount_cents=amount_cents,
            description=_description(draft.description),
            date=txn_date,
            account_id=account_id,
        )
    )


def to_transaction_out(record: TransactionRecord) -> TransactionOut:
    return TransactionOut(
        id=str(record.id),
        type=record.type,
        category=record.category,
        amount=cents_to_amount(record.amount_cents),
        description=record.description,
        date=record.date,
        account_id=record.account_id,
        account_name=record.account_name,
    )


def to_account_out(account: Account) -> AccountOut:
    return AccountOut(
        id=account.id,
        name=account.name,
        type=account.type,
        institution=account.institution,
        account_number=account.account_number,
        opening_balance=cents_to_amount(account.opening_balance_cents or 0),
    )


class AccountService:
    def __init__(
        self,
        session: Session,
        user_id: int,
        preferred_account_id: Optional[int] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.scope = UserScope(session, user_id)
        self.preferred_account_id = preferred_account_id

    def list_all(self) -> list[Account]:
        stmt = self.scope.select(Account).order_by(Account.name.asc(), Account.id.asc())
        return list(self.session.scalars(stmt).all())

    def get(self, account_id: int) -> Optional[Account]:
        return self.session.scalar(
            self.scope.select(Account).where(Account.id == account_id)
        )

    def _owned_id(self, account_id: int) -> Optional[int]:
        return self.session.scalar(
            self.scope.select(Account, Account.id)
            .where(Account.id == account_id)
            .limit(1)
        )

    def resolve_account_id(
        self, submitted_account_id: Optional[int] = None
    ) -> Result[int]:
        """
        Pick the account a transaction is booked against.

        A submitted id must belong to the user. Without one, the configured
        preferred id is used when the user owns it, else the user's lowest id.
        """
        if submitted_account_id:
            owned = self._owned_id(submitted_account_id)
            if owned is None:
                logger.info(
                    f"account_rejected: user_id={self.user_id} account_id={submitted_account_id}"
                )
                return Result.failure(ErrorKind.invalid_account)
            return Result.success(owned)

        if self.preferred_account_id:
            owned = self._owned_id(self.preferred_account_id)
            if owned is not None:
                return Result.success(owned)

        fallback = self.session.scalar(
            self.scope.select(Account, Account.id).order_by(Account.id.asc()).limit(1)
        )
        if fallback is None:
            logger.warning(f"no_accounts_configured: user_id={self.user_id}")
            return Result.failure(ErrorKind.no_accounts_configured)
        return Result.success(fallback)


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.scope = UserScope(session, user_id)

    def list_all(self) -> list[Category]:
        stmt = self.scope.select(Category).order_by(Category.type, Category.name)
        return list(self.session.scalars(stmt).all())

    def _find(self, name: str, txn_type: TransactionType) -> Optional[int]:
        return self.session.scalar(
            self.scope.select(Category, Category.id)
            .where(Category.name == name, Category.type == txn_type)
            .limit(1)
        )

    def get_or_create(self, name: str, txn_type: TransactionType) -> int:
        """
        Return the id of the user's category with this exact name and type,
        inserting it on first use. Commits its own unit of work.
        """
        existing = self._find(name, txn_type)
        if existing is not None:
            return existing

        category = Category(
            user_id=self.user_id,
            name=name,
            type=txn_type,
            color=CATEGORY_COLORS[txn_type],
        )
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError:
            # Another request inserted the same natural key first.
            self.session.rollback()
            existing = self._find(name, txn_type)
            if existing is None:
                raise
            logger.info(
                f"category_conflict: user_id={self.user_id} category_id={existing}"
            )
            return existing

        logger.info(
            f"category_created: user_id={self.user_id} category_id={category.id} type={txn_type.value}"
        )
        return category.id


class TransactionService:
    def __init__(
        self,
        session: Session,
        user_id: int,
        preferred_account_id: Optional[int] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.scope = UserScope(session, user_id)
        self.accounts = AccountService(session, user_id, preferred_account_id)
        self.categories = CategoryService(session, user_id)

    def _projection(self) -> Select:
        return (
            self.scope.select(
                Transaction,
                Transaction.id.label("id"),
                Transaction.type.label("type"),
                Category.name.label("category"),
                Transaction.amount_cents.label("amount_cents"),
                Transaction.description.label("description"),
                Transaction.date.label("date"),
                Transaction.account_id.label("account_id"),
                Account.name.label("account_name"),
            )
            .outerjoin(Category, Transaction.category_id == Category.id)
            .outerjoin(Account, Transaction.account_id == Account.id)
        )

    @staticmethod
    def _record(row) -> TransactionRecord:
        return TransactionRecord(
            id=row.id,
            type=row.type,
            category=row.category or "-",
            amount_cents=row.amount_cents,
            description=row.description or "",
            date=row.date,
            account_id=row.account_id,
            account_name=row.account_name or "-",
        )

    def list(self, month: Optional[Period] = None) -> list[TransactionRecord]:
        stmt = self._projection().order_by(Transaction.date.desc(), Transaction.id.desc())
        if month is not None:
            stmt = stmt.where(Transaction.date.between(month.start, month.end))
        return [self._record(row) for row in self.session.execute(stmt)]

    def get(self, transaction_id: int) -> Optional[TransactionRecord]:
        row = self.session.execute(
            self._projection().where(Transaction.id == transaction_id).limit(1)
        ).first()
        return self._record(row) if row is not None else None

    def _prepare(self, draft: TransactionDraft) -> Result[tuple[ValidDraft, int, int]]:
        validated = validate_draft(draft)
        if not validated.ok:
            logger.info(
                f"transaction_rejected: user_id={self.user_id} kind={validated.error.kind.value}"
            )
            return Result(error=validated.error)
        data = validated.value

        account = self.accounts.resolve_account_id(data.account_id)
        if not account.ok:
            return Result(error=account.error)

        category_id = self.categories.get_or_create(data.category, data.type)
        return Result.success((data, account.value, category_id))

    def create(self, draft: TransactionDraft) -> Result[TransactionRecord]:
        prepared = self._prepare(draft)
        if not prepared.ok:
            return Result(error=prepared.error)
        data, account_id, category_id = prepared.value

        txn = Transaction(
            user_id=self.user_id,
            account_id=account_id,
            category_id=category_id,
            type=data.type,
            amount_cents=data.amount_cents,
            description=data.description,
            date=data.date,
        )
        self.session.add(txn)
        self.session.commit()
        logger.info(
            f"transaction_created: user_id={self.user_id} transaction_id={txn.id}"
        )

        created = self.get(txn.id)
        if created is None:
            logger.warning(
                f"transaction_unreadable: user_id={self.user_id} transaction_id={txn.id}"
            )
            return Result.degraded_success()
        return Result.success(created)

    def update(
        self, transaction_id: int, draft: TransactionDraft
    ) -> Result[TransactionRecord]:
        prepared = self._prepare(draft)
        if not prepared.ok:
            return Result(error=prepared.error)
        data, account_id, category_id = prepared.value

        result = self.session.execute(
            self.scope.update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(
                {
                    Transaction.type: data.type,
                    Transaction.category_id: category_id,
                    Transaction.amount_cents: data.amount_cents,
                    Transaction.description: data.description,
                    Transaction.date: data.date,
                    Transaction.account_id: account_id,
                }
            )
            .execution_options(synchronize_session=False)
        )
        # The affected-row count is the only existence check.
        if result.rowcount == 0:
            self.session.rollback()
            return Result.failure(ErrorKind.not_found)
        self.session.commit()
        logger.info(
            f"transaction_updated: user_id={self.user_id} transaction_id={transaction_id}"
        )

        updated = self.get(transaction_id)
        if updated is None:
            logger.warning(
                f"transaction_unreadable: user_id={self.user_id} transaction_id={transaction_id}"
            )
            return Result.degraded_success()
        return Result.success(updated)

    def delete(self, transaction_id: int) -> Result[int]:
        result = self.session.execute(
            self.scope.delete(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.session.rollback()
            return Result.failure(ErrorKind.not_found)
        self.session.commit()
        logger.info(
            f"transaction_deleted: user_id={self.user_id} transaction_id={transaction_id}"
        )
        return Result.success(transaction_id)


class SummaryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.accounts = AccountService(session, user_id)
        self.transactions = TransactionService(session, user_id)

    def _category_totals(
        self, records: list[TransactionRecord], txn_type: TransactionType
    ) -> list[CategoryTotalOut]:
        grouped = aggregation.group_by_category(records, txn_type)
        total = sum(grouped.values())
        return [
            CategoryTotalOut(
                name=name,
                value=cents_to_amount(cents),
                percentage=aggregation.percentage(cents, total),
                color=aggregation.category_display_color(name, txn_type),
            )
            for name, cents in grouped.items()
        ]

    def summary(self, *, today: Optional[date] = None, months: int = 6) -> SummaryOut:
        accounts = self.accounts.list_all()
        records = self.transactions.list()

        return SummaryOut(
            total_income=cents_to_amount(aggregation.total_income(records)),
            total_expense=cents_to_amount(aggregation.total_expense(records)),
            balance=cents_to_amount(aggregation.balance(accounts, records)),
            savings_rate=aggregation.savings_rate(accounts, records),
            transaction_count=len(records),
            account_balances=[
                AccountBalanceOut(
                    id=item.id,
                    name=item.name,
                    balance=cents_to_amount(item.balance_cents),
                )
                for item in aggregation.account_balances(accounts, records)
            ],
            income_by_category=self._category_totals(records, TransactionType.income),
            expense_by_category=self._category_totals(
                records, TransactionType.expense
            ),
            monthly=[
                MonthlyTotalOut(
                    month=item.month,
                    income=cents_to_amount(item.income_cents),
                    expense=cents_to_amount(item.expense_cents),
                )
                for item in aggregation.monthly_totals(
                    records, trailing_months(months, today=today)
                )
            ],
        )
