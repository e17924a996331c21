from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from rapidfuzz.distance import Levenshtein

from aggregation import (
    BalancePoint,
    SeriesBucket,
    Summary,
    bucket_series,
    check_granularity,
    running_balance,
    summarize,
)
from errors import TransactionNotFound, ValidationFailed
from filters import TransactionFilters, filter_clauses
from models import Transaction, TransactionType
from money import to_cents
from periods import local_now, to_local_naive
from schemas import TransactionIn, TransactionPatch

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
CATEGORY_MAX_LENGTH = 100


def clamp_page(page: Optional[int]) -> int:
    return max(page or 1, 1)


def clamp_page_size(page_size: Optional[int]) -> int:
    if page_size is None:
        return DEFAULT_PAGE_SIZE
    return min(max(page_size, 1), MAX_PAGE_SIZE)


def _clean_category(name: Optional[str]) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValidationFailed("Category is required")
    if len(clean) > CATEGORY_MAX_LENGTH:
        raise ValidationFailed(
            f"Category must be at most {CATEGORY_MAX_LENGTH} characters"
        )
    return clean


def _clean_type(value) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError as exc:
        raise ValidationFailed("Type must be either income or expense") from exc


def _clean_note(note: Optional[str]) -> Optional[str]:
    clean = (note or "").strip()
    return clean or None


def _event_time(value: Optional[datetime]) -> datetime:
    if value is None:
        return local_now().replace(microsecond=0)
    return to_local_naive(value)


@dataclass
class TransactionPage:
    items: list[Transaction]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


class TransactionService:
    """Transaction store scoped to one owner.

    A record that does not exist and a record owned by someone else both
    surface as ``TransactionNotFound``.
    """

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _owned(self):
        return select(Transaction).where(Transaction.user_id == self.user_id)

    def _get_for_update(self, transaction_id: int) -> Transaction:
        stmt = (
            self._owned().where(Transaction.id == transaction_id).with_for_update()
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise TransactionNotFound()
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            type=_clean_type(data.type),
            amount_cents=to_cents(data.amount),
            category=_clean_category(data.category),
            note=_clean_note(data.note),
            occurred_at=_event_time(data.date),
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user={self.user_id} id={txn.id} type={txn.type.value}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(self._owned().where(Transaction.id == transaction_id))
        if not txn:
            raise TransactionNotFound()
        return txn

    def update(self, transaction_id: int, patch: TransactionPatch) -> Transaction:
        provided = patch.model_fields_set
        for name in ("type", "amount", "category", "date"):
            if name in provided and getattr(patch, name) is None:
                raise ValidationFailed(f"{name.capitalize()} cannot be empty")

        # validate everything before touching the row
        changes: dict[str, object] = {}
        if "type" in provided:
            changes["type"] = _clean_type(patch.type)
        if "amount" in provided:
            changes["amount_cents"] = to_cents(patch.amount)
        if "category" in provided:
            changes["category"] = _clean_category(patch.category)
        if "note" in provided:
            changes["note"] = _clean_note(patch.note)
        if "date" in provided:
            changes["occurred_at"] = _event_time(patch.date)

        txn = self._get_for_update(transaction_id)
        for field_name, value in changes.items():
            setattr(txn, field_name, value)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_updated: user={self.user_id} id={txn.id} "
            f"fields={','.join(sorted(changes)) or '-'}"
        )
        return txn

    def list(
        self,
        filters: TransactionFilters,
        page: Optional[int] = 1,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
    ) -> TransactionPage:
        page = clamp_page(page)
        page_size = clamp_page_size(page_size)
        clauses = filter_clauses(filters)

        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.user_id == self.user_id, *clauses
                )
            ).scalar_one()
            or 0
        )
        stmt = (
            self._owned()
            .where(*clauses)
            .order_by(Transaction.occurred_at.desc(), Transaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = list(self.session.scalars(stmt).all())
        return TransactionPage(items=items, total=total, page=page, page_size=page_size)

    def all(self, filters: TransactionFilters) -> list[Transaction]:
        stmt = (
            self._owned()
            .where(*filter_clauses(filters))
            .order_by(Transaction.occurred_at.asc(), Transaction.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def delete(self, transaction_id: int) -> None:
        txn = self._get_for_update(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: user={self.user_id} id={transaction_id}")

    def delete_by_category(self, category: str) -> int:
        clean = _clean_category(category)
        result = self.session.execute(
            delete(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.category == clean
            )
        )
        self.session.commit()
        logger.info(
            f"transactions_deleted_by_category: user={self.user_id} "
            f"category={clean!r} count={result.rowcount}"
        )
        return int(result.rowcount or 0)

    def delete_all(self) -> int:
        result = self.session.execute(
            delete(Transaction).where(Transaction.user_id == self.user_id)
        )
        self.session.commit()
        logger.info(
            f"transactions_deleted_all: user={self.user_id} count={result.rowcount}"
        )
        return int(result.rowcount or 0)


class StatsService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.transactions = TransactionService(session, user_id)

    def summary(self, filters: TransactionFilters) -> Summary:
        return summarize(self.transactions.all(filters))

    def running_balance(self, filters: TransactionFilters) -> list[BalancePoint]:
        return running_balance(self.transactions.all(filters))

    def series(
        self, filters: TransactionFilters, granularity: str = "auto"
    ) -> list[SeriesBucket]:
        """Bucketed income/expense totals. Open ends of the date range are
        closed with the first/last matching transaction."""
        check_granularity(granularity)
        rows = self.transactions.all(filters)
        start_at = filters.date_range.start
        end_at = filters.date_range.end
        if (start_at is None or end_at is None) and not rows:
            return []
        start = start_at.date() if start_at else rows[0].occurred_at.date()
        end = end_at.date() if end_at else max(rows[-1].occurred_at.date(), start)
        return bucket_series(rows, start, end, granularity)


@dataclass(frozen=True)
class CategorySuggestion:
    name: str
    count: int


class CategoryService:
    """Category labels are free text; suggestions come from the owner's own
    history, most used first."""

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def suggest(
        self,
        prefix: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        limit: int = 10,
    ) -> list[CategorySuggestion]:
        limit = min(max(limit, 1), 50)
        uses = func.count(Transaction.id).label("uses")
        stmt = (
            select(Transaction.category, uses)
            .where(Transaction.user_id == self.user_id)
            .group_by(Transaction.category)
            .order_by(uses.desc(), Transaction.category.asc())
        )
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == transaction_type)
        rows = self.session.execute(stmt).all()

        needle = (prefix or "").strip().lower()
        suggestions: list[CategorySuggestion] = []
        for row in rows:
            name_lower = row.category.lower()
            if needle and not (
                name_lower.startswith(needle)
                or Levenshtein.distance(needle, name_lower) <= 1
            ):
                continue
            suggestions.append(CategorySuggestion(name=row.category, count=int(row.uses)))
            if len(suggestions) >= limit:
                break
        return suggestions
