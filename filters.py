from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence, TypeVar, Union

from sqlalchemy import ColumnElement, func, or_

from errors import ValidationFailed
from models import Transaction, TransactionType
from periods import Bound, DateRange, resolve_range

T = TypeVar("T")

TYPE_CHOICES = ("all", "income", "expense")


@dataclass(frozen=True)
class TransactionFilters:
    type: Optional[TransactionType] = None
    categories: tuple[str, ...] = ()
    date_range: DateRange = field(default_factory=lambda: DateRange("all", None, None))
    query: Optional[str] = None

    def matches(self, txn) -> bool:
        if self.type is not None and txn.type != self.type:
            return False
        if self.categories and txn.category not in self.categories:
            return False
        start, end = self.date_range.start, self.date_range.end
        if start is not None and txn.occurred_at < start:
            return False
        if end is not None and txn.occurred_at > end:
            return False
        if self.query:
            needle = self.query.lower()
            in_category = needle in (txn.category or "").lower()
            in_note = needle in (txn.note or "").lower()
            if not (in_category or in_note):
                return False
        return True


def parse_type(value: Union[str, TransactionType, None]) -> Optional[TransactionType]:
    if value is None or isinstance(value, TransactionType):
        return value
    clean = value.strip().lower()
    if not clean or clean == "all":
        return None
    try:
        return TransactionType(clean)
    except ValueError as exc:
        raise ValidationFailed(
            f"Unknown transaction type {value!r}; expected one of {', '.join(TYPE_CHOICES)}"
        ) from exc


def _clean_categories(categories: Optional[Iterable[str]]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for name in categories or ():
        clean = (name or "").strip()
        if clean:
            seen.setdefault(clean, None)
    return tuple(seen)


def build_filters(
    type: Union[str, TransactionType, None] = None,
    categories: Optional[Iterable[str]] = None,
    preset: Optional[str] = None,
    start: Bound = None,
    end: Bound = None,
    query: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> TransactionFilters:
    """Validate raw filter input. Nothing is filtered if any part is invalid."""
    txn_type = parse_type(type)
    date_range = resolve_range(preset, start, end, now=now)
    clean_query = (query or "").strip() or None
    return TransactionFilters(
        type=txn_type,
        categories=_clean_categories(categories),
        date_range=date_range,
        query=clean_query,
    )


def apply_filters(transactions: Iterable[T], filters: TransactionFilters) -> list[T]:
    return [txn for txn in transactions if filters.matches(txn)]


def filter_clauses(filters: TransactionFilters) -> Sequence[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if filters.type is not None:
        clauses.append(Transaction.type == filters.type)
    if filters.categories:
        clauses.append(Transaction.category.in_(filters.categories))
    if filters.date_range.start is not None:
        clauses.append(Transaction.occurred_at >= filters.date_range.start)
    if filters.date_range.end is not None:
        clauses.append(Transaction.occurred_at <= filters.date_range.end)
    if filters.query:
        needle = filters.query.lower()
        clauses.append(
            or_(
                func.lower(Transaction.category).contains(needle, autoescape=True),
                func.lower(func.coalesce(Transaction.note, "")).contains(
                    needle, autoescape=True
                ),
            )
        )
    return clauses
