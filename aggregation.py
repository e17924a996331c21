"""Pure aggregation over an already-filtered set of transactions.

All money values are integer cents. Inputs only need ``type``,
``amount_cents``, ``category`` and ``occurred_at`` attributes, so ORM rows
and plain records both work.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from errors import ValidationFailed
from models import TransactionType

GRANULARITIES = ("auto", "week", "month")
WEEKLY_MAX_SPAN_DAYS = 92
MAX_SERIES_BUCKETS = 600


@dataclass(frozen=True)
class BreakdownRow:
    category: str
    type: TransactionType
    total: int
    count: int


@dataclass(frozen=True)
class Summary:
    total_income: int
    total_expense: int
    income_count: int
    expense_count: int
    category_breakdown: tuple[BreakdownRow, ...]

    @property
    def balance(self) -> int:
        return self.total_income - self.total_expense


@dataclass(frozen=True)
class BalancePoint:
    transaction_id: Optional[int]
    occurred_at: datetime
    type: TransactionType
    amount_cents: int
    balance: int


@dataclass(frozen=True)
class SeriesBucket:
    start: date
    end: date
    income: int
    expense: int


def summarize(transactions: Iterable) -> Summary:
    total_income = 0
    total_expense = 0
    income_count = 0
    expense_count = 0
    groups: dict[tuple[str, TransactionType], list[int]] = {}

    for txn in transactions:
        txn_type = TransactionType(txn.type)
        if txn_type == TransactionType.income:
            total_income += txn.amount_cents
            income_count += 1
        else:
            total_expense += txn.amount_cents
            expense_count += 1
        group = groups.setdefault((txn.category, txn_type), [0, 0])
        group[0] += txn.amount_cents
        group[1] += 1

    rows = [
        BreakdownRow(category=category, type=txn_type, total=total, count=count)
        for (category, txn_type), (total, count) in groups.items()
    ]
    # stable: equal totals keep first-seen order
    rows.sort(key=lambda row: row.total, reverse=True)
    return Summary(
        total_income=total_income,
        total_expense=total_expense,
        income_count=income_count,
        expense_count=expense_count,
        category_breakdown=tuple(rows),
    )


def running_balance(transactions: Iterable) -> list[BalancePoint]:
    ordered = sorted(
        transactions, key=lambda txn: (txn.occurred_at, getattr(txn, "id", None) or 0)
    )
    balance = 0
    points: list[BalancePoint] = []
    for txn in ordered:
        txn_type = TransactionType(txn.type)
        if txn_type == TransactionType.income:
            balance += txn.amount_cents
        else:
            balance -= txn.amount_cents
        points.append(
            BalancePoint(
                transaction_id=getattr(txn, "id", None),
                occurred_at=txn.occurred_at,
                type=txn_type,
                amount_cents=txn.amount_cents,
                balance=balance,
            )
        )
    return points


def _month_bounds(index: int) -> tuple[date, date]:
    year, month = divmod(index, 12)
    first = date(year, month + 1, 1)
    if month == 11:
        return first, date(year, 12, 31)
    return first, date(year, month + 2, 1) - timedelta(days=1)


def _week_start_ordinal(d: date) -> int:
    # weeks start on Sunday; may fall before date.min for the first week
    return d.toordinal() - (d.weekday() + 1) % 7


def _week_bounds(start_ordinal: int) -> tuple[date, date]:
    first = max(start_ordinal, date.min.toordinal())
    last = min(start_ordinal + 6, date.max.toordinal())
    return date.fromordinal(first), date.fromordinal(last)


def check_granularity(granularity: str) -> str:
    if granularity not in GRANULARITIES:
        raise ValidationFailed(
            f"Unknown granularity {granularity!r}; expected one of {', '.join(GRANULARITIES)}"
        )
    return granularity


def resolve_granularity(start: date, end: date, granularity: str) -> str:
    if check_granularity(granularity) != "auto":
        return granularity
    return "week" if (end - start).days <= WEEKLY_MAX_SPAN_DAYS else "month"


def bucket_series(
    transactions: Iterable,
    start: date,
    end: date,
    granularity: str = "auto",
) -> list[SeriesBucket]:
    if start > end:
        raise ValidationFailed("Start date must be before end date")
    unit = resolve_granularity(start, end, granularity)

    if unit == "week":
        first = _week_start_ordinal(start)
        count = (end.toordinal() - first) // 7 + 1
    else:
        first = start.year * 12 + start.month - 1
        count = end.year * 12 + end.month - first
    if count > MAX_SERIES_BUCKETS:
        raise ValidationFailed(
            f"Range spans {count} {unit}s; at most {MAX_SERIES_BUCKETS} buckets are allowed"
        )

    income = [0] * count
    expense = [0] * count
    for txn in transactions:
        day = txn.occurred_at.date()
        if day < start or day > end:
            continue
        if unit == "week":
            idx = (day.toordinal() - first) // 7
        else:
            idx = day.year * 12 + day.month - 1 - first
        if TransactionType(txn.type) == TransactionType.income:
            income[idx] += txn.amount_cents
        else:
            expense[idx] += txn.amount_cents

    buckets: list[SeriesBucket] = []
    for i in range(count):
        if unit == "week":
            b_start, b_end = _week_bounds(first + 7 * i)
        else:
            b_start, b_end = _month_bounds(first + i)
        buckets.append(
            SeriesBucket(start=b_start, end=b_end, income=income[i], expense=expense[i])
        )
    return buckets
