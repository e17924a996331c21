from datetime import date, datetime

import pytest

from aggregation import BreakdownRow, bucket_series, running_balance, summarize
from errors import ValidationFailed
from models import Transaction, TransactionType
from money import to_cents


def _txn(id, type, amount_cents, category, occurred_at=datetime(2025, 1, 1, 12, 0)):
    return Transaction(
        id=id,
        user_id=1,
        type=type,
        amount_cents=amount_cents,
        category=category,
        occurred_at=occurred_at,
    )


def test_summary_for_salary_and_food() -> None:
    txns = [
        _txn(1, TransactionType.income, 10_000, "Salary"),
        _txn(2, TransactionType.expense, 4_000, "Food"),
        _txn(3, TransactionType.expense, 1_000, "Food"),
    ]
    summary = summarize(txns)

    assert summary.total_income == 10_000
    assert summary.total_expense == 5_000
    assert summary.balance == 5_000
    assert summary.income_count == 1
    assert summary.expense_count == 2
    assert list(summary.category_breakdown) == [
        BreakdownRow("Salary", TransactionType.income, 10_000, 1),
        BreakdownRow("Food", TransactionType.expense, 5_000, 2),
    ]


def test_empty_input_gives_zero_summary() -> None:
    summary = summarize([])
    assert summary.total_income == 0
    assert summary.total_expense == 0
    assert summary.balance == 0
    assert summary.income_count == summary.expense_count == 0
    assert summary.category_breakdown == ()


def test_same_category_is_split_by_type_and_ties_keep_first_seen_order() -> None:
    txns = [
        _txn(1, TransactionType.expense, 500, "Gift"),
        _txn(2, TransactionType.income, 500, "Gift"),
        _txn(3, TransactionType.expense, 500, "Taxi"),
    ]
    rows = summarize(txns).category_breakdown
    assert [(r.category, r.type) for r in rows] == [
        ("Gift", TransactionType.expense),
        ("Gift", TransactionType.income),
        ("Taxi", TransactionType.expense),
    ]


def test_breakdown_resums_to_totals_and_balance_is_exact() -> None:
    amounts = ["0.10", "0.20", "19.99", "0.01", "1000000.07"]
    txns = [
        _txn(i, TransactionType.expense if i % 2 else TransactionType.income, to_cents(a), f"C{i % 3}")
        for i, a in enumerate(amounts)
    ]
    summary = summarize(txns)
    by_type = {TransactionType.income: 0, TransactionType.expense: 0}
    for row in summary.category_breakdown:
        by_type[row.type] += row.total
    assert by_type[TransactionType.income] == summary.total_income
    assert by_type[TransactionType.expense] == summary.total_expense
    assert summary.balance == summary.total_income - summary.total_expense
    assert to_cents("0.10") + to_cents("0.20") == to_cents("0.30")


def test_running_balance_is_chronological() -> None:
    txns = [
        _txn(3, TransactionType.expense, 1_000, "Food", datetime(2025, 1, 9)),
        _txn(1, TransactionType.income, 10_000, "Salary", datetime(2025, 1, 1)),
        _txn(2, TransactionType.expense, 4_000, "Food", datetime(2025, 1, 5)),
    ]
    points = running_balance(txns)
    assert [p.transaction_id for p in points] == [1, 2, 3]
    assert [p.balance for p in points] == [10_000, 6_000, 5_000]


def test_weekly_buckets_start_on_sunday() -> None:
    txns = [
        _txn(1, TransactionType.income, 10_000, "Salary", datetime(2025, 1, 1, 9)),
        _txn(2, TransactionType.expense, 4_000, "Food", datetime(2025, 1, 5, 12)),
        _txn(3, TransactionType.expense, 1_000, "Food", datetime(2025, 1, 14, 12)),
    ]
    buckets = bucket_series(txns, date(2025, 1, 1), date(2025, 1, 14))
    assert [b.start for b in buckets] == [
        date(2024, 12, 29),
        date(2025, 1, 5),
        date(2025, 1, 12),
    ]
    assert [(b.income, b.expense) for b in buckets] == [
        (10_000, 0),
        (0, 4_000),
        (0, 1_000),
    ]


def test_long_ranges_bucket_by_month() -> None:
    txns = [
        _txn(1, TransactionType.expense, 700, "Food", datetime(2025, 3, 31, 23)),
        _txn(2, TransactionType.expense, 300, "Food", datetime(2025, 4, 1, 0)),
    ]
    buckets = bucket_series(txns, date(2025, 1, 15), date(2025, 6, 1))
    assert [b.start for b in buckets] == [date(2025, m, 1) for m in range(1, 7)]
    assert buckets[2].end == date(2025, 3, 31)
    assert buckets[2].expense == 700
    assert buckets[3].expense == 300


def test_unknown_granularity_is_rejected() -> None:
    with pytest.raises(ValidationFailed):
        bucket_series([], date(2025, 1, 1), date(2025, 1, 2), "day")


def test_buckets_at_the_edges_of_the_calendar() -> None:
    december = bucket_series([], date(9999, 12, 1), date(9999, 12, 31), "month")
    assert [(b.start, b.end) for b in december] == [(date(9999, 12, 1), date(9999, 12, 31))]

    # 0001-01-01 is a Monday; its Sunday would precede date.min
    txns = [_txn(1, TransactionType.income, 500, "Gift", datetime(1, 1, 3, 8))]
    first_weeks = bucket_series(txns, date(1, 1, 1), date(1, 1, 10), "week")
    assert [b.start for b in first_weeks] == [date(1, 1, 1), date(1, 1, 7)]
    assert first_weeks[0].end == date(1, 1, 6)
    assert first_weeks[0].income == 500

    last_week = bucket_series([], date(9999, 12, 30), date(9999, 12, 31), "week")
    assert last_week[-1].end == date(9999, 12, 31)


def test_too_many_buckets_are_rejected() -> None:
    with pytest.raises(ValidationFailed):
        bucket_series([], date(1, 1, 1), date(9999, 12, 31), "week")
    with pytest.raises(ValidationFailed):
        bucket_series([], date(1900, 1, 1), date(2025, 1, 1))
