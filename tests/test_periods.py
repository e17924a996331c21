from datetime import date, datetime, time

import pytest

import periods
from config import Settings
from errors import ValidationFailed
from periods import parse_bound, resolve_range


@pytest.fixture
def bangkok(monkeypatch):
    monkeypatch.setattr(
        periods,
        "get_settings",
        lambda: Settings(
            database_url="sqlite://",
            timezone="Asia/Bangkok",
            token_secret="x",
            token_max_age_hours=1,
        ),
    )


def test_aware_bounds_are_converted_to_local_time(bangkok) -> None:
    assert parse_bound("2025-01-05T01:00:00+00:00") == datetime(2025, 1, 5, 8, 0)
    assert parse_bound("2025-01-05T08:00:00") == datetime(2025, 1, 5, 8, 0)


def test_date_bounds_cover_whole_days() -> None:
    assert parse_bound("2025-01-05") == datetime(2025, 1, 5)
    assert parse_bound(date(2025, 1, 5), end=True) == datetime.combine(
        date(2025, 1, 5), time.max
    )
    assert parse_bound("  ") is None


def test_presets_resolve_against_now() -> None:
    now = datetime(2025, 3, 31, 18, 45)
    assert resolve_range("today", now=now).start == datetime(2025, 3, 31)
    assert resolve_range("week", now=now).start == datetime(2025, 3, 24)
    month = resolve_range("last_30_days", now=now)
    assert month.start == datetime(2025, 3, 1)
    assert month.end == now
    assert not resolve_range("all", "2025-01-01", "2025-01-02").is_bounded


def test_absolute_range_allows_a_single_bound() -> None:
    only_start = resolve_range(None, start="2025-01-01")
    assert only_start.slug == "absolute"
    assert only_start.start == datetime(2025, 1, 1)
    assert only_start.end is None


def test_unknown_preset_is_rejected() -> None:
    with pytest.raises(ValidationFailed):
        resolve_range("quarter")
