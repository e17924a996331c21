from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from errors import ValidationFailed

Bound = Union[str, date, datetime, None]

PRESETS = ("all", "today", "last_7_days", "last_30_days", "custom")
PRESET_ALIASES = {"week": "last_7_days", "month": "last_30_days"}


@dataclass(frozen=True)
class DateRange:
    slug: str
    start: Optional[datetime]
    end: Optional[datetime]

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None


def local_now() -> datetime:
    return datetime.now(ZoneInfo(get_settings().timezone)).replace(tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    """Aware datetimes are converted to the configured timezone; naive ones
    are assumed to already be local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(get_settings().timezone)).replace(tzinfo=None)


def parse_bound(value: Bound, *, end: bool = False) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            value = date.fromisoformat(raw)
        except ValueError:
            try:
                value = datetime.fromisoformat(raw)
            except ValueError as exc:
                raise ValidationFailed(f"Invalid date: {raw!r}") from exc
    if isinstance(value, datetime):
        return to_local_naive(value)
    # a bare date as an upper bound covers the whole day
    return datetime.combine(value, time.max if end else time.min)


def resolve_range(
    preset: Optional[str],
    start: Bound = None,
    end: Bound = None,
    *,
    now: Optional[datetime] = None,
) -> DateRange:
    now = now or local_now()
    slug = (preset or "").strip().lower()
    slug = PRESET_ALIASES.get(slug, slug)

    if not slug:
        start_at = parse_bound(start)
        end_at = parse_bound(end, end=True)
        if start_at and end_at and start_at > end_at:
            raise ValidationFailed("Start date must be before end date")
        if start_at is None and end_at is None:
            return DateRange("all", None, None)
        return DateRange("absolute", start_at, end_at)
    if slug == "all":
        return DateRange("all", None, None)

    start_of_today = datetime.combine(now.date(), time.min)
    if slug == "today":
        return DateRange("today", start_of_today, now)
    if slug == "last_7_days":
        return DateRange("last_7_days", start_of_today - timedelta(days=7), now)
    if slug == "last_30_days":
        return DateRange("last_30_days", start_of_today - timedelta(days=30), now)
    if slug == "custom":
        start_at = parse_bound(start)
        end_at = parse_bound(end, end=True)
        if start_at is None or end_at is None:
            # incomplete custom range: no date filtering until both are set
            return DateRange("custom", None, None)
        if start_at > end_at:
            raise ValidationFailed("Start date must be before end date")
        return DateRange("custom", start_at, end_at)

    raise ValidationFailed(
        f"Unknown date range {preset!r}; expected one of {', '.join(PRESETS)}"
    )
