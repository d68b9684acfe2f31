"""Date range helpers for reports and scheduled jobs."""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    # Aliases used by the report endpoints
    "last7days": 7,
    "last30days": 30,
    "last90days": 90,
}

API_DATE_FORMAT = "%Y-%m-%d"
DISPLAY_DATE_FORMAT = "%b %d, %Y"


@dataclass(frozen=True)
class DateRange:
    start_date: datetime
    end_date: datetime
    label: str

    @property
    def days(self) -> int:
        return (self.end_date.date() - self.start_date.date()).days + 1


def start_of_day(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def end_of_day(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.max)


def _to_datetime(value: datetime | date | str) -> datetime:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def get_date_range(
    option: str,
    custom_start: datetime | date | None = None,
    custom_end: datetime | date | None = None,
    now: datetime | None = None,
) -> DateRange:
    """
    Resolve a named range (``7d``, ``30d``, ``90d``, ``custom``) to concrete bounds.

    Unknown options and ``custom`` without both bounds fall back to 30 days.
    """
    now = now or datetime.now()

    if option == "custom":
        if custom_start is None or custom_end is None:
            return get_date_range("30d", now=now)
        return DateRange(
            start_date=start_of_day(custom_start),
            end_date=end_of_day(custom_end),
            label=f"{format_date(custom_start)} - {format_date(custom_end)}",
        )

    days = RANGE_DAYS.get(option)
    if days is None:
        return get_date_range("30d", now=now)

    return DateRange(
        start_date=start_of_day(now - timedelta(days=days)),
        end_date=end_of_day(now),
        label=f"Last {days} days",
    )


def get_previous_period(start_date: datetime | date, end_date: datetime | date) -> tuple[date, date]:
    """The equally long window ending the day before ``start_date``."""
    start = start_date.date() if isinstance(start_date, datetime) else start_date
    end = end_date.date() if isinstance(end_date, datetime) else end_date
    days_diff = (end - start).days
    return start - timedelta(days=days_diff + 1), start - timedelta(days=1)


def format_date(value: datetime | date | str, fmt: str = DISPLAY_DATE_FORMAT) -> str:
    return _to_datetime(value).strftime(fmt)


def format_date_for_api(value: datetime | date) -> str:
    """Google APIs expect ``YYYY-MM-DD``."""
    return value.strftime(API_DATE_FORMAT)


def format_chart_date(value: datetime | date | str) -> str:
    return format_date(value, "%b %d")


def get_relative_time_label(value: datetime | date | str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    diff_in_days = (now.date() - _to_datetime(value).date()).days

    if diff_in_days == 0:
        return "Today"
    if diff_in_days == 1:
        return "Yesterday"
    if diff_in_days < 7:
        return f"{diff_in_days} days ago"
    if diff_in_days < 30:
        return f"{diff_in_days // 7} weeks ago"
    if diff_in_days < 365:
        return f"{diff_in_days // 30} months ago"
    return f"{diff_in_days // 365} years ago"


def get_cache_expiry(hours: float = 24, now: datetime | None = None) -> datetime:
    return (now or datetime.utcnow()) + timedelta(hours=hours)


def is_cache_expired(expiry: datetime | str, now: datetime | None = None) -> bool:
    return (now or datetime.utcnow()) > _to_datetime(expiry)


def get_date_range_for_chart(option: str, now: datetime | None = None) -> list[date]:
    """One date per day of the range, both ends inclusive."""
    date_range = get_date_range(option, now=now)
    current = date_range.start_date.date()
    last = date_range.end_date.date()
    dates = []
    while current <= last:
        dates.append(current)
        current += timedelta(days=1)
    return dates


def get_week_range(value: date | None = None) -> tuple[date, date]:
    """Monday-to-Sunday week containing ``value``."""
    value = value or date.today()
    start = value - timedelta(days=value.weekday())
    return start, start + timedelta(days=6)


def get_month_range(value: date | None = None) -> tuple[date, date]:
    value = value or date.today()
    last_day = calendar.monthrange(value.year, value.month)[1]
    return value.replace(day=1), value.replace(day=last_day)


def get_tracking_window(
    today: date | None = None,
    delay_days: int = 2,
    length_days: int = 7,
) -> tuple[date, date]:
    """
    Week used by the keyword update job.

    Ends ``delay_days`` before today to account for Search Console lag.
    """
    today = today or date.today()
    end = today - timedelta(days=delay_days)
    return end - timedelta(days=length_days), end


def get_comparison_windows(today: date | None = None) -> dict[str, tuple[date, date]]:
    """
    Windows for week-over-week, month-over-month and year-over-year views.

    ``current`` is the last 7 days. The previous week ends where ``current``
    starts, the previous month spans 60 to 30 days ago and the previous year
    is the week starting 365 days ago.
    """
    today = today or date.today()
    return {
        "current": (today - timedelta(days=7), today),
        "previous_week": (today - timedelta(days=14), today - timedelta(days=7)),
        "previous_month": (today - timedelta(days=60), today - timedelta(days=30)),
        "previous_year": (today - timedelta(days=365), today - timedelta(days=358)),
    }
