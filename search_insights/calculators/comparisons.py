"""Period-over-period comparisons for Search Console and Analytics metrics."""

import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel

from search_insights.calculators.metrics import calculate_aggregate_ctr, calculate_weighted_average

logger = logging.getLogger(__name__)

Trend = Literal["up", "down", "neutral"]

SEARCH_CONSOLE_METRICS = ("clicks", "impressions", "ctr", "position")
ANALYTICS_METRICS = ("users", "sessions", "pageviews", "bounce_rate", "avg_session_duration", "new_users")

# Metrics where a decrease is an improvement
INVERSE_METRICS = frozenset({"bounce_rate", "position", "exit_rate"})


class ComparisonMetrics(BaseModel):
    """Comparison of one metric between two periods."""

    current: float
    previous: float
    change: float
    change_percent: float
    trend: Trend


class TrendIndicator(BaseModel):
    icon: str
    color: str


def calculate_comparison(current: float, previous: float) -> ComparisonMetrics:
    """Compare a metric between the current and previous period."""
    change = current - previous
    if previous != 0:
        change_percent = change / previous * 100
    else:
        change_percent = 100.0 if current > 0 else 0.0

    if change > 0:
        trend: Trend = "up"
    elif change < 0:
        trend = "down"
    else:
        trend = "neutral"

    return ComparisonMetrics(
        current=current,
        previous=previous,
        change=change,
        change_percent=round(change_percent, 2),
        trend=trend,
    )


def _compare(
    names: Iterable[str],
    current: Mapping[str, Any] | None,
    previous: Mapping[str, Any] | None,
) -> dict[str, ComparisonMetrics]:
    current = current or {}
    previous = previous or {}
    return {
        name: calculate_comparison(current.get(name) or 0, previous.get(name) or 0)
        for name in names
    }


def calculate_search_console_comparisons(
    current: Mapping[str, Any] | None,
    previous: Mapping[str, Any] | None,
) -> dict[str, ComparisonMetrics]:
    """Comparisons for clicks, impressions, ctr and position."""
    return _compare(SEARCH_CONSOLE_METRICS, current, previous)


def calculate_analytics_comparisons(
    current: Mapping[str, Any] | None,
    previous: Mapping[str, Any] | None,
) -> dict[str, ComparisonMetrics]:
    """Comparisons for the GA4 summary metrics."""
    return _compare(ANALYTICS_METRICS, current, previous)


def _row_date(row: Mapping[str, Any]) -> date | None:
    raw = row.get("date")
    if raw is None:
        keys = row.get("keys") or []
        raw = keys[0] if keys else None
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    raw = str(raw)
    try:
        # GA4 reports dates as YYYYMMDD, Search Console as YYYY-MM-DD
        if len(raw) == 8 and raw.isdigit():
            return datetime.strptime(raw, "%Y%m%d").date()
        return date.fromisoformat(raw[:10])
    except ValueError:
        logger.debug(f"Skipping row with unparseable date {raw!r}")
        return None


def aggregate_metrics_for_period(
    daily_rows: Iterable[Mapping[str, Any]],
    start_date: date,
    end_date: date,
    metrics_type: Literal["search_console", "analytics"],
) -> dict[str, float]:
    """
    Aggregate daily rows falling within ``[start_date, end_date]``.

    Search Console CTR is recomputed from summed clicks and impressions and
    position is weighted by impressions. Analytics rates are weighted by
    sessions.
    """
    if isinstance(start_date, datetime):
        start_date = start_date.date()
    if isinstance(end_date, datetime):
        end_date = end_date.date()

    rows = []
    for row in daily_rows:
        row_date = _row_date(row)
        if row_date is not None and start_date <= row_date <= end_date:
            rows.append(row)

    if metrics_type == "search_console":
        return {
            "clicks": sum(r.get("clicks") or 0 for r in rows),
            "impressions": sum(r.get("impressions") or 0 for r in rows),
            "ctr": calculate_aggregate_ctr(rows),
            "position": calculate_weighted_average(
                (r.get("position") or 0, r.get("impressions") or 0) for r in rows
            ),
        }

    return {
        "users": sum(r.get("users") or 0 for r in rows),
        "sessions": sum(r.get("sessions") or 0 for r in rows),
        "pageviews": sum(r.get("pageviews") or 0 for r in rows),
        "bounce_rate": calculate_weighted_average(
            (r.get("bounce_rate") or 0, r.get("sessions") or 0) for r in rows
        ),
        "avg_session_duration": calculate_weighted_average(
            (r.get("avg_session_duration") or 0, r.get("sessions") or 0) for r in rows
        ),
        "new_users": sum(r.get("new_users") or 0 for r in rows),
    }


def format_comparison_display(comparison: ComparisonMetrics) -> str:
    """Format a comparison as ``+12.5%`` / ``-3%`` / ``0%``."""
    if comparison.trend == "up":
        sign = "+"
    elif comparison.trend == "down":
        sign = "-"
    else:
        sign = ""
    percent = f"{abs(comparison.change_percent):.2f}".rstrip("0").rstrip(".")
    return f"{sign}{percent}%"


def get_trend_indicator(metric_name: str, trend: Trend) -> TrendIndicator:
    """Arrow and colour for a metric trend, honouring inverse metrics."""
    if trend == "neutral":
        return TrendIndicator(icon="→", color="gray")

    is_inverse = metric_name in INVERSE_METRICS
    if trend == "up":
        return TrendIndicator(icon="↑", color="red" if is_inverse else "green")
    return TrendIndicator(icon="↓", color="green" if is_inverse else "red")
