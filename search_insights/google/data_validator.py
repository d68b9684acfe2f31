"""Sanity checks for Search Console payloads before they reach a report."""

import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from search_insights.calculators.metrics import calculate_aggregate_ctr, calculate_ctr
from search_insights.utils.dates import format_date_for_api

logger = logging.getLogger(__name__)

# Allowed difference between reported and recomputed CTR
CTR_TOLERANCE = 0.01
# Search Console normally lags two to three days
NORMAL_LAG_DAYS = 2
STALE_THRESHOLD_DAYS = 4


class DataFreshness(BaseModel):
    latest_data_date: date | None = None
    days_behind: int = 0
    is_stale: bool = False


class MetricChecks(BaseModel):
    has_data: bool = False
    ctr_valid: bool = True
    clicks_valid: bool = True
    impressions_valid: bool = True


class DataValidationResult(BaseModel):
    is_valid: bool = True
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    data_freshness: DataFreshness = Field(default_factory=DataFreshness)
    metrics: MetricChecks = Field(default_factory=MetricChecks)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_row_date(row: Mapping[str, Any]) -> date | None:
    keys = row.get("keys") or []
    raw = keys[0] if keys else row.get("date")
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        logger.debug(f"Ignoring unparseable date {raw!r}")
        return None


def validate_search_console_data(
    data: Any,
    today: date | None = None,
    stale_threshold_days: int = STALE_THRESHOLD_DAYS,
) -> DataValidationResult:
    """
    Validate a combined Search Console payload.

    Expects a mapping with an optional ``summary`` (clicks, impressions, ctr,
    position) and an optional ``by_date`` / ``byDate`` list of rows. Issues make
    the payload invalid; warnings do not.
    """
    result = DataValidationResult()

    if not isinstance(data, Mapping):
        result.is_valid = False
        result.issues.append("No data received from Search Console API")
        return result

    summary = data.get("summary")
    if isinstance(summary, Mapping):
        _validate_summary(summary, result)

    rows = data.get("by_date")
    if rows is None:
        rows = data.get("byDate")

    if isinstance(rows, list) and rows:
        _check_freshness(rows, result, today or date.today(), stale_threshold_days)
    else:
        result.warnings.append("No date-based data available")

    result.is_valid = not result.issues
    return result


def _validate_summary(summary: Mapping[str, Any], result: DataValidationResult) -> None:
    clicks = summary.get("clicks")
    impressions = summary.get("impressions")
    ctr = summary.get("ctr")

    if _is_number(clicks) and clicks >= 0:
        result.metrics.has_data = True
    elif clicks is not None:
        result.issues.append(f"Invalid clicks value: {clicks}")
        result.metrics.clicks_valid = False

    if _is_number(impressions) and impressions >= 0:
        result.metrics.has_data = True
    elif impressions is not None:
        result.issues.append(f"Invalid impressions value: {impressions}")
        result.metrics.impressions_valid = False

    clicks_n = clicks if _is_number(clicks) else 0
    impressions_n = impressions if _is_number(impressions) else 0

    if _is_number(ctr):
        if ctr < 0 or ctr > 1:
            result.warnings.append(f"CTR value out of expected range (0-1): {ctr}")

        if impressions_n > 0:
            calculated = clicks_n / impressions_n
            if abs(ctr - calculated) > CTR_TOLERANCE:
                result.issues.append(f"CTR mismatch: reported {ctr}, calculated {calculated}")
                result.metrics.ctr_valid = False
        elif clicks_n > 0:
            result.issues.append("Clicks exist but no impressions - data inconsistency")
            result.metrics.ctr_valid = False

        if ctr == 0 and clicks_n > 0:
            result.issues.append("CTR is 0 but clicks exist - calculation error")
            result.metrics.ctr_valid = False


def _check_freshness(
    rows: list[Any],
    result: DataValidationResult,
    today: date,
    stale_threshold_days: int,
) -> None:
    latest: date | None = None
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        row_date = _parse_row_date(row)
        if row_date and (latest is None or row_date > latest):
            latest = row_date

    if latest is None:
        return

    days_behind = (today - latest).days
    result.data_freshness.latest_data_date = latest
    result.data_freshness.days_behind = days_behind

    if days_behind > stale_threshold_days:
        result.warnings.append(f"Data is {days_behind} days old (latest: {latest.isoformat()})")
        result.data_freshness.is_stale = True
    elif days_behind > NORMAL_LAG_DAYS:
        logger.info(f"Search Console data is {days_behind} days behind - this is normal")


def get_optimal_date_range(today: date | None = None) -> tuple[date, date]:
    """30 days ending three days ago, so the window is fully reported."""
    end = (today or date.today()) - timedelta(days=3)
    return end - timedelta(days=30), end


def format_date_for_google_api(value: date | datetime) -> str:
    return format_date_for_api(value)


def format_ctr_for_display(ctr: float, is_percentage: bool = False) -> str:
    percentage = ctr if is_percentage else ctr * 100
    return f"{percentage:.2f}%"


def log_search_console_response(response: Any, source: str = "Unknown") -> None:
    """Log a sample of rows and aggregate totals of a raw API response."""
    rows = response.get("rows") if isinstance(response, Mapping) else None
    if not isinstance(rows, list):
        logger.debug(f"[Search Console Debug - {source}] No rows data in response: {response!r}")
        return

    logger.debug(f"[Search Console Debug - {source}] Total rows: {len(rows)}")
    for index, row in enumerate(rows[:3], 1):
        logger.debug(
            f"Row {index}: keys={row.get('keys')} clicks={row.get('clicks')} "
            f"impressions={row.get('impressions')} ctr={row.get('ctr')} position={row.get('position')} "
            f"calculated_ctr={calculate_ctr(row.get('clicks') or 0, row.get('impressions') or 0)}"
        )

    total_clicks = sum(row.get("clicks") or 0 for row in rows)
    total_impressions = sum(row.get("impressions") or 0 for row in rows)
    logger.debug(
        f"Aggregate totals: clicks={total_clicks} impressions={total_impressions} "
        f"ctr={format_ctr_for_display(calculate_aggregate_ctr(rows))}"
    )
