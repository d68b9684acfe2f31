"""
Metric calculation helpers shared by reports, jobs and the API.

CTR is always computed from summed clicks and impressions, never by averaging
per-row CTR values. Position metrics are "lower is better", so their change is
sign-inverted relative to other metrics.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any, Literal

logger = logging.getLogger(__name__)

TrendDirectionLabel = Literal["up", "down", "neutral"]

MAX_CHANGE_PERCENT = 999.0
MIN_CHANGE_PERCENT = -100.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def calculate_ctr(clicks: float, impressions: float) -> float:
    """
    Calculate click-through rate as a fraction in [0, 1].

    Args:
        clicks: Total clicks
        impressions: Total impressions

    Returns:
        clicks / impressions, or 0 for invalid input or zero impressions
    """
    if not _is_number(clicks) or not _is_number(impressions):
        logger.warning(f"Invalid inputs for CTR calculation: clicks={clicks!r}, impressions={impressions!r}")
        return 0.0

    if impressions == 0:
        return 0.0

    ctr = clicks / impressions
    if not math.isfinite(ctr):
        return 0.0

    return _clamp(ctr, 0.0, 1.0)


def calculate_aggregate_ctr(data_points: Iterable[Mapping[str, Any]] | None) -> float:
    """
    Calculate CTR across many rows (e.g. paginated API responses).

    Clicks and impressions are summed first; missing values count as zero.
    """
    if not data_points:
        return 0.0

    total_clicks = 0.0
    total_impressions = 0.0
    for item in data_points:
        clicks = item.get("clicks") or 0
        impressions = item.get("impressions") or 0
        if not _is_number(clicks) or not _is_number(impressions):
            logger.warning(f"Skipping row with invalid clicks/impressions: {item!r}")
            continue
        total_clicks += clicks
        total_impressions += impressions

    return calculate_ctr(total_clicks, total_impressions)


def calculate_percentage_change(current: float, previous: float) -> float:
    """Percentage change where a positive result means growth, capped to [-100, 999]."""
    if not _is_number(current) or not _is_number(previous):
        logger.warning(f"Invalid inputs for percentage change: current={current!r}, previous={previous!r}")
        return 0.0

    if not math.isfinite(current) or not math.isfinite(previous):
        return 0.0

    if previous == 0:
        return 100.0 if current > 0 else 0.0

    change = (current - previous) / previous * 100
    if not math.isfinite(change):
        return 0.0

    return _clamp(change, MIN_CHANGE_PERCENT, MAX_CHANGE_PERCENT)


def calculate_position_change(current_position: float, previous_position: float) -> float:
    """
    Percentage improvement of a ranking position.

    Lower positions are better: moving from 20 to 10 is +50, moving from 10 to
    20 is -100. A lost ranking (current <= 0) is -100; without a valid previous
    position the change is 0.
    """
    if not _is_number(current_position) or not _is_number(previous_position):
        logger.warning(
            f"Invalid inputs for position change: current={current_position!r}, previous={previous_position!r}"
        )
        return 0.0

    if current_position <= 0 and previous_position <= 0:
        return 0.0

    if previous_position <= 0:
        return 0.0

    if current_position <= 0:
        return MIN_CHANGE_PERCENT

    improvement = (previous_position - current_position) / previous_position * 100
    if not math.isfinite(improvement):
        return 0.0

    return _clamp(improvement, MIN_CHANGE_PERCENT, MAX_CHANGE_PERCENT)


def calculate_average_position(positions: Iterable[float] | None) -> float:
    """Mean of the valid (positive, finite) positions."""
    if not positions:
        return 0.0

    valid = [p for p in positions if _is_number(p) and p > 0 and math.isfinite(p)]
    if not valid:
        return 0.0

    return sum(valid) / len(valid)


def calculate_weighted_average(
    values: Iterable[Mapping[str, float] | tuple[float, float]] | None,
) -> float:
    """
    Weighted average for rate metrics (bounce rate, engagement rate, ...).

    Items are ``(value, weight)`` tuples or mappings with ``value`` and
    ``weight`` keys. Items with a non-numeric value, or a non-positive or
    non-finite weight, are ignored.
    """
    if not values:
        return 0.0

    total_weight = 0.0
    weighted_sum = 0.0

    for item in values:
        if isinstance(item, Mapping):
            value = item.get("value") or 0
            weight = item.get("weight") or 0
        else:
            value, weight = item
            value = value or 0
            weight = weight or 0

        if not _is_number(value) or not _is_number(weight):
            continue

        if weight > 0 and math.isfinite(value) and math.isfinite(weight):
            weighted_sum += value * weight
            total_weight += weight

    if total_weight == 0:
        return 0.0

    return weighted_sum / total_weight


def _session_rate(part: float, total: float) -> float:
    if not _is_number(part) or not _is_number(total) or total == 0:
        return 0.0
    return _clamp(part / total, 0.0, 1.0)


def calculate_bounce_rate(bounced_sessions: float, total_sessions: float) -> float:
    """Bounce rate as a fraction in [0, 1]."""
    return _session_rate(bounced_sessions, total_sessions)


def calculate_engagement_rate(engaged_sessions: float, total_sessions: float) -> float:
    """Engagement rate as a fraction in [0, 1]."""
    return _session_rate(engaged_sessions, total_sessions)


def format_percentage(value: float, decimals: int = 1, assume_decimal: bool = False) -> str:
    """
    Format a rate or change as a percentage string.

    Values strictly between 0 and 1 are treated as fractions unless they are
    known to be percentages already.
    """
    if not _is_number(value) or not math.isfinite(value):
        return f"{0:.{decimals}f}%"

    percentage = float(value)
    if assume_decimal or 0 < value < 1:
        percentage = value * 100

    percentage = _clamp(percentage, -999.0, 999.0)
    return f"{percentage:.{decimals}f}%"


def format_compact_number(value: float) -> str:
    """Format a count with K/M suffixes."""
    if not _is_number(value) or not math.isfinite(value):
        return "0"

    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(int(round(value)))


def format_duration(seconds: float) -> str:
    """Format seconds as ``m:ss``."""
    if not _is_number(seconds) or not math.isfinite(seconds) or seconds < 0:
        return "0:00"

    minutes = int(seconds // 60)
    remaining = int(round(seconds % 60))
    if remaining == 60:
        minutes += 1
        remaining = 0
    return f"{minutes}:{remaining:02d}"


def get_trend_direction(change_percent: float, is_inverse_metric: bool = False) -> TrendDirectionLabel:
    """
    Direction of a change for display.

    For inverse metrics (bounce rate, position) a decrease is shown as "up".
    """
    if not _is_number(change_percent) or not math.isfinite(change_percent) or abs(change_percent) < 0.01:
        return "neutral"

    if is_inverse_metric:
        return "down" if change_percent > 0 else "up"

    return "up" if change_percent > 0 else "down"


def is_likely_percentage(value: float) -> bool:
    """True when a value is on a 0-100 scale rather than a 0-1 fraction."""
    if not _is_number(value) or not math.isfinite(value):
        return False
    return value > 1 or value < 0


def safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Divide, returning ``fallback`` for zero, non-numeric or non-finite input."""
    if not _is_number(numerator) or not _is_number(denominator):
        return fallback

    if denominator == 0 or not math.isfinite(numerator) or not math.isfinite(denominator):
        return fallback

    result = numerator / denominator
    return result if math.isfinite(result) else fallback
