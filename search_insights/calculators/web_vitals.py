"""Core Web Vitals grading."""

from typing import Literal

MetricRating = Literal["good", "needs-improvement", "poor"]

# (good, needs-improvement) upper bounds; LCP/INP in milliseconds, CLS unitless
THRESHOLDS: dict[str, tuple[float, float]] = {
    "LCP": (2500, 4000),
    "INP": (200, 500),
    "CLS": (0.1, 0.25),
}


def grade_metric(metric: str, value: float) -> MetricRating:
    """Rate a single metric against Google's published thresholds."""
    threshold = THRESHOLDS.get(metric.upper())
    if threshold is None:
        return "poor"

    good, needs_improvement = threshold
    if value <= good:
        return "good"
    if value <= needs_improvement:
        return "needs-improvement"
    return "poor"


def calculate_grade(lcp: float, inp: float, cls: float) -> str:
    """
    Letter grade for a page's field metrics.

    A: all good. F: any poor. Otherwise B/C/D for two/one/zero good metrics.
    """
    ratings = [
        grade_metric("LCP", lcp),
        grade_metric("INP", inp),
        grade_metric("CLS", cls),
    ]

    if all(r == "good" for r in ratings):
        return "A"
    if any(r == "poor" for r in ratings):
        return "F"

    good_count = ratings.count("good")
    if good_count == 2:
        return "B"
    if good_count == 1:
        return "C"
    return "D"
