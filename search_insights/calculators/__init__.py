"""Calculators for report metrics, comparisons, vitals grades and AI visibility."""

from search_insights.calculators.citations import analyze_answer, calculate_visibility_scores
from search_insights.calculators.comparisons import (
    aggregate_metrics_for_period,
    calculate_analytics_comparisons,
    calculate_comparison,
    calculate_search_console_comparisons,
)
from search_insights.calculators.metrics import (
    calculate_aggregate_ctr,
    calculate_ctr,
    calculate_percentage_change,
    calculate_position_change,
    calculate_weighted_average,
)
from search_insights.calculators.web_vitals import calculate_grade, grade_metric

__all__ = [
    "aggregate_metrics_for_period",
    "analyze_answer",
    "calculate_aggregate_ctr",
    "calculate_analytics_comparisons",
    "calculate_comparison",
    "calculate_ctr",
    "calculate_grade",
    "calculate_percentage_change",
    "calculate_position_change",
    "calculate_search_console_comparisons",
    "calculate_visibility_scores",
    "calculate_weighted_average",
    "grade_metric",
]
