"""Unit tests for metric calculation helpers."""

import math

import pytest

from search_insights.calculators.metrics import (
    calculate_aggregate_ctr,
    calculate_average_position,
    calculate_bounce_rate,
    calculate_ctr,
    calculate_engagement_rate,
    calculate_percentage_change,
    calculate_position_change,
    calculate_weighted_average,
    format_compact_number,
    format_duration,
    format_percentage,
    get_trend_direction,
    is_likely_percentage,
    safe_divide,
)


class TestCTR:
    """Tests for click-through rate calculation."""

    def test_basic_ctr(self):
        assert calculate_ctr(50, 1000) == pytest.approx(0.05)

    def test_zero_impressions(self):
        assert calculate_ctr(10, 0) == 0.0

    def test_invalid_inputs(self):
        assert calculate_ctr("10", 100) == 0.0
        assert calculate_ctr(None, 100) == 0.0
        assert calculate_ctr(True, 100) == 0.0

    def test_clamped_to_one(self):
        """More clicks than impressions cannot exceed a CTR of 1."""
        assert calculate_ctr(150, 100) == 1.0

    def test_aggregate_ctr_sums_before_dividing(self):
        """Aggregate CTR is total clicks over total impressions, not a mean of row CTRs."""
        rows = [
            {"clicks": 1, "impressions": 10},  # 10%
            {"clicks": 10, "impressions": 1000},  # 1%
        ]
        assert calculate_aggregate_ctr(rows) == pytest.approx(11 / 1010)

    def test_aggregate_ctr_missing_values(self):
        rows = [{"clicks": 5}, {"impressions": 100}, {}]
        assert calculate_aggregate_ctr(rows) == pytest.approx(0.05)

    def test_aggregate_ctr_empty(self):
        assert calculate_aggregate_ctr([]) == 0.0
        assert calculate_aggregate_ctr(None) == 0.0

    def test_aggregate_ctr_skips_non_numeric(self):
        rows = [
            {"clicks": "12", "impressions": 100},
            {"clicks": 5, "impressions": [100]},
            {"clicks": 2, "impressions": 40},
        ]
        assert calculate_aggregate_ctr(rows) == pytest.approx(0.05)


class TestPercentageChange:
    """Tests for period-over-period percentage change."""

    def test_growth(self):
        assert calculate_percentage_change(150, 100) == pytest.approx(50.0)

    def test_decline(self):
        assert calculate_percentage_change(50, 100) == pytest.approx(-50.0)

    def test_from_zero(self):
        assert calculate_percentage_change(10, 0) == 100.0
        assert calculate_percentage_change(0, 0) == 0.0

    def test_capped(self):
        assert calculate_percentage_change(100_000, 1) == 999.0

    def test_non_finite(self):
        assert calculate_percentage_change(math.inf, 10) == 0.0
        assert calculate_percentage_change(math.nan, 10) == 0.0


class TestPositionChange:
    """Position is lower-is-better, so improvements are positive."""

    def test_improvement(self):
        assert calculate_position_change(10, 20) == pytest.approx(50.0)

    def test_decline(self):
        assert calculate_position_change(20, 10) == pytest.approx(-100.0)

    def test_lost_ranking(self):
        assert calculate_position_change(0, 5) == -100.0

    def test_no_previous_ranking(self):
        assert calculate_position_change(5, 0) == 0.0
        assert calculate_position_change(0, 0) == 0.0

    def test_average_position_ignores_invalid(self):
        assert calculate_average_position([2, 4, 0, -1, math.inf]) == pytest.approx(3.0)
        assert calculate_average_position([]) == 0.0


class TestWeightedAverage:
    def test_tuples(self):
        assert calculate_weighted_average([(40, 100), (60, 50)]) == pytest.approx((4000 + 3000) / 150)

    def test_mappings(self):
        values = [{"value": 10, "weight": 1}, {"value": 20, "weight": 3}]
        assert calculate_weighted_average(values) == pytest.approx(17.5)

    def test_ignores_non_positive_weights(self):
        assert calculate_weighted_average([(100, 0), (50, -2), (30, 1)]) == pytest.approx(30)

    def test_empty(self):
        assert calculate_weighted_average([]) == 0.0
        assert calculate_weighted_average([(10, 0)]) == 0.0

    def test_skips_non_numeric(self):
        values = [("n/a", 10), (40, "100"), {"value": 20, "weight": None}, (30, 2)]
        assert calculate_weighted_average(values) == pytest.approx(30)

    def test_session_rates(self):
        assert calculate_bounce_rate(25, 100) == pytest.approx(0.25)
        assert calculate_engagement_rate(120, 100) == 1.0
        assert calculate_bounce_rate(5, 0) == 0.0


class TestFormatting:
    def test_format_percentage_fraction(self):
        assert format_percentage(0.0523) == "5.2%"

    def test_format_percentage_already_percent(self):
        assert format_percentage(45.67, decimals=2) == "45.67%"

    def test_format_percentage_assume_decimal(self):
        assert format_percentage(1, assume_decimal=True) == "100.0%"

    def test_format_percentage_invalid(self):
        assert format_percentage(math.nan) == "0.0%"

    def test_format_compact_number(self):
        assert format_compact_number(1_500_000) == "1.5M"
        assert format_compact_number(2_300) == "2.3K"
        assert format_compact_number(999) == "999"

    def test_format_duration(self):
        assert format_duration(125) == "2:05"
        assert format_duration(59.7) == "1:00"
        assert format_duration(-5) == "0:00"


class TestTrendDirection:
    def test_regular_metric(self):
        assert get_trend_direction(5) == "up"
        assert get_trend_direction(-5) == "down"
        assert get_trend_direction(0.001) == "neutral"

    def test_inverse_metric(self):
        assert get_trend_direction(5, is_inverse_metric=True) == "down"
        assert get_trend_direction(-5, is_inverse_metric=True) == "up"

    def test_is_likely_percentage(self):
        assert is_likely_percentage(45)
        assert not is_likely_percentage(0.45)

    def test_safe_divide(self):
        assert safe_divide(10, 4) == 2.5
        assert safe_divide(10, 0, fallback=-1) == -1
        assert safe_divide("a", 2) == 0.0
