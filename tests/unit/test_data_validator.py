"""Unit tests for Search Console payload validation."""

from datetime import date

from search_insights.google.data_validator import (
    format_ctr_for_display,
    get_optimal_date_range,
    validate_search_console_data,
)

TODAY = date(2026, 10, 15)


def _by_date(*days):
    return [{"keys": [day], "clicks": 1, "impressions": 10} for day in days]


class TestValidateSearchConsoleData:
    """Tests for validate_search_console_data."""

    def test_valid_payload(self):
        data = {
            "summary": {"clicks": 50, "impressions": 1000, "ctr": 0.05, "position": 7.2},
            "by_date": _by_date("2026-10-12", "2026-10-13"),
        }

        result = validate_search_console_data(data, today=TODAY)

        assert result.is_valid
        assert result.issues == []
        assert result.metrics.has_data
        assert result.data_freshness.latest_data_date == date(2026, 10, 13)
        assert result.data_freshness.days_behind == 2
        assert not result.data_freshness.is_stale

    def test_no_data(self):
        result = validate_search_console_data(None, today=TODAY)

        assert not result.is_valid
        assert "No data received from Search Console API" in result.issues

    def test_empty_payload_only_warns(self):
        result = validate_search_console_data({}, today=TODAY)

        assert result.is_valid
        assert result.issues == []
        assert result.warnings == ["No date-based data available"]

    def test_ctr_mismatch(self):
        data = {"summary": {"clicks": 50, "impressions": 1000, "ctr": 0.2}}

        result = validate_search_console_data(data, today=TODAY)

        assert not result.is_valid
        assert not result.metrics.ctr_valid
        assert any("CTR mismatch" in issue for issue in result.issues)

    def test_ctr_within_tolerance(self):
        data = {"summary": {"clicks": 50, "impressions": 1000, "ctr": 0.055}}

        assert validate_search_console_data(data, today=TODAY).is_valid

    def test_zero_ctr_with_clicks(self):
        data = {"summary": {"clicks": 5, "impressions": 0, "ctr": 0}}

        result = validate_search_console_data(data, today=TODAY)

        assert "Clicks exist but no impressions - data inconsistency" in result.issues
        assert "CTR is 0 but clicks exist - calculation error" in result.issues

    def test_ctr_out_of_range_is_warning(self):
        data = {"summary": {"clicks": 0, "impressions": 0, "ctr": 5}}

        result = validate_search_console_data(data, today=TODAY)

        assert result.is_valid
        assert any("out of expected range" in w for w in result.warnings)

    def test_invalid_counts(self):
        data = {"summary": {"clicks": -1, "impressions": "many"}}

        result = validate_search_console_data(data, today=TODAY)

        assert not result.is_valid
        assert not result.metrics.clicks_valid
        assert not result.metrics.impressions_valid

    def test_stale_data(self):
        data = {"summary": {"clicks": 1, "impressions": 10, "ctr": 0.1}, "byDate": _by_date("2026-10-05")}

        result = validate_search_console_data(data, today=TODAY)

        assert result.is_valid
        assert result.data_freshness.is_stale
        assert result.data_freshness.days_behind == 10
        assert any("10 days old" in w for w in result.warnings)

    def test_stale_threshold_is_configurable(self):
        data = {"by_date": _by_date("2026-10-05")}

        result = validate_search_console_data(data, today=TODAY, stale_threshold_days=30)

        assert not result.data_freshness.is_stale

    def test_missing_date_rows_is_warning(self):
        result = validate_search_console_data({"summary": {"clicks": 0, "impressions": 0}}, today=TODAY)

        assert result.is_valid
        assert "No date-based data available" in result.warnings


class TestHelpers:
    def test_optimal_date_range(self):
        start, end = get_optimal_date_range(TODAY)

        assert end == date(2026, 10, 12)
        assert start == date(2026, 9, 12)

    def test_format_ctr(self):
        assert format_ctr_for_display(0.0523) == "5.23%"
        assert format_ctr_for_display(5.23, is_percentage=True) == "5.23%"
