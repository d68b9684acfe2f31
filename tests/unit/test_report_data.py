"""Unit tests for Search Console and GA4 report services."""

from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from search_insights.services.errors import ResourceNotFoundError, ServiceError
from search_insights.services.report_data import (
    ANALYTICS_CACHE_KEY,
    COMPREHENSIVE_CACHE_KEY,
    SEARCH_CONSOLE_CACHE_KEY,
    AnalyticsReportService,
    ComprehensiveMetricsService,
    SearchConsoleReportService,
)

NOW = datetime(2026, 10, 15, 9, 0)
CURRENT_START = date(2026, 9, 15)

SITE = "https://acme.com/"
BLOG = "sc-domain:blog.acme.com"

TOTALS = {
    SITE: {"clicks": 100, "impressions": 2000, "ctr": 0.05, "position": 5.0},
    BLOG: {"clicks": 50, "impressions": 3000, "ctr": 0.0167, "position": 15.0},
}


def _rows(site_url, dimensions, start):
    if not dimensions:
        totals = dict(TOTALS.get(site_url, TOTALS[SITE]))
        if start < CURRENT_START:
            totals["clicks"] = totals["clicks"] // 2
        return [totals]
    if dimensions == ["date"]:
        return [
            {"keys": ["2026-10-12"], "clicks": 10, "impressions": 200},
            {"keys": ["2026-10-13"], "clicks": 12, "impressions": 210},
        ]
    if dimensions == ["page"]:
        clicks = 40 if site_url == SITE else 45
        return [{"keys": [f"{site_url}page"], "clicks": clicks, "impressions": 500}]
    return [
        {"keys": [f"{site_url} query a"], "clicks": 5, "impressions": 50},
        {"keys": [f"{site_url} query b"], "clicks": 25, "impressions": 90},
    ]


@pytest.fixture
def search_console():
    client = MagicMock()
    client.__aenter__.return_value = client

    async def query(site_url, start_date, end_date, dimensions=None, row_limit=1000, **kwargs):
        return _rows(site_url, dimensions, start_date)

    client.query = AsyncMock(side_effect=query)
    return client


@pytest.fixture
def sc_service(repository, settings, search_console):
    return SearchConsoleReportService(repository, settings=settings, client_factory=lambda token: search_console)


class TestResolveProperties:
    def test_explicit_properties(self, sc_service):
        assert sc_service.resolve_properties(None, [SITE]) == [SITE]

    def test_report_property(self, sc_service, client_report):
        assert sc_service.resolve_properties(client_report.id, None) == ["sc-domain:acme.com"]

    def test_nothing_given(self, sc_service):
        with pytest.raises(ServiceError, match="Report ID or properties required"):
            sc_service.resolve_properties(None, [])

    def test_unknown_report(self, sc_service):
        with pytest.raises(ResourceNotFoundError):
            sc_service.resolve_properties(9999, None)

    def test_report_without_property(self, sc_service, repository):
        report = repository.create_client_report("Bare")

        with pytest.raises(ServiceError, match="no Search Console property"):
            sc_service.resolve_properties(report.id, None)


class TestSearchConsoleFetch:
    """Tests for combining Search Console data across properties."""

    @pytest.mark.asyncio
    async def test_combined_summary(self, sc_service):
        report = await sc_service.fetch("token", properties=[SITE, BLOG], now=NOW)

        assert report.summary.clicks == 150
        assert report.summary.impressions == 5000
        assert report.summary.ctr == pytest.approx(0.03)
        assert report.summary.position == pytest.approx(10.0)
        assert [p.property for p in report.by_property] == [SITE, BLOG]
        assert report.date_range.start == "2026-09-15"
        assert report.date_range.end == "2026-10-15"

    @pytest.mark.asyncio
    async def test_rows_merged_by_clicks(self, sc_service):
        report = await sc_service.fetch("token", properties=[SITE, BLOG], now=NOW)

        assert len(report.by_date) == 4
        assert [p["clicks"] for p in report.top_pages] == [45, 40]
        assert report.top_queries[0]["clicks"] == 25
        assert len(report.top_queries) == 4

    @pytest.mark.asyncio
    async def test_validation_attached(self, sc_service):
        report = await sc_service.fetch("token", properties=[SITE], now=NOW)

        assert report.validation["is_valid"] is True
        assert report.validation["data_freshness"]["days_behind"] == 2

    @pytest.mark.asyncio
    async def test_failing_property_skipped(self, sc_service, search_console):
        async def query(site_url, start_date, end_date, dimensions=None, row_limit=1000, **kwargs):
            if site_url == BLOG:
                raise RuntimeError("User does not have sufficient permission")
            return _rows(site_url, dimensions, start_date)

        search_console.query.side_effect = query

        report = await sc_service.fetch("token", properties=[SITE, BLOG], now=NOW)

        assert [p.property for p in report.by_property] == [SITE]
        assert report.summary.clicks == 100

    @pytest.mark.asyncio
    async def test_report_data_cached(self, sc_service, repository, client_report):
        await sc_service.fetch("token", report_id=client_report.id, now=NOW)

        cached = repository.get_report_cache(client_report.id, SEARCH_CONSOLE_CACHE_KEY)
        assert cached is not None
        assert cached["summary"]["clicks"] == 100

    @pytest.mark.asyncio
    async def test_compare_periods(self, sc_service):
        comparisons = await sc_service.compare_periods("token", properties=[SITE], now=NOW)

        assert comparisons["clicks"].current == 100
        assert comparisons["clicks"].previous == 50
        assert comparisons["clicks"].change_percent == 100.0
        assert comparisons["position"].trend == "neutral"

    @pytest.mark.asyncio
    async def test_compare_reuses_current_report(self, sc_service, search_console):
        current = await sc_service.fetch("token", properties=[SITE], now=NOW)
        search_console.query.reset_mock()

        comparisons = await sc_service.compare_periods("token", properties=[SITE], now=NOW, current=current)

        assert search_console.query.await_count == 4
        assert all(call.args[1] < CURRENT_START for call in search_console.query.await_args_list)
        assert comparisons["clicks"].current == 100
        assert comparisons["clicks"].previous == 50


@pytest.fixture
def analytics_client(mock_ga4_traffic_response, mock_ga4_pages_response):
    client = MagicMock()
    client.__aenter__.return_value = client
    client.run_report = AsyncMock(side_effect=[mock_ga4_traffic_response, mock_ga4_pages_response])
    return client


@pytest.fixture
def analytics_service(repository, settings, analytics_client):
    return AnalyticsReportService(repository, settings=settings, client_factory=lambda token: analytics_client)


class TestAnalyticsProcess:
    """Tests for summarizing GA4 responses."""

    def test_summary(self, mock_ga4_traffic_response, mock_ga4_pages_response):
        report = AnalyticsReportService.process("123456", mock_ga4_traffic_response, mock_ga4_pages_response)

        assert report.property_id == "properties/123456"
        assert report.summary.sessions == 200
        assert report.summary.users == 165
        assert report.summary.new_users == 70
        assert report.summary.pageviews == 550
        # Weighted by sessions and expressed as a percentage
        assert report.summary.bounce_rate == pytest.approx(45.0)
        assert report.summary.avg_session_duration == pytest.approx(97.5)

    def test_traffic_sources(self, mock_ga4_traffic_response, mock_ga4_pages_response):
        report = AnalyticsReportService.process("123456", mock_ga4_traffic_response, mock_ga4_pages_response)

        assert [s.source for s in report.traffic_sources] == ["Organic Search", "Direct"]
        assert report.traffic_sources[0].sessions == 150
        assert report.traffic_sources[0].percentage == pytest.approx(75.0)

    def test_top_pages_and_daily(self, mock_ga4_traffic_response, mock_ga4_pages_response):
        report = AnalyticsReportService.process("123456", mock_ga4_traffic_response, mock_ga4_pages_response)

        assert report.top_pages[0].page == "/"
        assert report.top_pages[0].bounce_rate == pytest.approx(35.0)
        assert report.daily_data[0] == {
            "date": "20261001",
            "sessions": 150,
            "users": 125,
            "pageviews": 400,
            "new_users": 60,
        }
        assert len(report.daily_data) == 2

    def test_empty_responses(self):
        report = AnalyticsReportService.process("properties/1", {}, {})

        assert report.summary.sessions == 0
        assert report.summary.bounce_rate == 0
        assert report.traffic_sources == []


class TestAnalyticsFetch:
    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, analytics_service, analytics_client, repository, client_report):
        report = await analytics_service.fetch("token", "123456", report_id=client_report.id, now=NOW)

        assert report.summary.sessions == 200
        assert report.date_range.start == "2026-09-15"
        assert analytics_client.run_report.await_count == 2
        body = analytics_client.run_report.await_args_list[0].args[1]
        assert body["dateRanges"] == [{"startDate": "2026-09-15", "endDate": "2026-10-15"}]
        assert repository.get_report_cache(client_report.id, ANALYTICS_CACHE_KEY) is not None

    @pytest.mark.asyncio
    async def test_property_required(self, analytics_service):
        with pytest.raises(ServiceError, match="Property ID is required"):
            await analytics_service.fetch("token", "")


def _sc_daily(site_url, dimensions, start):
    if dimensions == ["date"] and start == date(2026, 8, 16):
        return [
            {"keys": ["2026-10-10"], "clicks": 30, "impressions": 600, "position": 4.0},
            {"keys": ["2026-10-12"], "clicks": 30, "impressions": 400, "position": 6.0},
            {"keys": ["2026-10-03"], "clicks": 40, "impressions": 1000, "position": 8.0},
            {"keys": ["2026-09-01"], "clicks": 120, "impressions": 4000, "position": 10.0},
        ]
    if dimensions == ["date"]:
        return [{"keys": ["2025-10-18"], "clicks": 15, "impressions": 500, "position": 12.0}]
    if dimensions == ["query"]:
        return [
            {"keys": ["crm"], "clicks": 5, "impressions": 100, "position": 3.0},
            {"keys": ["crm software"], "clicks": 20, "impressions": 200, "position": 2.0},
        ]
    return [{"keys": ["https://acme.com/"], "clicks": 50, "impressions": 900, "position": 5.0}]


def _ga4_row(dimensions, metrics):
    return {
        "dimensionValues": [{"value": value} for value in dimensions],
        "metricValues": [{"value": str(value)} for value in metrics],
    }


# sessions, users, new users, views, bounce, duration, engaged, conversions, events
GA4_RECENT = {
    "rows": [
        _ga4_row(["20261009"], [100, 80, 30, 300, 0.4, 100, 60, 5, 900]),
        _ga4_row(["20261011"], [100, 70, 20, 200, 0.6, 60, 40, 3, 600]),
        _ga4_row(["20261002"], [80, 60, 10, 150, 0.5, 50, 40, 2, 400]),
        _ga4_row(["20260901"], [400, 300, 100, 900, 0.5, 70, 200, 10, 3000]),
    ]
}
GA4_YEAR_AGO = {"rows": [_ga4_row(["20251016"], [50, 40, 20, 120, 0.5, 45, 25, 0, 300])]}
# sessions, users, engagement rate, bounce rate, conversions
GA4_BREAKDOWN = {
    "rows": [
        _ga4_row(["Organic Search", "/"], [120, 100, 0.6, 0.3, 4]),
        _ga4_row(["Organic Search", "/pricing"], [30, 25, 0.4, 0.5, 1]),
        _ga4_row(["Direct", "/"], [40, 35, 0.5, 0.4, 2]),
        _ga4_row(["(not set)", "/blog"], [10, 10, 0, 1.0, 0]),
    ]
}


@pytest.fixture
def comparison_search_console():
    client = MagicMock()
    client.__aenter__.return_value = client

    async def query(site_url, start_date, end_date, dimensions=None, row_limit=1000, **kwargs):
        return _sc_daily(site_url, dimensions, start_date)

    client.query = AsyncMock(side_effect=query)
    return client


@pytest.fixture
def comparison_analytics():
    client = MagicMock()
    client.__aenter__.return_value = client

    async def run_report(property_id, body):
        if body["dimensions"] != [{"name": "date"}]:
            return GA4_BREAKDOWN
        if body["dateRanges"][0]["startDate"] == "2026-08-16":
            return GA4_RECENT
        return GA4_YEAR_AGO

    client.run_report = AsyncMock(side_effect=run_report)
    return client


@pytest.fixture
def comprehensive_service(repository, settings, comparison_search_console, comparison_analytics):
    return ComprehensiveMetricsService(
        repository,
        settings=settings,
        search_console_factory=lambda token: comparison_search_console,
        analytics_factory=lambda token: comparison_analytics,
    )


class TestComprehensiveMetrics:
    """Tests for week-, month- and year-over-year report metrics."""

    @pytest.mark.asyncio
    async def test_search_console_periods(self, comprehensive_service, client_report):
        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        periods = metrics.search_console["sc-domain:acme.com"]
        assert periods.current.clicks == 60
        assert periods.current.impressions == 1000
        assert periods.current.ctr == pytest.approx(0.06)
        # Weighted by impressions
        assert periods.current.position == pytest.approx(4.8)
        assert periods.previous_week.clicks == 40
        assert periods.previous_month.clicks == 120
        assert periods.previous_year.clicks == 15
        assert metrics.date_range.start == "2026-10-08"
        assert metrics.date_range.end == "2026-10-15"

    @pytest.mark.asyncio
    async def test_search_console_trends(self, comprehensive_service, client_report):
        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        trends = metrics.search_console["sc-domain:acme.com"].trends
        assert trends["week_over_week"]["clicks"].change_percent == 50.0
        assert trends["month_over_month"]["clicks"].change_percent == -50.0
        assert trends["year_over_year"]["clicks"].change_percent == 300.0
        assert trends["week_over_week"]["position"].trend == "down"

    @pytest.mark.asyncio
    async def test_top_queries_and_pages(self, comprehensive_service, client_report):
        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        periods = metrics.search_console["sc-domain:acme.com"]
        assert [q["query"] for q in periods.top_queries] == ["crm software", "crm"]
        assert periods.top_queries[0]["ctr"] == pytest.approx(0.1)
        assert periods.top_pages[0]["page"] == "https://acme.com/"

    @pytest.mark.asyncio
    async def test_analytics_periods(self, comprehensive_service, client_report):
        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        analytics = metrics.analytics["123456"]
        assert analytics.property_id == "properties/123456"
        current = analytics.current
        assert current.sessions == 200
        assert current.users == 150
        assert current.pageviews == 500
        assert current.bounce_rate == pytest.approx(50.0)
        assert current.engagement_rate == pytest.approx(50.0)
        assert current.conversions == 8
        assert current.events == 1500
        assert analytics.previous_week.sessions == 80
        assert analytics.previous_year.sessions == 50
        assert analytics.trends["week_over_week"]["sessions"].change_percent == 150.0
        assert analytics.trends["week_over_week"]["conversions"].change_percent == 300.0
        assert analytics.trends["year_over_year"]["sessions"].change_percent == 300.0

    @pytest.mark.asyncio
    async def test_channels_and_landing_pages(self, comprehensive_service, client_report):
        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        analytics = metrics.analytics["123456"]
        assert [c.channel for c in analytics.by_channel] == ["Organic Search", "Direct"]
        assert analytics.by_channel[0].sessions == 150
        assert analytics.by_channel[0].engagement_rate == pytest.approx(56.0)
        assert [p.page for p in analytics.top_landing_pages] == ["/", "/pricing", "/blog"]
        assert analytics.top_landing_pages[0].bounce_rate == pytest.approx(32.5)

    @pytest.mark.asyncio
    async def test_comparisons_grouped_and_cached(self, comprehensive_service, repository, client_report):
        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        week = metrics.comparisons["week_over_week"]
        assert week["search_console"]["clicks"].change_percent == 50.0
        assert week["analytics"]["sessions"].change_percent == 150.0
        cached = repository.get_report_cache(client_report.id, COMPREHENSIVE_CACHE_KEY)
        assert cached["search_console"]["sc-domain:acme.com"]["current"]["clicks"] == 60

    @pytest.mark.asyncio
    async def test_failing_source_left_out(self, comprehensive_service, comparison_analytics, client_report):
        comparison_analytics.run_report.side_effect = RuntimeError("quota exceeded")

        metrics = await comprehensive_service.fetch("token", client_report.id, now=NOW)

        assert metrics.analytics == {}
        assert "sc-domain:acme.com" in metrics.search_console
        assert set(metrics.comparisons["week_over_week"]) == {"search_console"}

    @pytest.mark.asyncio
    async def test_report_without_properties(self, comprehensive_service, comparison_search_console, repository):
        report = repository.create_client_report("Bare")

        metrics = await comprehensive_service.fetch("token", report.id, now=NOW)

        assert metrics.search_console == {}
        assert metrics.analytics == {}
        comparison_search_console.query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_report(self, comprehensive_service):
        with pytest.raises(ResourceNotFoundError):
            await comprehensive_service.fetch("token", 9999, now=NOW)
