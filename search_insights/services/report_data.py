"""Search Console and GA4 report data for client reports."""

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from search_insights.calculators.comparisons import (
    ComparisonMetrics,
    aggregate_metrics_for_period,
    calculate_analytics_comparisons,
    calculate_comparison,
    calculate_search_console_comparisons,
)
from search_insights.calculators.metrics import (
    calculate_ctr,
    calculate_engagement_rate,
    calculate_weighted_average,
)
from search_insights.clients.analytics import AnalyticsDataClient, format_property_id
from search_insights.clients.search_console import SearchConsoleClient
from search_insights.config import Settings, get_settings
from search_insights.db.repository import Repository
from search_insights.google.data_validator import (
    log_search_console_response,
    validate_search_console_data,
)
from search_insights.models.reports import (
    AnalyticsPeriods,
    AnalyticsPeriodTotals,
    AnalyticsReport,
    AnalyticsSummary,
    ChannelMetrics,
    ComprehensiveMetrics,
    DateWindow,
    LandingPage,
    PeriodTrends,
    PropertyMetrics,
    SearchConsolePeriods,
    SearchConsoleReport,
    SearchConsoleSummary,
    TopPage,
    TrafficSource,
)
from search_insights.services.errors import ResourceNotFoundError, ServiceError
from search_insights.utils.dates import (
    format_date_for_api,
    get_cache_expiry,
    get_comparison_windows,
    get_date_range,
    get_previous_period,
)

logger = logging.getLogger(__name__)

SEARCH_CONSOLE_CACHE_KEY = "searchConsole"
ANALYTICS_CACHE_KEY = "analytics"
COMPREHENSIVE_CACHE_KEY = "comprehensive_metrics"

TOP_PAGES_LIMIT = 10
TOP_QUERIES_LIMIT = 20
BY_DATE_LIMIT = 1000


def _by_clicks(rows: list[dict[str, Any]], limit: int) -> list[dict[str, Any]]:
    return sorted(rows, key=lambda row: row.get("clicks") or 0, reverse=True)[:limit]


class SearchConsoleReportService:
    """Collects Search Console data across a report's properties."""

    def __init__(
        self,
        repository: Repository,
        settings: Settings | None = None,
        client_factory: Callable[[str], SearchConsoleClient] | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.client_factory = client_factory or (
            lambda token: SearchConsoleClient(token, settings=self.settings)
        )

    def resolve_properties(self, report_id: int | None, properties: list[str] | None) -> list[str]:
        """Properties from the request, or the report's stored Search Console property."""
        if properties:
            return list(properties)
        if report_id is None:
            raise ServiceError("Report ID or properties required")

        report = self.repository.get_client_report(report_id)
        if report is None:
            raise ResourceNotFoundError(f"Report {report_id} not found")
        if not report.search_console_property_id:
            raise ServiceError(f"Report {report_id} has no Search Console property")
        return [report.search_console_property_id]

    async def _collect(
        self,
        client: SearchConsoleClient,
        properties: list[str],
        start: date,
        end: date,
    ) -> SearchConsoleReport:
        report = SearchConsoleReport(
            date_range=DateWindow(start=format_date_for_api(start), end=format_date_for_api(end))
        )
        top_pages: list[dict[str, Any]] = []
        top_queries: list[dict[str, Any]] = []

        for site_url in properties:
            try:
                totals = await client.query(site_url, start, end, dimensions=[], row_limit=1)
                by_date = await client.query(site_url, start, end, dimensions=["date"], row_limit=BY_DATE_LIMIT)
                pages = await client.query(site_url, start, end, dimensions=["page"], row_limit=TOP_PAGES_LIMIT)
                queries = await client.query(
                    site_url, start, end, dimensions=["query"], row_limit=TOP_QUERIES_LIMIT
                )
            except Exception as e:
                logger.error(f"Search Console fetch failed for {site_url}: {e}")
                continue

            log_search_console_response({"rows": by_date}, source=site_url)

            row = totals[0] if totals else {}
            metrics = SearchConsoleSummary(
                clicks=row.get("clicks") or 0,
                impressions=row.get("impressions") or 0,
                ctr=row.get("ctr") or 0,
                position=row.get("position") or 0,
            )
            report.by_property.append(PropertyMetrics(property=site_url, metrics=metrics))
            report.summary.clicks += metrics.clicks
            report.summary.impressions += metrics.impressions
            report.by_date.extend(by_date)
            top_pages.extend(pages)
            top_queries.extend(queries)

        report.summary.ctr = calculate_ctr(report.summary.clicks, report.summary.impressions)
        if report.by_property:
            positions = [p.metrics.position for p in report.by_property]
            report.summary.position = sum(positions) / len(positions)

        report.top_pages = _by_clicks(top_pages, TOP_PAGES_LIMIT)
        report.top_queries = _by_clicks(top_queries, TOP_QUERIES_LIMIT)
        return report

    async def fetch(
        self,
        access_token: str,
        report_id: int | None = None,
        properties: list[str] | None = None,
        date_range: str = "last30days",
        now: datetime | None = None,
    ) -> SearchConsoleReport:
        """
        Fetch, validate and (for a report) cache Search Console data.

        Raises:
            ServiceError: Neither a report nor properties were given
            ResourceNotFoundError: The report does not exist
        """
        site_urls = self.resolve_properties(report_id, properties)
        window = get_date_range(date_range, now=now)

        async with self.client_factory(access_token) as client:
            report = await self._collect(client, site_urls, window.start_date.date(), window.end_date.date())

        today = (now or datetime.now()).date()
        validation = validate_search_console_data(
            report.model_dump(), today=today, stale_threshold_days=self.settings.stale_data_threshold_days
        )
        if not validation.is_valid:
            logger.warning(f"Search Console data failed validation: {validation.issues}")
        report.validation = validation.model_dump(mode="json")

        if report_id is not None:
            try:
                self.repository.replace_report_cache(
                    report_id,
                    SEARCH_CONSOLE_CACHE_KEY,
                    report.model_dump(mode="json"),
                    get_cache_expiry(self.settings.cache_ttl_hours),
                )
            except Exception as e:
                logger.error(f"Database storage failed, returning data anyway: {e}")

        return report

    async def compare_periods(
        self,
        access_token: str,
        report_id: int | None = None,
        properties: list[str] | None = None,
        date_range: str = "last30days",
        now: datetime | None = None,
        current: SearchConsoleReport | None = None,
    ) -> dict[str, ComparisonMetrics]:
        """
        Current window against the equally long window before it.

        A report already fetched for the current window can be passed as
        ``current``; only the previous window is then queried.
        """
        site_urls = self.resolve_properties(report_id, properties)
        window = get_date_range(date_range, now=now)
        start, end = window.start_date.date(), window.end_date.date()
        previous_start, previous_end = get_previous_period(start, end)

        async with self.client_factory(access_token) as client:
            if current is None:
                current = await self._collect(client, site_urls, start, end)
            previous = await self._collect(client, site_urls, previous_start, previous_end)

        return calculate_search_console_comparisons(current.summary.model_dump(), previous.summary.model_dump())


def _metric(row: dict[str, Any], index: int) -> float:
    values = row.get("metricValues") or []
    if index >= len(values):
        return 0.0
    try:
        return float(values[index].get("value") or 0)
    except (TypeError, ValueError):
        return 0.0


def _dimension(row: dict[str, Any], index: int, default: str = "") -> str:
    values = row.get("dimensionValues") or []
    if index >= len(values):
        return default
    return values[index].get("value") or default


class AnalyticsReportService:
    """Runs the GA4 reports behind a client report's traffic section."""

    def __init__(
        self,
        repository: Repository,
        settings: Settings | None = None,
        client_factory: Callable[[str], AnalyticsDataClient] | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.client_factory = client_factory or (
            lambda token: AnalyticsDataClient(token, settings=self.settings)
        )

    async def fetch(
        self,
        access_token: str,
        property_id: str,
        date_range: str = "last30days",
        report_id: int | None = None,
        now: datetime | None = None,
    ) -> AnalyticsReport:
        if not property_id:
            raise ServiceError("Property ID is required")

        window = get_date_range(date_range, now=now)
        date_ranges = [
            {
                "startDate": format_date_for_api(window.start_date),
                "endDate": format_date_for_api(window.end_date),
            }
        ]

        async with self.client_factory(access_token) as client:
            traffic = await client.run_report(
                property_id,
                {
                    "dateRanges": date_ranges,
                    "dimensions": [{"name": "date"}, {"name": "sessionDefaultChannelGroup"}],
                    "metrics": [
                        {"name": "sessions"},
                        {"name": "activeUsers"},
                        {"name": "newUsers"},
                        {"name": "bounceRate"},
                        {"name": "averageSessionDuration"},
                        {"name": "screenPageViews"},
                    ],
                },
            )
            pages = await client.run_report(
                property_id,
                {
                    "dateRanges": date_ranges,
                    "dimensions": [{"name": "pagePath"}],
                    "metrics": [
                        {"name": "sessions"},
                        {"name": "activeUsers"},
                        {"name": "bounceRate"},
                        {"name": "averageSessionDuration"},
                    ],
                    "orderBys": [{"metric": {"metricName": "sessions"}, "desc": True}],
                    "limit": str(TOP_PAGES_LIMIT),
                },
            )

        report = self.process(property_id, traffic, pages)
        report.date_range = DateWindow(start=date_ranges[0]["startDate"], end=date_ranges[0]["endDate"])

        if report_id is not None:
            try:
                self.repository.replace_report_cache(
                    report_id,
                    ANALYTICS_CACHE_KEY,
                    report.model_dump(mode="json"),
                    get_cache_expiry(self.settings.cache_ttl_hours),
                )
            except Exception as e:
                logger.error(f"Database storage failed, returning data anyway: {e}")

        return report

    @staticmethod
    def process(property_id: str, traffic: dict[str, Any], pages: dict[str, Any]) -> AnalyticsReport:
        """
        Summarize the two GA4 responses.

        Bounce rate is converted from a fraction to a percentage. Bounce rate
        and session duration are averaged with sessions as weights.
        """
        summary = AnalyticsSummary()
        sources: dict[str, TrafficSource] = {}
        daily: dict[str, dict[str, float]] = {}
        bounce_rates = []
        durations = []

        for row in traffic.get("rows") or []:
            sessions = int(_metric(row, 0))
            users = int(_metric(row, 1))
            new_users = int(_metric(row, 2))
            bounce_rate = _metric(row, 3) * 100
            duration = _metric(row, 4)
            pageviews = int(_metric(row, 5))

            summary.sessions += sessions
            summary.users += users
            summary.new_users += new_users
            summary.pageviews += pageviews
            bounce_rates.append((bounce_rate, sessions))
            durations.append((duration, sessions))

            channel = _dimension(row, 1, "Unknown")
            source = sources.setdefault(channel, TrafficSource(source=channel))
            source.users += users
            source.sessions += sessions

            day = daily.setdefault(
                _dimension(row, 0),
                {"sessions": 0, "users": 0, "pageviews": 0, "new_users": 0},
            )
            day["sessions"] += sessions
            day["users"] += users
            day["pageviews"] += pageviews
            day["new_users"] += new_users

        summary.bounce_rate = calculate_weighted_average(bounce_rates)
        summary.avg_session_duration = calculate_weighted_average(durations)

        for source in sources.values():
            source.percentage = source.sessions / summary.sessions * 100 if summary.sessions else 0

        top_pages = [
            TopPage(
                page=_dimension(row, 0),
                sessions=int(_metric(row, 0)),
                users=int(_metric(row, 1)),
                bounce_rate=_metric(row, 2) * 100,
                avg_session_duration=_metric(row, 3),
            )
            for row in pages.get("rows") or []
        ]

        return AnalyticsReport(
            property_id=format_property_id(property_id),
            summary=summary,
            traffic_sources=sorted(sources.values(), key=lambda s: s.sessions, reverse=True),
            top_pages=top_pages,
            daily_data=[{"date": day, **values} for day, values in sorted(daily.items())],
        )


# Comparison name -> window it compares the current week against
COMPARISON_WINDOWS = {
    "week_over_week": "previous_week",
    "month_over_month": "previous_month",
    "year_over_year": "previous_year",
}
TOP_ROWS_LIMIT = 10
BREAKDOWN_LIMIT = 1000

DAILY_ANALYTICS_METRICS = [
    "sessions",
    "totalUsers",
    "newUsers",
    "screenPageViews",
    "bounceRate",
    "averageSessionDuration",
    "engagedSessions",
    "conversions",
    "eventCount",
]
BREAKDOWN_METRICS = ["sessions", "totalUsers", "engagementRate", "bounceRate", "conversions"]


def _parse_ga4_date(raw: str) -> date | None:
    try:
        return datetime.strptime(raw, "%Y%m%d").date()
    except ValueError:
        return None


def _top_rows(rows: list[dict[str, Any]], key: str) -> list[dict[str, Any]]:
    items = []
    for row in rows:
        keys = row.get("keys") or []
        if not keys:
            continue
        clicks = row.get("clicks") or 0
        impressions = row.get("impressions") or 0
        items.append(
            {
                key: keys[0],
                "clicks": clicks,
                "impressions": impressions,
                "ctr": calculate_ctr(clicks, impressions),
                "position": row.get("position") or 0,
            }
        )
    return _by_clicks(items, TOP_ROWS_LIMIT)


def _daily_analytics_rows(response: dict[str, Any]) -> list[dict[str, Any]]:
    rows = []
    for row in response.get("rows") or []:
        day = _parse_ga4_date(_dimension(row, 0))
        if day is None:
            continue
        rows.append(
            {
                "date": day,
                "sessions": int(_metric(row, 0)),
                "users": int(_metric(row, 1)),
                "new_users": int(_metric(row, 2)),
                "pageviews": int(_metric(row, 3)),
                "bounce_rate": _metric(row, 4) * 100,
                "avg_session_duration": _metric(row, 5),
                "engaged_sessions": int(_metric(row, 6)),
                "conversions": _metric(row, 7),
                "events": int(_metric(row, 8)),
            }
        )
    return rows


def _analytics_totals(daily: list[dict[str, Any]], start: date, end: date) -> AnalyticsPeriodTotals:
    totals = aggregate_metrics_for_period(daily, start, end, "analytics")
    in_window = [row for row in daily if start <= row["date"] <= end]
    engaged = sum(row["engaged_sessions"] for row in in_window)
    return AnalyticsPeriodTotals(
        **totals,
        engaged_sessions=engaged,
        engagement_rate=calculate_engagement_rate(engaged, totals["sessions"]) * 100,
        conversions=sum(row["conversions"] for row in in_window),
        events=sum(row["events"] for row in in_window),
    )


def _analytics_trends(current: AnalyticsPeriodTotals, previous: AnalyticsPeriodTotals) -> dict[str, ComparisonMetrics]:
    current_values = current.model_dump()
    previous_values = previous.model_dump()
    trends = calculate_analytics_comparisons(current_values, previous_values)
    for name in ("engagement_rate", "conversions"):
        trends[name] = calculate_comparison(current_values[name], previous_values[name])
    return trends


class ComprehensiveMetricsService:
    """
    Week-over-week, month-over-month and year-over-year metrics for a report.

    Daily rows are fetched once per source and aggregated per window with
    ``aggregate_metrics_for_period``, so every window uses the same CTR,
    position and rate weighting as the rest of the reports.
    """

    def __init__(
        self,
        repository: Repository,
        settings: Settings | None = None,
        search_console_factory: Callable[[str], SearchConsoleClient] | None = None,
        analytics_factory: Callable[[str], AnalyticsDataClient] | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.search_console_factory = search_console_factory or (
            lambda token: SearchConsoleClient(token, settings=self.settings)
        )
        self.analytics_factory = analytics_factory or (
            lambda token: AnalyticsDataClient(token, settings=self.settings)
        )

    async def fetch(
        self,
        access_token: str,
        report_id: int,
        now: datetime | None = None,
    ) -> ComprehensiveMetrics:
        """
        Collect and cache the comparison metrics of a report's properties.

        A failing source is logged and left out of the result.

        Raises:
            ResourceNotFoundError: The report does not exist
        """
        report = self.repository.get_client_report(report_id)
        if report is None:
            raise ResourceNotFoundError(f"Report {report_id} not found")

        now = now or datetime.utcnow()
        windows = get_comparison_windows(now.date())
        current_start, current_end = windows["current"]
        metrics = ComprehensiveMetrics(
            date_range=DateWindow(start=format_date_for_api(current_start), end=format_date_for_api(current_end)),
            fetched_at=now,
        )

        site_url = report.search_console_property_id
        if site_url:
            try:
                async with self.search_console_factory(access_token) as client:
                    metrics.search_console[site_url] = await self._search_console_periods(client, site_url, windows)
            except Exception as e:
                logger.error(f"Search Console comparison fetch failed for {site_url}: {e}")

        property_id = report.ga4_property_id
        if property_id:
            try:
                async with self.analytics_factory(access_token) as client:
                    metrics.analytics[property_id] = await self._analytics_periods(client, property_id, windows)
            except Exception as e:
                logger.error(f"GA4 comparison fetch failed for {property_id}: {e}")

        metrics.comparisons = self.merge_trends(metrics)

        try:
            self.repository.replace_report_cache(
                report_id,
                COMPREHENSIVE_CACHE_KEY,
                metrics.model_dump(mode="json"),
                get_cache_expiry(self.settings.cache_ttl_hours),
            )
        except Exception as e:
            logger.error(f"Database storage failed, returning data anyway: {e}")

        return metrics

    async def _search_console_periods(
        self,
        client: SearchConsoleClient,
        site_url: str,
        windows: dict[str, tuple[date, date]],
    ) -> SearchConsolePeriods:
        current_start, current_end = windows["current"]
        year_start, year_end = windows["previous_year"]

        daily = await client.query(
            site_url, windows["previous_month"][0], current_end, dimensions=["date"], row_limit=BY_DATE_LIMIT
        )
        daily += await client.query(site_url, year_start, year_end, dimensions=["date"], row_limit=BY_DATE_LIMIT)
        queries = await client.query(
            site_url, current_start, current_end, dimensions=["query"], row_limit=TOP_ROWS_LIMIT
        )
        pages = await client.query(site_url, current_start, current_end, dimensions=["page"], row_limit=TOP_ROWS_LIMIT)

        totals = {
            name: SearchConsoleSummary(**aggregate_metrics_for_period(daily, start, end, "search_console"))
            for name, (start, end) in windows.items()
        }
        trends = {
            comparison: calculate_search_console_comparisons(
                totals["current"].model_dump(), totals[previous].model_dump()
            )
            for comparison, previous in COMPARISON_WINDOWS.items()
        }
        return SearchConsolePeriods(
            property=site_url,
            **totals,
            top_queries=_top_rows(queries, "query"),
            top_pages=_top_rows(pages, "page"),
            trends=trends,
        )

    async def _analytics_periods(
        self,
        client: AnalyticsDataClient,
        property_id: str,
        windows: dict[str, tuple[date, date]],
    ) -> AnalyticsPeriods:
        current_start, current_end = windows["current"]
        year_start, year_end = windows["previous_year"]
        daily_metrics = [{"name": name} for name in DAILY_ANALYTICS_METRICS]

        responses = []
        for start, end in ((windows["previous_month"][0], current_end), (year_start, year_end)):
            responses.append(
                await client.run_report(
                    property_id,
                    {
                        "dateRanges": [{"startDate": format_date_for_api(start), "endDate": format_date_for_api(end)}],
                        "dimensions": [{"name": "date"}],
                        "metrics": daily_metrics,
                        "limit": str(BY_DATE_LIMIT),
                    },
                )
            )
        breakdown = await client.run_report(
            property_id,
            {
                "dateRanges": [
                    {"startDate": format_date_for_api(current_start), "endDate": format_date_for_api(current_end)}
                ],
                "dimensions": [{"name": "sessionDefaultChannelGroup"}, {"name": "landingPage"}],
                "metrics": [{"name": name} for name in BREAKDOWN_METRICS],
                "orderBys": [{"metric": {"metricName": "sessions"}, "desc": True}],
                "limit": str(BREAKDOWN_LIMIT),
            },
        )

        daily = [row for response in responses for row in _daily_analytics_rows(response)]
        totals = {name: _analytics_totals(daily, start, end) for name, (start, end) in windows.items()}
        channels, pages = self.process_breakdown(breakdown)

        return AnalyticsPeriods(
            property_id=format_property_id(property_id),
            **totals,
            by_channel=channels,
            top_landing_pages=pages,
            trends={
                comparison: _analytics_trends(totals["current"], totals[previous])
                for comparison, previous in COMPARISON_WINDOWS.items()
            },
        )

    @staticmethod
    def process_breakdown(response: dict[str, Any]) -> tuple[list[ChannelMetrics], list[LandingPage]]:
        """
        Channel and landing-page totals from a channel x landing page report.

        ``(not set)`` channels are dropped. Engagement and bounce rates are
        converted to percentages and weighted by sessions.
        """
        channels: dict[str, ChannelMetrics] = {}
        pages: dict[str, LandingPage] = {}
        engagement: dict[str, list[tuple[float, int]]] = {}
        bounce: dict[str, list[tuple[float, int]]] = {}

        for row in response.get("rows") or []:
            sessions = int(_metric(row, 0))
            users = int(_metric(row, 1))
            conversions = _metric(row, 4)

            channel = _dimension(row, 0)
            if channel and channel != "(not set)":
                entry = channels.setdefault(channel, ChannelMetrics(channel=channel))
                entry.sessions += sessions
                entry.users += users
                entry.conversions += conversions
                engagement.setdefault(channel, []).append((_metric(row, 2) * 100, sessions))

            page = _dimension(row, 1)
            if page:
                landing = pages.setdefault(page, LandingPage(page=page))
                landing.sessions += sessions
                landing.users += users
                landing.conversions += conversions
                bounce.setdefault(page, []).append((_metric(row, 3) * 100, sessions))

        for name, entry in channels.items():
            entry.engagement_rate = calculate_weighted_average(engagement[name])
        for name, landing in pages.items():
            landing.bounce_rate = calculate_weighted_average(bounce[name])

        return (
            sorted(channels.values(), key=lambda c: c.sessions, reverse=True),
            sorted(pages.values(), key=lambda p: p.sessions, reverse=True)[:TOP_ROWS_LIMIT],
        )

    @staticmethod
    def merge_trends(metrics: ComprehensiveMetrics) -> dict[str, PeriodTrends]:
        """Regroup per-property trends by comparison, then by source."""
        merged: dict[str, PeriodTrends] = {comparison: {} for comparison in COMPARISON_WINDOWS}
        sources = (("search_console", metrics.search_console), ("analytics", metrics.analytics))
        for source, by_property in sources:
            for periods in by_property.values():
                for comparison, trends in periods.trends.items():
                    merged[comparison][source] = trends
        return merged
