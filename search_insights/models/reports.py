"""Pydantic models for Search Console and GA4 report payloads."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from search_insights.calculators.comparisons import ComparisonMetrics


class SearchConsoleSummary(BaseModel):
    """Clicks, impressions, CTR (fraction) and average position."""

    clicks: float = 0
    impressions: float = 0
    ctr: float = 0
    position: float = 0


class PropertyMetrics(BaseModel):
    property: str
    metrics: SearchConsoleSummary


class DateWindow(BaseModel):
    start: str
    end: str


class SearchConsoleReport(BaseModel):
    """Combined Search Console data for one or more properties."""

    summary: SearchConsoleSummary = Field(default_factory=SearchConsoleSummary)
    by_property: list[PropertyMetrics] = Field(default_factory=list)
    by_date: list[dict[str, Any]] = Field(default_factory=list)
    top_pages: list[dict[str, Any]] = Field(default_factory=list)
    top_queries: list[dict[str, Any]] = Field(default_factory=list)
    date_range: DateWindow | None = None
    validation: dict[str, Any] | None = None


class AnalyticsSummary(BaseModel):
    """GA4 summary; bounce rate is a percentage (0-100)."""

    users: int = 0
    sessions: int = 0
    pageviews: int = 0
    bounce_rate: float = 0
    avg_session_duration: float = 0
    new_users: int = 0


class TrafficSource(BaseModel):
    source: str
    users: int = 0
    sessions: int = 0
    percentage: float = 0


class TopPage(BaseModel):
    page: str
    sessions: int = 0
    users: int = 0
    bounce_rate: float = 0
    avg_session_duration: float = 0


class AnalyticsReport(BaseModel):
    """Processed GA4 report."""

    property_id: str
    summary: AnalyticsSummary = Field(default_factory=AnalyticsSummary)
    traffic_sources: list[TrafficSource] = Field(default_factory=list)
    top_pages: list[TopPage] = Field(default_factory=list)
    daily_data: list[dict[str, Any]] = Field(default_factory=list)
    date_range: DateWindow | None = None


# Period-over-period views. Trends are keyed by comparison
# (week_over_week, month_over_month, year_over_year) then metric.
PeriodTrends = dict[str, dict[str, ComparisonMetrics]]


class SearchConsolePeriods(BaseModel):
    """One Search Console property over the current and comparison windows."""

    property: str
    current: SearchConsoleSummary = Field(default_factory=SearchConsoleSummary)
    previous_week: SearchConsoleSummary = Field(default_factory=SearchConsoleSummary)
    previous_month: SearchConsoleSummary = Field(default_factory=SearchConsoleSummary)
    previous_year: SearchConsoleSummary = Field(default_factory=SearchConsoleSummary)
    top_queries: list[dict[str, Any]] = Field(default_factory=list)
    top_pages: list[dict[str, Any]] = Field(default_factory=list)
    trends: PeriodTrends = Field(default_factory=dict)


class AnalyticsPeriodTotals(BaseModel):
    """GA4 totals for one window; bounce and engagement rates are percentages."""

    users: int = 0
    sessions: int = 0
    pageviews: int = 0
    new_users: int = 0
    engaged_sessions: int = 0
    bounce_rate: float = 0
    engagement_rate: float = 0
    avg_session_duration: float = 0
    conversions: float = 0
    events: int = 0


class ChannelMetrics(BaseModel):
    channel: str
    sessions: int = 0
    users: int = 0
    engagement_rate: float = 0
    conversions: float = 0


class LandingPage(BaseModel):
    page: str
    sessions: int = 0
    users: int = 0
    bounce_rate: float = 0
    conversions: float = 0


class AnalyticsPeriods(BaseModel):
    """One GA4 property over the current and comparison windows."""

    property_id: str
    current: AnalyticsPeriodTotals = Field(default_factory=AnalyticsPeriodTotals)
    previous_week: AnalyticsPeriodTotals = Field(default_factory=AnalyticsPeriodTotals)
    previous_month: AnalyticsPeriodTotals = Field(default_factory=AnalyticsPeriodTotals)
    previous_year: AnalyticsPeriodTotals = Field(default_factory=AnalyticsPeriodTotals)
    by_channel: list[ChannelMetrics] = Field(default_factory=list)
    top_landing_pages: list[LandingPage] = Field(default_factory=list)
    trends: PeriodTrends = Field(default_factory=dict)


class ComprehensiveMetrics(BaseModel):
    """
    Search Console and GA4 metrics with week-, month- and year-over-year trends.

    ``comparisons`` regroups the per-property trends as
    ``{comparison: {"search_console" | "analytics": {metric: ...}}}``.
    """

    search_console: dict[str, SearchConsolePeriods] = Field(default_factory=dict)
    analytics: dict[str, AnalyticsPeriods] = Field(default_factory=dict)
    comparisons: dict[str, PeriodTrends] = Field(default_factory=dict)
    date_range: DateWindow | None = None
    fetched_at: datetime
