"""Data models for reports, performance audits and keyword tracking."""

from search_insights.models.ai_visibility import CitationResult, CitationRunSummary, VisibilityScores
from search_insights.models.keyword import (
    AlertType,
    KeywordPerformanceRecord,
    KeywordRanking,
    KeywordUpdateSummary,
    TrackingStatus,
)
from search_insights.models.performance import (
    CoreWebVitals,
    FormFactor,
    PageSpeedOutcome,
    PageSpeedResult,
    Strategy,
)
from search_insights.models.reports import AnalyticsReport, SearchConsoleReport

__all__ = [
    "AlertType",
    "AnalyticsReport",
    "CitationResult",
    "CitationRunSummary",
    "CoreWebVitals",
    "FormFactor",
    "KeywordPerformanceRecord",
    "KeywordRanking",
    "KeywordUpdateSummary",
    "PageSpeedOutcome",
    "PageSpeedResult",
    "SearchConsoleReport",
    "Strategy",
    "TrackingStatus",
    "VisibilityScores",
]
