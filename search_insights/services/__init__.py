"""Services combining the external APIs with the database caches."""

from search_insights.services.ai_visibility import AIVisibilityService
from search_insights.services.crux_service import CrUXService
from search_insights.services.errors import NotConfiguredError, ResourceNotFoundError, ServiceError
from search_insights.services.keyword_tracker import KeywordTracker
from search_insights.services.pagespeed_service import PageSpeedService
from search_insights.services.report_data import AnalyticsReportService, SearchConsoleReportService
from search_insights.services.token_manager import GoogleTokenManager

__all__ = [
    "ServiceError",
    "NotConfiguredError",
    "ResourceNotFoundError",
    "PageSpeedService",
    "CrUXService",
    "GoogleTokenManager",
    "SearchConsoleReportService",
    "AnalyticsReportService",
    "KeywordTracker",
    "AIVisibilityService",
]
