"""API clients for Google measurement APIs and Perplexity."""

from search_insights.clients.analytics import AnalyticsDataClient
from search_insights.clients.base import (
    APIError,
    AuthenticationError,
    BaseAPIClient,
    NotFoundError,
    RateLimitError,
)
from search_insights.clients.crux import CrUXClient
from search_insights.clients.google_oauth import GoogleOAuthClient
from search_insights.clients.pagespeed import PageSpeedClient
from search_insights.clients.perplexity import PerplexityClient
from search_insights.clients.search_console import SearchConsoleClient

__all__ = [
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
    "BaseAPIClient",
    "PageSpeedClient",
    "CrUXClient",
    "SearchConsoleClient",
    "AnalyticsDataClient",
    "GoogleOAuthClient",
    "PerplexityClient",
]
