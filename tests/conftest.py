"""Pytest configuration and fixtures."""

import pytest

from search_insights.config import Settings
from search_insights.db.repository import Repository


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Create test settings."""
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path}/test.db",
        google_client_id="test_client_id",
        google_client_secret="test_client_secret",
        google_psi_api_key="test_psi_key",
        perplexity_api_key="test_perplexity_key",
        cron_secret="test_cron_secret",
        psi_rate_limit_delay=0,
        client_rate_limit_delay=0,
        keyword_rate_limit_delay=0,
        citation_rate_limit_delay=0,
    )


@pytest.fixture
def unconfigured_settings(tmp_path) -> Settings:
    """Settings without any API keys."""
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path}/test.db",
        google_psi_api_key="",
        google_crux_api_key="",
        perplexity_api_key="",
        cron_secret="",
        psi_rate_limit_delay=0,
        client_rate_limit_delay=0,
        keyword_rate_limit_delay=0,
        citation_rate_limit_delay=0,
    )


@pytest.fixture
def repository(settings) -> Repository:
    """Repository on a fresh SQLite file."""
    repo = Repository(settings=settings)
    repo.create_tables()
    return repo


@pytest.fixture
def google_account(repository):
    """A connected Google account with a long-lived token."""
    return repository.create_google_account(
        email="owner@example.com",
        access_token="stored_access_token",
        refresh_token="stored_refresh_token",
        expires_at=4_000_000_000,
    )


@pytest.fixture
def client_report(repository, google_account):
    """A client report linked to the Google account."""
    return repository.create_client_report(
        client_name="Acme",
        domain="acme.com",
        search_console_property_id="sc-domain:acme.com",
        ga4_property_id="123456",
        google_account_id=google_account.id,
    )


@pytest.fixture
def mock_psi_response() -> dict:
    """Trimmed PageSpeed Insights v5 response."""
    return {
        "id": "https://acme.com/",
        "analysisUTCTimestamp": "2026-10-01T12:00:00.000Z",
        "lighthouseResult": {
            "categories": {
                "performance": {"score": 0.87},
                "accessibility": {"score": 0.95},
                "best-practices": {"score": 1.0},
                "seo": {"score": 0.9},
            },
            "audits": {
                "first-contentful-paint": {"score": 0.9, "numericValue": 1200.5},
                "largest-contentful-paint": {"score": 0.8, "numericValue": 2400.0},
                "total-blocking-time": {"score": 0.7, "numericValue": 180.0},
                "cumulative-layout-shift": {"score": 1, "numericValue": 0.05},
                "speed-index": {"score": 0.9, "numericValue": 2100.0},
                "interactive": {"score": 0.8, "numericValue": 3500.0},
                "render-blocking-resources": {
                    "score": 0.5,
                    "title": "Eliminate render-blocking resources",
                    "details": {"type": "opportunity", "overallSavingsMs": 450},
                },
                "unused-javascript": {
                    "score": 0.3,
                    "title": "Reduce unused JavaScript",
                    "details": {"type": "opportunity", "overallSavingsMs": 900},
                },
                "uses-long-cache-ttl": {
                    "score": 0.4,
                    "title": "Serve static assets with an efficient cache policy",
                    "details": {"type": "table"},
                },
                "viewport": {"score": 1, "title": "Has a viewport", "details": {"type": "opportunity"}},
            },
        },
    }


@pytest.fixture
def mock_crux_response() -> dict:
    """CrUX queryRecord response for a page with good vitals."""
    return {
        "record": {
            "key": {"formFactor": "PHONE", "url": "https://acme.com/"},
            "metrics": {
                "largest_contentful_paint": {"percentiles": {"p75": 2100}},
                "interaction_to_next_paint": {"percentiles": {"p75": 150}},
                "cumulative_layout_shift": {"percentiles": {"p75": "0.05"}},
                "first_contentful_paint": {"percentiles": {"p75": 1300}},
                "time_to_first_byte": {"percentiles": {"p75": 600}},
            },
            "collectionPeriod": {
                "firstDate": {"year": 2026, "month": 9, "day": 1},
                "lastDate": {"year": 2026, "month": 9, "day": 28},
            },
        }
    }


@pytest.fixture
def mock_ga4_traffic_response() -> dict:
    """GA4 runReport response grouped by date and channel."""

    def row(day, channel, sessions, users, new_users, bounce, duration, views):
        return {
            "dimensionValues": [{"value": day}, {"value": channel}],
            "metricValues": [
                {"value": str(sessions)},
                {"value": str(users)},
                {"value": str(new_users)},
                {"value": str(bounce)},
                {"value": str(duration)},
                {"value": str(views)},
            ],
        }

    return {
        "rows": [
            row("20261001", "Organic Search", 100, 80, 40, 0.4, 120, 300),
            row("20261001", "Direct", 50, 45, 20, 0.6, 60, 100),
            row("20261002", "Organic Search", 50, 40, 10, 0.4, 90, 150),
        ]
    }


@pytest.fixture
def mock_ga4_pages_response() -> dict:
    """GA4 runReport response grouped by page path."""
    return {
        "rows": [
            {
                "dimensionValues": [{"value": "/"}],
                "metricValues": [{"value": "120"}, {"value": "100"}, {"value": "0.35"}, {"value": "95.5"}],
            },
            {
                "dimensionValues": [{"value": "/pricing"}],
                "metricValues": [{"value": "40"}, {"value": "35"}, {"value": "0.5"}, {"value": "60"}],
            },
        ]
    }


@pytest.fixture
def mock_perplexity_response() -> dict:
    """Perplexity completion mentioning and citing the brand."""
    return {
        "id": "chat-1",
        "model": "sonar-reasoning",
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": (
                        "There are several options. Acme is a trusted and reliable choice for most teams. "
                        "Other vendors exist as well."
                    ),
                }
            }
        ],
        "citations": [
            "https://example.org/review",
            "https://www.acme.com/product",
        ],
    }
