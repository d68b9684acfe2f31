"""Integration tests for API clients with mocked responses."""

import json
from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from pydantic import SecretStr

from search_insights.clients.analytics import AnalyticsDataClient, format_property_id
from search_insights.clients.base import (
    APIError,
    AuthenticationError,
    RateLimitError,
    run_sequentially,
)
from search_insights.clients.crux import CrUXClient
from search_insights.clients.google_oauth import GoogleOAuthClient
from search_insights.clients.pagespeed import PageSpeedClient
from search_insights.clients.perplexity import PerplexityClient
from search_insights.clients.search_console import SearchConsoleClient
from search_insights.models.performance import FormFactor, Strategy


def _transport(status_code: int, payload: dict, requests: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


class TestPageSpeedClient:
    """Integration tests for the PageSpeed Insights client."""

    @pytest.mark.asyncio
    async def test_request_parameters(self, settings, mock_psi_response):
        requests = []
        client = PageSpeedClient(settings=settings, transport=_transport(200, mock_psi_response, requests))

        async with client:
            result = await client.get_page_speed("https://acme.com/", Strategy.DESKTOP)

        params = requests[0].url.params
        assert requests[0].url.path.endswith("/runPagespeed")
        assert params["url"] == "https://acme.com/"
        assert params["key"] == "test_psi_key"
        assert params["strategy"] == "desktop"
        assert params.get_list("category") == ["performance", "accessibility", "best-practices", "seo"]
        assert result.scores.performance == 87

    @pytest.mark.asyncio
    async def test_forbidden_means_bad_key(self, settings):
        client = PageSpeedClient(
            settings=settings,
            transport=_transport(403, {"error": {"code": 403, "message": "API key not valid"}}),
        )

        with pytest.raises(AuthenticationError, match="API key invalid"):
            await client.run_pagespeed("https://acme.com/")

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, settings):
        client = PageSpeedClient(settings=settings, transport=_transport(429, {}))

        with pytest.raises(RateLimitError):
            await client.run_pagespeed("https://acme.com/")

    @pytest.mark.asyncio
    async def test_server_error_message(self, settings):
        client = PageSpeedClient(
            settings=settings,
            transport=_transport(500, {"error": {"message": "Lighthouse returned error: NO_FCP"}}),
        )

        with pytest.raises(APIError, match="NO_FCP") as exc_info:
            await client.run_pagespeed("https://acme.com/")

        assert exc_info.value.status_code == 500

    def test_extract_metrics(self, mock_psi_response):
        result = PageSpeedClient.extract_metrics(mock_psi_response)

        assert result.url == "https://acme.com/"
        assert result.scores.best_practices == 100
        assert result.metrics.cls == 0.05
        assert result.metrics.tti == 3500.0
        # Sorted by savings, passing audits left out
        assert [o.id for o in result.opportunities] == ["unused-javascript", "render-blocking-resources"]
        assert [d.id for d in result.diagnostics] == ["uses-long-cache-ttl"]

    def test_extract_metrics_empty(self):
        result = PageSpeedClient.extract_metrics({})

        assert result.scores.performance == 0
        assert result.opportunities == []


class TestCrUXClient:
    """Integration tests for the Chrome UX Report client."""

    @pytest.mark.asyncio
    async def test_query_page(self, settings, mock_crux_response):
        requests = []
        client = CrUXClient(settings=settings, transport=_transport(200, mock_crux_response, requests))

        vitals = await client.query_record(FormFactor.PHONE, url="https://acme.com/")

        body = json.loads(requests[0].content)
        assert body["url"] == "https://acme.com/"
        assert body["formFactor"] == "PHONE"
        assert "origin" not in body
        assert requests[0].url.params["key"] == "test_psi_key"
        assert vitals.metrics.lcp == 2100
        assert vitals.metrics.cls == 0.05
        assert vitals.grade == "A"
        assert vitals.collection_period.end == "2026-09-28"

    @pytest.mark.asyncio
    async def test_no_record(self, settings):
        client = CrUXClient(
            settings=settings,
            transport=_transport(404, {"error": {"code": 404, "message": "chrome ux report data not found"}}),
        )

        assert await client.query_record("DESKTOP", origin="https://acme.com") is None

    @pytest.mark.asyncio
    async def test_requires_url_or_origin(self, settings):
        client = CrUXClient(settings=settings)

        with pytest.raises(ValueError):
            await client.query_record(FormFactor.PHONE)

    def test_dedicated_key_preferred(self, settings):
        settings.google_crux_api_key = SecretStr("crux_key")

        assert CrUXClient(settings=settings).api_key == "crux_key"

    def test_parse_poor_record(self):
        record = {
            "key": {"origin": "https://slow.com"},
            "metrics": {
                "largest_contentful_paint": {"percentiles": {"p75": 5200}},
                "interaction_to_next_paint": {"percentiles": {"p75": 180}},
                "cumulative_layout_shift": {"percentiles": {"p75": "0.02"}},
            },
        }

        vitals = CrUXClient.parse_record(record, FormFactor.DESKTOP)

        assert vitals.origin == "https://slow.com"
        assert vitals.grade == "F"
        assert vitals.metrics.fcp is None
        assert vitals.collection_period.start == ""


class TestSearchConsoleClient:
    """Integration tests for the Search Console client."""

    @pytest.fixture
    def client(self, settings):
        return SearchConsoleClient("access_token", settings=settings)

    def test_bearer_header(self, client):
        assert client._get_default_headers()["Authorization"] == "Bearer access_token"

    @pytest.mark.asyncio
    async def test_query_body(self, client):
        with patch.object(client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"rows": [{"keys": ["2026-10-01"], "clicks": 3}]}

            rows = await client.query(
                "sc-domain:acme.com",
                date(2026, 10, 1),
                date(2026, 10, 7),
                dimensions=["date"],
                row_limit=50000,
            )

            endpoint = mock_post.call_args.args[0]
            body = mock_post.call_args.kwargs["json_data"]
            assert endpoint == "/sites/sc-domain%3Aacme.com/searchAnalytics/query"
            assert body == {
                "startDate": "2026-10-01",
                "endDate": "2026-10-07",
                "dimensions": ["date"],
                "rowLimit": 25000,
            }
            assert rows[0]["clicks"] == 3

    @pytest.mark.asyncio
    async def test_query_without_rows(self, client):
        with patch.object(client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"responseAggregationType": "byProperty"}

            assert await client.query("https://acme.com/", date(2026, 10, 1), date(2026, 10, 7)) == []

    @pytest.mark.asyncio
    async def test_query_all_paginates(self, client):
        pages = [
            {"rows": [{"keys": ["a"]}, {"keys": ["b"]}]},
            {"rows": [{"keys": ["c"]}, {"keys": ["d"]}]},
            {"rows": [{"keys": ["e"]}]},
        ]
        with patch.object(client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = pages

            rows = await client.query_all(
                "https://acme.com/", date(2026, 10, 1), date(2026, 10, 7), dimensions=["query"], page_size=2
            )

            assert [r["keys"][0] for r in rows] == ["a", "b", "c", "d", "e"]
            start_rows = [c.kwargs["json_data"].get("startRow", 0) for c in mock_post.call_args_list]
            assert start_rows == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_query_keyword_filter(self, client):
        with patch.object(client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"rows": [{"keys": ["https://acme.com/crm"], "clicks": 4}]}

            row = await client.query_keyword(
                "https://acme.com/", "crm software", date(2026, 10, 1), date(2026, 10, 7), dimension="page"
            )

            body = mock_post.call_args.kwargs["json_data"]
            assert body["dimensions"] == ["page"]
            assert body["rowLimit"] == 1
            assert body["dimensionFilterGroups"] == [
                {"filters": [{"dimension": "query", "operator": "equals", "expression": "crm software"}]}
            ]
            assert row["keys"] == ["https://acme.com/crm"]

    @pytest.mark.asyncio
    async def test_list_sites(self, client):
        with patch.object(client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"siteEntry": [{"siteUrl": "sc-domain:acme.com", "permissionLevel": "siteOwner"}]}

            sites = await client.list_sites()

            mock_get.assert_awaited_once_with("/sites")
            assert sites[0]["siteUrl"] == "sc-domain:acme.com"


class TestAnalyticsDataClient:
    def test_format_property_id(self):
        assert format_property_id("123") == "properties/123"
        assert format_property_id("properties/123") == "properties/123"

    @pytest.mark.asyncio
    async def test_run_report_endpoint(self, settings):
        client = AnalyticsDataClient("access_token", settings=settings)

        with patch.object(client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"rows": []}

            await client.run_report("123", {"limit": "10"})

            mock_post.assert_awaited_once_with("/properties/123:runReport", json_data={"limit": "10"})


class TestGoogleOAuthClient:
    @pytest.mark.asyncio
    async def test_refresh_form(self, settings):
        requests = []
        client = GoogleOAuthClient(
            settings=settings,
            transport=_transport(200, {"access_token": "new", "expires_in": 3599}, requests),
        )

        tokens = await client.refresh_access_token("refresh_me")

        form = httpx.QueryParams(requests[0].content.decode())
        assert requests[0].url.path == "/token"
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "refresh_me"
        assert form["client_id"] == "test_client_id"
        assert form["client_secret"] == "test_client_secret"
        assert tokens["access_token"] == "new"

    @pytest.mark.asyncio
    async def test_revoked_refresh_token(self, settings):
        client = GoogleOAuthClient(settings=settings, transport=_transport(400, {"error": "invalid_grant"}))

        with pytest.raises(APIError, match="invalid_grant"):
            await client.refresh_access_token("revoked")


class TestPerplexityClient:
    @pytest.mark.asyncio
    async def test_query_payload(self, settings, mock_perplexity_response):
        client = PerplexityClient(settings=settings)

        with patch.object(client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_perplexity_response

            response = await client.query("best crm for startups")

            endpoint = mock_post.call_args.args[0]
            payload = mock_post.call_args.kwargs["json_data"]
            assert endpoint == "/chat/completions"
            assert payload["model"] == "sonar-reasoning"
            assert payload["messages"] == [{"role": "user", "content": "best crm for startups"}]
            assert payload["return_citations"] is True
            assert response["citations"]

    def test_authorization_header(self, settings):
        client = PerplexityClient(settings=settings)

        assert client._get_default_headers()["Authorization"] == "Bearer test_perplexity_key"


class TestRunSequentially:
    @pytest.mark.asyncio
    async def test_delay_between_items_only(self):
        processed = []

        async def processor(item):
            processed.append(item)
            return item * 2

        with patch("search_insights.clients.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            results = await run_sequentially([1, 2, 3], processor, delay=1.5)

        assert results == [2, 4, 6]
        assert processed == [1, 2, 3]
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(1.5)
