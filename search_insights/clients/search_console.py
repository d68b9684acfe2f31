"""Google Search Console (Search Analytics) API client."""

import logging
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx

from search_insights.clients.base import BaseAPIClient
from search_insights.config import Settings
from search_insights.utils.dates import format_date_for_api

logger = logging.getLogger(__name__)

# Maximum rows per Search Analytics request
MAX_ROW_LIMIT = 25000


class SearchConsoleClient(BaseAPIClient):
    """
    Client for the Search Console v3 API, authenticated with a user access token.

    API Documentation: https://developers.google.com/webmaster-tools/v1/searchanalytics/query
    """

    BASE_URL = "https://www.googleapis.com/webmasters/v3"

    def __init__(
        self,
        access_token: str,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        super().__init__(base_url=self.BASE_URL, settings=settings, transport=transport)

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _query_path(site_url: str) -> str:
        # sc-domain: properties are passed through; the whole site URL is one path segment
        return f"/sites/{quote(site_url, safe='')}/searchAnalytics/query"

    async def list_sites(self) -> list[dict[str, Any]]:
        """List properties the token can access."""
        data = await self.get("/sites")
        return data.get("siteEntry", [])

    async def query(
        self,
        site_url: str,
        start_date: date,
        end_date: date,
        dimensions: list[str] | None = None,
        row_limit: int = 1000,
        start_row: int = 0,
        filters: list[dict[str, str]] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Run a single Search Analytics query.

        Returns:
            Rows with ``keys``, ``clicks``, ``impressions``, ``ctr`` and ``position``
        """
        body: dict[str, Any] = {
            "startDate": format_date_for_api(start_date),
            "endDate": format_date_for_api(end_date),
            "dimensions": dimensions or [],
            "rowLimit": min(row_limit, MAX_ROW_LIMIT),
        }
        if start_row:
            body["startRow"] = start_row
        if filters:
            body["dimensionFilterGroups"] = [{"filters": filters}]

        data = await self.post(self._query_path(site_url), json_data=body)
        return data.get("rows", [])

    async def query_all(
        self,
        site_url: str,
        start_date: date,
        end_date: date,
        dimensions: list[str] | None = None,
        filters: list[dict[str, str]] | None = None,
        page_size: int = MAX_ROW_LIMIT,
        max_rows: int | None = None,
    ) -> list[dict[str, Any]]:
        """Follow ``startRow`` pagination until a short page is returned."""
        rows: list[dict[str, Any]] = []
        start_row = 0

        while True:
            page = await self.query(
                site_url,
                start_date,
                end_date,
                dimensions=dimensions,
                row_limit=page_size,
                start_row=start_row,
                filters=filters,
            )
            rows.extend(page)
            logger.debug(f"Fetched {len(page)} rows from {site_url} (start_row={start_row})")

            if len(page) < page_size:
                break
            if max_rows is not None and len(rows) >= max_rows:
                return rows[:max_rows]
            start_row += page_size

        return rows

    async def query_keyword(
        self,
        site_url: str,
        keyword: str,
        start_date: date,
        end_date: date,
        dimension: str = "query",
    ) -> dict[str, Any] | None:
        """First row for an exact-match query filter, grouped by ``dimension``."""
        rows = await self.query(
            site_url,
            start_date,
            end_date,
            dimensions=[dimension],
            row_limit=1,
            filters=[{"dimension": "query", "operator": "equals", "expression": keyword}],
        )
        return rows[0] if rows else None
