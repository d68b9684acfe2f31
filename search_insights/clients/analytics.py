"""Google Analytics 4 Data API client."""

import logging
from typing import Any

import httpx

from search_insights.clients.base import BaseAPIClient
from search_insights.config import Settings

logger = logging.getLogger(__name__)


def format_property_id(property_id: str) -> str:
    """GA4 resource name, e.g. ``properties/123456``."""
    property_id = str(property_id).strip()
    if property_id.startswith("properties/"):
        return property_id
    return f"properties/{property_id}"


class AnalyticsDataClient(BaseAPIClient):
    """
    Client for the GA4 Data API v1beta.

    API Documentation: https://developers.google.com/analytics/devguides/reporting/data/v1
    """

    BASE_URL = "https://analyticsdata.googleapis.com/v1beta"

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

    async def run_report(self, property_id: str, body: dict[str, Any]) -> dict[str, Any]:
        """Run a report and return the raw response (``dimensionHeaders``, ``rows``, ...)."""
        resource = format_property_id(property_id)
        logger.debug(f"Running GA4 report for {resource}")
        return await self.post(f"/{resource}:runReport", json_data=body)
