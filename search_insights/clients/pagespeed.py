"""PageSpeed Insights API client."""

import logging
from typing import Any

import httpx

from search_insights.clients.base import USER_AGENT, AuthenticationError, BaseAPIClient
from search_insights.config import Settings
from search_insights.models.performance import (
    AuditItem,
    CategoryScores,
    LabMetrics,
    PageSpeedResult,
    Strategy,
)

logger = logging.getLogger(__name__)

CATEGORIES = ("performance", "accessibility", "best-practices", "seo")

LAB_AUDITS = {
    "fcp": "first-contentful-paint",
    "lcp": "largest-contentful-paint",
    "tbt": "total-blocking-time",
    "cls": "cumulative-layout-shift",
    "si": "speed-index",
    "tti": "interactive",
}

MAX_AUDIT_ITEMS = 5


class PageSpeedClient(BaseAPIClient):
    """
    Client for the PageSpeed Insights v5 API.

    API Documentation: https://developers.google.com/speed/docs/insights/v5/get-started
    """

    BASE_URL = "https://www.googleapis.com/pagespeedonline/v5"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url=self.BASE_URL, settings=settings, transport=transport)
        self.timeout = self.settings.psi_timeout_seconds
        self.api_key = api_key if api_key is not None else self.settings.psi_key

    def _get_default_headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT}

    async def run_pagespeed(self, url: str, strategy: Strategy | str = Strategy.MOBILE) -> dict[str, Any]:
        """
        Run a Lighthouse analysis for ``url``.

        Raises:
            AuthenticationError: The API key is missing or rejected (403)
            RateLimitError: Quota exceeded (429)
        """
        strategy = Strategy(strategy)
        params: list[tuple[str, str]] = [
            ("url", url),
            ("key", self.api_key),
            ("strategy", strategy.value),
        ]
        params.extend(("category", category) for category in CATEGORIES)

        logger.info(f"Fetching PSI data for {url} ({strategy.value})")
        try:
            return await self.get("/runPagespeed", params=params)
        except AuthenticationError as e:
            raise AuthenticationError(
                "API key invalid: invalid or missing PageSpeed API key",
                status_code=e.status_code,
                response_data=e.response_data,
            ) from e

    async def get_page_speed(self, url: str, strategy: Strategy | str = Strategy.MOBILE) -> PageSpeedResult:
        """Run an analysis and return the normalized result."""
        data = await self.run_pagespeed(url, strategy)
        return self.extract_metrics(data)

    @staticmethod
    def extract_metrics(data: dict[str, Any]) -> PageSpeedResult:
        """Normalize a raw PSI response into scores, lab metrics and top audits."""
        lighthouse = data.get("lighthouseResult") or {}
        categories = lighthouse.get("categories") or {}
        audits: dict[str, dict[str, Any]] = lighthouse.get("audits") or {}

        def category_score(name: str) -> int:
            score = (categories.get(name) or {}).get("score") or 0
            return round(score * 100)

        def audit_value(audit_id: str) -> float:
            return (audits.get(audit_id) or {}).get("numericValue") or 0

        opportunities = []
        diagnostics = []
        for audit_id, audit in audits.items():
            score = audit.get("score")
            details_type = (audit.get("details") or {}).get("type")
            if score is None:
                continue

            if score < 1 and details_type == "opportunity":
                opportunities.append(
                    AuditItem(
                        id=audit_id,
                        title=audit.get("title"),
                        description=audit.get("description"),
                        score=score,
                        savings_ms=audit["details"].get("overallSavingsMs") or 0,
                    )
                )
            elif score < 0.9 and details_type == "table":
                diagnostics.append(
                    AuditItem(
                        id=audit_id,
                        title=audit.get("title"),
                        description=audit.get("description"),
                        score=score,
                    )
                )

        opportunities.sort(key=lambda item: item.savings_ms or 0, reverse=True)

        return PageSpeedResult(
            url=data.get("id"),
            fetch_time=data.get("analysisUTCTimestamp"),
            scores=CategoryScores(
                performance=category_score("performance"),
                accessibility=category_score("accessibility"),
                best_practices=category_score("best-practices"),
                seo=category_score("seo"),
            ),
            metrics=LabMetrics(**{name: audit_value(audit_id) for name, audit_id in LAB_AUDITS.items()}),
            opportunities=opportunities[:MAX_AUDIT_ITEMS],
            diagnostics=diagnostics[:MAX_AUDIT_ITEMS],
            raw_data=data,
        )
