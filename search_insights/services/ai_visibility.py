"""AI answer-engine visibility: does Perplexity mention or cite the client?"""

import logging
from typing import Any

from search_insights.calculators.citations import (
    analyze_answer,
    calculate_visibility_scores,
    normalize_domain,
)
from search_insights.clients.base import run_sequentially
from search_insights.clients.perplexity import PerplexityClient
from search_insights.config import Settings, get_settings
from search_insights.db.repository import Repository
from search_insights.models.ai_visibility import CitationResult, CitationRunSummary
from search_insights.services.errors import NotConfiguredError, ResourceNotFoundError, ServiceError

logger = logging.getLogger(__name__)

PLATFORM = "perplexity"


class AIVisibilityService:
    """Checks a report's keywords against Perplexity and keeps a visibility profile."""

    def __init__(
        self,
        repository: Repository,
        client: PerplexityClient | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.client = client or PerplexityClient(settings=self.settings)

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "AIVisibilityService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def check_citation(self, keyword: str, brand_name: str, domain: str) -> CitationResult:
        response = await self.client.query(keyword)
        text, citations = PerplexityClient.extract_answer(response)
        return analyze_answer(keyword, text, citations, brand_name, domain)

    async def check_citations(self, client_report_id: int) -> CitationRunSummary:
        """
        Query Perplexity for the report's first active keywords and store the results.

        Raises:
            NotConfiguredError: No Perplexity API key
            ResourceNotFoundError: Unknown report
            ServiceError: The report has no active keywords or no domain
        """
        if not self.client.api_key:
            raise NotConfiguredError("Perplexity API key not configured")

        report = self.repository.get_client_report(client_report_id)
        if report is None:
            raise ResourceNotFoundError("Client report not found")

        keywords = self.repository.get_active_keywords(client_report_id, limit=self.settings.max_citation_keywords)
        if not keywords:
            raise ServiceError("No active keywords found for this client")

        domain = normalize_domain(report.search_console_property_id or report.domain or "")
        if not domain:
            raise ServiceError("No domain found for this client")

        profile = self.repository.get_or_create_ai_profile(client_report_id)
        brand_name = report.client_name

        logger.info(f"Checking citations for {len(keywords)} keywords...")

        async def check(keyword: str) -> CitationResult | None:
            try:
                return await self.check_citation(keyword, brand_name, domain)
            except Exception as e:
                logger.error(f"Citation check failed for '{keyword}': {e}")
                return None

        outcomes = await run_sequentially(
            [kw.keyword for kw in keywords],
            check,
            delay=self.settings.citation_rate_limit_delay,
        )
        results = [result for result in outcomes if result is not None]

        for result in results:
            self.repository.save_citation(profile.id, result, platform=PLATFORM)

        scores = calculate_visibility_scores(results)
        self.repository.update_ai_profile(profile.id, scores)

        return CitationRunSummary(client_report_id=client_report_id, summary=scores, details=results)

    def get_profile(self, client_report_id: int, limit: int = 20) -> dict[str, Any]:
        """Stored profile and its most recent citations."""
        profile = self.repository.get_ai_profile(client_report_id)
        if profile is None:
            raise ResourceNotFoundError("No AI visibility profile for this client")

        citations = self.repository.get_recent_citations(profile.id, limit=limit)
        return {
            "client_report_id": client_report_id,
            "overall_score": profile.overall_score,
            "sentiment_score": profile.sentiment_score,
            "share_of_voice": profile.share_of_voice,
            "citation_count": profile.citation_count,
            "last_updated": profile.last_updated,
            "citations": [
                {
                    "platform": c.platform,
                    "query": c.query,
                    "citation_position": c.citation_position,
                    "citation_context": c.citation_context,
                    "url": c.url,
                    "sentiment": c.sentiment,
                    "created_at": c.created_at,
                }
                for c in citations
            ],
        }
