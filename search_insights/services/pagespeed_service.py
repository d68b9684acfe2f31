"""PageSpeed Insights lookups backed by a time-to-live cache in ``page_audits``."""

import logging
from datetime import datetime, timedelta
from typing import Any

import httpx

from search_insights.clients.base import (
    AuthenticationError,
    RateLimitError,
    run_sequentially,
)
from search_insights.clients.pagespeed import PageSpeedClient
from search_insights.config import Settings, get_settings
from search_insights.db.models import PageAudit
from search_insights.db.repository import Repository
from search_insights.models.performance import PageSpeedOutcome, Strategy

logger = logging.getLogger(__name__)

SOURCE = "PSI"

MISSING_KEY_RECOMMENDATION = "Set GOOGLE_PSI_API_KEY or PAGESPEED_API_KEY environment variable"


def get_error_recommendation(error: Exception) -> str:
    """Suggest a fix for a failed PageSpeed request."""
    if isinstance(error, RateLimitError):
        return "You have exceeded the API quota. Wait a few minutes or upgrade your API key quota."
    if isinstance(error, AuthenticationError):
        return "Check that GOOGLE_PSI_API_KEY is correctly set in your environment variables."
    if isinstance(error, httpx.TimeoutException):
        return "The target URL took too long to analyze. Try a faster page or check the site availability."
    if isinstance(error, httpx.NetworkError):
        return "Network error. Check your internet connection and firewall settings."
    return "An unexpected error occurred. Check the logs for details."


class PageSpeedService:
    """
    Fetch Lighthouse results through a database cache.

    Fresh rows (younger than ``cache_ttl_hours``) are served without calling
    the API. When the API fails, the newest row is served regardless of age.
    Every successful fetch appends a row; nothing is evicted.
    """

    def __init__(
        self,
        repository: Repository,
        client: PageSpeedClient | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.client = client or PageSpeedClient(settings=self.settings)
        self.ttl = timedelta(hours=self.settings.cache_ttl_hours)

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "PageSpeedService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _get_cached(self, url: str, strategy: Strategy) -> PageAudit | None:
        try:
            return self.repository.get_latest_page_audit(url, strategy.value, SOURCE)
        except Exception as e:
            logger.error(f"PSI cache read failed for {url}: {e}")
            return None

    def _store(self, url: str, strategy: Strategy, raw: dict) -> None:
        try:
            self.repository.save_page_audit(url, strategy.value, raw, SOURCE)
            logger.info(f"Cached PSI data for {url} ({strategy.value})")
        except Exception as e:
            logger.error(f"PSI cache storage failed for {url}: {e}")

    def _from_row(self, url: str, strategy: Strategy, row: PageAudit, **extra) -> PageSpeedOutcome:
        return PageSpeedOutcome(
            url=url,
            strategy=strategy,
            result=PageSpeedClient.extract_metrics(row.raw_json or {}),
            from_cache=True,
            cached_at=row.collected_at,
            **extra,
        )

    async def get_pagespeed_data(
        self,
        url: str,
        strategy: Strategy | str = Strategy.MOBILE,
        now: datetime | None = None,
    ) -> PageSpeedOutcome:
        """Return cached, fresh or stale PageSpeed data for ``url``. Never raises for API failures."""
        strategy = Strategy(strategy)
        now = now or datetime.utcnow()

        cached = self._get_cached(url, strategy)
        if cached and cached.collected_at + self.ttl > now:
            logger.info(f"Using cached PSI data for {url} ({strategy.value})")
            return self._from_row(url, strategy, cached)

        if not self.client.api_key:
            outcome = PageSpeedOutcome(
                url=url,
                strategy=strategy,
                error="PageSpeed API key not configured",
                recommendation=MISSING_KEY_RECOMMENDATION,
            )
            if cached:
                outcome.result = PageSpeedClient.extract_metrics(cached.raw_json or {})
                outcome.from_cache = True
                outcome.cached_at = cached.collected_at
            return outcome

        try:
            raw = await self.client.run_pagespeed(url, strategy)
        except Exception as e:
            logger.error(f"PSI API error for {url}: {e}")
            if cached:
                return self._from_row(
                    url,
                    strategy,
                    cached,
                    warning="Using stale cache due to API error",
                    error=str(e),
                )
            return PageSpeedOutcome(
                url=url,
                strategy=strategy,
                error=str(e) or type(e).__name__,
                recommendation=get_error_recommendation(e),
            )

        self._store(url, strategy, raw)
        return PageSpeedOutcome(
            url=url,
            strategy=strategy,
            result=PageSpeedClient.extract_metrics(raw),
            from_cache=False,
            fetched_at=now,
        )

    async def batch_fetch(
        self,
        urls: list[str],
        strategy: Strategy | str = Strategy.MOBILE,
    ) -> list[PageSpeedOutcome]:
        """Fetch URLs one after another with ``psi_rate_limit_delay`` between them."""
        return await run_sequentially(
            urls,
            lambda url: self.get_pagespeed_data(url, strategy),
            delay=self.settings.psi_rate_limit_delay,
        )
