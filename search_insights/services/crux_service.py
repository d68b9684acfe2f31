"""Chrome UX Report field data backed by a time-to-live cache in ``cwv_measurements``."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlsplit

from search_insights.calculators.web_vitals import calculate_grade
from search_insights.clients.crux import CrUXClient
from search_insights.config import Settings, get_settings
from search_insights.db.models import CWVMeasurement
from search_insights.db.repository import Repository
from search_insights.models.performance import (
    CollectionPeriod,
    CoreWebVitals,
    FieldMetrics,
    FormFactor,
)

logger = logging.getLogger(__name__)


def get_origin(url: str) -> str:
    """``scheme://host[:port]`` of a URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _from_row(row: CWVMeasurement) -> CoreWebVitals:
    metrics = FieldMetrics(
        lcp=row.p75_lcp_ms or 0,
        inp=row.p75_inp_ms or 0,
        cls=row.p75_cls or 0,
        fcp=row.p75_fcp_ms,
        ttfb=row.p75_ttfb_ms,
    )
    return CoreWebVitals(
        url=row.url,
        origin=row.origin,
        form_factor=FormFactor(row.form_factor),
        metrics=metrics,
        grade=row.grade or calculate_grade(metrics.lcp, metrics.inp, metrics.cls),
        collection_period=CollectionPeriod(start=row.window_start or "", end=row.window_end or ""),
        timestamp=row.collected_at,
        from_cache=True,
    )


class CrUXService:
    """Real-user Core Web Vitals for mobile and desktop, cached per URL and form factor."""

    def __init__(
        self,
        repository: Repository,
        client: CrUXClient | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.client = client or CrUXClient(settings=self.settings)
        self.ttl = timedelta(hours=self.settings.cache_ttl_hours)

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "CrUXService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def get_core_web_vitals(self, url: str) -> dict[str, CoreWebVitals | None]:
        """Phone and desktop field data, fetched concurrently. A failing side is ``None``."""
        mobile, desktop = await asyncio.gather(
            self._get_for_form_factor(url, FormFactor.PHONE),
            self._get_for_form_factor(url, FormFactor.DESKTOP),
            return_exceptions=True,
        )

        def settle(result, form_factor: FormFactor) -> CoreWebVitals | None:
            if isinstance(result, BaseException):
                logger.error(f"CrUX lookup failed for {url} ({form_factor.value}): {result}")
                return None
            return result

        return {
            "mobile": settle(mobile, FormFactor.PHONE),
            "desktop": settle(desktop, FormFactor.DESKTOP),
        }

    async def _get_for_form_factor(
        self,
        url: str,
        form_factor: FormFactor,
        now: datetime | None = None,
    ) -> CoreWebVitals | None:
        now = now or datetime.utcnow()

        try:
            cached = self.repository.get_latest_cwv(url, form_factor.value)
        except Exception as e:
            logger.error(f"CrUX cache read failed for {url}: {e}")
            cached = None

        cached_vitals = _from_row(cached) if cached else None
        if cached and cached.collected_at + self.ttl > now:
            logger.info(f"Using cached CrUX data for {url} ({form_factor.value})")
            return cached_vitals

        if not self.client.api_key:
            logger.warning("CrUX API key not configured")
            return cached_vitals

        try:
            vitals = await self.client.query_record(form_factor, url=url)
            if vitals is None:
                origin = get_origin(url)
                logger.info(f"Falling back to origin-level data for {origin}")
                vitals = await self.client.query_record(form_factor, origin=origin)
        except Exception as e:
            logger.error(f"CrUX API error for {url}: {e}")
            return cached_vitals

        if vitals is None:
            return cached_vitals

        try:
            self.repository.save_cwv(url, vitals)
        except Exception as e:
            logger.error(f"CrUX cache storage failed for {url}: {e}")

        return vitals
