"""Chrome UX Report API client."""

import logging
from datetime import datetime
from typing import Any

import httpx

from search_insights.calculators.web_vitals import calculate_grade
from search_insights.clients.base import USER_AGENT, BaseAPIClient, NotFoundError
from search_insights.config import Settings
from search_insights.models.performance import (
    CollectionPeriod,
    CoreWebVitals,
    FieldMetrics,
    FormFactor,
)

logger = logging.getLogger(__name__)

CRUX_METRICS = [
    "largest_contentful_paint",
    "interaction_to_next_paint",
    "cumulative_layout_shift",
    "first_contentful_paint",
    "time_to_first_byte",
]


def _format_crux_date(value: dict[str, int]) -> str:
    return f"{value['year']}-{value['month']:02d}-{value['day']:02d}"


class CrUXClient(BaseAPIClient):
    """
    Client for the Chrome UX Report API (real-user field data).

    API Documentation: https://developer.chrome.com/docs/crux/api
    """

    BASE_URL = "https://chromeuxreport.googleapis.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url=self.BASE_URL, settings=settings, transport=transport)
        self.timeout = self.settings.crux_timeout_seconds
        self.api_key = api_key if api_key is not None else self.settings.crux_key

    def _get_default_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "User-Agent": USER_AGENT}

    async def query_record(
        self,
        form_factor: FormFactor | str,
        url: str | None = None,
        origin: str | None = None,
    ) -> CoreWebVitals | None:
        """
        Query page-level (``url``) or origin-level (``origin``) field data.

        Returns:
            CoreWebVitals, or None when CrUX has no record for the key
        """
        if not url and not origin:
            raise ValueError("Either url or origin is required")

        form_factor = FormFactor(form_factor)
        body: dict[str, Any] = {
            "formFactor": form_factor.value,
            "metrics": CRUX_METRICS,
        }
        if url:
            body["url"] = url
        else:
            body["origin"] = origin

        logger.info(f"Querying CrUX for {url or origin} ({form_factor.value})")
        try:
            data = await self.post("/records:queryRecord", json_data=body, params={"key": self.api_key})
        except NotFoundError:
            logger.info(f"No CrUX data available for {url or origin}")
            return None

        record = data.get("record")
        if not record:
            return None

        return self.parse_record(record, form_factor)

    @staticmethod
    def parse_record(record: dict[str, Any], form_factor: FormFactor) -> CoreWebVitals:
        """Convert a CrUX record into p75 metrics with a letter grade."""
        metrics = record.get("metrics") or {}

        def p75(name: str) -> float | None:
            value = ((metrics.get(name) or {}).get("percentiles") or {}).get("p75")
            # CLS percentiles are returned as strings
            return float(value) if value is not None else None

        field = FieldMetrics(
            lcp=p75("largest_contentful_paint") or 0,
            inp=p75("interaction_to_next_paint") or 0,
            cls=p75("cumulative_layout_shift") or 0,
            fcp=p75("first_contentful_paint"),
            ttfb=p75("time_to_first_byte"),
        )

        period = record.get("collectionPeriod") or {}
        key = record.get("key") or {}

        return CoreWebVitals(
            url=key.get("url"),
            origin=key.get("origin"),
            form_factor=form_factor,
            metrics=field,
            grade=calculate_grade(field.lcp, field.inp, field.cls),
            collection_period=CollectionPeriod(
                start=_format_crux_date(period["firstDate"]) if period.get("firstDate") else "",
                end=_format_crux_date(period["lastDate"]) if period.get("lastDate") else "",
            ),
            timestamp=datetime.utcnow(),
        )
