"""Perplexity API client for AI citation tracking."""

import logging
from typing import Any

import httpx

from search_insights.clients.base import BaseAPIClient
from search_insights.config import Settings

logger = logging.getLogger(__name__)


class PerplexityClient(BaseAPIClient):
    """
    Client for Perplexity chat completions with citations.

    API Documentation: https://docs.perplexity.ai/api-reference/chat-completions
    """

    BASE_URL = "https://api.perplexity.ai"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url=self.BASE_URL, settings=settings, timeout=60.0, transport=transport)
        self.api_key = api_key if api_key is not None else self.settings.perplexity_api_key.get_secret_value()
        self.model = self.settings.perplexity_model

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def query(self, prompt: str) -> dict[str, Any]:
        """Ask Perplexity a question and return the raw completion."""
        logger.debug(f"Querying Perplexity ({self.model}): {prompt}")
        return await self.post(
            "/chat/completions",
            json_data={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "return_citations": True,
                "return_images": False,
                "temperature": 0.2,
                "top_p": 0.9,
            },
        )

    @staticmethod
    def extract_answer(response: dict[str, Any]) -> tuple[str, list[str]]:
        """Answer text and citation URLs of a completion."""
        choices = response.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        return text, list(response.get("citations") or [])
