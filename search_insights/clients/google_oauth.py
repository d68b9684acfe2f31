"""Google OAuth token endpoint client (refresh and introspection)."""

import logging
from typing import Any

import httpx

from search_insights.clients.base import BaseAPIClient
from search_insights.config import Settings

logger = logging.getLogger(__name__)


class GoogleOAuthClient(BaseAPIClient):
    """Refreshes access tokens using the application's OAuth client."""

    BASE_URL = "https://oauth2.googleapis.com"

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url=self.BASE_URL, settings=settings, transport=transport)

    def _get_default_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/x-www-form-urlencoded"}

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        """
        Exchange a refresh token for a new access token.

        Returns:
            Token response with ``access_token`` and ``expires_in``
        """
        return await self.post(
            "/token",
            form_data={
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret.get_secret_value(),
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

    async def get_token_info(self, access_token: str) -> dict[str, Any]:
        """Scopes, audience and remaining lifetime of an access token."""
        return await self.get("/tokeninfo", params={"access_token": access_token})
