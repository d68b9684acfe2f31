"""Access tokens for connected Google accounts, refreshed before they expire."""

import logging
import time
from typing import Any

from search_insights.clients.google_oauth import GoogleOAuthClient
from search_insights.config import Settings, get_settings
from search_insights.db.repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


class GoogleTokenManager:
    """Hands out a usable access token for a stored Google account."""

    def __init__(
        self,
        repository: Repository,
        oauth_client: GoogleOAuthClient | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.oauth_client = oauth_client or GoogleOAuthClient(settings=self.settings)

    async def close(self) -> None:
        await self.oauth_client.close()

    async def __aenter__(self) -> "GoogleTokenManager":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def needs_refresh(self, expires_at: int | None, now: float | None = None) -> bool:
        if expires_at is None:
            return True
        now = time.time() if now is None else now
        return expires_at - now <= self.settings.token_refresh_buffer_seconds

    async def get_valid_token(self, account_id: int, now: float | None = None) -> str | None:
        """
        Access token for ``account_id``, refreshing it when it is about to expire.

        Returns:
            The token, or None when the account has no usable token
        """
        account = self.repository.get_google_account(account_id)
        if account is None or not account.access_token:
            logger.warning(f"No access token stored for Google account {account_id}")
            return None

        now = time.time() if now is None else now
        if not self.needs_refresh(account.expires_at, now):
            return account.access_token

        if not account.refresh_token:
            if account.expires_at is None:
                # Expiry was never recorded; let the API decide
                return account.access_token
            logger.warning(f"Token for Google account {account_id} expired and no refresh token is stored")
            return None

        try:
            tokens = await self.oauth_client.refresh_access_token(account.refresh_token)
        except Exception as e:
            logger.error(f"Token refresh failed for Google account {account_id}: {e}")
            return None

        access_token = tokens.get("access_token")
        if not access_token:
            logger.error(f"Token refresh for Google account {account_id} returned no access token")
            return None

        expires_at = int(now) + int(tokens.get("expires_in") or DEFAULT_EXPIRES_IN)
        self.repository.update_google_tokens(
            account_id,
            access_token=access_token,
            expires_at=expires_at,
            refresh_token=tokens.get("refresh_token"),
        )
        logger.info(f"Refreshed access token for Google account {account_id}")
        return access_token
