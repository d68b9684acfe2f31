"""Base API client with common functionality."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from search_insights.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

USER_AGENT = "SearchInsightsHub/1.0"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class RateLimitError(APIError):
    """Raised when rate limit is exceeded."""

    pass


class AuthenticationError(APIError):
    """Raised when authentication fails or the API key is rejected."""

    pass


class NotFoundError(APIError):
    """Raised when the API has no record for the request."""

    pass


def _error_message(data: dict[str, Any], default: str) -> str:
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"{default}: {error['message']}"
    if isinstance(error, str):
        return f"{default}: {error}"
    return default


class BaseAPIClient(ABC):
    """Abstract base class for API clients."""

    def __init__(
        self,
        base_url: str,
        settings: Settings | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.settings = settings or get_settings()
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=min(10.0, self.timeout)),
                headers=self._get_default_headers(),
                transport=self._transport,
            )
        return self._client

    @abstractmethod
    def _get_default_headers(self) -> dict[str, str]:
        """Get default headers for requests."""
        pass

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict | Sequence[tuple[str, Any]] | None = None,
        json_data: dict | list | None = None,
        form_data: dict | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request with retry logic."""
        logger.debug(f"Making {method} request to {self.base_url}/{endpoint.lstrip('/')}")

        response = await self.client.request(
            method=method,
            url=endpoint,
            params=params,
            json=json_data,
            data=form_data,
            headers=headers,
        )

        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Handle API response and raise appropriate errors."""
        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        if response.status_code in (401, 403):
            raise AuthenticationError(
                _error_message(data, "Authentication failed"),
                status_code=response.status_code,
                response_data=data,
            )

        if response.status_code == 404:
            raise NotFoundError(
                _error_message(data, "Not found"),
                status_code=404,
                response_data=data,
            )

        if response.status_code == 429:
            raise RateLimitError(
                "Rate limit exceeded",
                status_code=429,
                response_data=data,
            )

        if response.status_code >= 400:
            raise APIError(
                _error_message(data, f"API request failed: {response.status_code}"),
                status_code=response.status_code,
                response_data=data,
            )

        return data

    async def get(
        self,
        endpoint: str,
        params: dict | Sequence[tuple[str, Any]] | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        """Make a GET request."""
        return await self._request("GET", endpoint, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        json_data: dict | list | None = None,
        params: dict | Sequence[tuple[str, Any]] | None = None,
        headers: dict | None = None,
        form_data: dict | None = None,
    ) -> dict[str, Any]:
        """Make a POST request."""
        return await self._request(
            "POST",
            endpoint,
            json_data=json_data,
            params=params,
            headers=headers,
            form_data=form_data,
        )


async def run_sequentially(
    items: Sequence[T],
    processor: Callable[[T], Awaitable[R]],
    delay: float = 0.0,
) -> list[R]:
    """Process items one at a time with a fixed delay between calls."""
    results = []
    for i, item in enumerate(items):
        results.append(await processor(item))

        if delay > 0 and i < len(items) - 1:
            await asyncio.sleep(delay)

    return results
