"""
UpstreamClient - Authenticated async HTTP client for the Advbox API.

Handles:
- Bearer authentication
- Exponential backoff on HTTP 429 (2s, 4s, 8s, ...)
- Classification of non-2xx and non-JSON responses into service errors

No caching happens at this layer.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from casesync.services.errors import (
    MalformedResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    UpstreamError,
)

SleepFn = Callable[[float], Awaitable[None]]

BODY_EXCERPT_LENGTH = 200


@dataclass
class ClientStats:
    """Request statistics."""

    requests: int = 0
    rate_limited: int = 0
    backoff_seconds: float = 0.0
    last_backoff_delays: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "requests": self.requests,
            "rate_limited": self.rate_limited,
            "backoff_seconds": round(self.backoff_seconds, 3),
        }


class UpstreamClient:
    """
    Client for the case-management REST API.

    Usage:
        async with UpstreamClient(base_url, token) as client:
            payload = await client.request("/lawsuits", params={"page": 1})
    """

    SERVICE_ID = "advbox"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        max_retries: int = 5,
        backoff_base: float = 2.0,
        sleep: SleepFn | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep or asyncio.sleep
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None
        self.stats = ClientStats()

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt + 1``."""
        return (2**attempt) * self.backoff_base

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Perform one authenticated call and return the decoded JSON body.

        Args:
            endpoint: Path relative to the API base (e.g. "/lawsuits")
            method: HTTP method
            params: Query parameters
            body: JSON body, ignored for GET

        Returns:
            Decoded JSON value (list or dict)

        Raises:
            RateLimitError: 429 persisted after max_retries backoffs
            UpstreamError: Any other non-2xx status
            MalformedResponseError: 2xx with a non-JSON body
            RequestTimeoutError: Request timed out
            ServiceUnavailableError: Transport-level failure
        """
        url = f"{self.base_url}{endpoint}"
        json_body = body if body is not None and method.upper() != "GET" else None
        self.stats.last_backoff_delays = []
        waited = 0.0

        attempt = 0
        while True:
            response = await self._send(method, url, params, json_body)

            if response.status_code != 429:
                break

            self.stats.rate_limited += 1
            if attempt >= self.max_retries:
                logger.error(
                    f"Advbox rate limit persisted after {attempt} retries: {method} {endpoint}"
                )
                raise RateLimitError(
                    self.SERVICE_ID, attempts=attempt + 1, waited_seconds=waited
                )

            delay = self.backoff_delay(attempt)
            logger.warning(
                f"Rate limited. Waiting {delay:.1f}s before retry "
                f"{attempt + 1}/{self.max_retries}"
            )
            self.stats.last_backoff_delays.append(delay)
            self.stats.backoff_seconds += delay
            waited += delay
            await self._sleep(delay)
            attempt += 1

        text = response.text

        if not response.is_success:
            logger.error(f"Advbox API error: {response.status_code} {endpoint}")
            raise UpstreamError(
                response.status_code,
                text[:BODY_EXCERPT_LENGTH],
                service_id=self.SERVICE_ID,
            )

        return self._decode(text)

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
    ) -> httpx.Response:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()
        self.stats.requests += 1
        logger.debug(f"Making {method} request to Advbox: {url} {params or ''}")

        try:
            return await client.request(
                method=method,
                url=url,
                params=params,
                headers=self._headers(),
                json=json_body,
            )

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self.SERVICE_ID, self._timeout) from e

        except httpx.RequestError as e:
            raise ServiceUnavailableError(
                f"Advbox request failed: {e}", service_id=self.SERVICE_ID
            ) from e

    def _decode(self, text: str) -> Any:
        """Decode a 2xx body, refusing anything that is not JSON."""
        stripped = text.strip()
        if not stripped.startswith(("{", "[")):
            raise MalformedResponseError(stripped, service_id=self.SERVICE_ID)

        try:
            return json.loads(stripped)
        except ValueError as e:
            # JSONDecodeError, or an integer literal past the conversion limit
            raise MalformedResponseError(stripped, service_id=self.SERVICE_ID) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("UpstreamClient closed")

    async def __aenter__(self) -> "UpstreamClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
