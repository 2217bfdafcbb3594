"""
Shared HTTP plumbing for JSON API source adapters.

Provides the lazily created httpx client, per-request rate limiting and
429 handling that every network-backed adapter uses.
"""
import asyncio
from datetime import datetime, timezone

import httpx
import structlog

from tcg_catalog.services.ingestion.base import AdapterConfig, SourceAdapter

logger = structlog.get_logger()


class HTTPSourceAdapter(SourceAdapter):
    """
    Base class for adapters that pull from a JSON HTTP API.

    Subclasses set HEALTH_ENDPOINT and may extend _default_headers (for API
    keys) or NO_RESULT_STATUSES (for APIs that answer an empty search with an
    error status).
    """

    HEALTH_ENDPOINT = "/"
    NO_RESULT_STATUSES: tuple[int, ...] = (404,)
    MAX_RETRY_WAIT_SECONDS = 60.0

    def __init__(self, config: AdapterConfig):
        super().__init__(config)
        self._client: httpx.AsyncClient | None = None

    def _default_headers(self) -> dict[str, str]:
        return {"User-Agent": self.config.user_agent, "Accept": "application/json"}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                headers=self._default_headers(),
                follow_redirects=True,
            )
        return self._client

    async def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self._last_request_time is not None:
            elapsed = (datetime.now(timezone.utc) - self._last_request_time).total_seconds()
            if elapsed < self.config.rate_limit_seconds:
                await asyncio.sleep(self.config.rate_limit_seconds - elapsed)
        self._last_request_time = datetime.now(timezone.utc)

    async def _request(
        self,
        endpoint: str,
        params: dict | None = None,
        retry_count: int = 0,
    ) -> dict | None:
        """
        Make a rate-limited GET request with retry logic.

        Handles 429 (Too Many Requests) errors with exponential backoff and
        respects Retry-After headers when provided. Statuses listed in
        NO_RESULT_STATUSES mean "nothing matched" and are returned as None.

        Raises:
            httpx.HTTPError: On any other failed request.
        """
        await self._rate_limit()
        client = await self._get_client()

        try:
            response = await client.get(endpoint, params=params)

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    wait_seconds = float(retry_after) if retry_after else None
                except ValueError:
                    wait_seconds = None
                if wait_seconds is None:
                    wait_seconds = self.config.backoff_factor ** retry_count
                wait_seconds = min(wait_seconds, self.MAX_RETRY_WAIT_SECONDS)

                if retry_count < self.config.max_retries:
                    logger.warning(
                        "Source rate limit hit, retrying",
                        provider=self.provider_slug,
                        endpoint=endpoint,
                        retry_count=retry_count + 1,
                        wait_seconds=wait_seconds,
                    )
                    await asyncio.sleep(wait_seconds)
                    return await self._request(endpoint, params, retry_count + 1)

                logger.error(
                    "Source rate limit exceeded, max retries reached",
                    provider=self.provider_slug,
                    endpoint=endpoint,
                    retry_count=retry_count,
                )

            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code in self.NO_RESULT_STATUSES:
                return None
            logger.error(
                "Source API error",
                provider=self.provider_slug,
                endpoint=endpoint,
                status=e.response.status_code,
                retry_count=retry_count,
            )
            raise

    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        try:
            data = await self._request(self.HEALTH_ENDPOINT)
            return data is not None
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
