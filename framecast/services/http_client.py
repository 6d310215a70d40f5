"""HTTP client for upstream asset downloads.

Every attempt waits on the shared rate limiter first. Transient failures
(429, 5xx, connection errors) are retried with exponential backoff.
"""

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from framecast.config import Settings, get_settings
from framecast.exceptions import UpstreamRequestError
from framecast.utils.concurrency import RateLimiter, WorkerPool
from framecast.utils.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Rate-limited, retrying downloader."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.rate_limit_per_minute)
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        """Create an async HTTP client."""
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        )

    async def get_bytes(self, url: str) -> bytes:
        """Download ``url``.

        Raises:
            UpstreamRequestError: non-retryable HTTP failure (e.g. 404)
            TransientUpstreamError: transient failures outlasted the retry policy
        """

        async def _attempt() -> bytes:
            await self.rate_limiter.acquire()
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content

        try:
            content = await retry_async(
                _attempt, self.retry_policy, sleep=self._sleep, description=f"GET {url}"
            )
        except httpx.HTTPStatusError as e:
            raise UpstreamRequestError(
                f"GET {url} failed with HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamRequestError(f"GET {url} failed: {e}") from e

        logger.info(f"[HTTP] fetched {url} ({len(content)} bytes)")
        return content

    async def fetch_many(self, urls: list[str]) -> list[bytes]:
        """Download several URLs, at most ``max_concurrency`` at a time."""
        pool = WorkerPool(self.settings.max_concurrency)
        return await pool.run(urls, self.get_bytes)
