"""Exponential-backoff retry for transient upstream failures."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from framecast.config import Settings, get_settings
from framecast.exceptions import TransientUpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule: ``initial_delay * multiplier**attempt`` capped at ``max_delay``."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            multiplier=settings.retry_backoff_multiplier,
            max_delay=settings.retry_max_delay,
        )

    def delay(self, attempt: int) -> float:
        """Delay before the retry that follows failed attempt ``attempt`` (0-based)."""
        return min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)


def is_transient_error(exc: BaseException) -> bool:
    """Rate limiting, 5xx, network failures, timeouts and dropped connections are transient.

    Other 4xx responses and client-side misuse (bad URL scheme, malformed
    request) are not.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, (httpx.NetworkError, httpx.TimeoutException, httpx.RemoteProtocolError))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Non-retryable errors propagate immediately. When every attempt fails
    transiently, TransientUpstreamError is raised with the last error chained.
    """
    last_error: BaseException | None = None
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e
            if attempt + 1 >= policy.max_attempts:
                break
            delay = policy.delay(attempt)
            logger.warning(
                f"[RETRY] {description} failed (attempt {attempt + 1}/{policy.max_attempts}): {e}; "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)

    raise TransientUpstreamError(
        f"{description} failed after {policy.max_attempts} attempt(s): {last_error}",
        attempts=policy.max_attempts,
    ) from last_error
