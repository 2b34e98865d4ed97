"""Shared HTTP plumbing for market data providers."""

import asyncio
import time
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)


class TokenBucket:
    """Simple in-memory token bucket rate limiter."""

    def __init__(self, capacity: int, refill_rate: float) -> None:
        """Initialize token bucket.

        Args:
            capacity: Maximum tokens in bucket
            refill_rate: Tokens per second refill rate
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = capacity
        self.last_refill = time.time()

    async def acquire(self) -> bool:
        """Try to acquire a token, return True if successful."""
        now = time.time()
        time_passed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + time_passed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


class AsyncLRUCache:
    """Simple LRU cache with TTL."""

    def __init__(self, maxsize: int = 1000, ttl: float = 300) -> None:
        """Initialize LRU cache.

        Args:
            maxsize: Maximum number of cached items
            ttl: Time to live in seconds
        """
        self.maxsize = maxsize
        self.ttl = ttl
        self.cache: dict[str, tuple[Any, float]] = {}
        self.access_order: list[str] = []

    def get(self, key: str) -> Any | None:
        """Get item from cache."""
        if key not in self.cache:
            return None

        value, timestamp = self.cache[key]

        if time.time() - timestamp > self.ttl:
            del self.cache[key]
            self.access_order.remove(key)
            return None

        self.access_order.remove(key)
        self.access_order.append(key)

        return value

    def set(self, key: str, value: Any) -> None:
        """Set item in cache."""
        if key in self.cache:
            self.access_order.remove(key)
        elif len(self.cache) >= self.maxsize and self.access_order:
            oldest_key = self.access_order.pop(0)
            del self.cache[oldest_key]

        self.cache[key] = (value, time.time())
        self.access_order.append(key)

    def clear(self) -> None:
        """Drop all cached items."""
        self.cache.clear()
        self.access_order.clear()


def is_retryable(exc: BaseException) -> bool:
    """Network errors, timeouts and 5xx responses are worth retrying."""
    if isinstance(exc, (httpx.NetworkError, httpx.TimeoutException)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class JsonApiClient:
    """Rate-limited, retrying JSON GET client."""

    name = "api"

    def __init__(
        self,
        base_url: str,
        session: httpx.AsyncClient | None = None,
        rate_capacity: int = 60,
        rate_per_minute: float = 60,
        retry_attempts: int = 3,
        request_timeout: float = 10.0,
    ) -> None:
        """Initialize client.

        Args:
            base_url: API base URL
            session: Optional httpx client session
            rate_capacity: Token bucket capacity
            rate_per_minute: Sustained requests per minute
            retry_attempts: Attempts per request for retryable errors
            request_timeout: HTTP timeout per attempt in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or httpx.AsyncClient()
        self.request_timeout = request_timeout

        self.rate_limiter = TokenBucket(
            capacity=rate_capacity, refill_rate=rate_per_minute / 60
        )

        self.retry_config = AsyncRetrying(
            stop=stop_after_attempt(retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )

    def _headers(self) -> dict[str, str]:
        return {}

    async def _make_request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Make HTTP request with rate limiting and retries.

        Args:
            endpoint: API endpoint path
            params: Query parameters
            headers: Extra request headers

        Returns:
            Decoded JSON response

        Raises:
            httpx.HTTPError: On HTTP errors once retries are exhausted
        """
        while not await self.rate_limiter.acquire():
            await asyncio.sleep(0.1)

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        request_headers = {**self._headers(), **(headers or {})}

        async for attempt in self.retry_config.copy():
            with attempt:
                try:
                    response = await self.session.get(
                        url,
                        params=params,
                        headers=request_headers,
                        timeout=self.request_timeout,
                    )
                    response.raise_for_status()
                    return response.json()
                except httpx.HTTPStatusError as e:
                    logger.warning(
                        f"HTTP error in {self.name} request",
                        endpoint=endpoint,
                        status_code=e.response.status_code,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise
                except (httpx.NetworkError, httpx.TimeoutException) as e:
                    logger.warning(
                        f"Network error in {self.name} request",
                        endpoint=endpoint,
                        error=str(e),
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise

        raise RuntimeError("retry loop exited without a result")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.session.aclose()
