"""
Async HTTP client with rate limiting and retries.

Built on httpx with:
- Per-domain rate limiting
- Exponential backoff retry on timeouts and network errors
- JSON and text helpers for grant APIs and RSS feeds
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grant_tracker import __version__

logger = structlog.get_logger(__name__)


USER_AGENT = f"GrantTracker/{__version__} (+https://github.com/grant-tracker)"


@dataclass
class RateLimiter:
    """Per-domain rate limiter."""
    requests_per_second: float = 2.0
    last_request: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def acquire(self) -> None:
        """Wait for rate limit slot."""
        async with self.lock:
            now = time.monotonic()
            min_interval = 1.0 / self.requests_per_second
            elapsed = now - self.last_request

            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)

            self.last_request = time.monotonic()


class HttpClient:
    """
    Async HTTP client with rate limiting and retries.

    Usage:
        async with HttpClient() as client:
            data = await client.post_json("https://api.example.gov/search", {"q": "x"})
    """

    def __init__(
        self,
        requests_per_second: float = 2.0,
        timeout: float = 10.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            requests_per_second: Rate limit per domain
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.requests_per_second = requests_per_second
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.transport = transport

        self._client: Optional[httpx.AsyncClient] = None
        self._rate_limiters: dict[str, RateLimiter] = {}

    async def __aenter__(self) -> "HttpClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept-Language": "en-US,en;q=0.9"},
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def _get_rate_limiter(self, url: str) -> RateLimiter:
        """Get or create rate limiter for domain."""
        domain = urlparse(url).netloc
        if domain not in self._rate_limiters:
            self._rate_limiters[domain] = RateLimiter(
                requests_per_second=self.requests_per_second
            )
        return self._rate_limiters[domain]

    async def _do_request(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute HTTP request with retry."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        ):
            with attempt:
                response = await self._client.request(method, url, **kwargs)
                response.raise_for_status()

        return response

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Rate-limited request.

        Args:
            method: HTTP method
            url: URL to fetch
            **kwargs: Additional httpx arguments

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPError: On network failure or non-2xx status
        """
        limiter = self._get_rate_limiter(url)
        await limiter.acquire()

        logger.debug("http_request", method=method, url=url)

        return await self._do_request(method, url, **kwargs)

    async def get_text(self, url: str, **kwargs) -> str:
        """GET request returning text content."""
        response = await self.request("GET", url, **kwargs)
        return response.text

    async def get_json(self, url: str, **kwargs) -> Any:
        """GET request returning decoded JSON."""
        response = await self.request("GET", url, **kwargs)
        return response.json()

    async def post_json(self, url: str, payload: dict, **kwargs) -> Any:
        """POST a JSON body and return decoded JSON."""
        headers = {"Content-Type": "application/json", **kwargs.pop("headers", {})}
        response = await self.request("POST", url, json=payload, headers=headers, **kwargs)
        return response.json()
