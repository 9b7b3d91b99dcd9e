"""
Async HTTP client for feed, listing and provider traffic.

- Per-host throttling (listing pages and the feed share grants.gov)
- Retries with exponential backoff on timeouts and dropped connections
- Short-lived cache of successful GET bodies, so repeated feed reads
  and re-run searches do not hit the site again
- JSON POST helper for the search and scrape provider APIs

The parsers never touch the network; workflows fetch with this client
and hand the text over.
"""

import asyncio
import hashlib
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.NetworkError)
MAX_ATTEMPTS = 3

BROWSER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
]

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/rss+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "http_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


@dataclass
class CachedBody:
    """Successful GET body kept for reuse."""
    content: bytes
    content_type: Optional[str]
    stored_at: float

    def to_response(self, url: str) -> httpx.Response:
        headers = {"content-type": self.content_type} if self.content_type else {}
        return httpx.Response(
            200,
            headers=headers,
            content=self.content,
            request=httpx.Request("GET", url),
        )


class ResponseCache:
    """TTL cache of GET bodies keyed by URL."""

    def __init__(self, ttl: int = 300):
        self.ttl = ttl
        self._entries: dict[str, CachedBody] = {}

    @staticmethod
    def _key(url: str) -> str:
        return hashlib.sha1(url.encode()).hexdigest()

    def get(self, url: str) -> Optional[CachedBody]:
        key = self._key(url)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if time.time() - entry.stored_at > self.ttl:
            del self._entries[key]
            return None
        return entry

    def put(self, url: str, response: httpx.Response) -> None:
        # httpx has already decoded any content-encoding
        self._entries[self._key(url)] = CachedBody(
            content=response.content,
            content_type=response.headers.get("content-type"),
            stored_at=time.time(),
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class HostThrottle:
    """Minimum spacing between requests to one host."""
    requests_per_second: float = 2.0
    last_request: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def interval(self) -> float:
        return 1.0 / self.requests_per_second

    async def wait(self) -> None:
        async with self.lock:
            remaining = self.interval - (time.monotonic() - self.last_request)
            if remaining > 0:
                await asyncio.sleep(remaining)
            self.last_request = time.monotonic()


class HttpClient:
    """
    Async HTTP client shared by the extraction workflows.

    Usage:
        async with HttpClient(requests_per_second=1.0) as client:
            xml = await client.get_text("https://www.grants.gov/rss/GG_NewOppByAgency.xml")
    """

    def __init__(
        self,
        requests_per_second: float = 2.0,
        timeout: float = 30.0,
        cache_ttl: int = 300,
        enable_cache: bool = True,
    ):
        """
        Initialize HTTP client.

        Args:
            requests_per_second: Throttle per host
            timeout: Request timeout in seconds
            cache_ttl: Seconds a GET body stays reusable
            enable_cache: Reuse GET bodies within cache_ttl
        """
        self.requests_per_second = requests_per_second
        self.timeout = timeout
        self.enable_cache = enable_cache

        self._client: Optional[httpx.AsyncClient] = None
        self._cache = ResponseCache(cache_ttl)
        self._throttles: dict[str, HostThrottle] = {}
        self._requests_sent = 0

    async def __aenter__(self) -> "HttpClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            headers=DEFAULT_HEADERS,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _throttle_for(self, url: str) -> HostThrottle:
        host = urlparse(url).netloc
        throttle = self._throttles.get(host)
        if throttle is None:
            throttle = self._throttles[host] = HostThrottle(self.requests_per_second)
        return throttle

    def _next_agent(self) -> str:
        agent = BROWSER_AGENTS[self._requests_sent % len(BROWSER_AGENTS)]
        self._requests_sent += 1
        return agent

    @retry(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=_log_retry,
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one request, raising for 4xx/5xx."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        await self._throttle_for(url).wait()

        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("User-Agent", self._next_agent())

        response = await self._client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        return response

    async def get(self, url: str, use_cache: bool = True, **kwargs) -> httpx.Response:
        """
        GET a page or feed.

        Args:
            url: URL to fetch
            use_cache: Serve a recent body for the same URL when available
            **kwargs: Additional httpx arguments

        Returns:
            httpx.Response

        Raises:
            httpx.HTTPError: On 4xx/5xx or after the last retry
        """
        caching = self.enable_cache and use_cache
        if caching:
            cached = self._cache.get(url)
            if cached:
                logger.debug("cache_hit", url=url)
                return cached.to_response(url)

        logger.debug("http_get", url=url)
        response = await self._send("GET", url, **kwargs)

        if caching and response.status_code == 200:
            self._cache.put(url, response)
        return response

    async def get_text(self, url: str, **kwargs) -> str:
        """GET returning the decoded body."""
        response = await self.get(url, **kwargs)
        return response.text

    async def post_json(self, url: str, payload: dict, **kwargs) -> dict:
        """
        POST a JSON body and decode the JSON reply (never cached).

        Args:
            url: Endpoint URL
            payload: JSON-serializable request body
            **kwargs: Additional httpx arguments (headers, timeout)

        Returns:
            Decoded JSON response
        """
        logger.debug("http_post", url=url)
        response = await self._send("POST", url, json=payload, **kwargs)
        return response.json()

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
