"""Plain HTTP page fetching shared by the cheap stages."""

import logging
from typing import Optional
from urllib import robotparser

import httpx

from extractor.core.config import ROBOTS_CACHE
from extractor.errors import StageError
from extractor.stages.base import Page, retrying
from extractor.urls import site_root

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class PageFetcher:
    """Fetches HTML pages with httpx, mapping failures onto StageError kinds.

    `transport` lets tests plug in an `httpx.MockTransport`.
    """

    def __init__(
        self,
        user_agent: str,
        timeout: float = 8.0,
        retries: int = 2,
        backoff_base: float = 0.25,
        respect_robots: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self.respect_robots = respect_robots
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            headers=self.headers,
            transport=self.transport,
        )

    async def _fetch_once(self, url: str) -> Page:
        try:
            async with self._client() as client:
                resp = await client.get(url)
        except httpx.TimeoutException as e:
            raise StageError(StageError.TIMEOUT, f"{url} timed out", retryable=True) from e
        except httpx.RequestError as e:  # connection/transport errors
            raise StageError(StageError.UNREACHABLE, f"{url}: {type(e).__name__}", retryable=True) from e

        if resp.status_code in RETRYABLE_STATUS:
            raise StageError(StageError.UNREACHABLE, f"HTTP {resp.status_code} from {url}", retryable=True)
        if not resp.is_success:
            raise StageError(StageError.UNREACHABLE, f"HTTP {resp.status_code} from {url}")

        return Page(
            url=str(resp.url),
            status=resp.status_code,
            content_type=(resp.headers.get("content-type") or "").lower(),
            body=resp.text,
        )

    async def fetch(self, url: str) -> Page:
        """Fetch one page, retrying transient failures with backoff."""
        async for attempt in retrying(self.retries, self.backoff_base):
            with attempt:
                page = await self._fetch_once(url)
        logger.debug("Fetched page", extra={"url": url, "status": page.status, "length": len(page.body)})
        return page

    async def allowed(self, url: str) -> bool:
        """Check robots.txt for `url`; unreadable robots files allow everything."""
        if not self.respect_robots:
            return True
        root = site_root(url)
        parser = ROBOTS_CACHE.get(root)
        if parser is None:
            parser = robotparser.RobotFileParser()
            try:
                async with self._client() as client:
                    resp = await client.get(root + "robots.txt")
                lines = resp.text.splitlines() if resp.is_success else []
            except httpx.HTTPError:
                lines = []
            parser.parse(lines)
            ROBOTS_CACHE[root] = parser
        return parser.can_fetch(self.headers["User-Agent"], url)
