"""Headless-browser page fetching on top of Crawl4AI.

A single :class:`FetchResourcePool` owns the browser. It is started lazily on
the first fetch, shared by every concurrent page fetch, and torn down
explicitly by its owner::

    async with FetchResourcePool() as pool:
        fetcher = BrowserPageFetcher(pool)
        page = await fetcher.fetch("https://developer.apple.com/documentation/", 30000)

Once closed, the pool refuses new work with :class:`FetchResourceError`
instead of silently starting another browser.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from bs4.builder import ParserRejectedMarkup
from crawl4ai import AsyncWebCrawler, BrowserConfig

from .config import RunConfigOverrides, build_browser_config, build_page_run_config
from .document import FetchedPage
from .extract import DEFAULT_LINK_PATTERNS, extract_links
from .fetcher import FetchResourceError, PageContentError

LOGGER = logging.getLogger(__name__)


class FetchResourcePool:
    """Lifecycle owner of the shared Crawl4AI browser."""

    def __init__(self, browser_config: Optional[BrowserConfig] = None) -> None:
        self._browser_config = browser_config
        self._crawler: Optional[AsyncWebCrawler] = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def started(self) -> bool:
        return self._crawler is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def get(self) -> AsyncWebCrawler:
        """Return the running crawler, starting it on first use."""
        if self._closed:
            raise FetchResourceError("Browser pool is closed")
        if self._crawler is not None:
            return self._crawler

        async with self._lock:
            if self._closed:
                raise FetchResourceError("Browser pool is closed")
            if self._crawler is None:
                crawler = AsyncWebCrawler(
                    config=self._browser_config or build_browser_config()
                )
                try:
                    await crawler.start()
                except Exception as exc:
                    raise FetchResourceError(f"Browser failed to start: {exc}") from exc
                LOGGER.info("Browser started")
                self._crawler = crawler
        return self._crawler

    async def close(self) -> None:
        """Shut the browser down. Safe to call more than once."""
        async with self._lock:
            self._closed = True
            crawler, self._crawler = self._crawler, None
        if crawler is not None:
            LOGGER.info("Closing browser")
            await crawler.close()

    async def __aenter__(self) -> "FetchResourcePool":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class BrowserPageFetcher:
    """PageFetcher that renders pages with the pooled browser."""

    def __init__(
        self,
        pool: FetchResourcePool,
        *,
        link_patterns: Sequence[str] = DEFAULT_LINK_PATTERNS,
        overrides: Optional[RunConfigOverrides] = None,
    ) -> None:
        self.pool = pool
        self.link_patterns = tuple(link_patterns)
        self.overrides = overrides

    async def fetch(self, url: str, timeout_ms: int) -> FetchedPage:
        crawler = await self.pool.get()
        run_config = build_page_run_config(timeout_ms, self.overrides)
        container = await crawler.arun(url=url, config=run_config)

        try:
            result = container[0]
        except (IndexError, TypeError):
            result = container

        if result is None:
            raise RuntimeError(f"Crawler returned no results for {url}")
        if not result.success:
            raise RuntimeError(_failure_reason(result))

        html = result.html or result.cleaned_html or ""
        final_url = str(result.url or url)
        try:
            links = extract_links(html, final_url, self.link_patterns)
        except ParserRejectedMarkup as exc:
            raise PageContentError(f"Unparseable markup at {final_url}: {exc}") from exc
        LOGGER.debug("Rendered %s (%d links)", final_url, len(links))
        return FetchedPage(content=html, links=links, final_url=final_url)


def _failure_reason(result) -> str:
    if result.error_message:
        return str(result.error_message)
    status_code = result.status_code or (result.metadata or {}).get("status_code")
    if status_code:
        return f"HTTP {status_code}"
    return "Crawler returned no content"
