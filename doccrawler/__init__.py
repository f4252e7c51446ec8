"""Documentation site crawler with bounded concurrency.

Starting from a seed URL, the crawler follows same-host documentation links,
renders each page once, extracts its title, headings, links and meta tags,
and summarises the run in a report. It supports:

- A global cap on simultaneous page fetches (FIFO admission)
- Retry with linear backoff and a courtesy delay between fetches
- Progress events while the crawl is running
- Headless-browser rendering (Crawl4AI) or plain HTTP fetching (httpx)

Example usage:

    from doccrawler import crawl_docs, crawl_docs_async, CrawlConfig

    report = await crawl_docs_async(
        "https://developer.apple.com/documentation/swiftui",
        config=CrawlConfig(max_concurrent=3),
        progress_callback=print,
    )
    print(report.summary.successful_crawls)
    for page in report.top_pages:
        print(page.url, page.references)

    # Reuse one browser across several crawls
    from doccrawler import BrowserPageFetcher, FetchResourcePool

    async with FetchResourcePool() as pool:
        fetcher = BrowserPageFetcher(pool)
        first = await crawl_docs_async(url_a, fetcher=fetcher)
        second = await crawl_docs_async(url_b, fetcher=fetcher)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from .browser import BrowserPageFetcher, FetchResourcePool
from .config import CrawlConfig, RunConfigOverrides
from .document import FetchedPage, Heading, LinkInfo, PageContent, PageMetadata
from .engine import CrawlEngine, CrawlError
from .events import (
    CrawlCompleted,
    CrawlEvent,
    CrawlFailed,
    CrawlProgress,
    CrawlStarted,
    ProgressCallback,
)
from .fetcher import (
    FetchError,
    FetchResourceError,
    PageContentError,
    PageFetcher,
    RateLimitedFetcher,
)
from .gate import ConcurrencyGate
from .http_fetcher import HttpPageFetcher
from .report import Performance, Report, build_report
from .state import CrawlState, PageRecord, VisitedSet

LOGGER = logging.getLogger(__name__)

__all__ = [
    # Page data
    "FetchedPage",
    "Heading",
    "LinkInfo",
    "PageContent",
    "PageMetadata",
    # Crawl state
    "CrawlState",
    "PageRecord",
    "VisitedSet",
    # Engine
    "ConcurrencyGate",
    "CrawlEngine",
    "CrawlError",
    "RateLimitedFetcher",
    # Fetchers
    "PageFetcher",
    "FetchError",
    "FetchResourceError",
    "PageContentError",
    "BrowserPageFetcher",
    "FetchResourcePool",
    "HttpPageFetcher",
    # Events
    "CrawlEvent",
    "CrawlStarted",
    "CrawlProgress",
    "CrawlCompleted",
    "CrawlFailed",
    "ProgressCallback",
    # Report
    "Performance",
    "Report",
    "build_report",
    # Config
    "CrawlConfig",
    "RunConfigOverrides",
    # Entry points
    "crawl_docs",
    "crawl_docs_async",
    # MCP Server
    "mcp",
]


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def _emit(progress_callback: Optional[ProgressCallback], event: CrawlEvent) -> None:
    if progress_callback is None:
        return
    try:
        progress_callback(event)
    except Exception:
        LOGGER.exception("Progress callback failed for %s event", event.kind)


async def _run_engine(
    url: str,
    fetcher: PageFetcher,
    config: CrawlConfig,
    progress_callback: Optional[ProgressCallback],
) -> Report:
    engine = CrawlEngine(fetcher, config=config)
    started = time.monotonic()
    state = await engine.crawl(url, progress_callback)
    duration = max(time.monotonic() - started, 1e-9)
    performance = Performance(
        duration=round(duration, 3),
        pages_per_second=round(state.attempted / duration, 2),
    )
    return build_report(state, performance=performance)


async def crawl_docs_async(
    url: str,
    *,
    config: Optional[CrawlConfig] = None,
    fetcher: Optional[PageFetcher] = None,
    progress_callback: Optional[ProgressCallback] = None,
    overrides: Optional[RunConfigOverrides] = None,
) -> Report:
    """
    Crawl a documentation site and return its report.

    Args:
        url: The seed URL. Only links on the same host are followed.
        config: Optional CrawlConfig (concurrency, retries, delays, ...).
        fetcher: Optional PageFetcher. When omitted, one is created from
            ``config.engine`` and closed again before returning.
        progress_callback: Optional callable receiving CrawlEvent objects.
        overrides: Optional rendering overrides for the browser engine.

    Returns:
        Report with summary, most referenced pages and per-page errors.

    Raises:
        ValueError: If ``url`` is not an http(s) URL.
        CrawlError: If the seed page cannot be fetched or the browser
            cannot start.
    """
    config = config or CrawlConfig()

    try:
        if fetcher is not None:
            report = await _run_engine(url, fetcher, config, progress_callback)
        elif config.engine == "http":
            async with HttpPageFetcher(link_patterns=config.link_patterns) as http:
                report = await _run_engine(url, http, config, progress_callback)
        else:
            async with FetchResourcePool() as pool:
                browser = BrowserPageFetcher(
                    pool, link_patterns=config.link_patterns, overrides=overrides
                )
                report = await _run_engine(url, browser, config, progress_callback)
    except CrawlError as exc:
        _emit(progress_callback, CrawlFailed(url=exc.url, error=str(exc)))
        raise

    _emit(progress_callback, CrawlCompleted(report=report))
    return report


def crawl_docs(
    url: str,
    *,
    config: Optional[CrawlConfig] = None,
    fetcher: Optional[PageFetcher] = None,
    progress_callback: Optional[ProgressCallback] = None,
    overrides: Optional[RunConfigOverrides] = None,
) -> Report:
    """Synchronous wrapper for crawl_docs_async."""
    return asyncio.run(
        crawl_docs_async(
            url,
            config=config,
            fetcher=fetcher,
            progress_callback=progress_callback,
            overrides=overrides,
        )
    )
