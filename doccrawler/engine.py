"""Bounded-concurrency recursive crawl over a site's same-origin link graph."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .config import CrawlConfig
from .events import CrawlEvent, CrawlFailed, CrawlProgress, CrawlStarted, ProgressCallback
from .extract import canonicalize_url, host_of, parse_page_content, registrable_domain
from .fetcher import (
    FetchError,
    FetchResourceError,
    PageFetcher,
    RateLimitedFetcher,
    SleepFunc,
)
from .gate import ConcurrencyGate
from .robots import AllowAllPolicy, RobotsPolicy
from .state import CrawlState

LOGGER = logging.getLogger(__name__)


class CrawlError(Exception):
    """The crawl as a whole failed.

    ``state`` holds whatever was collected before the failure so callers can
    still inspect or report on it.
    """

    def __init__(self, message: str, url: str, state: Optional[CrawlState] = None):
        self.url = url
        self.state = state
        super().__init__(message)


class CrawlEngine:
    """Recursive same-origin crawler.

    Every fetch goes through one :class:`ConcurrencyGate`, so at most
    ``config.max_concurrent`` pages are in flight regardless of fan-out. Each
    page's children are crawled concurrently and the page's own visit does
    not finish until all of them have.

    The engine keeps no state between :meth:`crawl` calls; the fetcher (and
    whatever browser it wraps) is injected and outlives the engine.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        config: Optional[CrawlConfig] = None,
        robots: Optional[RobotsPolicy] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        self.config = config or CrawlConfig()
        self.robots = robots or AllowAllPolicy()
        self.gate = ConcurrencyGate(self.config.max_concurrent)
        self.fetcher = RateLimitedFetcher(
            fetcher,
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay,
            timeout=self.config.timeout,
            sleep=sleep,
        )

    async def crawl(
        self,
        seed_url: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> CrawlState:
        """Crawl everything reachable from ``seed_url`` on the same host.

        Raises:
            ValueError: If ``seed_url`` is not an absolute http(s) URL.
            CrawlError: If the seed page cannot be fetched or the fetch
                resource fails.
        """
        seed = canonicalize_url(seed_url)
        if seed is None:
            raise ValueError(f"Not a crawlable URL: {seed_url!r}")

        state = CrawlState(origin=host_of(seed), seed_url=seed)
        LOGGER.info("Starting crawl of %s", seed)
        self._notify(progress_callback, CrawlStarted(seed_url=seed))

        try:
            await self._visit(seed, state, progress_callback)
        except Exception as exc:
            raise CrawlError(f"Crawl of {seed} aborted: {exc}", seed, state) from exc

        if seed in state.errors:
            raise CrawlError(
                f"Seed page {seed} could not be fetched: {state.errors[seed]}",
                seed,
                state,
            )

        LOGGER.info(
            "Crawl of %s finished: %d pages, %d errors",
            seed,
            len(state.pages),
            len(state.errors),
        )
        return state

    def is_same_origin(self, url: str, state: CrawlState) -> bool:
        host = host_of(url)
        if host == state.origin:
            return True
        if not self.config.include_subdomains:
            return False
        base = registrable_domain(state.origin)
        return bool(base) and (host == base or host.endswith("." + base))

    async def _visit(
        self,
        url: str,
        state: CrawlState,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        if not self.is_same_origin(url, state):
            return

        if url in state.pages or state.visited.is_claimed(url):
            # Known URL, possibly still in flight; the edge still counts.
            state.add_reference(url)
            return

        max_pages = self.config.max_pages
        if max_pages is not None and len(state.visited) >= max_pages:
            LOGGER.debug("Page limit %d reached, skipping %s", max_pages, url)
            return

        self._notify(
            progress_callback,
            CrawlProgress(current_url=url, total_pages_so_far=len(state.pages)),
        )

        if not state.visited.try_claim(url):
            state.add_reference(url)
            return

        if not self.robots.allows(url):
            LOGGER.info("robots policy disallows %s", url)
            return

        LOGGER.info("Crawling %s", url)
        try:
            async with self.gate:
                page = await self.fetcher.fetch(url)
            content = parse_page_content(page.content, page.links)
        except FetchResourceError:
            raise
        except FetchError as exc:
            self._record_failure(url, str(exc.cause or exc), state, progress_callback)
            return
        except Exception as exc:
            self._record_failure(url, str(exc), state, progress_callback)
            return

        child_urls = [link.href for link in page.links if link.href]
        state.add_page(url, content, child_urls)

        await self._crawl_children(url, child_urls, state, progress_callback)

    def _record_failure(
        self,
        url: str,
        message: str,
        state: CrawlState,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        LOGGER.error("Error processing %s: %s", url, message)
        state.add_error(url, message)
        self._notify(progress_callback, CrawlFailed(url=url, error=message))

    async def _crawl_children(
        self,
        parent: str,
        child_urls: List[str],
        state: CrawlState,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        children: List[str] = []
        seen = set()
        for href in child_urls:
            child = canonicalize_url(href, parent)
            if child is None or child in seen or not self.is_same_origin(child, state):
                continue
            seen.add(child)
            if state.visited.is_claimed(child):
                state.add_reference(child)
                continue
            children.append(child)

        if not children:
            return

        tasks = [
            asyncio.ensure_future(self._visit(child, state, progress_callback))
            for child in children
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _notify(
        self, progress_callback: Optional[ProgressCallback], event: CrawlEvent
    ) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(event)
        except Exception:
            LOGGER.exception("Progress callback failed for %s event", event.kind)
