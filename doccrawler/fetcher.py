"""Fetch contract, fetch errors and the retrying, rate-limited wrapper."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from .document import FetchedPage

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 2.0
DEFAULT_TIMEOUT = 30.0


class FetchError(Exception):
    """A page could not be fetched after all attempts."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        message = f"Failed to fetch {url}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class FetchResourceError(Exception):
    """The shared fetch resource (browser, HTTP client) is unusable.

    Raised when the resource cannot start or has already been closed. It is
    never retried and aborts the whole crawl.
    """


class PageContentError(Exception):
    """The page was delivered but its content cannot be used.

    Retrying will not change the outcome, so the page is reported as failed
    right away.
    """


class PageFetcher(Protocol):
    """Anything that can render a URL and report its outbound links."""

    async def fetch(self, url: str, timeout_ms: int) -> FetchedPage:
        ...


SleepFunc = Callable[[float], Awaitable[None]]


class RateLimitedFetcher:
    """Wrap a PageFetcher with per-attempt timeout, linear backoff and a
    courtesy delay after every successful fetch.

    Attempt ``i`` (1-based) that fails is followed by a sleep of
    ``base_delay * i`` seconds before the next attempt; after ``max_retries``
    failed attempts a FetchError carrying the last cause is raised.
    PageContentError and FetchResourceError are raised on the first attempt.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.fetcher = fetcher
        self.max_retries = max_retries
        self.base_delay = max(0.0, base_delay)
        self.timeout = timeout
        self._sleep = sleep or asyncio.sleep

    async def fetch(self, url: str) -> FetchedPage:
        last_error: Optional[BaseException] = None
        timeout_ms = int(self.timeout * 1000)

        for attempt in range(1, self.max_retries + 1):
            try:
                page = await asyncio.wait_for(
                    self.fetcher.fetch(url, timeout_ms), timeout=self.timeout
                )
            except FetchResourceError:
                raise
            except PageContentError:
                await self._sleep(self.base_delay)
                raise
            except asyncio.TimeoutError:
                last_error = TimeoutError(f"Timed out after {self.timeout:.1f}s")
            except Exception as exc:
                last_error = exc
            else:
                await self._sleep(self.base_delay)
                return page

            LOGGER.warning(
                "Fetch attempt %d/%d for %s failed: %s",
                attempt,
                self.max_retries,
                url,
                last_error,
            )
            if attempt < self.max_retries:
                await self._sleep(self.base_delay * attempt)

        raise FetchError(url, last_error) from last_error
