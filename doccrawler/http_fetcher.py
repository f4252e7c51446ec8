"""Plain HTTP page fetching for static documentation sites."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import httpx
from bs4.builder import ParserRejectedMarkup

from .config import USER_AGENT
from .document import FetchedPage
from .extract import DEFAULT_LINK_PATTERNS, extract_links
from .fetcher import FetchResourceError, PageContentError

LOGGER = logging.getLogger(__name__)

_HTML_TYPES = ("text/html", "application/xhtml+xml")


class HttpPageFetcher:
    """PageFetcher backed by a shared ``httpx.AsyncClient``.

    No JavaScript is executed, so only server-rendered links are seen. The
    client is created on first use and must be released with :meth:`close`
    (or ``async with``).
    """

    def __init__(
        self,
        *,
        link_patterns: Sequence[str] = DEFAULT_LINK_PATTERNS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.link_patterns = tuple(link_patterns)
        self._client = client
        self._closed = False

    def _get_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise FetchResourceError("HTTP client is closed")
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, url: str, timeout_ms: int) -> FetchedPage:
        client = self._get_client()
        response = await client.get(url, timeout=timeout_ms / 1000)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(kind in content_type for kind in _HTML_TYPES):
            raise PageContentError(f"Unsupported content type {content_type!r}")

        final_url = str(response.url)
        html = response.text
        try:
            links = extract_links(html, final_url, self.link_patterns)
        except ParserRejectedMarkup as exc:
            raise PageContentError(f"Unparseable markup at {final_url}: {exc}") from exc
        LOGGER.debug("Fetched %s (%d links)", final_url, len(links))
        return FetchedPage(content=html, links=links, final_url=final_url)

    async def close(self) -> None:
        self._closed = True
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def __aenter__(self) -> "HttpPageFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
