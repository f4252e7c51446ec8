"""HTML helpers: URL canonicalisation and page/link extraction."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

import tldextract
from bs4 import BeautifulSoup, Tag

from .document import Heading, LinkInfo, PageContent, PageMetadata

LOGGER = logging.getLogger(__name__)

HEADING_TAGS: List[str] = ["h1", "h2", "h3", "h4", "h5", "h6"]

# Path fragments that mark a link as part of the documentation tree
DEFAULT_LINK_PATTERNS: tuple[str, ...] = ("/documentation/", "/library/", "/api/")
FRAMEWORK_PATTERNS: tuple[str, ...] = ("/documentation/", "/library/")
API_PATTERNS: tuple[str, ...] = ("/api/",)


def normalize_host(host: Optional[str]) -> str:
    """Normalize hostname by removing port and lowercasing."""
    if not host:
        return ""
    return host.split(":")[0].lower()


@lru_cache(maxsize=256)
def registrable_domain(host: str) -> Optional[str]:
    """Extract the registrable domain from a hostname."""
    if not host:
        return None
    extracted = tldextract.extract(host)
    if not extracted.domain or not extracted.suffix:
        return host
    domain = ".".join(part for part in (extracted.domain, extracted.suffix) if part)
    return domain or host


def host_of(url: str) -> str:
    return normalize_host(urlparse(url).netloc)


def canonicalize_url(url: str, base: str = "") -> Optional[str]:
    """
    Canonical form used as the page key.

    - Joins relative URLs against base
    - Drops fragments (#...)
    - Lowercases scheme and host, removes default ports
    - Keeps querystrings

    Returns None for anything that is not an http(s) URL.
    """
    if not url:
        return None

    try:
        joined, _ = urldefrag(urljoin(base, url.strip()))
        parsed = urlparse(joined)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in ("http", "https"):
        return None

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return None

    if (scheme == "http" and port == 80) or (scheme == "https" and port == 443):
        netloc = hostname
    elif port:
        netloc = f"{hostname}:{port}"
    else:
        netloc = hostname

    return urlunparse((scheme, netloc, parsed.path or "/", parsed.params, parsed.query, ""))


def _matches(href: str, patterns: Iterable[str]) -> bool:
    return any(pattern in href for pattern in patterns)


def _parent_heading(anchor: Tag) -> str:
    """Text of the first heading inside the closest ancestor that has one."""
    for ancestor in anchor.parents:
        if not isinstance(ancestor, Tag) or ancestor.name == "[document]":
            break
        heading = ancestor.find(HEADING_TAGS)
        if heading is not None:
            return heading.get_text(strip=True)
    return ""


def extract_links(
    html: str,
    base_url: str,
    patterns: Sequence[str] = DEFAULT_LINK_PATTERNS,
) -> List[LinkInfo]:
    """Collect documentation links from a page.

    Anchors without text, fragment links and ``javascript:`` hrefs are
    dropped. When ``patterns`` is empty every remaining anchor is kept.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    links: List[LinkInfo] = []
    for anchor in soup.find_all("a", href=True):
        raw_href = str(anchor.get("href") or "").strip()
        if not raw_href or raw_href.lower().startswith("javascript:") or "#" in raw_href:
            continue

        href = urljoin(base_url, raw_href)
        if patterns and not _matches(href, patterns):
            continue

        text = anchor.get_text(strip=True)
        if not text:
            continue

        title = anchor.get("title") or anchor.get("aria-label") or text
        links.append(
            LinkInfo(
                href=href,
                text=text,
                type="documentation",
                title=str(title).strip(),
                parent=_parent_heading(anchor),
                is_framework=_matches(href, FRAMEWORK_PATTERNS),
                is_api=_matches(href, API_PATTERNS),
            )
        )
    return links


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return str(tag.get("content") or "").strip()


def parse_page_content(html: str, links: Sequence[LinkInfo]) -> PageContent:
    """Build PageContent from rendered markup and the fetcher's links."""
    soup = BeautifulSoup(html or "", "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""

    headings = []
    for tag in soup.find_all(HEADING_TAGS):
        headings.append(
            Heading(
                level=int(tag.name[1]),
                text=tag.get_text(strip=True),
                id=str(tag.get("id") or ""),
            )
        )

    metadata = PageMetadata(
        description=_meta_content(soup, name="description")
        or _meta_content(soup, property="og:description"),
        keywords=_meta_content(soup, name="keywords"),
        author=_meta_content(soup, name="author"),
    )

    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = soup.body or soup
    full_text = " ".join(body.get_text(" ", strip=True).split())

    return PageContent(
        title=title,
        headings=headings,
        links=list(links),
        metadata=metadata,
        full_text=full_text,
    )
