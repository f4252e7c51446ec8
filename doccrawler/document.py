"""Data structures describing crawled documentation pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True, slots=True)
class Heading:
    """A single h1-h6 heading found on a page."""

    level: int
    text: str
    id: str = ""


@dataclass(frozen=True, slots=True)
class LinkInfo:
    """Outgoing documentation link collected from a rendered page."""

    href: str
    text: str
    type: str = "documentation"
    title: str = ""
    parent: str = ""  # nearest ancestor heading text
    is_framework: bool = False
    is_api: bool = False


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Meta tags of interest for documentation pages."""

    description: str = ""
    keywords: str = ""
    author: str = ""


@dataclass(frozen=True, slots=True)
class PageContent:
    """Extracted content of a page. Never mutated once attached to a record."""

    title: str
    headings: List[Heading] = field(default_factory=list)
    links: List[LinkInfo] = field(default_factory=list)
    metadata: PageMetadata = field(default_factory=PageMetadata)
    full_text: str = ""


@dataclass(frozen=True, slots=True)
class FetchedPage:
    """Raw output of a PageFetcher: the markup plus its outbound links."""

    content: str
    links: List[LinkInfo] = field(default_factory=list)
    final_url: str = ""
