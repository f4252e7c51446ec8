"""Per-crawl mutable state: visited set, page records and errors."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set

from .document import PageContent


class VisitedSet:
    """Thread-safe set of canonical URLs that were claimed for fetching.

    ``try_claim`` is the only way in, and it is an atomic check-and-insert:
    exactly one caller per URL ever gets ``True``. Every offer is tallied so
    URLs seen more than once can be told apart from first sightings.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed: Set[str] = set()
        self._attempts: Counter[str] = Counter()

    def try_claim(self, url: str) -> bool:
        with self._lock:
            self._attempts[url] += 1
            if url in self._claimed:
                return False
            self._claimed.add(url)
            return True

    def is_claimed(self, url: str) -> bool:
        with self._lock:
            return url in self._claimed

    def claim_attempts(self, url: str) -> int:
        with self._lock:
            return self._attempts[url]

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.is_claimed(url)

    def __len__(self) -> int:
        with self._lock:
            return len(self._claimed)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._claimed))


@dataclass
class PageRecord:
    """One successfully fetched page and its in-edge tally."""

    url: str
    content: PageContent
    reference_count: int = 1
    child_urls: List[str] = field(default_factory=list)


@dataclass
class CrawlState:
    """Everything one crawl invocation owns. Never shared across crawls."""

    origin: str
    seed_url: str = ""
    pages: Dict[str, PageRecord] = field(default_factory=dict)
    visited: VisitedSet = field(default_factory=VisitedSet)
    errors: Dict[str, str] = field(default_factory=dict)
    _pending_references: Counter = field(default_factory=Counter, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_reference(self, url: str) -> None:
        """Count one discovery event for ``url``.

        Events that arrive before the page record exists (its fetch is still
        in flight) are parked and folded in when the record is created.
        """
        with self._lock:
            record = self.pages.get(url)
            if record is not None:
                record.reference_count += 1
            else:
                self._pending_references[url] += 1

    def add_page(
        self, url: str, content: PageContent, child_urls: List[str]
    ) -> Optional[PageRecord]:
        """Insert the record for ``url``; returns None if one already exists."""
        with self._lock:
            if url in self.pages:
                return None
            record = PageRecord(
                url=url,
                content=content,
                reference_count=1 + self._pending_references.pop(url, 0),
                child_urls=list(child_urls),
            )
            self.pages[url] = record
            return record

    def add_error(self, url: str, message: str) -> None:
        with self._lock:
            self._pending_references.pop(url, None)
            self.errors.setdefault(url, message)

    @property
    def attempted(self) -> int:
        return len(self.pages) + len(self.errors)
