"""Progress events emitted while a crawl is running."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Union

if TYPE_CHECKING:
    from .report import Report


@dataclass(frozen=True, slots=True)
class CrawlStarted:
    seed_url: str
    kind: str = "start"


@dataclass(frozen=True, slots=True)
class CrawlProgress:
    """A URL is about to be fetched."""

    current_url: str
    total_pages_so_far: int
    kind: str = "progress"


@dataclass(frozen=True, slots=True)
class CrawlCompleted:
    report: "Report"
    kind: str = "complete"


@dataclass(frozen=True, slots=True)
class CrawlFailed:
    """A single page failed, or (for the seed URL) the whole crawl did."""

    url: str
    error: str
    kind: str = "error"


CrawlEvent = Union[CrawlStarted, CrawlProgress, CrawlCompleted, CrawlFailed]
ProgressCallback = Callable[[CrawlEvent], None]


def event_to_dict(event: CrawlEvent) -> Dict[str, Any]:
    """JSON-friendly view of an event, keyed like the browser UI expects."""
    if isinstance(event, CrawlStarted):
        return {"type": event.kind, "url": event.seed_url}
    if isinstance(event, CrawlProgress):
        return {
            "type": event.kind,
            "currentUrl": event.current_url,
            "totalLinks": event.total_pages_so_far,
        }
    if isinstance(event, CrawlCompleted):
        return {"type": event.kind, "report": event.report.to_dict()}
    if isinstance(event, CrawlFailed):
        return {"type": event.kind, "url": event.url, "error": event.error}
    raise TypeError(f"Unknown crawl event: {event!r}")
