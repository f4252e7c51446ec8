"""Aggregate report over a finished crawl."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .state import CrawlState

TOP_PAGES_LIMIT = 10


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total_pages: int = 0
    successful_crawls: int = 0
    failed_crawls: int = 0
    total_links: int = 0
    total_content: int = 0
    # None when nothing was fetched successfully
    average_content_length: Optional[int] = None


@dataclass(frozen=True, slots=True)
class TopPage:
    url: str
    references: int
    content_items: int
    title: str = ""


@dataclass(frozen=True, slots=True)
class CrawlErrorEntry:
    url: str
    error: str


@dataclass(frozen=True, slots=True)
class Performance:
    duration: float
    pages_per_second: float


@dataclass(frozen=True, slots=True)
class Report:
    """Read-only snapshot computed once from a terminal CrawlState."""

    seed_url: str
    summary: ReportSummary
    top_pages: List[TopPage] = field(default_factory=list)
    errors: List[CrawlErrorEntry] = field(default_factory=list)
    performance: Optional[Performance] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data: Dict[str, Any] = {
            "seedUrl": self.seed_url,
            "summary": {
                "totalPages": self.summary.total_pages,
                "successfulCrawls": self.summary.successful_crawls,
                "failedCrawls": self.summary.failed_crawls,
                "totalLinks": self.summary.total_links,
                "totalContent": self.summary.total_content,
                "averageContentLength": self.summary.average_content_length,
            },
            "topPages": [
                {
                    "url": page.url,
                    "title": page.title,
                    "references": page.references,
                    "contentItems": page.content_items,
                }
                for page in self.top_pages
            ],
            "errors": [{"url": entry.url, "error": entry.error} for entry in self.errors],
        }
        if self.performance is not None:
            data["performance"] = {
                "duration": self.performance.duration,
                "pagesPerSecond": self.performance.pages_per_second,
            }
        return data


def build_report(
    state: CrawlState, *, performance: Optional[Performance] = None
) -> Report:
    """Summarise ``state``. Pure: the state is not modified."""
    records = list(state.pages.values())
    successful = len(records)
    failed = len(state.errors)

    total_links = sum(len(record.child_urls) for record in records)
    total_content = sum(len(record.content.full_text) for record in records)
    average = round(total_content / successful) if successful else None

    # sorted() is stable, so ties keep insertion order
    ranked = sorted(records, key=lambda record: record.reference_count, reverse=True)
    top_pages = [
        TopPage(
            url=record.url,
            references=record.reference_count,
            content_items=len(record.content.headings),
            title=record.content.title,
        )
        for record in ranked[:TOP_PAGES_LIMIT]
    ]

    return Report(
        seed_url=state.seed_url,
        summary=ReportSummary(
            total_pages=successful + failed,
            successful_crawls=successful,
            failed_crawls=failed,
            total_links=total_links,
            total_content=total_content,
            average_content_length=average,
        ),
        top_pages=top_pages,
        errors=[CrawlErrorEntry(url=url, error=error) for url, error in state.errors.items()],
        performance=performance,
    )
