"""Output and formatting helpers for the CLI."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from .report import Report


def format_report_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def format_report_markdown(report: Report) -> str:
    """Format a crawl report as markdown.

    Example output:
    # Crawl report: https://example.com/documentation/

    | Metric | Value |
    |---|---|
    | Total pages | 3 |
    ...
    """
    summary = report.summary
    average = (
        str(summary.average_content_length)
        if summary.average_content_length is not None
        else "n/a"
    )

    lines = [
        f"# Crawl report: {report.seed_url}",
        "",
        "| Metric | Value |",
        "|---|---|",
        f"| Total pages | {summary.total_pages} |",
        f"| Successful | {summary.successful_crawls} |",
        f"| Failed | {summary.failed_crawls} |",
        f"| Links found | {summary.total_links} |",
        f"| Content characters | {summary.total_content} |",
        f"| Average content length | {average} |",
    ]

    if report.performance is not None:
        lines.append(f"| Duration (s) | {report.performance.duration} |")
        lines.append(f"| Pages per second | {report.performance.pages_per_second} |")
    lines.append("")

    if report.top_pages:
        lines.append("## Most referenced pages")
        lines.append("")
        for i, page in enumerate(report.top_pages, 1):
            label = page.title or page.url
            lines.append(
                f"{i}. [{label}]({page.url}) - {page.references} references, "
                f"{page.content_items} headings"
            )
        lines.append("")

    if report.errors:
        lines.append("## Errors")
        lines.append("")
        for entry in report.errors:
            lines.append(f"- {entry.url}: {entry.error}")
        lines.append("")

    return "\n".join(lines)


def write_report(report: Report, output: Optional[str], json_output: bool) -> None:
    """Write the report to stdout or a file."""
    text = format_report_json(report) if json_output else format_report_markdown(report)

    if output is None:
        print(text)
        return

    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", path)
