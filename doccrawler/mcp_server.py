"""MCP server exposing the documentation crawler.

Provides one tool, ``crawl_docs``, which crawls a documentation site and
returns its report. A single headless browser is shared by every tool call
and closed when the server shuts down.

Supports both STDIO and HTTP transports.

Usage:
    # STDIO (for desktop MCP clients)
    python -m doccrawler.mcp_server

    # HTTP (for remote access)
    python -m doccrawler.mcp_server --transport http --port 8000

Environment Variables:
    DOCCRAWL_MAX_CONCURRENT, DOCCRAWL_MAX_RETRIES, DOCCRAWL_BASE_DELAY,
    DOCCRAWL_TIMEOUT, DOCCRAWL_MAX_PAGES, DOCCRAWL_LINK_PATTERNS
"""

from __future__ import annotations

import argparse
import json
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .browser import BrowserPageFetcher, FetchResourcePool
from .cli_output import format_report_markdown
from .config import CrawlConfig
from .engine import CrawlError
from .events import CrawlEvent, CrawlFailed, CrawlProgress

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before reading environment variables
load_dotenv()

# Long-lived browser shared by all crawls; each crawl still gets its own state.
POOL = FetchResourcePool()


@asynccontextmanager
async def _lifespan(server):
    try:
        yield
    finally:
        await POOL.close()


mcp = FastMCP(
    name="Documentation Crawler",
    instructions="""
    A documentation site crawler that provides:

    - crawl_docs: Crawl a documentation site from a seed URL, following
      same-host documentation links, and return a report with page counts,
      the most referenced pages and per-page errors.

    Output formats:
    - json: Full report (default)
    - markdown: Human-readable summary
    """,
    lifespan=_lifespan,
)


class OutputFormat(str, Enum):
    """Output format for crawl reports."""

    markdown = "markdown"
    json = "json"


def _log_event(event: CrawlEvent) -> None:
    if isinstance(event, CrawlProgress):
        LOGGER.info("Progress: %s (%d pages)", event.current_url, event.total_pages_so_far)
    elif isinstance(event, CrawlFailed):
        LOGGER.warning("Failed: %s - %s", event.url, event.error)


async def crawl_docs(
    url: str,
    output_format: str = "json",
    max_concurrent: Optional[int] = None,
    max_pages: Optional[int] = None,
    follow_all_links: bool = False,
    engine: Optional[str] = None,
):
    """
    Crawl a documentation site starting from a seed URL.

    Args:
        url: The seed URL; only links on the same host are followed
        output_format: "json" (default) or "markdown"
        max_concurrent: Maximum simultaneous page fetches (default: 3)
        max_pages: Optional cap on pages fetched
        follow_all_links: Follow every anchor, not only documentation links
        engine: "browser" (default, renders JavaScript) or "http"

    Returns:
        The crawl report, or a JSON object with an "error" key when the
        seed page could not be crawled.

    Examples:
        crawl_docs(url="https://developer.apple.com/documentation/swiftui")
        crawl_docs(url="https://docs.example.com", engine="http", follow_all_links=True)
    """
    from . import crawl_docs_async

    try:
        fmt = OutputFormat(output_format.lower())
    except ValueError:
        fmt = OutputFormat.json

    try:
        config = CrawlConfig.from_env().with_overrides(
            max_concurrent=max_concurrent,
            max_pages=max_pages,
            engine=engine,
        )
        if follow_all_links:
            config = config.with_overrides(link_patterns=())
    except ValueError as exc:
        return json.dumps({"error": str(exc), "url": url}, ensure_ascii=False)

    fetcher = None
    if config.engine == "browser":
        fetcher = BrowserPageFetcher(POOL, link_patterns=config.link_patterns)

    LOGGER.info("Starting crawl: %s (engine=%s)", url, config.engine)
    try:
        report = await crawl_docs_async(
            url, config=config, fetcher=fetcher, progress_callback=_log_event
        )
    except (CrawlError, ValueError) as exc:
        LOGGER.error("Crawl failed: %s", exc)
        return json.dumps({"error": str(exc), "url": url}, ensure_ascii=False)

    LOGGER.info(
        "Completed: %d/%d successful",
        report.summary.successful_crawls,
        report.summary.total_pages,
    )

    if fmt == OutputFormat.markdown:
        return format_report_markdown(report)
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


mcp.tool(crawl_docs)


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the documentation crawler MCP server.",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
