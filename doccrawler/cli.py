"""Command-line interface for the documentation crawler."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .cli_config import load_config
from .cli_output import write_report
from .config import ENGINES, CrawlConfig, RunConfigOverrides
from .engine import CrawlError
from .events import CrawlEvent, CrawlFailed, CrawlProgress


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_crawl_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="doccrawl",
        description="Crawl a documentation site and report on its pages.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Crawl and print a markdown report
  doccrawl https://developer.apple.com/documentation/swiftui

  # JSON report to a file
  doccrawl https://developer.apple.com/documentation/swiftui --json -o report.json

  # Static site over plain HTTP, follow every link, be gentle
  doccrawl https://docs.example.com --engine http --any-link --max-concurrent 2 --delay 1

  # Stop after 50 pages
  doccrawl https://docs.example.com --max-pages 50

Environment variables (also read from .env):
  DOCCRAWL_MAX_CONCURRENT, DOCCRAWL_MAX_RETRIES, DOCCRAWL_BASE_DELAY,
  DOCCRAWL_TIMEOUT, DOCCRAWL_MAX_PAGES, DOCCRAWL_ENGINE,
  DOCCRAWL_INCLUDE_SUBDOMAINS, DOCCRAWL_LINK_PATTERNS
""",
    )

    parser.add_argument(
        "url",
        help="Seed URL to start crawling from",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write the report to this file instead of stdout",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output the report as JSON",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=None,
        help="Maximum simultaneous page fetches (default: 3)",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Fetch attempts per page before giving up (default: 3)",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        dest="base_delay",
        help="Seconds to wait after each fetch; retry backoff grows linearly from it (default: 2)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed per fetch attempt (default: 30)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Stop claiming new pages after this many (default: unlimited)",
    )
    parser.add_argument(
        "--engine",
        choices=list(ENGINES),
        default=None,
        help="Page fetcher: headless browser or plain HTTP (default: browser)",
    )
    parser.add_argument(
        "--include-subdomains",
        action="store_true",
        default=None,
        help="Also follow links to other subdomains of the seed's domain",
    )
    parser.add_argument(
        "--any-link",
        action="store_true",
        help="Follow every anchor instead of only documentation/library/api links",
    )

    render_group = parser.add_argument_group("Browser rendering")
    render_group.add_argument(
        "--render-delay",
        type=float,
        default=None,
        help="Seconds to wait after page load before reading the DOM (default: 2)",
    )
    render_group.add_argument(
        "--wait-until",
        type=str,
        default=None,
        choices=["load", "domcontentloaded", "networkidle", "commit"],
        help="Page load event to wait for (default: networkidle)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> CrawlConfig:
    config = CrawlConfig.from_env().with_overrides(
        max_concurrent=args.max_concurrent,
        max_retries=args.max_retries,
        base_delay=args.base_delay,
        timeout=args.timeout,
        max_pages=args.max_pages,
        engine=args.engine,
        include_subdomains=args.include_subdomains,
    )
    if args.any_link:
        config = config.with_overrides(link_patterns=())
    return config


def _build_overrides(args: argparse.Namespace) -> Optional[RunConfigOverrides]:
    if args.render_delay is None and args.wait_until is None:
        return None
    return RunConfigOverrides(
        wait_until=args.wait_until,
        delay_before_return_html=args.render_delay,
    )


def _log_progress(event: CrawlEvent) -> None:
    if isinstance(event, CrawlProgress):
        logging.info(
            "[%d done] fetching %s", event.total_pages_so_far, event.current_url
        )
    elif isinstance(event, CrawlFailed):
        logging.warning("Failed: %s - %s", event.url, event.error)


async def _run_crawl_async(args: argparse.Namespace) -> int:
    """Main async entry point for crawl."""
    from . import crawl_docs_async

    config = _build_config(args)
    logging.info(
        "Starting crawl: %s (engine=%s, max_concurrent=%d)",
        args.url,
        config.engine,
        config.max_concurrent,
    )

    try:
        report = await crawl_docs_async(
            args.url,
            config=config,
            progress_callback=_log_progress,
            overrides=_build_overrides(args),
        )
    except CrawlError as exc:
        logging.error("Crawl failed: %s", exc)
        return 1

    logging.info(
        "Crawl complete: %d pages (%d successful, %d failed)",
        report.summary.total_pages,
        report.summary.successful_crawls,
        report.summary.failed_crawls,
    )
    write_report(report, args.output, args.json_output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the doccrawl command."""
    args = _parse_crawl_args(argv)
    _setup_logging(args.verbose)
    load_config(load_env=load_dotenv)

    try:
        return asyncio.run(_run_crawl_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
