"""Shared fixtures: an in-memory link graph fetcher and strict test accounting."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import pytest

from doccrawler.document import FetchedPage, LinkInfo


def page_html(title: str, body: str = "") -> str:
    return (
        f"<html><head><title>{title}</title>"
        f'<meta name="description" content="{title} page"></head>'
        f"<body><h1>{title}</h1><p>{body or title + ' body text'}</p></body></html>"
    )


class FakeSiteFetcher:
    """PageFetcher serving a fixed link graph.

    ``graph`` maps a URL to the URLs it links to. URLs missing from the graph
    fail every attempt. ``failures`` makes a URL fail its first N attempts.
    ``bodies`` replaces the page body markup for individual URLs.
    In-flight fetches are tracked so tests can assert the concurrency cap.
    """

    def __init__(
        self,
        graph: Dict[str, List[str]],
        *,
        failures: Optional[Dict[str, int]] = None,
        bodies: Optional[Dict[str, str]] = None,
        latency: float = 0.0,
    ) -> None:
        self.graph = graph
        self.bodies = dict(bodies or {})
        self.failures = dict(failures or {})
        self.latency = latency
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str, timeout_ms: int) -> FetchedPage:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            if self.failures.get(url, 0) > 0:
                self.failures[url] -= 1
                raise ConnectionError(f"transient failure for {url}")
            if url not in self.graph:
                raise ConnectionError(f"404 for {url}")
            links = [
                LinkInfo(href=target, text=f"link to {target}")
                for target in self.graph[url]
            ]
            html = page_html(url, self.bodies.get(url, ""))
            return FetchedPage(content=html, links=links, final_url=url)
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_site() -> Callable[..., FakeSiteFetcher]:
    return FakeSiteFetcher


@dataclass
class SleepRecorder:
    delays: List[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# ---------------------------------------------------------------------------
# Strict accounting: any skipped/deselected/xfail/xpass test fails the run.
# ---------------------------------------------------------------------------


@dataclass
class _TestAccounting:
    deselected: int = 0
    skipped: int = 0
    xfailed: int = 0
    xpassed: int = 0


_ACCOUNTING = _TestAccounting()


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _ACCOUNTING.deselected += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return

    if getattr(report, "wasxfail", False):
        if report.outcome == "skipped":
            _ACCOUNTING.xfailed += 1
        elif report.outcome == "passed":
            _ACCOUNTING.xpassed += 1
        return

    if report.outcome == "skipped":
        _ACCOUNTING.skipped += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = [
        f"{name}={count}"
        for name, count in vars(_ACCOUNTING).items()
        if count
    ]
    if not violations:
        return

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=",
            f"Test accounting violations: {', '.join(violations)}",
        )
    session.exitstatus = 1
