from __future__ import annotations

import asyncio

import pytest

import doccrawler
from doccrawler import CrawlConfig, CrawlError, crawl_docs, crawl_docs_async
from doccrawler.events import CrawlCompleted, CrawlFailed, CrawlStarted

BASE = "https://docs.test/documentation"
X, Y = f"{BASE}/x", f"{BASE}/y"


def _config(**kwargs) -> CrawlConfig:
    kwargs.setdefault("base_delay", 0.0)
    kwargs.setdefault("max_retries", 1)
    return CrawlConfig(**kwargs)


@pytest.mark.asyncio
async def test_crawl_docs_async_reports_and_completes(make_site) -> None:
    site = make_site({X: [Y], Y: [X]})
    events = []

    report = await crawl_docs_async(
        X, config=_config(), fetcher=site, progress_callback=events.append
    )

    assert report.seed_url == X
    assert report.summary.successful_crawls == 2
    assert report.top_pages[0].url == X
    assert report.top_pages[0].references == 2
    assert report.performance is not None
    assert report.performance.duration >= 0
    assert isinstance(events[0], CrawlStarted)
    assert isinstance(events[-1], CrawlCompleted)
    assert events[-1].report is report


@pytest.mark.asyncio
async def test_crawl_docs_async_seed_failure_emits_error(make_site) -> None:
    site = make_site({})
    events = []

    with pytest.raises(CrawlError):
        await crawl_docs_async(
            X, config=_config(), fetcher=site, progress_callback=events.append
        )

    assert isinstance(events[-1], CrawlFailed)
    assert events[-1].url == X
    assert not any(isinstance(event, CrawlCompleted) for event in events)


@pytest.mark.asyncio
async def test_crawl_docs_async_http_engine_closes_fetcher(
    monkeypatch: pytest.MonkeyPatch, make_site
) -> None:
    site = make_site({X: []})
    created = []

    class FakeHttpFetcher:
        def __init__(self, *, link_patterns):
            self.link_patterns = link_patterns
            self.closed = False
            created.append(self)

        async def fetch(self, url, timeout_ms):
            return await site.fetch(url, timeout_ms)

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            self.closed = True

    monkeypatch.setattr(doccrawler, "HttpPageFetcher", FakeHttpFetcher)

    report = await crawl_docs_async(X, config=_config(engine="http", link_patterns=()))

    assert report.summary.successful_crawls == 1
    assert created[0].closed
    assert created[0].link_patterns == ()


@pytest.mark.asyncio
async def test_crawl_docs_async_rejects_bad_url(make_site) -> None:
    with pytest.raises(ValueError):
        await crawl_docs_async("ftp://docs.test/", fetcher=make_site({}))


def test_crawl_docs_sync_wrapper(make_site) -> None:
    report = crawl_docs(X, config=_config(), fetcher=make_site({X: []}))
    assert report.summary.total_pages == 1


async def _cancel_once_fetching(task: asyncio.Future, site) -> None:
    while not site.calls:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_cancelled_crawl_closes_http_fetcher(
    monkeypatch: pytest.MonkeyPatch, make_site
) -> None:
    site = make_site({X: [Y], Y: []}, latency=5.0)
    created = []

    class FakeHttpFetcher:
        def __init__(self, *, link_patterns):
            self.closed = False
            created.append(self)

        async def fetch(self, url, timeout_ms):
            return await site.fetch(url, timeout_ms)

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            self.closed = True

    monkeypatch.setattr(doccrawler, "HttpPageFetcher", FakeHttpFetcher)

    task = asyncio.ensure_future(crawl_docs_async(X, config=_config(engine="http")))
    await _cancel_once_fetching(task, site)

    assert created[0].closed
    assert site.in_flight == 0


@pytest.mark.asyncio
async def test_cancelled_crawl_closes_browser_pool(
    monkeypatch: pytest.MonkeyPatch, make_site
) -> None:
    site = make_site({X: [Y], Y: []}, latency=5.0)
    pools = []

    class FakePool:
        def __init__(self):
            self.closed = False
            pools.append(self)

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            self.closed = True

    def fake_browser_fetcher(pool, *, link_patterns, overrides):
        return site

    monkeypatch.setattr(doccrawler, "FetchResourcePool", FakePool)
    monkeypatch.setattr(doccrawler, "BrowserPageFetcher", fake_browser_fetcher)

    task = asyncio.ensure_future(crawl_docs_async(X, config=_config()))
    await _cancel_once_fetching(task, site)

    assert pools[0].closed
