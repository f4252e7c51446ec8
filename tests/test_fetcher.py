"""Tests for doccrawler.fetcher module."""

from __future__ import annotations

import asyncio

import pytest

from doccrawler.document import FetchedPage
from doccrawler.fetcher import (
    FetchError,
    FetchResourceError,
    PageContentError,
    RateLimitedFetcher,
)

URL = "https://docs.test/documentation/a"


class FlakyFetcher:
    """Fails the first ``failures`` calls, then succeeds."""

    def __init__(self, failures: int = 0, exc: Exception | None = None):
        self.failures = failures
        self.exc = exc or ConnectionError("connection reset")
        self.calls = 0
        self.timeouts = []

    async def fetch(self, url: str, timeout_ms: int) -> FetchedPage:
        self.calls += 1
        self.timeouts.append(timeout_ms)
        if self.calls <= self.failures:
            raise self.exc
        return FetchedPage(content="<html></html>", final_url=url)


class TestRetry:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("succeed_on", [1, 2, 3])
    async def test_succeeds_within_retry_limit(self, succeed_on, sleep_recorder):
        inner = FlakyFetcher(failures=succeed_on - 1)
        fetcher = RateLimitedFetcher(inner, max_retries=3, sleep=sleep_recorder)

        page = await fetcher.fetch(URL)

        assert page.final_url == URL
        assert inner.calls == succeed_on

    @pytest.mark.asyncio
    async def test_raises_fetch_error_when_retries_exhausted(self, sleep_recorder):
        inner = FlakyFetcher(failures=4)
        fetcher = RateLimitedFetcher(inner, max_retries=3, sleep=sleep_recorder)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(URL)

        assert inner.calls == 3
        assert exc_info.value.url == URL
        assert isinstance(exc_info.value.cause, ConnectionError)
        assert exc_info.value.__cause__ is exc_info.value.cause

    @pytest.mark.asyncio
    async def test_resource_error_is_not_retried(self, sleep_recorder):
        inner = FlakyFetcher(failures=5, exc=FetchResourceError("closed"))
        fetcher = RateLimitedFetcher(inner, max_retries=3, sleep=sleep_recorder)

        with pytest.raises(FetchResourceError):
            await fetcher.fetch(URL)

        assert inner.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_content_error_is_not_retried(self, sleep_recorder):
        inner = FlakyFetcher(failures=5, exc=PageContentError("not html"))
        fetcher = RateLimitedFetcher(inner, max_retries=3, sleep=sleep_recorder)

        with pytest.raises(PageContentError):
            await fetcher.fetch(URL)

        assert inner.calls == 1
        # the page was still fetched, so the courtesy delay applies
        assert sleep_recorder.delays == [2.0]

    def test_rejects_zero_retries(self):
        with pytest.raises(ValueError):
            RateLimitedFetcher(FlakyFetcher(), max_retries=0)


class TestDelays:
    @pytest.mark.asyncio
    async def test_courtesy_delay_after_first_try_success(self, sleep_recorder):
        fetcher = RateLimitedFetcher(
            FlakyFetcher(), base_delay=2.0, sleep=sleep_recorder
        )
        await fetcher.fetch(URL)
        assert sleep_recorder.delays == [2.0]

    @pytest.mark.asyncio
    async def test_linear_backoff_between_attempts(self, sleep_recorder):
        fetcher = RateLimitedFetcher(
            FlakyFetcher(failures=2), base_delay=2.0, sleep=sleep_recorder
        )
        await fetcher.fetch(URL)
        # two backoffs (2 * 1, 2 * 2) then the post-fetch delay
        assert sleep_recorder.delays == [2.0, 4.0, 2.0]

    @pytest.mark.asyncio
    async def test_no_sleep_after_final_failure(self, sleep_recorder):
        fetcher = RateLimitedFetcher(
            FlakyFetcher(failures=3), base_delay=1.5, sleep=sleep_recorder
        )
        with pytest.raises(FetchError):
            await fetcher.fetch(URL)
        assert sleep_recorder.delays == [1.5, 3.0]


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout_is_passed_in_milliseconds(self, sleep_recorder):
        inner = FlakyFetcher()
        fetcher = RateLimitedFetcher(inner, timeout=12.5, sleep=sleep_recorder)
        await fetcher.fetch(URL)
        assert inner.timeouts == [12500]

    @pytest.mark.asyncio
    async def test_hanging_fetch_times_out_and_is_retried(self, sleep_recorder):
        class HangingFetcher:
            calls = 0

            async def fetch(self, url, timeout_ms):
                self.calls += 1
                await asyncio.sleep(10)

        inner = HangingFetcher()
        fetcher = RateLimitedFetcher(
            inner, max_retries=2, timeout=0.01, sleep=sleep_recorder
        )

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(URL)

        assert inner.calls == 2
        assert isinstance(exc_info.value.cause, TimeoutError)
