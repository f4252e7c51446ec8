"""Tests for doccrawler.state module."""

from __future__ import annotations

import threading

from doccrawler.document import PageContent
from doccrawler.state import CrawlState, VisitedSet


def _content(title: str = "Page") -> PageContent:
    return PageContent(title=title)


class TestVisitedSet:
    def test_first_claim_wins(self):
        visited = VisitedSet()
        assert visited.try_claim("https://a.test/x") is True
        assert visited.try_claim("https://a.test/x") is False
        assert "https://a.test/x" in visited
        assert len(visited) == 1

    def test_claim_attempts_are_tallied(self):
        visited = VisitedSet()
        for _ in range(3):
            visited.try_claim("https://a.test/x")
        assert visited.claim_attempts("https://a.test/x") == 3
        assert visited.claim_attempts("https://a.test/unknown") == 0

    def test_is_claimed(self):
        visited = VisitedSet()
        assert not visited.is_claimed("https://a.test/")
        visited.try_claim("https://a.test/")
        assert visited.is_claimed("https://a.test/")

    def test_concurrent_threads_claim_once(self):
        visited = VisitedSet()
        winners = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            if visited.try_claim("https://a.test/shared"):
                winners.append(threading.get_ident())

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(winners) == 1
        assert visited.claim_attempts("https://a.test/shared") == 16


class TestCrawlState:
    def test_add_page_starts_at_one(self):
        state = CrawlState(origin="a.test")
        record = state.add_page("https://a.test/", _content(), ["https://a.test/b"])
        assert record is not None
        assert record.reference_count == 1
        assert record.child_urls == ["https://a.test/b"]

    def test_add_page_twice_keeps_first(self):
        state = CrawlState(origin="a.test")
        state.add_page("https://a.test/", _content("first"), [])
        assert state.add_page("https://a.test/", _content("second"), []) is None
        assert state.pages["https://a.test/"].content.title == "first"

    def test_reference_after_creation_increments(self):
        state = CrawlState(origin="a.test")
        state.add_page("https://a.test/", _content(), [])
        state.add_reference("https://a.test/")
        assert state.pages["https://a.test/"].reference_count == 2

    def test_reference_before_creation_is_folded_in(self):
        state = CrawlState(origin="a.test")
        state.add_reference("https://a.test/b")
        state.add_reference("https://a.test/b")
        record = state.add_page("https://a.test/b", _content(), [])
        assert record.reference_count == 3

    def test_error_drops_pending_references(self):
        state = CrawlState(origin="a.test")
        state.add_reference("https://a.test/b")
        state.add_error("https://a.test/b", "boom")
        assert state.errors == {"https://a.test/b": "boom"}
        assert "https://a.test/b" not in state.pages
        assert state.attempted == 1
