"""robots.txt hook. Policy enforcement is not implemented; every URL is allowed."""

from __future__ import annotations

from typing import Protocol


class RobotsPolicy(Protocol):
    def allows(self, url: str) -> bool:
        ...


class AllowAllPolicy:
    """Default policy used by the crawl engine."""

    def allows(self, url: str) -> bool:
        return True
