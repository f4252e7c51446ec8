"""Crawl settings and factories for Crawl4AI browser/run configurations."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Tuple

from crawl4ai import BrowserConfig, CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

from .extract import DEFAULT_LINK_PATTERNS
from .fetcher import DEFAULT_BASE_DELAY, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT

LOGGER = logging.getLogger(__name__)

ENGINES: Tuple[str, ...] = ("browser", "http")

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

ENV_PREFIX = "DOCCRAWL_"


@dataclass
class CrawlConfig:
    """Tunables for one crawl run."""

    max_concurrent: int = 3
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY  # seconds
    timeout: float = DEFAULT_TIMEOUT  # seconds, per fetch attempt
    include_subdomains: bool = False
    link_patterns: Tuple[str, ...] = DEFAULT_LINK_PATTERNS
    max_pages: Optional[int] = None
    engine: str = "browser"

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.engine not in ENGINES:
            raise ValueError(
                f"Unknown engine '{self.engine}'; expected one of {', '.join(ENGINES)}"
            )
        self.link_patterns = tuple(self.link_patterns)

    @property
    def timeout_ms(self) -> int:
        return int(self.timeout * 1000)

    def with_overrides(self, **changes) -> "CrawlConfig":
        """Return a copy with the non-None ``changes`` applied."""
        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied) if applied else self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CrawlConfig":
        """Build a config from ``DOCCRAWL_*`` environment variables.

        Supported variables:
            DOCCRAWL_MAX_CONCURRENT, DOCCRAWL_MAX_RETRIES, DOCCRAWL_BASE_DELAY,
            DOCCRAWL_TIMEOUT, DOCCRAWL_MAX_PAGES, DOCCRAWL_ENGINE,
            DOCCRAWL_INCLUDE_SUBDOMAINS, DOCCRAWL_LINK_PATTERNS (comma
            separated; empty follows every anchor).
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        for key, cast in (
            ("max_concurrent", int),
            ("max_retries", int),
            ("base_delay", float),
            ("timeout", float),
            ("max_pages", int),
        ):
            raw = env.get(ENV_PREFIX + key.upper())
            if raw is None or not raw.strip():
                continue
            try:
                kwargs[key] = cast(raw)
            except ValueError:
                LOGGER.warning(
                    "Ignoring invalid %s%s=%r", ENV_PREFIX, key.upper(), raw
                )

        engine = env.get(ENV_PREFIX + "ENGINE")
        if engine:
            kwargs["engine"] = engine.strip().lower()

        subdomains = env.get(ENV_PREFIX + "INCLUDE_SUBDOMAINS")
        if subdomains:
            kwargs["include_subdomains"] = subdomains.strip().lower() in (
                "1",
                "true",
                "yes",
                "on",
            )

        patterns = env.get(ENV_PREFIX + "LINK_PATTERNS")
        if patterns is not None:
            kwargs["link_patterns"] = tuple(
                part.strip() for part in patterns.split(",") if part.strip()
            )

        return cls(**kwargs)


@dataclass
class RunConfigOverrides:
    """Optional page-rendering overrides."""

    wait_until: Optional[str] = None
    delay_before_return_html: Optional[float] = None
    wait_for: Optional[str] = None
    cache_mode: Optional[str] = None
    js_code: Optional[str] = None
    excluded_tags: list = field(default_factory=list)


def _convert_cache_mode(value: Optional[str], default: CacheMode) -> CacheMode:
    if not value:
        return default
    candidate = value.strip().replace("CacheMode.", "")
    try:
        return CacheMode[candidate.upper()]
    except KeyError:
        pass
    try:
        return CacheMode(candidate.lower())
    except ValueError:
        LOGGER.warning(
            "Unknown cache_mode '%s'; falling back to %s.", value, default.name
        )
        return default


def _apply_overrides(config: CrawlerRunConfig, overrides: RunConfigOverrides) -> None:
    if overrides.wait_until is not None:
        config.wait_until = overrides.wait_until
    if overrides.delay_before_return_html is not None:
        config.delay_before_return_html = overrides.delay_before_return_html
    if overrides.wait_for:
        config.wait_for = overrides.wait_for
    if overrides.cache_mode:
        config.cache_mode = _convert_cache_mode(overrides.cache_mode, config.cache_mode)
    if overrides.js_code:
        config.js_code = overrides.js_code
    if overrides.excluded_tags:
        config.excluded_tags = list(overrides.excluded_tags)


def build_page_run_config(
    timeout_ms: int = int(DEFAULT_TIMEOUT * 1000),
    overrides: Optional[RunConfigOverrides] = None,
) -> CrawlerRunConfig:
    """RunConfig for rendering one documentation page with full markup."""
    config = CrawlerRunConfig(
        verbose=False,
        semaphore_count=1,
        wait_until="networkidle",
        page_timeout=timeout_ms,
        wait_for="css:body",
        # dynamic navigation trees settle after network idle
        delay_before_return_html=2.0,
        cache_mode=CacheMode.BYPASS,
    )
    if overrides:
        _apply_overrides(config, overrides)
    return config


def build_browser_config(*, headless: bool = True) -> BrowserConfig:
    """Headless desktop browser shared by every page fetch."""
    return BrowserConfig(
        headless=headless,
        verbose=False,
        viewport_width=1920,
        viewport_height=1080,
        user_agent=USER_AGENT,
        use_persistent_context=False,
    )
