"""Sequence a single crawl run: browser, navigation, walk, cleanup."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import pricecrawl.selectors as selectors
from pricecrawl.config import CrawlerConfig
from pricecrawl.errors import PageLoadError
from pricecrawl.logging_config import get_logger
from pricecrawl.playwright_env import open_browser_session
from pricecrawl.retry import RetryPolicy, SleepFn, retry_with_policy
from pricecrawl.storage.repo import PriceWriter
from pricecrawl.walker import HierarchyWalker, SelectOption, WalkStats

LOGGER = get_logger(__name__)

BrowserLauncher = Callable[[CrawlerConfig, logging.Logger], Awaitable[Any]]
WalkerFactory = Callable[..., HierarchyWalker]


@dataclass
class CrawlSummary:
    manufacturers_found: int = 0
    manufacturers_selected: int = 0
    stats: WalkStats = field(default_factory=WalkStats)
    elapsed_s: float = 0.0


class CrawlOrchestrator:
    """Own the browser session and DB session for one crawl run.

    Both handles are released in a cleanup phase that runs on every exit path;
    a failure closing one does not prevent closing the other.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        session_factory: Callable[[], Any],
        *,
        launch_browser: BrowserLauncher = open_browser_session,
        walker_factory: WalkerFactory = HierarchyWalker,
        logger: logging.Logger | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.launch_browser = launch_browser
        self.walker_factory = walker_factory
        self.logger = logger or LOGGER
        self._sleep = sleep
        self.policy = RetryPolicy.from_config(config)

    async def _open_form(self, page: Any) -> None:
        url = self.config.base_url

        async def _navigate() -> None:
            await page.goto(url, wait_until="networkidle")
            self.logger.info("Navigated to %s", url)

        async def _wait_for_form() -> None:
            await page.wait_for_selector(
                selectors.CALCULATOR_FORM, timeout=self.config.selector_timeout_ms
            )
            self.logger.info("Calculator form loaded")

        try:
            await retry_with_policy(_navigate, self.policy, sleep=self._sleep, logger=self.logger)
        except Exception as exc:
            raise PageLoadError("Navigation failed", url=url) from exc
        try:
            await retry_with_policy(_wait_for_form, self.policy, sleep=self._sleep, logger=self.logger)
        except Exception as exc:
            raise PageLoadError("Calculator form did not load", url=url) from exc

    def _cap(self, manufacturers: list[SelectOption]) -> list[SelectOption]:
        limit = self.config.max_manufacturers
        if limit > 0 and len(manufacturers) > limit:
            self.logger.info("Limiting to %d manufacturers to reduce server load", limit)
            return manufacturers[:limit]
        return manufacturers

    async def _close_browser(self, browser_session: Any) -> None:
        if browser_session is None:
            return
        try:
            await browser_session.close()
        except Exception as exc:
            self.logger.error("Error closing browser: %s", exc)

    def _close_db(self, db_session: Any) -> None:
        if db_session is None:
            return
        try:
            db_session.close()
        except Exception as exc:
            self.logger.error("Error disconnecting from database: %s", exc)

    async def run(self) -> CrawlSummary:
        """Execute one crawl pass; fatal errors are logged and re-raised."""

        summary = CrawlSummary()
        start = time.monotonic()
        browser_session: Any = None
        db_session: Any = None

        try:
            self.logger.info("Starting price data crawler")
            self.logger.info("Using delay between requests: %dms", self.config.request_delay_ms)

            db_session = self.session_factory()
            writer = PriceWriter(db_session, logger=self.logger)

            browser_session = await self.launch_browser(self.config, self.logger)
            page = browser_session.page
            await self._open_form(page)

            walker = self.walker_factory(
                page, writer, self.config, logger=self.logger, sleep=self._sleep
            )
            manufacturers = await walker.read_options(selectors.MANUFACTURER_SELECT)
            summary.manufacturers_found = len(manufacturers)
            self.logger.info("Extracted %d manufacturers", len(manufacturers))

            manufacturers = self._cap(manufacturers)
            summary.manufacturers_selected = len(manufacturers)

            summary.stats = await walker.walk(manufacturers)
            self.logger.info(
                "Crawler completed successfully | manufacturers=%d devices=%d actions=%d prices=%d errors=%d",
                summary.stats.manufacturers,
                summary.stats.devices,
                summary.stats.actions,
                summary.stats.prices,
                summary.stats.errors,
            )
        except Exception:
            self.logger.exception("An error occurred during crawling")
            raise
        finally:
            await self._close_browser(browser_session)
            self._close_db(db_session)
            summary.elapsed_s = time.monotonic() - start
            self.logger.info("Browser and database connections closed")

        return summary


__all__ = ["CrawlOrchestrator", "CrawlSummary"]
