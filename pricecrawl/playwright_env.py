"""Centralised helpers for launching the crawl browser session."""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Browser, BrowserContext, ConsoleMessage, Page, Playwright, async_playwright

from pricecrawl.config import CrawlerConfig
from pricecrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}

# Flags for unattended runs inside containers: no GPU, no sandbox namespace,
# single renderer process.
SERVER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-gpu",
)


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def headless_enabled() -> bool:
    """Return True if Playwright should run in headless mode."""

    return _as_bool(os.getenv("PRICECRAWL_HEADLESS"), True)


def launch_kwargs() -> dict[str, Any]:
    """Return kwargs passed to ``chromium.launch``."""

    args = list(SERVER_ARGS)
    extra_args = os.getenv("PRICECRAWL_CHROMIUM_ARGS")
    if extra_args:
        args.extend(shlex.split(extra_args))

    kwargs: dict[str, Any] = {
        "headless": headless_enabled(),
        "args": args,
    }

    channel = os.getenv("PRICECRAWL_BROWSER_CHANNEL")
    if channel:
        kwargs["channel"] = channel

    return kwargs


@dataclass
class BrowserSession:
    """A launched browser with the single page the walker drives."""

    playwright: Playwright | None
    browser: Browser | None
    context: BrowserContext | None
    page: Page
    logger: logging.Logger = field(default=LOGGER, repr=False)
    closed: bool = field(default=False, init=False)

    async def close(self) -> None:
        """Close page, context, browser and Playwright; later calls are no-ops."""

        if self.closed:
            return
        self.closed = True

        for label, resource in (
            ("page", self.page),
            ("context", self.context),
            ("browser", self.browser),
        ):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as exc:
                self.logger.warning("Failed to close %s: %s", label, exc)

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as exc:
                self.logger.warning("Failed to stop Playwright: %s", exc)


def _console_listener(logger: logging.Logger):
    def _on_console(message: ConsoleMessage) -> None:
        if message.type == "error":
            logger.warning("Console error: %s", message.text)

    return _on_console


async def open_browser_session(
    config: CrawlerConfig,
    logger: logging.Logger | None = None,
) -> BrowserSession:
    """Launch Chromium and return a page configured for the crawl.

    The page identifies itself with ``config.user_agent`` and uses the
    configured navigation and action timeouts. Console errors from the target
    page surface as warnings.
    """

    log = logger or LOGGER
    playwright = await async_playwright().start()
    browser: Browser | None = None
    context: BrowserContext | None = None
    try:
        browser = await playwright.chromium.launch(**launch_kwargs())
        context = await browser.new_context(user_agent=config.user_agent)
        page = await context.new_page()
    except Exception:
        if context is not None:
            await context.close()
        if browser is not None:
            await browser.close()
        await playwright.stop()
        raise

    page.set_default_navigation_timeout(config.navigation_timeout_ms)
    page.set_default_timeout(config.action_timeout_ms)
    page.on("console", _console_listener(log))

    log.info("Browser launched | headless=%s user_agent=%s", headless_enabled(), config.user_agent)
    return BrowserSession(playwright=playwright, browser=browser, context=context, page=page, logger=log)


__all__ = ["BrowserSession", "SERVER_ARGS", "headless_enabled", "launch_kwargs", "open_browser_session"]
