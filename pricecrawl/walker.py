"""Walk the calculator's cascading selects and persist each price found."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

import pricecrawl.selectors as selectors
from pricecrawl.config import CrawlerConfig
from pricecrawl.errors import NodeTimeoutError
from pricecrawl.logging_config import get_logger
from pricecrawl.normalizers import clean_option_text, extract_price_number
from pricecrawl.retry import RetryPolicy, SleepFn, retry_with_policy
from pricecrawl.storage.models_sql import Device, Manufacturer
from pricecrawl.storage.repo import PriceWriter

LOGGER = get_logger(__name__)

READ_OPTIONS_JS = (
    "(select) => Array.from(select.options).map("
    "(option) => ({ value: option.value, text: option.textContent.trim() }))"
)
# True once the child select holds more than its placeholder. Options left over
# from the previous parent also satisfy it, so a site that repopulates the child
# asynchronously is only covered by the request delay that follows each select.
OPTIONS_POPULATED_JS = (
    "(selector) => { const select = document.querySelector(selector);"
    " return !!select && select.options.length > 1; }"
)
PRICE_READY_JS = (
    "(selector) => { const element = document.querySelector(selector);"
    " return !!element && element.textContent.trim() !== ''; }"
)
READ_PRICE_JS = (
    "(selector) => { const element = document.querySelector(selector);"
    " return element ? element.textContent.trim() : 'Price not available'; }"
)


@dataclass(frozen=True)
class SelectOption:
    value: str
    text: str


@dataclass
class WalkStats:
    """Counters for one pass over the hierarchy."""

    manufacturers: int = 0
    devices: int = 0
    actions: int = 0
    prices: int = 0
    errors: int = 0


class HierarchyWalker:
    """Drive manufacturer -> device -> action selection on a single page.

    A node that still fails after the retry budget is logged, its subtree is
    skipped and the walk continues with the next sibling after a cooldown.
    """

    def __init__(
        self,
        page: Any,
        writer: PriceWriter,
        config: CrawlerConfig,
        *,
        logger: logging.Logger | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.page = page
        self.writer = writer
        self.config = config
        self.logger = logger or LOGGER
        self._sleep = sleep
        self.policy = RetryPolicy.from_config(config)
        self.stats = WalkStats()

    async def _pause(self, delay_ms: int | None = None) -> None:
        ms = self.config.request_delay_ms if delay_ms is None else delay_ms
        if ms > 0:
            await self._sleep(ms / 1000)

    async def _cooldown(self) -> None:
        await self._pause(self.config.cooldown_ms)

    async def read_options(self, selector: str) -> list[SelectOption]:
        """Return the selectable options of *selector*, placeholder excluded."""

        raw = await self.page.eval_on_selector(selector, READ_OPTIONS_JS)
        options: list[SelectOption] = []
        for entry in raw or []:
            value = str((entry or {}).get("value") or "")
            if value == selectors.PLACEHOLDER_VALUE:
                continue
            options.append(SelectOption(value=value, text=clean_option_text(entry.get("text"))))
        return options

    async def _select(self, selector: str, value: str, ready_script: str, ready_arg: str, **context: str) -> None:
        timeout = self.config.selector_timeout_ms

        async def _attempt() -> None:
            await self.page.select_option(selector, value)
            await self.page.wait_for_function(ready_script, arg=ready_arg, timeout=timeout)

        try:
            await retry_with_policy(_attempt, self.policy, sleep=self._sleep, logger=self.logger)
        except PlaywrightTimeoutError as exc:
            raise NodeTimeoutError(
                f"{ready_arg} not ready after selecting {selector}={value!r}",
                **context,
            ) from exc

    async def walk(self, manufacturers: list[SelectOption]) -> WalkStats:
        for manufacturer in manufacturers:
            await self.walk_manufacturer(manufacturer)
        return self.stats

    async def walk_manufacturer(self, option: SelectOption) -> None:
        try:
            record = self.writer.upsert_manufacturer(option.text)
            self.logger.info("Processing manufacturer: %s", option.text)

            await self._select(
                selectors.MANUFACTURER_SELECT,
                option.value,
                OPTIONS_POPULATED_JS,
                selectors.DEVICE_SELECT,
                manufacturer=option.text,
            )
            await self._pause()

            devices = await self.read_options(selectors.DEVICE_SELECT)
            self.logger.info("Found %d devices for manufacturer %s", len(devices), option.text)

            for device in devices:
                await self.walk_device(record, device)
            self.stats.manufacturers += 1
        except Exception as exc:
            self.stats.errors += 1
            self.logger.error("Error processing manufacturer %s: %s", option.text, exc)
            await self._cooldown()

    async def walk_device(self, manufacturer: Manufacturer, option: SelectOption) -> None:
        try:
            record = self.writer.find_or_create_device(option.text, manufacturer.id)
            self.logger.info("Processing device: %s", option.text)

            await self._select(
                selectors.DEVICE_SELECT,
                option.value,
                OPTIONS_POPULATED_JS,
                selectors.ACTION_SELECT,
                manufacturer=manufacturer.name,
                device=option.text,
            )
            await self._pause()

            actions = await self.read_options(selectors.ACTION_SELECT)
            self.logger.info("Found %d actions for device %s", len(actions), option.text)

            for action in actions:
                await self.walk_action(manufacturer, record, action)
            self.stats.devices += 1
        except Exception as exc:
            self.stats.errors += 1
            self.logger.error(
                "Error processing device %s (manufacturer %s): %s",
                option.text,
                manufacturer.name,
                exc,
            )
            await self._cooldown()

    async def walk_action(self, manufacturer: Manufacturer, device: Device, option: SelectOption) -> None:
        try:
            record = self.writer.find_or_create_action(option.text, device.id)
            self.logger.info("Processing action: %s", option.text)

            await self._select(
                selectors.ACTION_SELECT,
                option.value,
                PRICE_READY_JS,
                selectors.FINAL_PRICE,
                manufacturer=manufacturer.name,
                device=device.name,
                action=option.text,
            )

            price_text = await self.page.evaluate(READ_PRICE_JS, selectors.FINAL_PRICE)
            price = extract_price_number(price_text)
            self.logger.info("Processed price: %s", price)

            if self.writer.insert_price(record.id, price) is not None:
                self.stats.prices += 1
            self.stats.actions += 1

            await self._pause()
        except Exception as exc:
            self.stats.errors += 1
            self.logger.error(
                "Error processing action %s on device %s: %s",
                option.text,
                device.name,
                exc,
            )
            await self._cooldown()


__all__ = ["HierarchyWalker", "SelectOption", "WalkStats"]
