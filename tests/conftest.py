from __future__ import annotations

import logging

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pricecrawl.storage.db import init_db
from pricecrawl.walker import OPTIONS_POPULATED_JS, PRICE_READY_JS, READ_PRICE_JS

PLACEHOLDER = ("", "Bitte wählen")


class FakeCalculatorPage:
    """In-memory stand-in for the calculator page's cascading selects.

    *catalog* maps manufacturer -> device -> action -> price label. Option
    values equal their labels. Manufacturers listed in *stuck* never populate
    their device select.
    """

    def __init__(self, catalog, *, stuck=(), goto_failures=0):
        self.catalog = catalog
        self.stuck = set(stuck)
        self.goto_failures = goto_failures
        self.calls: list[tuple] = []
        self.manufacturer: str | None = None
        self.device: str | None = None
        self.price_text = ""
        self.options = {
            "#manufacturer": [PLACEHOLDER] + [(name, name) for name in catalog],
            "#device": [PLACEHOLDER],
            "#action": [PLACEHOLDER],
        }

    async def goto(self, url, wait_until=None):
        self.calls.append(("goto", url))
        if self.goto_failures > 0:
            self.goto_failures -= 1
            raise PlaywrightTimeoutError("Navigation timeout of 30000 ms exceeded")

    async def wait_for_selector(self, selector, timeout=None):
        self.calls.append(("wait_for_selector", selector))

    async def eval_on_selector(self, selector, script):
        return [{"value": value, "text": f"  {text} "} for value, text in self.options[selector]]

    async def select_option(self, selector, value):
        self.calls.append(("select", selector, value))
        if selector == "#manufacturer":
            self.manufacturer = value
            devices = [] if value in self.stuck else list(self.catalog[value])
            self.options["#device"] = [PLACEHOLDER] + [(name, name) for name in devices]
            self.options["#action"] = [PLACEHOLDER]
            self.price_text = ""
        elif selector == "#device":
            self.device = value
            actions = self.catalog[self.manufacturer][value]
            self.options["#action"] = [PLACEHOLDER] + [(name, name) for name in actions]
            self.price_text = ""
        elif selector == "#action":
            self.price_text = self.catalog[self.manufacturer][self.device][value]

    async def wait_for_function(self, script, arg=None, timeout=None):
        if script == OPTIONS_POPULATED_JS:
            ready = len(self.options[arg]) > 1
        elif script == PRICE_READY_JS:
            ready = self.price_text.strip() != ""
        else:
            raise AssertionError(f"unexpected script: {script}")
        if not ready:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def evaluate(self, script, arg=None):
        assert script == READ_PRICE_JS
        return self.price_text.strip()


class FakeBrowserSession:
    def __init__(self, page):
        self.page = page
        self.close_calls = 0

    async def close(self):
        self.close_calls += 1


class CountingSessionFactory:
    """Wrap a sessionmaker and count ``close()`` calls on sessions it hands out."""

    def __init__(self, factory):
        self.factory = factory
        self.close_calls = 0

    def __call__(self):
        session = self.factory()
        original_close = session.close

        def close():
            self.close_calls += 1
            original_close()

        session.close = close
        return session


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds):
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture()
def engine():
    engine = create_engine("sqlite:///:memory:", future=True)
    init_db(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(engine, expire_on_commit=False, future=True)


@pytest.fixture()
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture()
def test_logger(caplog):
    caplog.set_level(logging.INFO, logger="tests.pricecrawl")
    return logging.getLogger("tests.pricecrawl")
