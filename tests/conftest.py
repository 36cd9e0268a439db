"""Shared fakes for Playwright pages, locators and timing."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from katabump_renew.config import Settings


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


class FakeClock:
    """Replaces asyncio.sleep; advances virtual time instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    async def sleep(self, delay, *args, **kwargs):
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(asyncio, "sleep", fake.sleep)
    return fake


# ---------------------------------------------------------------------------
# Page / locator fakes
# ---------------------------------------------------------------------------


class FakeLocator:
    """Locator whose visibility is a bool or a zero-arg callable."""

    def __init__(self, page, key, visible=False, on_click=None, box=None):
        self.page = page
        self.key = key
        self._visible = visible
        self.on_click = on_click
        self.box = box
        self.clicks = 0
        self.filled = []

    @property
    def visible(self) -> bool:
        return self._visible() if callable(self._visible) else bool(self._visible)

    @property
    def first(self):
        return self

    async def wait_for(self, state="visible", timeout=None):
        self.page.queried.append(self.key)
        if not self.visible:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for {self.key}")

    async def is_visible(self):
        self.page.queried.append(self.key)
        return self.visible

    async def click(self, **kwargs):
        self.clicks += 1
        self.page.clicked.append(self.key)
        if self.on_click:
            self.on_click()

    async def fill(self, value):
        self.filled.append(value)

    async def bounding_box(self):
        return self.box

    def get_by_role(self, role, name=None, exact=None):
        return self.page.lookup(("in", self.key, role, name))

    def get_by_label(self, text):
        return self.page.lookup(("in", self.key, "label", text))


class FakePage:
    """Minimal async Page: elements are registered by role/text/selector key."""

    def __init__(self):
        self.elements = {}
        self.queried = []
        self.clicked = []
        self.frames = []
        self.closed = False
        self.goto = AsyncMock()
        self.reload = AsyncMock()
        self.screenshot = AsyncMock()
        self.add_init_script = AsyncMock()
        self.mouse = MagicMock()
        self.mouse.move = AsyncMock()
        self.context = MagicMock()
        self.context.clear_cookies = AsyncMock()
        self.context.new_cdp_session = AsyncMock()
        self.set_default_timeout = MagicMock()

    def add(self, key, **kwargs) -> FakeLocator:
        locator = FakeLocator(self, key, **kwargs)
        self.elements[key] = locator
        return locator

    def lookup(self, key) -> FakeLocator:
        if key not in self.elements:
            self.elements[key] = FakeLocator(self, key)
        return self.elements[key]

    def get_by_role(self, role, name=None, exact=None):
        return self.lookup((role, name))

    def get_by_text(self, text):
        return self.lookup(("text", text))

    def locator(self, selector):
        return self.lookup(("css", selector))

    def is_closed(self):
        return self.closed


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture
def settings(tmp_path):
    return Settings(screenshot_dir=str(tmp_path / "shots"))
