"""测试用的假驱动 / 浏览器 / 页面（不启动真实浏览器）"""

from __future__ import annotations

from typing import Any

import pytest

from pagepilot.browser.registry import SessionRegistry
from pagepilot.config import Settings
from pagepilot.tools.handlers import BrowserTools


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeElement:
    def __init__(self, text: str = ""):
        self.text = text
        self.clicks = 0

    async def text_content(self) -> str:
        return self.text

    async def screenshot(self, **kwargs: Any) -> bytes:
        return b"element-png"


class FakeLocator:
    def __init__(self, element: FakeElement | None):
        self._element = element

    @property
    def first(self) -> FakeLocator:
        return self

    async def count(self) -> int:
        return 1 if self._element else 0

    async def click(self, **kwargs: Any) -> None:
        self._element.clicks += 1


class FakePage:
    """goto 的行为由 ``goto_script`` 决定：依次取出，异常则抛出，否则作为响应返回。"""

    def __init__(self):
        self.url = "about:blank"
        self.page_title = "Fake Page"
        self.goto_script: list[Any] = []
        self.goto_calls: list[dict] = []
        self.elements: dict[str, FakeElement] = {}
        self.body_text = ""
        self.analysis: dict = {"sections": [], "internalLinks": []}
        self.screenshots: list[dict] = []

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30000):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        outcome = self.goto_script.pop(0) if self.goto_script else FakeResponse(200)
        if isinstance(outcome, BaseException):
            raise outcome
        self.url = url
        return outcome

    async def title(self) -> str:
        return self.page_title

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self.elements.get(selector))

    async def query_selector(self, selector: str) -> FakeElement | None:
        return self.elements.get(selector)

    async def text_content(self, selector: str) -> str:
        return self.body_text

    async def screenshot(self, **kwargs: Any) -> bytes:
        self.screenshots.append(kwargs)
        return b"page-png-bytes"

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.analysis


class FakeContext:
    def __init__(self, browser: FakeBrowser):
        self.browser = browser


class FakeBrowser:
    def __init__(self, engine: str, headless: bool):
        self.engine = engine
        self.headless = headless
        self.closed = False
        self.fail_close = False

    async def close(self) -> None:
        if self.fail_close:
            raise RuntimeError("browser process is gone")
        self.closed = True


class FakeDriver:
    """记录所有 launch / close 调用"""

    def __init__(self):
        self.launched: list[FakeBrowser] = []
        self.close_calls: list[FakeBrowser] = []
        self.stopped = False
        self.fail_launch = False

    async def launch(self, engine_kind, headless: bool) -> FakeBrowser:
        if self.fail_launch:
            raise RuntimeError("Executable doesn't exist")
        browser = FakeBrowser(engine_kind.value, headless)
        self.launched.append(browser)
        return browser

    async def new_context(self, browser: FakeBrowser) -> FakeContext:
        return FakeContext(browser)

    async def new_page(self, context: FakeContext) -> FakePage:
        return FakePage()

    async def close(self, browser: FakeBrowser) -> None:
        self.close_calls.append(browser)
        await browser.close()

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def registry(driver):
    return SessionRegistry(driver, headless=True)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        screenshots_dir=str(tmp_path / "shots"),
        nav_retry_delay_ms=0,
        content_preview_length=20,
        max_sections=2,
    )


@pytest.fixture
def tools(registry, settings):
    return BrowserTools(registry, settings)
