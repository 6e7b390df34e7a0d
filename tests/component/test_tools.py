"""L2 Component Tests: BrowserTools per-tool behaviour on fake sessions."""

import asyncio
from pathlib import Path

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pagepilot.browser.engines import EngineKind
from pagepilot.core.errors import NO_SESSION_MESSAGE

from ..conftest import FakeElement, FakeResponse

ANALYSIS = {
    "sections": [
        {"id": "semantic-main-0", "type": "semantic", "tagName": "main", "selector": "main:nth-of-type(1)", "area": 9000, "text": "Main"},
        {"id": "visual--card-1", "type": "visual", "selector": ".card", "area": 500, "text": "Card"},
        {"id": "semantic-nav-2", "type": "semantic", "tagName": "nav", "selector": "nav:nth-of-type(1)", "area": 200, "text": "Nav"},
    ],
    "internalLinks": [
        {"text": "About", "href": "https://example.com/about", "isVisible": True},
        {"text": "Hidden", "href": "https://example.com/hidden", "isVisible": False},
    ],
}


class TestNavigateUrl:
    @pytest.mark.asyncio
    async def test_creates_default_session_and_analyzes(self, tools, registry):
        result = await tools.navigate_url("https://example.com")
        assert result["success"] is True
        assert result["sessionId"] == "default"
        assert result["status"] == 200
        assert result["waitUntil"] == "networkidle"
        assert result["browserType"] == "chromium"
        assert registry.get("default") is not None

    @pytest.mark.asyncio
    async def test_sections_truncated_and_summarized(self, tools, registry):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)
        session.page.analysis = ANALYSIS

        result = await tools.navigate_url("https://example.com")

        assert [s["id"] for s in result["sections"]] == ["semantic-main-0", "visual--card-1"]
        assert result["summary"] == {
            "totalSections": 3,
            "sectionsByType": {"semantic": 2, "visual": 1},
            "returnedSections": 2,
            "truncatedSections": True,
            "totalInternalLinks": 2,
            "visibleLinks": 1,
        }
        assert "Analyzed 3 sections and found 2 internal links" in result["message"]

    @pytest.mark.asyncio
    async def test_browser_type_switch_replaces_session(self, tools, registry, driver):
        await tools.navigate_url("https://example.com", session_id="s1")
        first = registry.get("s1")
        result = await tools.navigate_url("https://example.com", session_id="s1", browser_type="firefox")

        assert result["browserType"] == "firefox"
        assert registry.get("s1") is not first
        assert first.browser.closed is True

    @pytest.mark.asyncio
    async def test_navigation_failure_is_structured(self, tools, registry):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)
        session.page.goto_script = [PlaywrightTimeoutError("Timeout 5ms exceeded.") for _ in range(3)]

        result = await tools.navigate_url("https://slow.example", retry_cycles=0, timeout_ms=5)

        assert result["success"] is False
        assert result["attempts"] == 1
        assert len(result["history"]) == 3
        assert "Timeout 5ms exceeded." in result["error"]

    @pytest.mark.asyncio
    async def test_missing_url(self, tools):
        result = await tools.navigate_url("")
        assert result == {"success": False, "error": "URL is required"}


class TestSessionRequired:
    @pytest.mark.asyncio
    async def test_tools_without_session(self, tools):
        for result in (
            await tools.click_element("a"),
            await tools.get_content(),
            await tools.take_screenshot(),
            await tools.run_playwright("return 1"),
        ):
            assert result == {"success": False, "error": NO_SESSION_MESSAGE}


class TestPageTools:
    @pytest.mark.asyncio
    async def test_click_element(self, tools, registry):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)
        button = FakeElement("Go")
        session.page.elements["#go"] = button

        result = await tools.click_element("#go")
        assert result["success"] is True
        assert result["clickMethod"] == "selector"
        assert button.clicks == 1

        missing = await tools.click_element("#nope")
        assert missing == {"success": False, "error": 'Element with selector "#nope" not found'}

    @pytest.mark.asyncio
    async def test_get_content_sanitizes_and_truncates(self, tools, registry):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)
        session.page.body_text = "  Hello \n\n world, this is a long body text  "

        result = await tools.get_content()

        assert result["success"] is True
        assert result["selector"] == "full page"
        assert result["content"] == "Hello world, this is"
        assert result["contentLength"] == len("Hello world, this is a long body text")
        assert result["truncated"] is True

    @pytest.mark.asyncio
    async def test_get_content_selector(self, tools, registry):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)
        session.page.elements["h1"] = FakeElement("Title")

        result = await tools.get_content("h1")
        assert result["content"] == "Title"
        assert result["truncated"] is False

        missing = await tools.get_content("h2")
        assert missing["error"] == "Element not found with selector: h2"

    @pytest.mark.asyncio
    async def test_take_screenshot_full_page(self, tools, registry, settings):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)

        result = await tools.take_screenshot()

        assert result["success"] is True
        assert result["target"] == "full page"
        assert result["size"] == len(b"page-png-bytes")
        path = Path(result["path"])
        assert path.parent == settings.screenshots_path / "default"
        assert path.name.startswith("screenshot-default-full-page-")
        assert session.page.screenshots[0]["full_page"] is True

    @pytest.mark.asyncio
    async def test_take_screenshot_element(self, tools, registry):
        session = await registry.get_or_create("default", EngineKind.CHROMIUM)
        session.page.elements[".card"] = FakeElement()

        result = await tools.take_screenshot(".card")
        assert result["target"] == "selector: .card"
        assert result["size"] == len(b"element-png")


class TestRunPlaywright:
    @pytest.mark.asyncio
    async def test_success(self, tools, registry):
        await registry.get_or_create("default", EngineKind.CHROMIUM)

        result = await tools.run_playwright("console.log('hi', params['a'])\nreturn 5", params={"a": 1})

        assert result["success"] is True
        assert result["returnValue"] == 5
        assert result["logs"] == [{"level": "log", "message": "hi 1"}]
        assert result["title"] == "Fake Page"

    @pytest.mark.asyncio
    async def test_timeout_is_structured(self, tools, registry):
        await registry.get_or_create("default", EngineKind.CHROMIUM)

        result = await tools.run_playwright("await asyncio.sleep(5)", timeout_ms=30)

        assert result["success"] is False
        assert result["error"] == "Execution timed out"

    @pytest.mark.asyncio
    async def test_empty_code(self, tools):
        assert (await tools.run_playwright("  "))["error"] == "code is required"


class TestCloseAndList:
    @pytest.mark.asyncio
    async def test_close_all(self, tools, registry):
        for key in ("a", "b", "c"):
            await registry.get_or_create(key, EngineKind.CHROMIUM)
        registry.get("c").browser.fail_close = True

        result = await tools.close_session()

        assert result["success"] is True
        assert result["closedSessions"] == 2
        assert result["errors"] == 1
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_close_one(self, tools, registry):
        await registry.get_or_create("a", EngineKind.CHROMIUM)
        await registry.get_or_create("b", EngineKind.CHROMIUM)

        result = await tools.close_session("a")
        assert result["closedSessions"] == 1
        assert registry.keys() == ["b"]

        missing = await tools.close_session("zzz")
        assert missing == {"success": False, "error": NO_SESSION_MESSAGE}

    @pytest.mark.asyncio
    async def test_calls_on_unknown_keys_leave_no_locks(self, tools, driver):
        await tools.click_element("a", session_id="ghost-1")
        await tools.get_content(session_id="ghost-2")
        driver.fail_launch = True
        await tools.navigate_url("https://example.com", session_id="ghost-3")

        assert tools._locks == {}
        assert tools._lock_users == {}

    @pytest.mark.asyncio
    async def test_close_waits_for_in_flight_operation(self, tools, registry):
        await registry.get_or_create("a", EngineKind.CHROMIUM)

        running = asyncio.create_task(
            tools.run_playwright("await asyncio.sleep(0.1)\nreturn 'done'", session_id="a")
        )
        await asyncio.sleep(0.01)
        closing = asyncio.create_task(tools.close_session("a"))
        await asyncio.sleep(0.01)
        # 关闭等待中，锁对象未被替换
        assert not closing.done()
        assert tools._lock_users["a"] == 2

        run_result, close_result = await asyncio.gather(running, closing)
        assert run_result["success"] is True
        assert run_result["returnValue"] == "done"
        assert close_result["closedSessions"] == 1
        assert tools._locks == {}

    @pytest.mark.asyncio
    async def test_list_sessions(self, tools, registry):
        await tools.navigate_url("https://example.com", session_id="x")
        result = await tools.list_sessions()
        assert result["count"] == 1
        assert result["sessions"][0]["sessionId"] == "x"
        assert result["sessions"][0]["url"] == "https://example.com"
