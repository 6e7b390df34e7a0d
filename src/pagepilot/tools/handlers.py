"""
浏览器工具处理器

每个工具一个协程，返回 ``{"success": True, ...}`` 或 ``{"success": False, "error": ...}``：
- navigate_url: 获取/创建会话 + 容错导航 + 页面分析
- click_element: 点击第一个匹配元素
- get_content: 提取文本（清洗 + 截断）
- take_screenshot: 截图并保存到会话目录
- close_session: 关闭单个或全部会话
- run_playwright: 在会话上执行自定义 Playwright 代码
- list_sessions: 列出活跃会话

同一个 session key 上的操作通过 per-key 锁串行执行。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from ..browser import execution, navigation
from ..browser.engines import EngineKind
from ..browser.page_analysis import analyze_page
from ..browser.registry import SessionRegistry, resolve_session_key
from ..core.errors import ExecutionError, NavigationError, PagePilotError
from .files import screenshot_path
from .text import sanitize_text, truncate

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

CLICK_TIMEOUT_MS = 10000


def _error(message: str, **extra: Any) -> dict:
    return {"success": False, "error": message, **extra}


async def _page_info(page: Any) -> tuple[str | None, str | None]:
    """当前 url / title，获取失败时返回 None"""
    try:
        url = page.url
    except Exception:
        url = None
    try:
        title = await page.title()
    except Exception:
        title = None
    return url, title


class BrowserTools:
    """在 SessionRegistry 管理的会话上执行工具调用。"""

    def __init__(self, registry: SessionRegistry, settings: Settings):
        self._registry = registry
        self._settings = settings
        self._locks: dict[str, asyncio.Lock] = {}
        # 每个 key 上持有或等待锁的调用数
        self._lock_users: dict[str, int] = {}

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @contextlib.asynccontextmanager
    async def _serialized(self, key: str):
        """
        串行化同一个 session key 上的操作

        锁只在没有调用持有/等待、且 key 没有对应会话时才移除，
        因此不会出现两个调用拿到不同锁对象的情况。
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                if key not in self._registry:
                    self._locks.pop(key, None)

    def _discard_idle_locks(self) -> None:
        for key in list(self._locks):
            if key not in self._lock_users and key not in self._registry:
                del self._locks[key]

    # ── 工具 ──────────────────────────────────────────

    async def navigate_url(
        self,
        url: str,
        session_id: str | None = None,
        wait_until: str | None = None,
        timeout_ms: int | None = None,
        retry_cycles: int | None = None,
        retry_delay_ms: int | None = None,
        browser_type: str | None = None,
    ) -> dict:
        """导航到 URL 并分析页面区块与站内链接"""
        if not url:
            return _error("URL is required")

        key = resolve_session_key(session_id)
        engine = EngineKind.resolve(browser_type or self._settings.browser_type)
        options = navigation.NavigationOptions(
            wait_condition=wait_until,
            timeout_ms=timeout_ms if timeout_ms is not None else self._settings.nav_timeout_ms,
            retry_cycles=retry_cycles if retry_cycles is not None else self._settings.nav_retry_cycles,
            retry_delay_ms=(
                retry_delay_ms if retry_delay_ms is not None else self._settings.nav_retry_delay_ms
            ),
        )

        async with self._serialized(key):
            try:
                session = await self._registry.get_or_create(key, engine)
                result = await navigation.navigate(session, url, options)
                _, title = await _page_info(session.page)
                analysis = await analyze_page(session.page)
            except NavigationError as e:
                return _error(
                    str(e),
                    sessionId=key,
                    attempts=e.attempts,
                    history=[a.to_dict() for a in e.history],
                )
            except Exception as e:
                logger.error(f"[Tools] navigate_url {url} failed: {e}")
                return _error(str(e) or "Unknown error occurred during navigation and analysis")

        limit = max(0, self._settings.max_sections)
        top_sections = [
            {k: s.get(k) for k in ("id", "type", "selector", "tagName", "area", "text")}
            for s in analysis.sections[:limit]
        ]
        links = analysis.internal_links
        return {
            "success": True,
            "sessionId": key,
            "url": url,
            "title": title,
            "status": result.status,
            "waitUntil": result.wait_condition_used,
            "browserType": session.engine_kind.value,
            "sections": top_sections,
            "internalLinks": links,
            "summary": analysis.summary(len(top_sections)),
            "message": (
                f"Successfully navigated to {url}. Analyzed {len(analysis.sections)} sections "
                f"and found {len(links)} internal links."
            ),
        }

    async def click_element(self, selector: str, session_id: str | None = None) -> dict:
        """点击第一个匹配 selector 的元素"""
        key = resolve_session_key(session_id)
        async with self._serialized(key):
            try:
                session = self._registry.require(key)
                element = session.page.locator(selector).first
                if await element.count() == 0:
                    return _error(f'Element with selector "{selector}" not found')
                await element.click(timeout=CLICK_TIMEOUT_MS)
                url, title = await _page_info(session.page)
            except PagePilotError as e:
                return _error(str(e))
            except Exception as e:
                logger.error(f"[Tools] click_element {selector} failed: {e}")
                return _error(str(e) or "Unknown error occurred during click")

        return {
            "success": True,
            "sessionId": key,
            "url": url,
            "title": title,
            "clickMethod": "selector",
            "target": selector,
            "message": f"Successfully clicked selector: {selector}",
        }

    async def get_content(self, selector: str | None = None, session_id: str | None = None) -> dict:
        """提取元素或整个 body 的文本"""
        key = resolve_session_key(session_id)
        preview_length = self._settings.content_preview_length
        async with self._serialized(key):
            try:
                session = self._registry.require(key)
                if selector:
                    element = await session.page.query_selector(selector)
                    if not element:
                        return _error(f"Element not found with selector: {selector}")
                    raw = await element.text_content()
                else:
                    raw = await session.page.text_content("body")
                url, title = await _page_info(session.page)
            except PagePilotError as e:
                return _error(str(e))
            except Exception as e:
                logger.error(f"[Tools] get_content failed: {e}")
                return _error(str(e) or "Unknown error occurred during content extraction")

        text = sanitize_text(raw)
        content, truncated = truncate(text, preview_length)
        return {
            "success": True,
            "sessionId": key,
            "url": url,
            "title": title,
            "selector": selector or "full page",
            "contentType": "text",
            "content": content,
            "contentLength": len(text),
            "truncated": truncated,
            "previewLength": preview_length,
            "message": "Successfully extracted text content",
        }

    async def take_screenshot(self, selector: str | None = None, session_id: str | None = None) -> dict:
        """截图：有 selector 时截元素，否则截整页"""
        key = resolve_session_key(session_id)
        label = selector or "full-page"
        async with self._serialized(key):
            try:
                session = self._registry.require(key)
                output = screenshot_path(self._settings.screenshots_path, key, label)
                if selector:
                    element = await session.page.query_selector(selector)
                    if not element:
                        return _error(f"Element not found with selector: {selector}")
                    data = await element.screenshot(path=str(output), type="png")
                    target = f"selector: {selector}"
                else:
                    data = await session.page.screenshot(path=str(output), type="png", full_page=True)
                    target = "full page"
                url, title = await _page_info(session.page)
            except PagePilotError as e:
                return _error(str(e))
            except Exception as e:
                logger.error(f"[Tools] take_screenshot failed: {e}")
                return _error(str(e) or "Unknown error occurred during screenshot")

        return {
            "success": True,
            "sessionId": key,
            "url": url,
            "title": title,
            "target": target,
            "format": "png",
            "size": len(data) if data else 0,
            "path": str(output),
            "message": f"Successfully captured screenshot of {target}",
        }

    async def close_session(self, session_id: str | None = None) -> dict:
        """关闭指定会话；不传 session_id 时关闭全部"""
        try:
            if session_id:
                # 等待该 key 上进行中的操作结束后再关闭
                async with self._serialized(session_id):
                    results = [await self._registry.close_one(session_id)]
            else:
                results = await self._registry.close_all()
                self._discard_idle_locks()
        except PagePilotError as e:
            return _error(str(e))

        closed = sum(1 for r in results if r.closed)
        return {
            "success": True,
            "closedSessions": closed,
            "errors": len(results) - closed,
            "results": [r.to_dict() for r in results],
            "message": f"Closed {closed} browser sessions",
        }

    async def run_playwright(
        self,
        code: str,
        session_id: str | None = None,
        timeout_ms: int | None = None,
        params: dict | None = None,
    ) -> dict:
        """在会话上执行自定义异步 Playwright 代码"""
        if not code or not code.strip():
            return _error("code is required")

        key = resolve_session_key(session_id)
        timeout = timeout_ms if timeout_ms is not None else self._settings.exec_timeout_ms
        timeout = max(1, min(int(timeout), execution.MAX_TIMEOUT_MS))

        async with self._serialized(key):
            try:
                session = self._registry.require(key)
                record = await execution.execute(session, code, timeout, params)
            except ExecutionError as e:
                return _error(str(e), sessionId=key, durationMs=e.duration_ms, logs=e.logs)
            except PagePilotError as e:
                return _error(str(e))
            except Exception as e:
                logger.error(f"[Tools] run_playwright failed: {e}")
                return _error(str(e) or "Unknown error occurred during Playwright code execution")
            url, title = await _page_info(session.page)

        return {
            "success": True,
            "sessionId": key,
            "url": url,
            "title": title,
            **record.to_dict(),
            "message": "Playwright code executed successfully",
        }

    async def list_sessions(self) -> dict:
        sessions = [s.to_dict() for s in self._registry.list_sessions()]
        return {
            "success": True,
            "sessions": sessions,
            "count": len(sessions),
            "message": f"{len(sessions)} active browser sessions",
        }
