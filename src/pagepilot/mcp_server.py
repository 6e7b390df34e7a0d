"""
PagePilot MCP 服务器

把浏览器会话池的工具注册为 MCP 工具。工具结果统一以 JSON 文本返回，
失败时为 ``{"success": false, "error": "..."}``。

启动方式：
    pagepilot                       # stdio
    pagepilot --transport http      # Streamable HTTP (/mcp)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .tools.handlers import BrowserTools

logger = logging.getLogger(__name__)

SERVER_NAME = "pagepilot"

INSTRUCTIONS = """PagePilot - 基于 Playwright 的浏览器会话池。

每个 sessionId 对应一个独立的浏览器实例（省略时为 "default"），
cookie / 历史记录在同一个 sessionId 的多次调用之间保留。

典型工作流：
1. navigate_url(url) 打开页面，返回区块与站内链接
2. click_element / get_content / take_screenshot 操作当前页面
3. run_playwright(code) 执行自定义异步 Playwright 代码
4. close_session() 关闭浏览器

可用工具：
- navigate_url: 导航并分析页面
- click_element: 点击元素
- get_content: 提取文本
- take_screenshot: 截图
- run_playwright: 执行自定义代码（page, context, browser, params, console）
- list_sessions: 列出会话
- close_session: 关闭会话
"""


def _dump(result: dict) -> str:
    return json.dumps(result, ensure_ascii=False, default=str)


def create_mcp_server(tools: BrowserTools, **settings: Any) -> FastMCP:
    """
    创建 FastMCP 服务器并注册全部工具

    Args:
        tools: 绑定了会话注册表的 BrowserTools
        **settings: 透传给 FastMCP 的设置（如 stateless_http / json_response）
    """
    mcp = FastMCP(name=SERVER_NAME, instructions=INSTRUCTIONS, **settings)

    @mcp.tool()
    async def navigate_url(
        url: str,
        sessionId: str | None = None,  # noqa: N803
        waitUntil: str | None = None,  # noqa: N803
        timeoutMs: int | None = None,  # noqa: N803
        retryCycles: int | None = None,  # noqa: N803
        retryDelayMs: int | None = None,  # noqa: N803
        browserType: str | None = None,  # noqa: N803
    ) -> str:
        """
        Navigate to a URL and automatically analyze page sections and extract internal links.

        Args:
            url: The URL to navigate to
            sessionId: Session ID to reuse browser instance (default "default")
            waitUntil: Preferred readiness condition (networkidle / load / domcontentloaded / commit).
                Falls back to load and domcontentloaded on timeout.
            timeoutMs: Timeout per attempt in milliseconds (default 30000)
            retryCycles: Extra passes over the fallback ladder after timeouts (0-5, default 1)
            retryDelayMs: Delay between passes in milliseconds (0-10000, default 750)
            browserType: chromium / firefox / webkit (unknown values use chromium)
        """
        return _dump(await tools.navigate_url(
            url,
            session_id=sessionId,
            wait_until=waitUntil,
            timeout_ms=timeoutMs,
            retry_cycles=retryCycles,
            retry_delay_ms=retryDelayMs,
            browser_type=browserType,
        ))

    @mcp.tool()
    async def click_element(selector: str, sessionId: str | None = None) -> str:  # noqa: N803
        """
        Click the first element matching a CSS selector.

        Args:
            selector: CSS selector of the element to click
            sessionId: Session ID of the browser instance
        """
        return _dump(await tools.click_element(selector, session_id=sessionId))

    @mcp.tool()
    async def get_content(selector: str | None = None, sessionId: str | None = None) -> str:  # noqa: N803
        """
        Extract text content from the page or a specific element.

        Args:
            selector: CSS selector to extract content. If omitted, extracts the full page
            sessionId: Session ID of the browser instance
        """
        return _dump(await tools.get_content(selector, session_id=sessionId))

    @mcp.tool()
    async def take_screenshot(selector: str | None = None, sessionId: str | None = None) -> str:  # noqa: N803
        """
        Take a PNG screenshot of the full page or a specific element.

        Args:
            selector: CSS selector to screenshot a specific element. Omit to capture the full page
            sessionId: Session ID of the browser instance
        """
        return _dump(await tools.take_screenshot(selector, session_id=sessionId))

    @mcp.tool()
    async def run_playwright(
        code: str,
        sessionId: str | None = None,  # noqa: N803
        timeoutMs: int | None = None,  # noqa: N803
        params: dict[str, Any] | None = None,
    ) -> str:
        """
        Execute custom async Playwright (Python) code using the active session.

        The code is the body of an async function with access to
        page, context, browser, params and console (log/info/warn/error).
        Example: await page.click("a"); return await page.title()

        Args:
            code: Async function body
            sessionId: Session ID of the browser instance
            timeoutMs: Execution timeout in milliseconds (1-120000, default 15000)
            params: Arbitrary JSON object passed to the code as ``params``
        """
        return _dump(await tools.run_playwright(
            code, session_id=sessionId, timeout_ms=timeoutMs, params=params,
        ))

    @mcp.tool()
    async def list_sessions() -> str:
        """List active browser sessions (id, browser type, current url)."""
        return _dump(await tools.list_sessions())

    @mcp.tool()
    async def close_session(sessionId: str | None = None) -> str:  # noqa: N803
        """
        Close browser sessions managed by the server.

        Args:
            sessionId: Close only this session. Omit to close all sessions
        """
        return _dump(await tools.close_session(sessionId))

    logger.info(f"[Server] Registered tools on MCP server {SERVER_NAME!r}")
    return mcp
