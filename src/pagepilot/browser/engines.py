"""
浏览器引擎与 Playwright 驱动

- EngineKind: 支持的引擎（封闭枚举），无法识别的输入静默回退到 chromium
- AutomationDriver: 注册表依赖的驱动接口（launch / new_context / new_page / close）
- PlaywrightDriver: 基于 playwright.async_api 的默认实现
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_DRIVER_START_TIMEOUT = 20  # seconds
_LAUNCH_TIMEOUT = 30  # seconds

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
]


class EngineKind(str, Enum):
    """浏览器引擎类型"""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    @classmethod
    def resolve(cls, value: Any) -> EngineKind:
        """宽松解析：无法识别的值不报错，直接回退到 chromium。"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for kind in cls:
                if kind.value == normalized:
                    return kind
        if value:
            logger.debug(f"[Engine] Unrecognized engine kind {value!r}, using chromium")
        return cls.CHROMIUM


DEFAULT_ENGINE = EngineKind.CHROMIUM


class AutomationDriver(Protocol):
    """会话注册表所需的驱动能力"""

    async def launch(self, engine_kind: EngineKind, headless: bool) -> Any: ...

    async def new_context(self, browser: Any) -> Any: ...

    async def new_page(self, context: Any) -> Any: ...

    async def close(self, browser: Any) -> None: ...

    async def stop(self) -> None: ...


class PlaywrightDriver:
    """Playwright 驱动：按需启动 driver 进程，按引擎类型启动浏览器。"""

    def __init__(self, default_timeout_ms: int = 30000):
        self._playwright: Any | None = None
        self._start_lock = asyncio.Lock()
        self._default_timeout_ms = default_timeout_ms

    @property
    def is_started(self) -> bool:
        return self._playwright is not None

    async def _ensure_started(self) -> Any:
        """启动 Playwright driver 进程（最多重试 2 次）。"""
        async with self._start_lock:
            if self._playwright is not None:
                return self._playwright

            from playwright.async_api import async_playwright

            max_attempts = 2
            last_err = ""
            for attempt in range(1, max_attempts + 1):
                try:
                    self._playwright = await asyncio.wait_for(
                        async_playwright().start(), timeout=_DRIVER_START_TIMEOUT,
                    )
                    logger.info("[Driver] Playwright driver started")
                    return self._playwright
                except asyncio.TimeoutError:
                    last_err = (
                        f"Playwright driver start timed out "
                        f"({_DRIVER_START_TIMEOUT}s, attempt {attempt}/{max_attempts})"
                    )
                except Exception as e:
                    last_err = f"Playwright driver start failed: {type(e).__name__}: {e}"
                logger.warning(f"[Driver] {last_err}")
                if attempt < max_attempts:
                    await asyncio.sleep(1)

            raise RuntimeError(last_err)

    async def launch(self, engine_kind: EngineKind, headless: bool) -> Any:
        playwright = await self._ensure_started()
        launcher = getattr(playwright, EngineKind.resolve(engine_kind).value)

        launch_kwargs: dict[str, Any] = {
            "headless": headless,
            "timeout": _LAUNCH_TIMEOUT * 1000,
        }
        if launcher is playwright.chromium:
            launch_kwargs["args"] = list(_CHROMIUM_ARGS)

        browser = await asyncio.wait_for(
            launcher.launch(**launch_kwargs), timeout=_LAUNCH_TIMEOUT + 5,
        )
        if not browser.is_connected():
            raise RuntimeError("Browser process exited immediately after launch")
        return browser

    async def new_context(self, browser: Any) -> Any:
        return await browser.new_context()

    async def new_page(self, context: Any) -> Any:
        page = await context.new_page()
        page.set_default_timeout(self._default_timeout_ms)
        return page

    async def close(self, browser: Any) -> None:
        # 关闭浏览器会级联关闭其 context 与 page
        await browser.close()

    async def stop(self) -> None:
        if self._playwright:
            try:
                await self._playwright.stop()
                logger.info("[Driver] Playwright driver stopped")
            except Exception as e:
                logger.warning(f"[Driver] Error stopping Playwright driver: {e}")
            self._playwright = None
