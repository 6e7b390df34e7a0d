"""
浏览器会话注册表

职责:
- 根据 session key 获取或创建会话（同 key + 同引擎 → 复用）
- 引擎类型不一致时替换旧会话（先关闭再重建）
- 单个关闭 / 全部关闭（关闭失败独立记录，不影响其他会话）

注册表本身只保证 key→Session 映射的原子修改；
同一个 key 上的并发操作由调用方串行化。
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import RegistryCloseError, SessionNotFound
from .engines import AutomationDriver, EngineKind

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "default"


@dataclass
class BrowserSession:
    """一个绑定到逻辑 key 的浏览器实例（引擎 + 隔离 context + 单个 page）"""

    key: str
    engine_kind: EngineKind
    browser: Any
    context: Any
    page: Any
    created_at: float = field(default_factory=time.time)

    @property
    def current_url(self) -> str | None:
        try:
            return self.page.url
        except Exception:
            return None

    def to_dict(self) -> dict:
        return {
            "sessionId": self.key,
            "browserType": self.engine_kind.value,
            "url": self.current_url,
            "createdAt": time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(self.created_at)),
        }


@dataclass
class CloseOutcome:
    """关闭单个会话的结果"""

    key: str
    closed: bool
    error: str | None = None

    @property
    def outcome(self) -> str:
        return "closed" if self.closed else f"error:{self.error}"

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "sessionId": self.key,
            "status": "closed" if self.closed else "error",
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def resolve_session_key(key: str | None) -> str:
    return key or DEFAULT_SESSION_KEY


class SessionRegistry:
    """
    会话注册表

    进程启动时创建一次，以引用方式传给所有工具处理器。
    """

    def __init__(self, driver: AutomationDriver, headless: bool = True):
        self._driver = driver
        self._headless = headless
        self._sessions: dict[str, BrowserSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        return key in self._sessions

    def keys(self) -> list[str]:
        return list(self._sessions.keys())

    def list_sessions(self) -> list[BrowserSession]:
        return list(self._sessions.values())

    def get(self, key: str) -> BrowserSession | None:
        """纯查找，不创建"""
        return self._sessions.get(key)

    def require(self, key: str) -> BrowserSession:
        """查找会话，不存在时抛出 SessionNotFound"""
        session = self._sessions.get(key)
        if session is None:
            raise SessionNotFound(key)
        return session

    async def get_or_create(self, key: str, engine_kind: EngineKind | str) -> BrowserSession:
        """
        获取或创建会话

        Args:
            key: 会话 key
            engine_kind: 引擎类型（无法识别时回退到 chromium）

        Returns:
            已存在且引擎一致的会话原样返回；否则启动新会话
        """
        kind = EngineKind.resolve(engine_kind)

        async with self._lock:
            session = self._sessions.get(key)
            if session is not None and session.engine_kind == kind:
                return session
            if session is not None:
                del self._sessions[key]

        if session is not None:
            logger.info(
                f"[Registry] Session {key!r} engine change "
                f"{session.engine_kind.value} -> {kind.value}, replacing"
            )
            try:
                await self._close_handles(session)
            except RegistryCloseError as e:
                logger.warning(f"[Registry] Error closing replaced session {key!r}: {e}")

        session = await self._launch(key, kind)

        async with self._lock:
            self._sessions[key] = session
        logger.info(f"[Registry] Created session {key!r} ({kind.value}, headless={self._headless})")
        return session

    async def close_one(self, key: str) -> CloseOutcome:
        """关闭单个会话；即使关闭失败，映射中的条目也会被移除。"""
        async with self._lock:
            session = self._sessions.pop(key, None)
        if session is None:
            raise SessionNotFound(key)
        return await self._close_to_outcome(session)

    async def close_all(self) -> list[CloseOutcome]:
        """关闭全部会话，逐个独立处理，结束后映射为空。"""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        results = []
        for session in sessions:
            results.append(await self._close_to_outcome(session))
        return results

    async def shutdown(self) -> list[CloseOutcome]:
        """进程退出时调用：关闭全部会话并停止驱动。"""
        results = await self.close_all()
        closed = sum(1 for r in results if r.closed)
        logger.info(f"[Registry] Drained {closed}/{len(results)} sessions")
        await self._driver.stop()
        return results

    # ── 内部 ────────────────────────────────────────────

    async def _launch(self, key: str, kind: EngineKind) -> BrowserSession:
        browser = await self._driver.launch(kind, self._headless)
        try:
            context = await self._driver.new_context(browser)
            page = await self._driver.new_page(context)
        except Exception:
            try:
                await self._driver.close(browser)
            except Exception as close_err:
                logger.debug(f"[Registry] Cleanup after failed launch of {key!r}: {close_err}")
            raise
        return BrowserSession(key=key, engine_kind=kind, browser=browser, context=context, page=page)

    async def _close_handles(self, session: BrowserSession) -> None:
        try:
            await self._driver.close(session.browser)
        except Exception as e:
            raise RegistryCloseError(session.key, e) from e

    async def _close_to_outcome(self, session: BrowserSession) -> CloseOutcome:
        try:
            await self._close_handles(session)
        except RegistryCloseError as e:
            logger.warning(f"[Registry] Error closing session {session.key!r}: {e}")
            return CloseOutcome(key=session.key, closed=False, error=str(e))
        logger.info(f"[Registry] Closed session {session.key!r}")
        return CloseOutcome(key=session.key, closed=True)
