"""
核心异常类

所有异常都在工具边界被捕获并转换为 ``{"success": False, "error": ...}``，
不会让宿主进程崩溃。
"""

from __future__ import annotations

from typing import Any

NO_SESSION_MESSAGE = "No active browser session found. Use navigate_url first."


class PagePilotError(Exception):
    """PagePilot 异常基类"""


class SessionNotFound(PagePilotError):
    """按 key 查找会话但会话不存在。

    可恢复：提示调用方先调用 navigate_url 创建会话。
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(NO_SESSION_MESSAGE)


class NavigationError(PagePilotError):
    """导航失败：所有等待条件 / 重试轮次都超时，或遇到非超时错误。

    Attributes:
        url: 目标 URL
        attempts: 实际执行的轮次数
        history: 每一次尝试的记录 (NavigationAttempt)
        last_error: 最后一次底层错误信息
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        attempts: int = 0,
        history: list[Any] | None = None,
        last_error: str = "",
    ):
        self.url = url
        self.attempts = attempts
        self.history = list(history or [])
        self.last_error = last_error
        super().__init__(message)


class ExecutionError(PagePilotError):
    """用户脚本抛出异常或执行超时。

    Attributes:
        duration_ms: 从调用到失败的耗时
        logs: 失败前已捕获的 console 输出
    """

    def __init__(self, message: str, *, duration_ms: int = 0, logs: list[dict] | None = None):
        self.duration_ms = duration_ms
        self.logs = list(logs or [])
        super().__init__(message)


class RegistryCloseError(PagePilotError):
    """关闭浏览器句柄失败（逐个记录，不会中断批量关闭）"""

    def __init__(self, key: str, cause: BaseException):
        self.key = key
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)
