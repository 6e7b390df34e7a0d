"""
浏览器会话核心

核心组件：
- SessionRegistry: 会话注册表（获取/创建/替换/关闭）
- navigate: 带等待条件阶梯与重试的容错导航
- execute: 带超时与输出捕获的沙箱脚本执行
- PlaywrightDriver: 基于 Playwright 的驱动
"""

from .engines import DEFAULT_ENGINE, AutomationDriver, EngineKind, PlaywrightDriver
from .execution import CapturedConsole, ExecutionRecord, execute, safe_to_string
from .navigation import NavigationAttempt, NavigationOptions, NavigationResult, navigate
from .registry import (
    DEFAULT_SESSION_KEY,
    BrowserSession,
    CloseOutcome,
    SessionRegistry,
    resolve_session_key,
)

__all__ = [
    "AutomationDriver",
    "BrowserSession",
    "CapturedConsole",
    "CloseOutcome",
    "DEFAULT_ENGINE",
    "DEFAULT_SESSION_KEY",
    "EngineKind",
    "ExecutionRecord",
    "NavigationAttempt",
    "NavigationOptions",
    "NavigationResult",
    "PlaywrightDriver",
    "SessionRegistry",
    "execute",
    "navigate",
    "resolve_session_key",
    "safe_to_string",
]
