"""
沙箱化脚本执行

把调用方提供的代码体包装成异步函数：

    async def <fn>(page, context, browser, params, console):
        <code>

在会话的 page / context / browser 句柄上运行，并与超时计时器竞速。
console 的四个通道 (log / info / warn / error) 按顺序写入日志缓冲。
返回值先做一次 JSON 往返，失败时退回到 safe_to_string。
"""

from __future__ import annotations

import asyncio
import json
import logging
import textwrap
import time
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ExecutionError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15000
MAX_TIMEOUT_MS = 120000

TIMEOUT_MESSAGE = "Execution timed out"

_FUNCTION_NAME = "__pagepilot_user_code__"
_BINDINGS = ("page", "context", "browser", "params", "console")
_LEVELS = ("log", "info", "warn", "error")


def safe_to_string(value: Any) -> str:
    """把任意值转换为字符串，永不抛出异常。"""
    try:
        if value is None:
            return "null"
        if isinstance(value, str):
            return value
        if isinstance(value, (bool, int, float, complex)):
            return str(value)
        if callable(value) and not isinstance(value, type):
            name = getattr(value, "__name__", None)
            if not isinstance(name, str) or not name or name == "<lambda>":
                name = "anonymous"
            return f"[Function {name}]"
        return json.dumps(value, ensure_ascii=False)
    except Exception:
        return _type_tag(value)


def _type_tag(value: Any) -> str:
    try:
        return f"[object {type(value).__name__}]"
    except Exception:
        return "[object]"


def to_transport_safe(value: Any) -> Any:
    """JSON 往返，保证结果能被传输层携带（NaN / Infinity 不是合法 JSON）。"""
    try:
        return json.loads(json.dumps(value, ensure_ascii=False, allow_nan=False))
    except Exception:
        return safe_to_string(value)


class CapturedConsole:
    """替代 console 的对象，每次调用追加一条 {level, message}"""

    def __init__(self):
        self.entries: list[dict[str, str]] = []

    def _emit(self, level: str, args: tuple) -> None:
        self.entries.append({"level": level, "message": " ".join(safe_to_string(a) for a in args)})

    def log(self, *args: Any) -> None:
        self._emit("log", args)

    def info(self, *args: Any) -> None:
        self._emit("info", args)

    def warn(self, *args: Any) -> None:
        self._emit("warn", args)

    def error(self, *args: Any) -> None:
        self._emit("error", args)

    # Python 习惯写法
    warning = warn


@dataclass
class ExecutionRecord:
    return_value: Any
    logs: list[dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "returnValue": self.return_value,
            "logs": self.logs,
            "durationMs": self.duration_ms,
        }


def compile_user_code(code: str):
    """把代码体编译成 async 函数，参数顺序固定为 page, context, browser, params, console。"""
    body = textwrap.indent(textwrap.dedent(code).strip("\n"), "    ")
    source = f"async def {_FUNCTION_NAME}({', '.join(_BINDINGS)}):\n    pass\n{body}\n"
    namespace: dict[str, Any] = {"asyncio": asyncio}
    try:
        exec(compile(source, "<run_playwright>", "exec"), namespace)
    except SyntaxError as e:
        raise ExecutionError(f"SyntaxError: {e.msg} (line {max((e.lineno or 2) - 2, 1)})") from e
    return namespace[_FUNCTION_NAME]


async def _guarded(coro: Any) -> Any:
    """SystemExit / KeyboardInterrupt 等 BaseException 转成 ExecutionError，不得逃出事件循环"""
    try:
        return await coro
    except (Exception, asyncio.CancelledError):
        raise
    except BaseException as e:
        raise ExecutionError(str(e) or type(e).__name__) from e


def _consume_result(task: asyncio.Task) -> None:
    # 被放弃的任务结束时取出异常，避免 "exception was never retrieved"
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            logger.debug(f"[Execute] Abandoned script finished with error: {exc}")


async def execute(
    session: Any,
    code: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    params: dict | None = None,
) -> ExecutionRecord:
    """
    在会话上执行调用方代码

    Args:
        session: BrowserSession（提供 page / context / browser）
        code: 异步函数体源码
        timeout_ms: 墙钟超时
        params: 注入为 ``params`` 的参数对象

    Returns:
        ExecutionRecord(return_value, logs, duration_ms)

    Raises:
        ExecutionError: 语法错误、脚本抛出异常或超时
    """
    console = CapturedConsole()
    user_fn = compile_user_code(code)

    started = time.monotonic()
    task = asyncio.ensure_future(_guarded(
        user_fn(session.page, session.context, session.browser, params if params is not None else {}, console)
    ))
    done, _ = await asyncio.wait({task}, timeout=max(timeout_ms, 0) / 1000)
    duration_ms = int((time.monotonic() - started) * 1000)

    if task not in done:
        # 竞速失败：取消用户任务，但不等待其结束
        task.add_done_callback(_consume_result)
        task.cancel()
        logger.warning(f"[Execute] Script exceeded {timeout_ms}ms")
        raise ExecutionError(TIMEOUT_MESSAGE, duration_ms=duration_ms, logs=console.entries)

    if task.cancelled():
        raise ExecutionError("Execution was cancelled", duration_ms=duration_ms, logs=console.entries)

    exc = task.exception()
    if exc is not None:
        message = str(exc) or type(exc).__name__
        logger.info(f"[Execute] Script raised {type(exc).__name__}: {message}")
        raise ExecutionError(message, duration_ms=duration_ms, logs=console.entries) from exc

    return ExecutionRecord(
        return_value=to_transport_safe(task.result()),
        logs=console.entries,
        duration_ms=duration_ms,
    )
