"""
导航容错

对一次导航请求依次尝试多个"页面就绪"条件（阶梯），并在多轮之间退避重试：

    ladder = [preferred, "load", "domcontentloaded"]  或
             ["networkidle", "load", "domcontentloaded"]

- 任意一步成功立即返回，不再尝试后续阶梯或轮次
- 超时错误 → 继续下一个阶梯；非超时错误 → 立即失败，不重试
- 所有轮次用尽 → NavigationError（包含轮次数和最后一次超时信息）
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..core.errors import NavigationError

logger = logging.getLogger(__name__)

DEFAULT_LADDER = ("networkidle", "load", "domcontentloaded")
FALLBACK_CONDITIONS = ("load", "domcontentloaded")

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_CYCLES = 1
DEFAULT_RETRY_DELAY_MS = 750
MAX_RETRY_CYCLES = 5
MAX_RETRY_DELAY_MS = 10000

UNKNOWN_STATUS = "unknown"

_WAIT_ALIASES = {
    "network-idle": "networkidle",
    "network_idle": "networkidle",
    "networkidle": "networkidle",
    "load": "load",
    "domcontentloaded": "domcontentloaded",
    "dom-content-loaded": "domcontentloaded",
    "commit": "commit",
}

_TIMEOUT_PATTERN = re.compile(r"time(d)?[\s_-]?out", re.IGNORECASE)
_URL_PATTERN = re.compile(r"\S+://\S*")


def normalize_wait_condition(value: str) -> str:
    """network-idle → networkidle 等别名归一化；未知值原样返回交给驱动报错。"""
    key = value.strip().lower()
    return _WAIT_ALIASES.get(key, key)


def build_ladder(preferred: str | None = None) -> list[str]:
    if preferred:
        return [normalize_wait_condition(preferred), *FALLBACK_CONDITIONS]
    return list(DEFAULT_LADDER)


def is_timeout_error(error: BaseException) -> bool:
    if isinstance(error, (PlaywrightTimeoutError, asyncio.TimeoutError)):
        return True
    # 只看首行的错误描述：目标 URL 和 call log 里的 "timeout" 不算
    lines = str(error).splitlines()
    head = lines[0].split(" at ", 1)[0] if lines else ""
    return bool(_TIMEOUT_PATTERN.search(_URL_PATTERN.sub("", head)))


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


@dataclass
class NavigationOptions:
    wait_condition: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_cycles: int = DEFAULT_RETRY_CYCLES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    def __post_init__(self):
        # Playwright 把 0 当作不限时
        self.timeout_ms = max(1, int(self.timeout_ms))
        self.retry_cycles = _clamp(self.retry_cycles, 0, MAX_RETRY_CYCLES)
        self.retry_delay_ms = _clamp(self.retry_delay_ms, 0, MAX_RETRY_DELAY_MS)


@dataclass
class NavigationAttempt:
    """一次阶梯尝试的记录（仅用于构造结果/错误信息）"""

    cycle: int
    wait_condition: str
    outcome: str  # "success" / "timeout" / "error"
    elapsed_ms: int
    status: int | str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "cycle": self.cycle,
            "waitUntil": self.wait_condition,
            "outcome": self.outcome,
            "elapsedMs": self.elapsed_ms,
            "status": self.status,
            "error": self.error,
        }


@dataclass
class NavigationResult:
    status: int | str
    wait_condition_used: str
    attempts: list[NavigationAttempt]


def _response_status(response: Any) -> int | str:
    if response is None:
        return UNKNOWN_STATUS
    status = getattr(response, "status", None)
    if callable(status):
        status = status()
    return status if status else UNKNOWN_STATUS


async def navigate(session: Any, url: str, options: NavigationOptions | None = None) -> NavigationResult:
    """
    在会话的 page 上执行容错导航

    Args:
        session: BrowserSession（只用到 ``page``）
        url: 目标 URL
        options: 等待条件 / 超时 / 重试配置

    Returns:
        NavigationResult(status, wait_condition_used, attempts)

    Raises:
        NavigationError: 非超时错误（立即）或所有尝试均超时
    """
    options = options or NavigationOptions()
    ladder = build_ladder(options.wait_condition)
    page = session.page
    history: list[NavigationAttempt] = []
    last_timeout = ""
    total_cycles = options.retry_cycles + 1

    for cycle in range(total_cycles):
        for wait_condition in ladder:
            started = time.monotonic()
            try:
                response = await page.goto(url, wait_until=wait_condition, timeout=options.timeout_ms)
            except Exception as e:
                elapsed = int((time.monotonic() - started) * 1000)
                message = str(e) or type(e).__name__
                if not is_timeout_error(e):
                    history.append(NavigationAttempt(cycle, wait_condition, "error", elapsed, error=message))
                    logger.warning(f"[Navigate] {url} failed ({wait_condition}): {message}")
                    raise NavigationError(
                        message,
                        url=url,
                        attempts=cycle + 1,
                        history=history,
                        last_error=message,
                    ) from e
                history.append(NavigationAttempt(cycle, wait_condition, "timeout", elapsed, error=message))
                last_timeout = message
                logger.info(
                    f"[Navigate] {url} timed out waiting for {wait_condition} "
                    f"(cycle {cycle + 1}/{total_cycles}, {elapsed}ms)"
                )
                continue

            elapsed = int((time.monotonic() - started) * 1000)
            status = _response_status(response)
            history.append(NavigationAttempt(cycle, wait_condition, "success", elapsed, status=status))
            logger.info(f"[Navigate] {url} ready ({wait_condition}, status={status}, {elapsed}ms)")
            return NavigationResult(status=status, wait_condition_used=wait_condition, attempts=history)

        if cycle + 1 < total_cycles and options.retry_delay_ms > 0:
            await asyncio.sleep(options.retry_delay_ms / 1000)

    raise NavigationError(
        f"Navigation to {url} failed after {total_cycles} attempt(s) "
        f"({len(history)} wait conditions tried): {last_timeout}",
        url=url,
        attempts=total_cycles,
        history=history,
        last_error=last_timeout,
    )
