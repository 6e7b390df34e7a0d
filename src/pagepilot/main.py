"""
PagePilot 命令行入口

    pagepilot [--transport stdio|http] [--host H] [--port P] [--browser-type T] [--headed]

日志统一输出到 stderr（stdout 留给 stdio 传输）。
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from . import __version__
from .browser.engines import EngineKind, PlaywrightDriver
from .browser.registry import SessionRegistry
from .config import Settings, settings
from .tools.handlers import BrowserTools

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def build_tools(config: Settings) -> BrowserTools:
    """创建驱动 / 注册表 / 工具（进程内只调用一次）"""
    driver = PlaywrightDriver(default_timeout_ms=config.nav_timeout_ms)
    registry = SessionRegistry(driver, headless=config.playwright_headless)
    return BrowserTools(registry, config)


async def serve_stdio(tools: BrowserTools) -> None:
    """运行 stdio 传输；输入结束或收到信号时关闭所有会话。"""
    from .mcp_server import create_mcp_server

    mcp = create_mcp_server(tools)
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, main_task.cancel)

    try:
        await mcp.run_stdio_async()
    except asyncio.CancelledError:
        logger.info("[Server] Shutdown signal received")
    finally:
        await tools.registry.shutdown()
        logger.info("[Server] Shutdown complete")


def serve_http(tools: BrowserTools, host: str, port: int, log_level: str) -> None:
    import uvicorn

    from .api.server import create_app

    app = create_app(tools)
    logger.info(f"[Server] PagePilot MCP server listening on http://{host}:{port}/mcp")
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagepilot",
        description="Browser session pool exposed as MCP tools (Playwright)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--transport", choices=["stdio", "http"], default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--browser-type", default=None, help="chromium / firefox / webkit")
    parser.add_argument("--headed", action="store_true", help="launch browsers with a visible window")
    parser.add_argument("--log-level", default=None)
    return parser


def apply_overrides(config: Settings, args: argparse.Namespace) -> Settings:
    updates = {}
    if args.transport:
        updates["transport"] = args.transport
    if args.host:
        updates["host"] = args.host
    if args.port:
        updates["port"] = args.port
    if args.browser_type:
        updates["browser_type"] = args.browser_type
    if args.headed:
        updates["playwright_headless"] = False
    if args.log_level:
        updates["log_level"] = args.log_level
    return config.model_copy(update=updates) if updates else config


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = apply_overrides(settings, args)
    setup_logging(config.log_level)

    logger.info(
        f"[Server] PagePilot {__version__} "
        f"(transport={config.transport}, browser={EngineKind.resolve(config.browser_type).value}, "
        f"headless={config.playwright_headless})"
    )
    tools = build_tools(config)

    if config.transport == "http":
        serve_http(tools, config.host, config.port, config.log_level)
    else:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve_stdio(tools))


if __name__ == "__main__":
    main()
