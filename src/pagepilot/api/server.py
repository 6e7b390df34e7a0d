"""
FastAPI HTTP server for PagePilot.

提供：
- POST /mcp  MCP Streamable HTTP（无状态，JSON 响应）
- GET /health  健康检查（含活跃会话数）

应用关闭时（uvicorn 收到 SIGINT / SIGTERM）关闭所有浏览器会话。

默认端口：4201
"""

from __future__ import annotations

import contextlib
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..mcp_server import create_mcp_server
from ..tools.handlers import BrowserTools

logger = logging.getLogger(__name__)


def create_app(tools: BrowserTools) -> FastAPI:
    """Create the FastAPI application with the MCP endpoint mounted."""

    mcp = create_mcp_server(tools, stateless_http=True, json_response=True)
    mcp_app = mcp.streamable_http_app()
    registry = tools.registry

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        async with mcp.session_manager.run():
            logger.info("[Server] MCP Streamable HTTP endpoint ready at /mcp")
            try:
                yield
            finally:
                logger.info("[Server] Shutting down, closing browser sessions...")
                await registry.shutdown()

    app = FastAPI(
        title="PagePilot API",
        description="Browser session pool exposed as MCP tools",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Mcp-Session-Id"],
    )

    app.state.tools = tools
    app.state.registry = registry

    @app.get("/health")
    async def health():
        """Basic health check - returns 200 if server is running."""
        return {
            "status": "ok",
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
            "sessions": len(registry),
        }

    # MCP 路由 (/mcp) 挂在根路径，放在显式路由之后
    app.mount("/", mcp_app)
    return app
