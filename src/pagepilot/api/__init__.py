"""HTTP API：MCP Streamable HTTP 端点 + 健康检查"""

from .server import create_app

__all__ = ["create_app"]
