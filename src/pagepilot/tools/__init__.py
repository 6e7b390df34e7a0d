"""
工具层

- BrowserTools: 所有浏览器工具的实现（供 MCP 服务器调用）
- sanitize_text / screenshot_path: 工具用到的辅助函数
"""

from .files import screenshot_filename, screenshot_path
from .handlers import BrowserTools
from .text import sanitize_text

__all__ = ["BrowserTools", "sanitize_text", "screenshot_filename", "screenshot_path"]
