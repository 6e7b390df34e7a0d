"""
PagePilot - 浏览器会话池 MCP 服务

通过 MCP 工具暴露导航、点击、内容提取、截图和自定义 Playwright 脚本执行。
"""


def _resolve_version() -> str:
    """
    解析版本号。
    优先级：
      1. pyproject.toml（editable 安装时始终最新）
      2. importlib.metadata（正式 pip install 后可用）
    """
    from pathlib import Path

    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        try:
            import tomllib
            with open(pyproject_path, "rb") as f:
                return tomllib.load(f)["project"]["version"]
        except Exception:
            pass

    try:
        from importlib.metadata import version
        return version("pagepilot")
    except Exception:
        pass

    return "0.0.0-dev"


__version__ = _resolve_version()
