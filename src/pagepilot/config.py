"""
PagePilot 配置模块
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置"""

    # 浏览器
    browser_type: str = Field(
        default="chromium",
        description="默认浏览器引擎 (chromium / firefox / webkit)，无法识别时回退到 chromium",
    )
    playwright_headless: bool = Field(default=True, description="是否以无头模式启动浏览器")

    # 服务
    transport: str = Field(
        default="stdio",
        validation_alias="PAGEPILOT_TRANSPORT",
        description="MCP 传输方式 (stdio / http)",
    )
    host: str = Field(default="127.0.0.1", description="HTTP 监听地址")
    port: int = Field(default=4201, description="HTTP 监听端口")

    # 日志
    log_level: str = Field(default="INFO", description="日志级别")

    # 导航
    nav_timeout_ms: int = Field(default=30000, ge=1, description="单次导航尝试超时（毫秒）")
    nav_retry_cycles: int = Field(default=1, ge=0, le=5, description="导航重试轮数")
    nav_retry_delay_ms: int = Field(default=750, ge=0, le=10000, description="重试间隔（毫秒）")

    # 脚本执行
    exec_timeout_ms: int = Field(default=15000, description="run_playwright 默认超时（毫秒）")

    # 工具输出
    screenshots_dir: str = Field(default="screenshots", description="截图保存目录")
    content_preview_length: int = Field(default=500, description="get_content 返回的最大字符数")
    max_sections: int = Field(default=15, description="navigate_url 返回的最大区块数")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def screenshots_path(self) -> Path:
        """截图根目录（绝对路径）"""
        return Path(self.screenshots_dir).resolve()


# 全局配置实例
settings = Settings()
