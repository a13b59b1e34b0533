"""
shared/ - 共享工具

提供跨层共享的组件：
- 配置管理 (pydantic-settings)
- 结构化日志 (structlog)
- 异常定义与错误处理
"""

from .config import Settings, get_settings
from .exceptions import (
    AnalysisTimeoutError,
    ConfigurationError,
    NoEligibleModelError,
    SmartRouteError,
    UnknownDestinationError,
)

__all__ = [
    "Settings", "get_settings",
    "SmartRouteError", "ConfigurationError",
    "NoEligibleModelError", "AnalysisTimeoutError", "UnknownDestinationError",
]
