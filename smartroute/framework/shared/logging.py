"""
结构化日志配置模块

基于 structlog 为 smartroute 提供统一的日志解决方案。

主要特性:
- 结构化日志输出（JSON/控制台）
- 请求级上下文绑定（contextvars）
- 敏感数据（API Key 等）脱敏

使用方法:
    from smartroute.framework.shared.logging import get_logger

    logger = get_logger(__name__)
    logger.info("路由完成", selected_model="gpt4.1", confidence=0.8)

配置项（见 Settings）:
    LOG_LEVEL: 日志级别 (DEBUG, INFO, WARNING, ERROR)，DEBUG=true 时强制为 DEBUG
    LOG_FORMAT: 日志格式 (json, console)，留空时按 ENVIRONMENT 决定
"""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.processors import CallsiteParameter
from structlog.types import EventDict, Processor

from .config import Settings, get_settings


class RouterLoggingConfig:
    """smartroute 日志配置类，取值来自 Settings"""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.log_level = getattr(logging, settings.log_level, logging.INFO)
        self.log_format = settings.log_format


class SensitiveDataFilter:
    """敏感数据过滤器"""

    SENSITIVE_KEYS = {
        'password', 'secret', 'token', 'api_key', 'apikey',
        'access_token', 'auth_token', 'authorization', 'private_key',
    }

    def __call__(
        self, logger: logging.Logger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        for key, value in event_dict.items():
            if key.lower() in self.SENSITIVE_KEYS and value:
                event_dict[key] = self.mask(value)
        return event_dict

    @staticmethod
    def mask(value: Any) -> str:
        """保留首尾少量字符，其余用 * 替换"""
        if not isinstance(value, str):
            return "***"
        if len(value) > 8:
            return value[:4] + "*" * (len(value) - 8) + value[-4:]
        if len(value) > 4:
            return value[:2] + "*" * (len(value) - 2)
        return "*" * len(value)


def _get_shared_processors() -> list[Processor]:
    """获取共享处理器链"""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder({
            CallsiteParameter.FILENAME,
            CallsiteParameter.FUNC_NAME,
            CallsiteParameter.LINENO,
        }),
        SensitiveDataFilter(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _get_json_processors() -> list[Processor]:
    processors = _get_shared_processors()
    processors.append(structlog.processors.dict_tracebacks)
    processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    return processors


def _get_console_processors() -> list[Processor]:
    processors = _get_shared_processors()
    processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def configure_structlog(settings: Settings | None = None) -> None:
    """配置 structlog"""
    config = RouterLoggingConfig(settings)

    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        stream=sys.stderr,
    )

    if config.log_format == "json":
        processors = _get_json_processors()
    else:
        processors = _get_console_processors()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
        context_class=dict,
    )

    # 第三方 HTTP 客户端日志过于冗长
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    获取配置好的日志记录器

    Args:
        name: 日志记录器名称，通常传入 __name__

    Returns:
        structlog.stdlib.BoundLogger: 配置好的日志记录器
    """
    return structlog.get_logger(name or "smartroute")


def bind_context(**kwargs: Any) -> None:
    """
    绑定上下文信息到当前请求的所有日志

    Args:
        **kwargs: 要绑定的上下文参数
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """清除当前请求的上下文信息"""
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_execution_time(
    operation: str, logger: structlog.stdlib.BoundLogger | None = None, **kwargs: Any
) -> Iterator[dict[str, Any]]:
    """
    记录代码块执行耗时

    用法:
        with log_execution_time("route", request_id="r1") as timing:
            ...
        timing["elapsed_ms"]
    """
    log = logger or get_logger("smartroute.timing")
    timing: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield timing
    finally:
        timing["elapsed_ms"] = round((time.perf_counter() - start) * 1000, 2)
        log.debug("操作耗时", operation=operation, elapsed_ms=timing["elapsed_ms"], **kwargs)


configure_structlog()
