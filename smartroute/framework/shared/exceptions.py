"""
共享异常定义

路由引擎的异常体系：
- ConfigurationError: 模型目录缺失或格式错误，加载期致命
- NoEligibleModelError: 没有满足能力/凭据要求的模型，路由器回退到默认模型
- AnalysisTimeoutError: LLM 增强分析超时，回退到规则分析结果
- UnknownDestinationError: 路由规则引用了无法打分的目标，记录日志后跳过
"""

from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any


class SmartRouteError(Exception):
    """smartroute 基础异常"""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None
    ):
        self.message = message
        self.error_code = error_code or "SMARTROUTE_ERROR"
        self.details = details or {}
        self.cause = cause

        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None
        }


class ConfigurationError(SmartRouteError):
    """配置错误"""
    def __init__(
        self, message: str, config_key: str | None = None, cause: Exception | None = None
    ):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, "CONFIG_ERROR", details, cause)


class NoEligibleModelError(SmartRouteError):
    """没有可用的候选模型"""
    def __init__(
        self,
        message: str,
        destination: str | None = None,
        required_capabilities: Iterable[str] | None = None,
    ):
        details: dict[str, Any] = {}
        if destination:
            details["destination"] = destination
        if required_capabilities is not None:
            details["required_capabilities"] = sorted(required_capabilities)
        super().__init__(message, "NO_ELIGIBLE_MODEL", details)


class AnalysisTimeoutError(SmartRouteError):
    """LLM 增强分析超时"""
    def __init__(self, message: str, timeout: float | None = None):
        details = {"timeout": timeout} if timeout is not None else {}
        super().__init__(message, "ANALYSIS_TIMEOUT", details)


class UnknownDestinationError(SmartRouteError):
    """未知路由目标"""
    def __init__(self, message: str, destination: str | None = None):
        details = {"destination": destination} if destination else {}
        super().__init__(message, "UNKNOWN_DESTINATION", details)


class LLMError(SmartRouteError):
    """LLM 服务错误"""
    def __init__(
        self,
        message: str,
        model: str | None = None,
        provider: str | None = None,
        cause: Exception | None = None,
    ):
        details = {"model": model, "provider": provider} if model else {}
        super().__init__(message, "LLM_ERROR", details, cause)


class ProviderError(SmartRouteError):
    """供应商客户端构建错误"""
    def __init__(self, message: str, provider: str | None = None, model: str | None = None):
        details = {"provider": provider, "model": model} if provider else {}
        super().__init__(message, "PROVIDER_ERROR", details)


# 异常处理装饰器
def handle_exceptions(
    exception_map: dict[type[Exception], type[SmartRouteError]] | None = None,
    default_exception: type[SmartRouteError] = SmartRouteError
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """将第三方异常转换为 smartroute 异常的装饰器"""
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except SmartRouteError:
                raise
            except Exception as e:
                for exc_class, target_class in (exception_map or {}).items():
                    if isinstance(e, exc_class):
                        raise target_class(str(e)) from e
                raise default_exception(str(e), cause=e) from e
        return wrapper
    return decorator


# 错误码常量
ERROR_CODES = {
    "SMARTROUTE_ERROR": "路由引擎错误",
    "CONFIG_ERROR": "配置错误",
    "NO_ELIGIBLE_MODEL": "无可用模型",
    "ANALYSIS_TIMEOUT": "意图分析超时",
    "UNKNOWN_DESTINATION": "未知路由目标",
    "LLM_ERROR": "LLM 服务错误",
    "PROVIDER_ERROR": "供应商客户端错误",
}
