"""
错误处理系统

为 LLM 增强意图分析提供重试、断路器与超时控制：
- tenacity 指数退避重试（仅针对可重试的 LLMError）
- 断路器：连续失败后短期内直接跳过 LLM 调用
- asyncio 超时：超时转换为 AnalysisTimeoutError
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .exceptions import AnalysisTimeoutError, LLMError, SmartRouteError

T = TypeVar("T")

# 可重试的异常类型
RETRYABLE_EXCEPTIONS = (LLMError,)


class ErrorHandler:
    """错误处理器 - 重试 + 断路器"""

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 0.2,
        max_delay: float = 2.0,
        retryable_exceptions: tuple[type[Exception], ...] = RETRYABLE_EXCEPTIONS,
        enable_circuit_breaker: bool = True,
        circuit_breaker_failure_threshold: int = 5,
        circuit_breaker_recovery_timeout: int = 60
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retryable_exceptions = retryable_exceptions
        self.enable_circuit_breaker = enable_circuit_breaker
        self.circuit_breaker_failure_threshold = circuit_breaker_failure_threshold
        self.circuit_breaker_recovery_timeout = circuit_breaker_recovery_timeout

        # 断路器状态
        self._failure_count = 0
        self._last_failure_time = 0.0
        self._circuit_open = False

    def is_circuit_open(self) -> bool:
        """检查断路器是否开启"""
        if not self.enable_circuit_breaker or not self._circuit_open:
            return False

        if time.monotonic() - self._last_failure_time > self.circuit_breaker_recovery_timeout:
            self._circuit_open = False
            self._failure_count = 0
            logger.info("🔄 断路器尝试恢复")
            return False

        return True

    def record_failure(self) -> None:
        """记录失败"""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if (self.enable_circuit_breaker and
                self._failure_count >= self.circuit_breaker_failure_threshold and
                not self._circuit_open):
            self._circuit_open = True
            logger.error(f"🚨 断路器开启 - 失败次数: {self._failure_count}")

    def record_success(self) -> None:
        """记录成功"""
        if self._failure_count > 0:
            self._failure_count = 0
            if self._circuit_open:
                self._circuit_open = False
                logger.info("✅ 断路器恢复")

    def should_retry(self, exception: BaseException) -> bool:
        """判断是否应该重试"""
        if self.is_circuit_open():
            return False
        if not isinstance(exception, self.retryable_exceptions):
            return False
        # 认证、配额类错误重试无意义
        message = str(exception).lower()
        return not ("auth" in message or "quota" in message or "认证" in message)

    def create_retry_decorator(self) -> Callable[..., Any]:
        """创建重试装饰器"""
        return retry(
            retry=retry_if_exception(self.should_retry),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            before_sleep=self._before_sleep,
            reraise=True,
        )

    def _before_sleep(self, retry_state: Any) -> None:
        logger.warning(
            f"🔄 重试操作 - 尝试次数: {retry_state.attempt_number}, "
            f"异常: {retry_state.outcome.exception()}"
        )

    async def execute_with_retry(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """执行带重试的异步函数"""
        if self.is_circuit_open():
            raise LLMError("服务暂时不可用（断路器开启）")

        wrapped_func = self.create_retry_decorator()(func)
        try:
            result = await wrapped_func(*args, **kwargs)
        except Exception as e:
            self.record_failure()
            logger.error(f"❌ 操作最终失败: {e}")
            raise
        self.record_success()
        return result

    async def execute_with_timeout(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        timeout: float,
        operation: str = "",
        **kwargs: Any,
    ) -> T:
        """
        在超时限制内执行带重试的异步函数

        超时会取消内部的重试循环，因此在这里计入断路器失败次数。
        """
        try:
            return await run_with_timeout(
                self.execute_with_retry(func, *args, **kwargs), timeout, operation
            )
        except AnalysisTimeoutError:
            self.record_failure()
            raise


def to_llm_error(error: Exception, context: str = "", model: str | None = None) -> SmartRouteError:
    """将第三方 LLM 异常转换为 LLMError"""
    if isinstance(error, SmartRouteError):
        return error

    error_msg = str(error).lower()
    if "timeout" in error_msg:
        message = f"LLM 调用超时: {context}"
    elif "quota" in error_msg or "rate limit" in error_msg:
        message = f"LLM 配额不足: {context}"
    elif "auth" in error_msg or "unauthorized" in error_msg:
        message = f"LLM 认证失败: {context}"
    else:
        message = f"LLM 调用失败: {context} - {error}"
    return LLMError(message, model=model, cause=error)


async def run_with_timeout(awaitable: Awaitable[T], timeout: float, operation: str = "") -> T:
    """在超时限制内等待结果，超时抛出 AnalysisTimeoutError"""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"⏱️ 操作超时 [{operation}] - {timeout}s")
        raise AnalysisTimeoutError(f"{operation or '操作'}超时 ({timeout}s)", timeout=timeout) from e
