"""
供应商客户端构建

每种供应商类型对应一个 ProviderClientBuilder，统一暴露 build_client(descriptor)。
路由器本身只依赖能力/优先级元数据，不关心具体 SDK 的构造细节；
这里构建的客户端用于 llm_enhanced 意图分析以及下游执行层。
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping

from langchain_community.chat_models import ChatTongyi
from langchain_community.chat_models.cloudflare_workersai import ChatCloudflareWorkersAI
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from smartroute.domain.routing.models import ModelDescriptor, ProviderType
from smartroute.framework.shared.exceptions import ProviderError
from smartroute.framework.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 60


class ProviderClientBuilder(ABC):
    """供应商客户端构建器"""

    provider_type: ProviderType

    @abstractmethod
    def build_client(
        self, descriptor: ModelDescriptor, credentials: Mapping[str, str] | None = None
    ) -> BaseChatModel:
        """根据模型描述构建 LangChain 聊天模型"""

    @staticmethod
    def _credential(ref: str | None, credentials: Mapping[str, str]) -> str | None:
        return credentials.get(ref) if ref else None

    def _require_api_key(
        self, descriptor: ModelDescriptor, credentials: Mapping[str, str]
    ) -> str:
        api_key = self._credential(descriptor.api_key_ref, credentials)
        if not api_key:
            raise ProviderError(
                f"模型 {descriptor.id} 缺少 API Key ({descriptor.api_key_ref or '未配置 apiKey'})",
                provider=self.provider_type.value,
                model=descriptor.id,
            )
        return api_key


class OpenAICompatibleBuilder(ProviderClientBuilder):
    """OpenAI 兼容接口（ChatOpenAI）"""

    provider_type = ProviderType.OPENAI_COMPATIBLE
    default_base_url: str | None = None

    def build_client(
        self, descriptor: ModelDescriptor, credentials: Mapping[str, str] | None = None
    ) -> BaseChatModel:
        credentials = os.environ if credentials is None else credentials
        base_url = (
            self._credential(descriptor.base_url_ref, credentials)
            or self.default_base_url
        )
        kwargs = {
            "model": descriptor.backend_model,
            "api_key": self._require_api_key(descriptor, credentials),
            "timeout": DEFAULT_TIMEOUT,
        }
        if base_url:
            kwargs["base_url"] = base_url
        if descriptor.temperature is not None:
            kwargs["temperature"] = descriptor.temperature
        return ChatOpenAI(**kwargs)


class DeepSeekBuilder(OpenAICompatibleBuilder):
    provider_type = ProviderType.DEEPSEEK
    default_base_url = "https://api.deepseek.com"


class GoogleGeminiBuilder(OpenAICompatibleBuilder):
    provider_type = ProviderType.GOOGLE_GEMINI
    default_base_url = "https://generativelanguage.googleapis.com/v1beta/openai/"


class TencentHunyuanBuilder(OpenAICompatibleBuilder):
    provider_type = ProviderType.TENCENT_HUNYUAN
    default_base_url = "https://api.hunyuan.cloud.tencent.com/v1"


class AlibabaTongyiBuilder(ProviderClientBuilder):
    """通义千问（DashScope）"""

    provider_type = ProviderType.ALIBABA_TONGYI

    def build_client(
        self, descriptor: ModelDescriptor, credentials: Mapping[str, str] | None = None
    ) -> BaseChatModel:
        credentials = os.environ if credentials is None else credentials
        api_key = self._require_api_key(descriptor, credentials)
        try:
            return ChatTongyi(model=descriptor.backend_model, api_key=api_key)
        except ImportError as e:
            # ChatTongyi 在实例化时才导入 dashscope
            raise ProviderError(
                f"构建通义千问客户端需要安装 dashscope: {e}",
                provider=self.provider_type.value,
                model=descriptor.id,
            ) from e


class CloudflareBuilder(ProviderClientBuilder):
    """Cloudflare Workers AI；baseURL 引用的环境变量保存账户 ID"""

    provider_type = ProviderType.CLOUDFLARE

    def build_client(
        self, descriptor: ModelDescriptor, credentials: Mapping[str, str] | None = None
    ) -> BaseChatModel:
        credentials = os.environ if credentials is None else credentials
        account_id = self._credential(descriptor.base_url_ref, credentials)
        if not account_id:
            raise ProviderError(
                f"模型 {descriptor.id} 缺少 Cloudflare 账户 ID",
                provider=self.provider_type.value,
                model=descriptor.id,
            )
        return ChatCloudflareWorkersAI(
            account_id=account_id,
            api_token=self._require_api_key(descriptor, credentials),
            model=descriptor.backend_model,
        )


PROVIDER_BUILDERS: dict[ProviderType, ProviderClientBuilder] = {
    builder.provider_type: builder
    for builder in (
        OpenAICompatibleBuilder(),
        DeepSeekBuilder(),
        GoogleGeminiBuilder(),
        TencentHunyuanBuilder(),
        AlibabaTongyiBuilder(),
        CloudflareBuilder(),
    )
}


def build_client(
    descriptor: ModelDescriptor, credentials: Mapping[str, str] | None = None
) -> BaseChatModel:
    """按供应商类型分派构建客户端"""
    builder = PROVIDER_BUILDERS.get(descriptor.provider_type)
    if builder is None:
        raise ProviderError(
            f"不支持的供应商类型: {descriptor.provider_type}",
            provider=str(descriptor.provider_type),
            model=descriptor.id,
        )
    logger.debug("构建模型客户端", model=descriptor.id, provider=descriptor.provider_type.value)
    return builder.build_client(descriptor, credentials)


__all__ = [
    "ProviderClientBuilder",
    "PROVIDER_BUILDERS",
    "build_client",
]
