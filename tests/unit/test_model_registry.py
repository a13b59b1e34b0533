"""
供应商客户端构建单元测试
"""

from unittest.mock import patch

import pytest
from langchain_openai import ChatOpenAI

from smartroute.domain.routing.models import ModelDescriptor, ProviderType
from smartroute.framework.orchestrators import model_registry
from smartroute.framework.orchestrators.model_registry import build_client
from smartroute.framework.shared.exceptions import ProviderError


class TestBuildClient:
    """测试按供应商类型构建客户端"""

    def test_openai_compatible(self, catalog):
        client = build_client(
            catalog.get("gpt4.1"),
            {"OPENAI_API_KEY": "sk-test", "OPENAI_BASE_URL": "https://proxy.example.com/v1"},
        )
        assert isinstance(client, ChatOpenAI)
        assert client.model_name == "gpt-4.1"
        assert client.openai_api_base == "https://proxy.example.com/v1"

    def test_deepseek_default_base_url(self, catalog):
        client = build_client(catalog.get("deepseek-reasoner"), {"DEEPSEEK_API_KEY": "ds-test"})
        assert isinstance(client, ChatOpenAI)
        assert client.openai_api_base == "https://api.deepseek.com"
        assert client.model_name == "deepseek-reasoner"

    def test_temperature_passed_through(self):
        descriptor = ModelDescriptor(
            id="router",
            provider_type=ProviderType.OPENAI_COMPATIBLE,
            api_key_ref="KEY",
            temperature=0.1,
        )
        client = build_client(descriptor, {"KEY": "sk-test"})
        assert client.temperature == 0.1

    def test_missing_api_key(self, catalog):
        with pytest.raises(ProviderError) as exc_info:
            build_client(catalog.get("gpt4.1"), {})
        assert exc_info.value.details["model"] == "gpt4.1"
        assert "OPENAI_API_KEY" in exc_info.value.message

    def test_tongyi_missing_api_key(self):
        descriptor = ModelDescriptor(
            id="qwen-turbo", provider_type=ProviderType.ALIBABA_TONGYI, api_key_ref="DASHSCOPE_API_KEY"
        )
        with pytest.raises(ProviderError):
            build_client(descriptor, {})

    def test_cloudflare_requires_account_id(self):
        descriptor = ModelDescriptor(
            id="cf-llama",
            provider_type=ProviderType.CLOUDFLARE,
            api_key_ref="CF_TOKEN",
            base_url_ref="CF_ACCOUNT_ID",
            model_name="@cf/meta/llama-3-8b-instruct",
        )
        with pytest.raises(ProviderError, match="账户 ID"):
            build_client(descriptor, {"CF_TOKEN": "token"})

    def test_unsupported_provider(self, catalog):
        with patch.dict(model_registry.PROVIDER_BUILDERS, clear=True):
            with pytest.raises(ProviderError, match="不支持"):
                build_client(catalog.get("gpt4.1"), {"OPENAI_API_KEY": "sk-test"})

