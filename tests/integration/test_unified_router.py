"""
统一路由器集成测试

覆盖完整路由流程：显式意图、能力路由、置信度升级、回退、缓存与目录热重载
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from smartroute.domain.routing.catalog import parse_catalog
from smartroute.domain.routing.escalation import Reanalysis
from smartroute.domain.routing.models import (
    ChatMessage,
    ContentPart,
    IntentKind,
    ModelDescriptor,
    ProviderType,
    RoutingRequest,
    RoutingStrategy,
)
from smartroute.framework.orchestrators import RouterService, UnifiedRouter
from smartroute.framework.shared.config import (
    AnalysisMode,
    ComplexityTier,
    RoutingConfig,
    SelectionStrategyName,
    Settings,
)
from smartroute.framework.shared.exceptions import ConfigurationError


def image_request(text, url="https://example.com/cat.png"):
    return RoutingRequest(
        messages=(
            ChatMessage(
                role="user",
                content=(
                    ContentPart(type="text", text=text),
                    ContentPart(type="image_url", image_url={"url": url}),
                ),
            ),
        )
    )


def make_router(catalog, credentials, config=None, **service_kwargs):
    service = RouterService(catalog, config=config or RoutingConfig(), credentials=credentials, **service_kwargs)
    return UnifiedRouter(service)


@pytest.mark.integration
class TestUnifiedRouter:
    """测试路由主流程"""

    @pytest.mark.asyncio
    async def test_greeting_routes_to_default_model(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = await router.route(RoutingRequest.from_text("你好"))

        assert decision.selected_model == "gemini-flash-lite"
        assert decision.confidence == 0.6
        assert decision.metadata.routing_strategy == RoutingStrategy.SEMANTIC
        assert decision.metadata.destination == "basic"
        assert decision.metadata.capability_match == 0
        assert decision.metadata.user_intent_detected is False
        assert "gemini-flash-lite" not in decision.fallback_chain
        assert len(decision.fallback_chain) == len(catalog) - 1

    @pytest.mark.asyncio
    async def test_explicit_switch_in_text(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = await router.route(RoutingRequest.from_text("换成gpt4.1"))

        assert decision.selected_model == "gpt4.1"
        assert decision.metadata.routing_strategy == RoutingStrategy.EXPLICIT
        assert decision.metadata.user_intent_detected is True
        assert decision.confidence == 0.95

    @pytest.mark.asyncio
    async def test_explicit_switch_only_reads_last_message(self, catalog, credentials):
        router = make_router(catalog, credentials)
        request = RoutingRequest(
            messages=(
                ChatMessage(role="user", content="换成gpt4.1"),
                ChatMessage(role="assistant", content="ok"),
                ChatMessage(role="user", content="hello"),
            )
        )
        decision = await router.route(request)
        assert decision.metadata.routing_strategy != RoutingStrategy.EXPLICIT

    @pytest.mark.asyncio
    async def test_detected_model_outside_catalog_is_ignored(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = await router.route(RoutingRequest.from_text("换成qwen"))

        assert decision.selected_model == "gemini-flash-lite"
        assert decision.metadata.routing_strategy == RoutingStrategy.SEMANTIC

    @pytest.mark.asyncio
    async def test_user_intent_takes_precedence(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = await router.route(
            RoutingRequest.from_text("换成gpt4.1", user_intent="deepseek-reasoner")
        )

        assert decision.selected_model == "deepseek-reasoner"
        assert decision.confidence == 1.0
        assert decision.metadata.user_intent_detected is True

    @pytest.mark.asyncio
    async def test_unknown_user_intent_falls_through(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = await router.route(RoutingRequest.from_text("你好", user_intent="ghost"))
        assert decision.selected_model == "gemini-flash-lite"

    @pytest.mark.asyncio
    async def test_image_routes_to_vision_model(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = await router.route(image_request("分析这张图"))

        assert decision.selected_model == "gpt-4o-all"
        assert decision.metadata.routing_strategy == RoutingStrategy.CAPABILITY
        assert decision.metadata.destination == "vision_processing"
        assert decision.metadata.capability_match == 1

    @pytest.mark.asyncio
    async def test_missing_vision_credentials_falls_back(self, catalog):
        router = make_router(catalog, {"GEMINI_API_KEY": "gm", "DEEPSEEK_API_KEY": "ds"})
        decision = await router.route(image_request("分析这张图"))

        assert decision.selected_model == "gemini-flash-lite"
        assert decision.metadata.routing_strategy == RoutingStrategy.FALLBACK
        # 回退模型没有 vision 能力，但检测到的能力数量仍然如实记录
        assert decision.metadata.capability_match == 1
        assert "回退" in decision.reasoning

    @pytest.mark.asyncio
    async def test_low_confidence_escalates(self, catalog, credentials):
        router = make_router(catalog, credentials, config=RoutingConfig(confidence_threshold=0.8))
        decision = await router.route(RoutingRequest.from_text("hello"))

        assert decision.metadata.destination == "rag"
        assert decision.metadata.escalations == 2
        assert decision.confidence == 0.8
        assert decision.selected_model == "gpt-4o-all"

    @pytest.mark.asyncio
    async def test_llm_enhanced_reanalysis(self, catalog, credentials):
        reanalyzer = AsyncMock()
        reanalyzer.reanalyze.return_value = Reanalysis(destination="agent", confidence=0.9)
        config = RoutingConfig(confidence_threshold=0.8, analysis_mode=AnalysisMode.LLM_ENHANCED)
        router = make_router(catalog, credentials, config=config, reanalyzer=reanalyzer)

        decision = await router.route(RoutingRequest.from_text("hello"))

        assert decision.metadata.destination == "agent"
        assert decision.metadata.analysis_method == "llm_enhanced"
        assert decision.selected_model == "claude-sonnet-4-all"

    @pytest.mark.asyncio
    async def test_complexity_tier_preference(self, catalog, credentials):
        config = RoutingConfig(complexity_models={ComplexityTier.HIGH: ["claude-sonnet-4-all"]})
        router = make_router(catalog, credentials, config=config)
        decision = await router.route(
            RoutingRequest.from_text("if the algorithm fails then check machine learning and statistics")
        )
        assert decision.selected_model == "claude-sonnet-4-all"

    @pytest.mark.asyncio
    async def test_round_robin_strategy(self, catalog, credentials):
        config = RoutingConfig(selection_strategy=SelectionStrategyName.ROUND_ROBIN)
        router = make_router(catalog, credentials, config=config)

        picks = [
            (await router.route(image_request("看看这个"))).selected_model for _ in range(4)
        ]
        assert picks == ["gpt-4o-all", "claude-sonnet-4-all", "gpt-4o-all", "claude-sonnet-4-all"]

    @pytest.mark.asyncio
    async def test_catalog_primary_strategy(self, catalog_data, credentials):
        catalog_data["selection_strategy"]["primary"] = "round_robin"
        router = make_router(parse_catalog(catalog_data), credentials)
        assert router.selection_strategy() == SelectionStrategyName.ROUND_ROBIN

        decisions = [await router.route(image_request("看看这个")) for _ in range(2)]
        assert [d.selected_model for d in decisions] == ["gpt-4o-all", "claude-sonnet-4-all"]
        assert decisions[0].metadata.selection_strategy == "round_robin"

    @pytest.mark.asyncio
    async def test_configured_strategy_overrides_catalog_primary(self, catalog_data, credentials):
        catalog_data["selection_strategy"]["primary"] = "round_robin"
        config = RoutingConfig(selection_strategy=SelectionStrategyName.PRIORITY)
        router = make_router(parse_catalog(catalog_data), credentials, config=config)
        assert router.selection_strategy() == SelectionStrategyName.PRIORITY

        picks = {(await router.route(image_request("看看这个"))).selected_model for _ in range(3)}
        assert picks == {"gpt-4o-all"}

    @pytest.mark.asyncio
    async def test_rule_fallback_models_when_preferred_unavailable(self, catalog_data, credentials):
        catalog_data["routing_rules"] = {
            "basic": {"triggers": ["你好"]},
            "enhanced": {
                "triggers": ["分析", "详细"],
                "preferred_models": ["gpt4.1"],
                "fallback_models": ["deepseek-reasoner"],
            },
        }
        credentials.pop("OPENAI_API_KEY")
        router = make_router(parse_catalog(catalog_data), credentials)

        decision = await router.route(RoutingRequest.from_text("请详细分析一下这个方案"))
        assert decision.metadata.destination == "enhanced"
        assert decision.selected_model == "deepseek-reasoner"

    @pytest.mark.asyncio
    async def test_compound_chinese_keywords_route_to_enhanced(self, catalog, credentials):
        router = make_router(catalog, credentials)
        analysis = await router.analyze_intent(RoutingRequest.from_text("请详细分析一下这个方案"))
        assert analysis.destination == "enhanced"
        assert analysis.confidence >= 0.7

    @pytest.mark.asyncio
    async def test_english_analysis_routes_to_enhanced(self, catalog, credentials):
        router = make_router(catalog, credentials)
        analysis = await router.analyze_intent(RoutingRequest.from_text("analyze this proposal in detail"))
        assert analysis.destination == "enhanced"

    @pytest.mark.asyncio
    async def test_analyze_intent_reports_explicit_model(self, catalog, credentials):
        router = make_router(catalog, credentials)
        analysis = await router.analyze_intent(RoutingRequest.from_text("换成gpt4.1"))
        assert analysis.kind == IntentKind.EXPLICIT_MODEL
        assert analysis.target_model == "gpt4.1"
        assert analysis.confidence == 0.95
        assert analysis.analysis_method == "explicit"

    @pytest.mark.asyncio
    async def test_analyze_intent_reports_user_intent(self, catalog, credentials):
        router = make_router(catalog, credentials)
        analysis = await router.analyze_intent(
            RoutingRequest.from_text("你好", user_intent="deepseek-reasoner")
        )
        assert analysis.kind == IntentKind.EXPLICIT_MODEL
        assert analysis.target_model == "deepseek-reasoner"
        assert analysis.confidence == 1.0
        assert analysis.analysis_method == "user_intent"

    @pytest.mark.asyncio
    async def test_concurrent_routes(self, catalog, credentials):
        router = make_router(catalog, credentials)
        requests = [RoutingRequest.from_text(f"hello {i}") for i in range(20)]
        requests += [image_request(f"图片 {i}") for i in range(20)]

        decisions = await asyncio.gather(*(router.route(r) for r in requests))

        assert len(decisions) == 40
        assert all(d.selected_model in catalog for d in decisions)
        assert all(d.selected_model not in d.fallback_chain for d in decisions)

    def test_route_sync(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = router.route_sync(RoutingRequest.from_text("hello"))
        assert decision.selected_model == "gemini-flash-lite"

    def test_decision_serializes_with_camel_case(self, catalog, credentials):
        router = make_router(catalog, credentials)
        decision = router.route_sync(RoutingRequest.from_text("换成gpt4.1"))
        data = json.loads(decision.model_dump_json(by_alias=True))

        assert data["selectedModel"] == "gpt4.1"
        assert data["metadata"]["routingStrategy"] == "explicit"
        assert data["metadata"]["userIntentDetected"] is True
        assert isinstance(data["fallbackChain"], list)


@pytest.mark.integration
class TestRouterOperations:
    """测试缓存、统计与目录管理"""

    @pytest.mark.asyncio
    async def test_intent_cache_hit(self, catalog, credentials):
        router = make_router(catalog, credentials)
        request = RoutingRequest.from_text("hello")

        first = await router.route(request)
        second = await router.route(request)

        assert first.selected_model == second.selected_model
        assert router.cache.stats["hits"] == 1

    def test_cache_disabled(self, catalog, credentials):
        router = make_router(catalog, credentials, config=RoutingConfig(intent_cache_enabled=False))
        assert router.cache is None
        assert router.route_sync(RoutingRequest.from_text("hello")).selected_model == "gemini-flash-lite"

    def test_update_performance_stats(self, catalog, credentials):
        router = make_router(catalog, credentials)
        router.update_performance_stats("gpt4.1", 250, True)
        stats = router.selector.get_performance_stats()
        assert stats["gpt4.1"]["avg_latency_ms"] == 250

    def test_analyze_capabilities(self, catalog, credentials):
        router = make_router(catalog, credentials)
        ranked = [m.id for m in router.analyze_capabilities({"vision"})]
        assert ranked == ["claude-sonnet-4-all", "gpt-4o-all"]

    def test_get_available_models(self, catalog):
        router = make_router(catalog, {"OPENAI_API_KEY": "sk"})
        assert [m.id for m in router.get_available_models()] == ["gpt4.1", "gpt-4o-all"]

    @pytest.mark.asyncio
    async def test_register_model_swaps_snapshot(self, catalog, credentials):
        router = make_router(catalog, credentials)
        await router.route(RoutingRequest.from_text("hello"))
        assert len(router.cache) == 1

        snapshot = router.register_model(
            ModelDescriptor(id="qwen-turbo", provider_type=ProviderType.ALIBABA_TONGYI)
        )

        assert snapshot.version == 2
        assert len(router.cache) == 0
        decision = await router.route(RoutingRequest.from_text("换成qwen"))
        assert decision.selected_model == "qwen-turbo"

    @pytest.mark.asyncio
    async def test_analysis_from_previous_snapshot_not_reused(self, catalog, credentials):
        router = make_router(catalog, credentials)
        request = RoutingRequest.from_text("hello")
        old = router.service.snapshot
        router.register_model(
            ModelDescriptor(id="qwen-turbo", provider_type=ProviderType.ALIBABA_TONGYI)
        )

        # 重载前开始的分析在清空缓存之后才写入
        await router._analyze(request, old)
        await router.analyze_intent(request)

        assert router.cache.stats["hits"] == 0
        assert len(router.cache) == 2

    def test_reload_from_file(self, catalog_file, catalog_data, credentials):
        router = UnifiedRouter(
            RouterService.from_settings(
                Settings(_env_file=None, MODELS_CONFIG_PATH=str(catalog_file)),
                credentials=credentials,
            )
        )
        catalog_data["selection_strategy"]["default_model"] = "deepseek-reasoner"
        catalog_file.write_text(json.dumps(catalog_data), encoding="utf-8")

        snapshot = router.reload()

        assert snapshot.catalog.default_model == "deepseek-reasoner"
        assert router.service.snapshot is snapshot

    def test_failed_reload_keeps_old_snapshot(self, catalog_file, credentials):
        service = RouterService.from_settings(
            Settings(_env_file=None, MODELS_CONFIG_PATH=str(catalog_file)), credentials=credentials
        )
        router = UnifiedRouter(service)
        before = service.snapshot
        catalog_file.write_text("{broken", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            router.reload()

        assert service.snapshot is before
        assert router.route_sync(RoutingRequest.from_text("hello")).selected_model == "gemini-flash-lite"

    def test_reload_without_path(self, catalog, credentials):
        router = make_router(catalog, credentials)
        with pytest.raises(ConfigurationError):
            router.reload()

    def test_llm_mode_without_routing_model_degrades(self, catalog, credentials):
        config = RoutingConfig(analysis_mode=AnalysisMode.LLM_ENHANCED)
        service = RouterService(catalog, config=config, credentials=credentials)
        assert service.snapshot.escalator.reanalyzer is None

    def test_llm_mode_builds_analyzer_from_catalog(self, catalog, credentials):
        config = RoutingConfig(analysis_mode=AnalysisMode.LLM_ENHANCED, routing_model_name="gpt4.1")
        service = RouterService(catalog, config=config, credentials=credentials)
        assert service.snapshot.escalator.reanalyzer.model_id == "gpt4.1"
