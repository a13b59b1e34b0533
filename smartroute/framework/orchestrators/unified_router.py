"""
统一路由器

route(request) -> RoutingDecision 是外部调用方唯一的入口：
1. request.user_intent 指向目录中的模型时直接采纳
2. 否则在最后一条消息中检测显式模型切换
3. 否则 能力检测 → 规则打分 → 置信度门控/升级
4. 在目标范围内选择模型；无可用模型时回退到默认模型
5. 生成回退链与决策元数据

对有效目录上的合法请求，route() 总是返回决策而不抛出异常。
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable, Mapping

from smartroute.domain.routing.capability_detector import analyze_complexity
from smartroute.domain.routing.fallback import resolve_fallback_chain
from smartroute.domain.routing.models import (
    IntentAnalysis,
    IntentKind,
    ModelDescriptor,
    RoutingDecision,
    RoutingMetadata,
    RoutingRequest,
    RoutingStrategy,
)
from smartroute.domain.routing.selector import ModelSelector
from smartroute.framework.shared.config import (
    ComplexityTier,
    RoutingConfig,
    SelectionStrategyName,
    Settings,
    get_settings,
)
from smartroute.framework.shared.exceptions import NoEligibleModelError
from smartroute.framework.shared.logging import get_logger, log_execution_time

from .intent_cache import IntentCache
from .router_service import RouterService, RouterSnapshot

logger = get_logger(__name__)

USER_INTENT_CONFIDENCE = 1.0
DETECTED_INTENT_CONFIDENCE = 0.95


class UnifiedRouter:
    """路由决策编排器"""

    def __init__(
        self,
        service: RouterService,
        selector: ModelSelector | None = None,
        cache: IntentCache | None = None,
        credentials: Mapping[str, str] | None = None,
    ):
        self.service = service
        self.config: RoutingConfig = service.config
        self.selector = selector or ModelSelector(
            strategy=self.config.selection_strategy or SelectionStrategyName.PRIORITY,
            ab_test_ratio=self.config.ab_test_ratio,
        )
        self.credentials = credentials if credentials is not None else service.credentials
        if cache is None and self.config.intent_cache_enabled:
            cache = IntentCache(
                ttl=self.config.intent_cache_ttl, max_size=self.config.intent_cache_max_size
            )
        self.cache = cache
        if self.cache is not None:
            self.service.add_reload_listener(lambda _snapshot: self.cache.clear())

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs) -> UnifiedRouter:
        """按配置加载目录并创建路由器"""
        settings = settings or get_settings()
        return cls(RouterService.from_settings(settings), **kwargs)

    @property
    def _credentials(self) -> Mapping[str, str]:
        return os.environ if self.credentials is None else self.credentials

    def selection_strategy(self, snapshot: RouterSnapshot | None = None) -> SelectionStrategyName:
        """生效的选择策略：ROUTER_SELECTION_STRATEGY > 目录 primary > 选择器默认策略"""
        snapshot = snapshot or self.service.snapshot
        return (
            self.config.selection_strategy
            or snapshot.catalog.selection_strategy.primary
            or self.selector.strategy
        )

    async def route(self, request: RoutingRequest) -> RoutingDecision:
        """为请求生成路由决策"""
        snapshot = self.service.snapshot
        with log_execution_time("route", logger=logger) as timing:
            decision = await self._route(request, snapshot)

        logger.info(
            "路由决策完成",
            selected_model=decision.selected_model,
            strategy=decision.metadata.routing_strategy.value,
            destination=decision.metadata.destination,
            confidence=decision.confidence,
            elapsed_ms=timing.get("elapsed_ms"),
            catalog_version=snapshot.version,
        )
        return decision

    def route_sync(self, request: RoutingRequest) -> RoutingDecision:
        """同步入口，供 CLI 等非异步调用方使用"""
        return asyncio.run(self.route(request))

    async def _route(self, request: RoutingRequest, snapshot: RouterSnapshot) -> RoutingDecision:
        analysis = await self._analyze(request, snapshot)
        if analysis.kind == IntentKind.EXPLICIT_MODEL:
            return self._explicit_decision(analysis, snapshot)
        return self._select(analysis, snapshot)

    async def analyze_intent(self, request: RoutingRequest) -> IntentAnalysis:
        """只做意图分析，不选择模型"""
        return await self._analyze(request, self.service.snapshot)

    def _explicit_analysis(
        self, request: RoutingRequest, snapshot: RouterSnapshot
    ) -> IntentAnalysis | None:
        """调用方指定或消息中要求切换的模型；目录中不存在时返回 None"""
        catalog = snapshot.catalog

        if request.user_intent:
            if request.user_intent in catalog:
                return IntentAnalysis(
                    kind=IntentKind.EXPLICIT_MODEL,
                    target_model=request.user_intent,
                    confidence=USER_INTENT_CONFIDENCE,
                    analysis_method="user_intent",
                    has_image=request.has_image,
                )
            logger.warning("显式指定的模型不在目录中，继续自动路由", user_intent=request.user_intent)

        target = snapshot.explicit_detector.detect(request.last_message_text)
        if target is None:
            return None
        if target not in catalog:
            logger.info("检测到的模型不在目录中，忽略切换请求", target=target)
            return None
        return IntentAnalysis(
            kind=IntentKind.EXPLICIT_MODEL,
            target_model=target,
            confidence=DETECTED_INTENT_CONFIDENCE,
            analysis_method="explicit",
            has_image=request.has_image,
        )

    async def _analyze(self, request: RoutingRequest, snapshot: RouterSnapshot) -> IntentAnalysis:
        explicit = self._explicit_analysis(request, snapshot)
        if explicit is not None:
            return explicit

        cache_key = None
        if self.cache is not None:
            # 目录版本参与缓存键，旧快照上的分析结果不会被新快照命中
            cache_key = IntentCache.make_key(f"{snapshot.version}:{request.cache_key()}")
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("意图缓存命中", key=cache_key[:8])
                return cached

        report = snapshot.capability_detector.detect(request.messages)
        initial = snapshot.scorer.score(report)
        escalation = await snapshot.escalator.run(initial, report, text=request.full_text)

        analysis = IntentAnalysis(
            kind=IntentKind.CAPABILITY_BASED if report.capabilities else IntentKind.SEMANTIC,
            detected_capabilities=report.capabilities,
            confidence=escalation.confidence,
            destination=escalation.destination,
            analysis_method=escalation.analysis_method,
            escalation_path=escalation.path,
            has_image=report.has_image,
            is_chinese=report.is_chinese,
            complexity=analyze_complexity(request.full_text).tier.value,
        )
        if cache_key is not None:
            self.cache.put(cache_key, analysis)
        return analysis

    def _preferred_models(self, analysis: IntentAnalysis, snapshot: RouterSnapshot) -> list[str]:
        """复杂度分层偏好 > 路由规则首选模型 > 默认目标使用默认模型"""
        catalog = snapshot.catalog
        if analysis.complexity:
            tier_models = self.config.complexity_models.get(ComplexityTier(analysis.complexity))
            if tier_models:
                return list(tier_models)

        rule = catalog.routing_rules.get(analysis.destination or "")
        if rule is not None and rule.preferred_models:
            return list(rule.preferred_models)

        if analysis.destination == self.config.default_route:
            return [catalog.default_model]
        return []

    def _select(self, analysis: IntentAnalysis, snapshot: RouterSnapshot) -> RoutingDecision:
        catalog = snapshot.catalog
        destination = analysis.destination or self.config.default_route
        required = set(catalog.required_capabilities(destination))
        if analysis.has_image:
            required.add("vision")
        rule = catalog.routing_rules.get(destination)
        selection_strategy = self.selection_strategy(snapshot)

        strategy = (
            RoutingStrategy.CAPABILITY
            if analysis.kind == IntentKind.CAPABILITY_BASED
            else RoutingStrategy.SEMANTIC
        )
        try:
            selected = self.selector.select(
                catalog.models,
                destination,
                frozenset(required),
                credentials=self._credentials,
                preferred=self._preferred_models(analysis, snapshot),
                strategy=selection_strategy,
                fallback=rule.fallback_models if rule is not None else None,
                tie_breakers=catalog.selection_strategy.tie_breakers,
            )
            reasoning = self._reasoning(analysis, destination, selected)
        except NoEligibleModelError as e:
            logger.warning(
                "没有满足要求的模型，回退到默认模型",
                destination=destination,
                required=sorted(required),
                default_model=catalog.default_model,
                error=e.message,
            )
            selected = catalog.get(catalog.default_model)
            strategy = RoutingStrategy.FALLBACK
            reasoning = (
                f"目标 {destination} 需要能力 {', '.join(sorted(required)) or '无'}，"
                f"没有可用模型满足要求，回退到默认模型 {selected.id}"
            )

        return self._decision(
            selected,
            snapshot,
            confidence=analysis.confidence,
            reasoning=reasoning,
            metadata=RoutingMetadata(
                routing_strategy=strategy,
                user_intent_detected=False,
                capability_match=len(analysis.detected_capabilities),
                cost_estimate=selected.cost_per_1k_tokens,
                speed_rating=selected.speed_rating,
                destination=destination,
                selection_strategy=selection_strategy.value,
                escalations=max(0, len(analysis.escalation_path) - 1),
                analysis_method=analysis.analysis_method,
            ),
        )

    def _explicit_decision(
        self, analysis: IntentAnalysis, snapshot: RouterSnapshot
    ) -> RoutingDecision:
        selected = snapshot.catalog.get(analysis.target_model)
        if analysis.analysis_method == "user_intent":
            reasoning = f"调用方显式指定模型 {selected.id}"
        else:
            reasoning = f"用户在消息中要求切换到 {selected.id}"
        return self._decision(
            selected,
            snapshot,
            confidence=analysis.confidence,
            reasoning=reasoning,
            metadata=RoutingMetadata(
                routing_strategy=RoutingStrategy.EXPLICIT,
                user_intent_detected=True,
                capability_match=0,
                cost_estimate=selected.cost_per_1k_tokens,
                speed_rating=selected.speed_rating,
                analysis_method=analysis.analysis_method,
            ),
        )

    @staticmethod
    def _decision(
        selected: ModelDescriptor,
        snapshot: RouterSnapshot,
        confidence: float,
        reasoning: str,
        metadata: RoutingMetadata,
    ) -> RoutingDecision:
        return RoutingDecision(
            selected_model=selected.id,
            confidence=confidence,
            reasoning=reasoning,
            fallback_chain=resolve_fallback_chain(selected.id, snapshot.catalog),
            metadata=metadata,
        )

    @staticmethod
    def _reasoning(analysis: IntentAnalysis, destination: str, selected: ModelDescriptor) -> str:
        parts = [f"路由目标 {destination}（置信度 {analysis.confidence:.2f}）"]
        if analysis.detected_capabilities:
            parts.append(f"检测到能力: {', '.join(sorted(analysis.detected_capabilities))}")
        if len(analysis.escalation_path) > 1:
            parts.append(f"升级路径: {' → '.join(analysis.escalation_path)}")
        parts.append(f"选择 {selected.id}（质量 {selected.quality_rating}/10，速度 {selected.speed_rating}/10）")
        return "；".join(parts)

    def update_performance_stats(self, model_id: str, latency_ms: float, success: bool) -> None:
        """执行层在请求完成后回报延迟与成败"""
        self.selector.update_performance_stats(model_id, latency_ms, success)

    def analyze_capabilities(self, capabilities: Iterable[str]) -> list[ModelDescriptor]:
        """满足能力集合的模型，按质量评分降序"""
        models = self.service.catalog.models_with_capabilities(capabilities)
        return sorted(models, key=lambda model: -model.quality_rating)

    def get_available_models(self) -> list[ModelDescriptor]:
        return self.service.get_available_models()

    def reload(self, path: str | None = None) -> RouterSnapshot:
        return self.service.reload(path)

    def register_model(self, descriptor: ModelDescriptor) -> RouterSnapshot:
        return self.service.register_model(descriptor)
