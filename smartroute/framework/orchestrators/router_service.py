"""
路由服务

持有不可变的目录快照（目录 + 由目录派生的检测器/打分器/升级器）。
reload() 与 register_model() 构建新快照后整体替换引用：
读者要么看到旧快照，要么看到新快照，不会看到半更新状态。
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from smartroute.domain.routing.capability_detector import CapabilityDetector
from smartroute.domain.routing.catalog import ModelCatalog, load_catalog
from smartroute.domain.routing.escalation import ConfidenceEscalator, IntentReanalyzer
from smartroute.domain.routing.explicit_detector import ExplicitModelDetector
from smartroute.domain.routing.models import ModelDescriptor
from smartroute.domain.routing.scorer import RuleBasedScorer
from smartroute.domain.routing.segmentation import KeywordMatcher
from smartroute.framework.shared.config import AnalysisMode, RoutingConfig, Settings, get_settings
from smartroute.framework.shared.exceptions import ConfigurationError, ProviderError
from smartroute.framework.shared.logging import get_logger
from .llm_analyzer import LLMIntentAnalyzer

logger = get_logger(__name__)


@dataclass(frozen=True)
class RouterSnapshot:
    """某一版本目录及其派生组件"""
    version: int
    catalog: ModelCatalog
    capability_detector: CapabilityDetector
    explicit_detector: ExplicitModelDetector
    scorer: RuleBasedScorer
    escalator: ConfidenceEscalator


class RouterService:
    """目录快照的持有者"""

    def __init__(
        self,
        catalog: ModelCatalog,
        config: RoutingConfig | None = None,
        config_path: str | Path | None = None,
        matcher: KeywordMatcher | None = None,
        reanalyzer: IntentReanalyzer | None = None,
        credentials: Mapping[str, str] | None = None,
    ):
        self.config = config or RoutingConfig()
        self.config_path = Path(config_path) if config_path else None
        self.matcher = matcher or KeywordMatcher()
        self.credentials = credentials
        self._reanalyzer = reanalyzer
        self._write_lock = threading.Lock()
        self._listeners: list[Callable[[RouterSnapshot], None]] = []
        self._snapshot = self._build_snapshot(catalog, version=1)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs) -> RouterService:
        """按 MODELS_CONFIG_PATH 加载目录并创建服务"""
        settings = settings or get_settings()
        catalog = load_catalog(settings.MODELS_CONFIG_PATH)
        return cls(
            catalog,
            config=settings.get_routing_config(),
            config_path=settings.MODELS_CONFIG_PATH,
            **kwargs,
        )

    @property
    def snapshot(self) -> RouterSnapshot:
        return self._snapshot

    @property
    def catalog(self) -> ModelCatalog:
        return self._snapshot.catalog

    def add_reload_listener(self, listener: Callable[[RouterSnapshot], None]) -> None:
        self._listeners.append(listener)

    def _resolve_reanalyzer(self, catalog: ModelCatalog) -> IntentReanalyzer | None:
        if self.config.analysis_mode != AnalysisMode.LLM_ENHANCED:
            return None
        if self._reanalyzer is not None:
            return self._reanalyzer
        try:
            return LLMIntentAnalyzer.from_catalog(catalog, self.config, self.credentials)
        except (ConfigurationError, ProviderError) as e:
            logger.warning("无法构建 LLM 分析模型，退回规则分析", error=e.message)
            return None

    def _build_snapshot(self, catalog: ModelCatalog, version: int) -> RouterSnapshot:
        scorer = RuleBasedScorer.from_catalog(
            catalog, default_destination=self.config.default_route, matcher=self.matcher
        )
        return RouterSnapshot(
            version=version,
            catalog=catalog,
            capability_detector=CapabilityDetector(
                catalog.keywords,
                matcher=self.matcher,
                detect_chinese_capability=self.config.detect_chinese_capability,
            ),
            explicit_detector=ExplicitModelDetector(
                aliases=catalog.model_aliases,
                high_quality_models=catalog.high_quality_models(),
                known_models=catalog.ids(),
            ),
            scorer=scorer,
            escalator=ConfidenceEscalator(
                scorer, self.config, reanalyzer=self._resolve_reanalyzer(catalog)
            ),
        )

    def _swap(self, catalog: ModelCatalog) -> RouterSnapshot:
        snapshot = self._build_snapshot(catalog, version=self._snapshot.version + 1)
        self._snapshot = snapshot
        for listener in self._listeners:
            listener(snapshot)
        return snapshot

    def reload(self, path: str | Path | None = None) -> RouterSnapshot:
        """
        重新加载目录

        加载或校验失败时抛出 ConfigurationError，并保留当前快照继续服务。
        """
        source = Path(path) if path else self.config_path
        if source is None:
            raise ConfigurationError("未指定模型配置文件路径", config_key="MODELS_CONFIG_PATH")

        with self._write_lock:
            catalog = load_catalog(source)
            self.config_path = source
            snapshot = self._swap(catalog)
        logger.info("模型目录已重新加载", version=snapshot.version, models=len(catalog))
        return snapshot

    def register_model(self, descriptor: ModelDescriptor) -> RouterSnapshot:
        """注册（或替换）一个模型，生成新快照"""
        with self._write_lock:
            catalog = self._snapshot.catalog.with_model(descriptor)
            snapshot = self._swap(catalog)
        logger.info("模型已注册", model=descriptor.id, version=snapshot.version)
        return snapshot

    def get_available_models(self) -> list[ModelDescriptor]:
        """凭据可用的模型"""
        credentials = os.environ if self.credentials is None else self.credentials
        return self.catalog.available_models(credentials)
