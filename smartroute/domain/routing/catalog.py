"""
模型目录

负责：
- 从 JSON 配置加载模型目录（models / routing_rules / selection_strategy / keywords）
- 目录校验：重复 ID、未知默认模型、越权优先级等均在加载期抛出 ConfigurationError
- 不可变快照：注册新模型时返回新目录，不修改旧目录
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from smartroute.framework.shared.exceptions import ConfigurationError, handle_exceptions
from smartroute.framework.shared.logging import get_logger
from .defaults import (
    DEFAULT_CAPABILITY_KEYWORDS,
    DEFAULT_DESTINATION_CAPABILITIES,
    DEFAULT_HIGH_QUALITY_MODELS,
    DEFAULT_MODEL_ALIASES,
    DEFAULT_ROUTE_TRIGGERS,
)
from .models import ModelDescriptor, RoutingRule, SelectionStrategy

logger = get_logger(__name__)


class ModelCatalog(BaseModel):
    """模型目录快照"""
    model_config = ConfigDict(frozen=True)

    models: tuple[ModelDescriptor, ...] = Field(default=(), description="按声明顺序排列的模型")
    routing_rules: dict[str, RoutingRule] = Field(default_factory=dict, description="路由规则")
    selection_strategy: SelectionStrategy = Field(..., description="选择策略")
    keywords: dict[str, tuple[str, ...]] = Field(default_factory=dict, description="能力关键词")
    model_aliases: tuple[tuple[str, str], ...] = Field(
        default=DEFAULT_MODEL_ALIASES, description="模型别名表"
    )
    source: str | None = Field(default=None, description="配置来源")

    def __contains__(self, model_id: object) -> bool:
        return any(model.id == model_id for model in self.models)

    def __len__(self) -> int:
        return len(self.models)

    def get(self, model_id: str) -> ModelDescriptor | None:
        for model in self.models:
            if model.id == model_id:
                return model
        return None

    def ids(self) -> list[str]:
        return [model.id for model in self.models]

    @property
    def default_model(self) -> str:
        return self.selection_strategy.default_model

    def required_capabilities(self, destination: str) -> frozenset[str]:
        """目标要求的模型能力：规则显式声明优先，其次使用内置的能力型目标映射"""
        rule = self.routing_rules.get(destination)
        if rule is not None and rule.required_capabilities:
            return rule.required_capabilities
        return DEFAULT_DESTINATION_CAPABILITIES.get(destination, frozenset())

    def available_models(self, credentials: Mapping[str, str]) -> list[ModelDescriptor]:
        return [model for model in self.models if model.is_available(credentials)]

    def models_with_capabilities(self, required: Iterable[str]) -> list[ModelDescriptor]:
        required = set(required)
        return [model for model in self.models if model.has_capabilities(required)]

    def ranked_by_quality(self) -> list[str]:
        """按质量评分降序排列的模型 ID（同分保持声明顺序）"""
        ranked = sorted(self.models, key=lambda model: -model.quality_rating)
        return [model.id for model in ranked]

    def high_quality_models(self) -> list[str]:
        """显式检测"高级模型"时使用的排名"""
        if self.models:
            return self.ranked_by_quality()
        return list(DEFAULT_HIGH_QUALITY_MODELS)

    def with_model(self, descriptor: ModelDescriptor) -> ModelCatalog:
        """注册（或替换）一个模型，返回新的目录快照"""
        if self.get(descriptor.id) is not None:
            models = tuple(descriptor if m.id == descriptor.id else m for m in self.models)
        else:
            models = self.models + (descriptor,)
        catalog = self.model_copy(update={"models": models})
        validate_catalog(catalog)
        return catalog


def _capability_names(raw: Any) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, Mapping):
        return frozenset(name for name, enabled in raw.items() if enabled)
    return frozenset(raw)


def descriptor_from_config(model_id: str, raw: Mapping[str, Any]) -> ModelDescriptor:
    """将配置文件中的模型条目转换为 ModelDescriptor"""
    config = raw.get("config") or {}
    try:
        return ModelDescriptor(
            id=model_id,
            provider_type=raw.get("type") or raw.get("provider_type"),
            capabilities=_capability_names(raw.get("capabilities")),
            priority=raw.get("priority") or {},
            cost_per_1k_tokens=raw.get("cost_per_1k_tokens", 0.0),
            speed_rating=raw.get("speed_rating", 5),
            quality_rating=raw.get("quality_rating", 5),
            api_key_ref=config.get("apiKey") or raw.get("api_key_ref"),
            base_url_ref=config.get("baseURL") or raw.get("base_url_ref"),
            model_name=config.get("model") or raw.get("model_name"),
            temperature=config.get("temperature", raw.get("temperature")),
            weight=raw.get("weight", 1.0),
        )
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"模型 {model_id} 配置无效: {e}", config_key=f"models.{model_id}", cause=e
        ) from e


def _rule_from_config(destination: str, raw: Mapping[str, Any]) -> RoutingRule:
    try:
        return RoutingRule(
            triggers=tuple(str(t).lower() for t in raw.get("triggers") or ()),
            preferred_models=tuple(raw.get("preferred_models") or ()),
            fallback_models=tuple(raw.get("fallback_models") or ()),
            required_capabilities=frozenset(raw.get("required_capabilities") or ()),
        )
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"路由规则 {destination} 配置无效: {e}",
            config_key=f"routing_rules.{destination}",
            cause=e,
        ) from e


def _model_entries(raw_models: Any) -> list[tuple[str, Mapping[str, Any]]]:
    if isinstance(raw_models, Mapping):
        return list(raw_models.items())
    if isinstance(raw_models, Sequence) and not isinstance(raw_models, str):
        entries = []
        for item in raw_models:
            if not isinstance(item, Mapping) or "id" not in item:
                raise ConfigurationError("模型列表中的条目必须包含 id", config_key="models")
            entries.append((item["id"], item))
        return entries
    raise ConfigurationError("models 必须是对象或数组", config_key="models")


def _default_rules() -> dict[str, RoutingRule]:
    rules = {
        destination: RoutingRule(triggers=triggers)
        for destination, triggers in DEFAULT_ROUTE_TRIGGERS.items()
    }
    rules["vision_processing"] = RoutingRule(
        triggers=DEFAULT_CAPABILITY_KEYWORDS["vision"],
        required_capabilities=DEFAULT_DESTINATION_CAPABILITIES["vision_processing"],
    )
    return rules


def _aliases_from_config(raw: Any) -> tuple[tuple[str, str], ...]:
    if raw is None:
        return DEFAULT_MODEL_ALIASES
    if isinstance(raw, Mapping):
        return tuple((str(alias).lower(), str(target)) for alias, target in raw.items())
    try:
        return tuple((str(alias).lower(), str(target)) for alias, target in raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            "model_aliases 必须是对象或 [别名, 模型] 数组", config_key="model_aliases", cause=e
        ) from e


def parse_catalog(data: Mapping[str, Any], source: str | None = None) -> ModelCatalog:
    """
    解析配置文档为 ModelCatalog

    Args:
        data: 已反序列化的 JSON 文档
        source: 配置来源（仅用于日志与错误信息）

    Raises:
        ConfigurationError: 文档结构或引用关系无效
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("模型配置必须是 JSON 对象")
    if "models" not in data:
        raise ConfigurationError("模型配置缺少 models", config_key="models")

    models: list[ModelDescriptor] = []
    seen: set[str] = set()
    for model_id, raw in _model_entries(data["models"]):
        if model_id in seen:
            raise ConfigurationError(f"重复的模型 ID: {model_id}", config_key="models")
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"模型 {model_id} 配置必须是对象", config_key=f"models.{model_id}")
        seen.add(model_id)
        models.append(descriptor_from_config(model_id, raw))

    raw_rules = data.get("routing_rules")
    if raw_rules is None:
        routing_rules = _default_rules()
    elif isinstance(raw_rules, Mapping):
        routing_rules = {
            destination: _rule_from_config(destination, raw or {})
            for destination, raw in raw_rules.items()
        }
    else:
        raise ConfigurationError("routing_rules 必须是对象", config_key="routing_rules")

    raw_strategy = data.get("selection_strategy") or {}
    if "default_model" not in raw_strategy and models:
        raw_strategy = {**raw_strategy, "default_model": models[0].id}
    try:
        selection_strategy = SelectionStrategy(**raw_strategy)
    except (PydanticValidationError, TypeError) as e:
        raise ConfigurationError(
            f"selection_strategy 配置无效: {e}", config_key="selection_strategy", cause=e
        ) from e

    raw_keywords = data.get("keywords")
    if raw_keywords is None:
        keywords = dict(DEFAULT_CAPABILITY_KEYWORDS)
    elif isinstance(raw_keywords, Mapping):
        keywords = {
            capability: tuple(str(word).lower() for word in words)
            for capability, words in raw_keywords.items()
        }
    else:
        raise ConfigurationError("keywords 必须是对象", config_key="keywords")

    catalog = ModelCatalog(
        models=tuple(models),
        routing_rules=routing_rules,
        selection_strategy=selection_strategy,
        keywords=keywords,
        model_aliases=_aliases_from_config(data.get("model_aliases")),
        source=source,
    )
    validate_catalog(catalog)
    return catalog


def validate_catalog(catalog: ModelCatalog) -> None:
    """校验目录内部引用关系"""
    ids = catalog.ids()
    if len(ids) != len(set(ids)):
        raise ConfigurationError("模型 ID 必须唯一", config_key="models")

    strategy = catalog.selection_strategy
    if strategy.default_model not in catalog:
        raise ConfigurationError(
            f"默认模型不在目录中: {strategy.default_model}",
            config_key="selection_strategy.default_model",
        )
    for model_id in strategy.fallback_chain:
        if model_id not in catalog:
            raise ConfigurationError(
                f"回退链引用了未知模型: {model_id}",
                config_key="selection_strategy.fallback_chain",
            )

    for destination, rule in catalog.routing_rules.items():
        for model_id in (*rule.preferred_models, *rule.fallback_models):
            if model_id not in catalog:
                raise ConfigurationError(
                    f"路由规则 {destination} 引用了未知模型: {model_id}",
                    config_key=f"routing_rules.{destination}",
                )

    for model in catalog.models:
        for destination in model.priority:
            required = catalog.required_capabilities(destination)
            if not model.has_capabilities(required):
                missing = sorted(required - model.capabilities)
                raise ConfigurationError(
                    f"模型 {model.id} 缺少目标 {destination} 所需能力: {', '.join(missing)}",
                    config_key=f"models.{model.id}.priority",
                )


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ConfigurationError(f"配置中存在重复的键: {key}", config_key=key)
        result[key] = value
    return result


@handle_exceptions(
    {OSError: ConfigurationError, json.JSONDecodeError: ConfigurationError},
    default_exception=ConfigurationError,
)
def load_catalog(path: str | Path) -> ModelCatalog:
    """从 JSON 文件加载模型目录"""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"模型配置文件不存在: {path}", config_key="MODELS_CONFIG_PATH")

    data = json.loads(path.read_text(encoding="utf-8"), object_pairs_hook=_reject_duplicate_keys)
    catalog = parse_catalog(data, source=str(path))
    logger.info(
        "模型目录加载完成",
        source=str(path),
        models=len(catalog),
        destinations=len(catalog.routing_rules),
        default_model=catalog.default_model,
    )
    return catalog
