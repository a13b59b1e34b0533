"""
路由领域模型

定义路由决策流水线使用的数据结构：
- ModelDescriptor / ModelCatalog: 模型目录（不可变快照）
- RoutingRule / SelectionStrategy: 路由规则与选择策略
- RoutingRequest: 路由请求（对话消息 + 显式意图）
- IntentAnalysis: 单次请求的意图分析结果
- RoutingDecision: 路由决策输出
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from smartroute.framework.shared.config import SelectionStrategyName


class ProviderType(str, Enum):
    """模型供应商类型"""
    OPENAI_COMPATIBLE = "openai_compatible"
    DEEPSEEK = "deepseek"
    ALIBABA_TONGYI = "alibaba_tongyi"
    GOOGLE_GEMINI = "google_gemini"
    TENCENT_HUNYUAN = "tencent_hunyuan"
    CLOUDFLARE = "cloudflare"


class Capability(str, Enum):
    """已知的模型能力"""
    VISION = "vision"
    REASONING = "reasoning"
    TOOL_CALLING = "tool_calling"
    STRUCTURED_OUTPUT = "structured_output"
    CHINESE = "chinese"
    SEARCH = "search"
    WEB_SEARCH = "web_search"
    CODE_GENERATION = "code_generation"
    CREATIVE_WRITING = "creative_writing"
    MATHEMATICAL_COMPUTATION = "mathematical_computation"
    AGENTS = "agents"


class IntentKind(str, Enum):
    """意图分析类型"""
    EXPLICIT_MODEL = "explicit_model"
    CAPABILITY_BASED = "capability_based"
    SEMANTIC = "semantic"


class TieBreaker(str, Enum):
    """priority 同值时的决胜指标"""
    COST_EFFICIENCY = "cost_efficiency"
    SPEED_RATING = "speed_rating"
    QUALITY_RATING = "quality_rating"


class RoutingStrategy(str, Enum):
    """决策元数据中记录的路由方式"""
    EXPLICIT = "explicit"
    CAPABILITY = "capability"
    SEMANTIC = "semantic"
    FALLBACK = "fallback"


class ModelDescriptor(BaseModel):
    """模型描述"""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(..., min_length=1, description="模型唯一 ID")
    provider_type: ProviderType = Field(..., description="供应商类型")
    capabilities: frozenset[str] = Field(default_factory=frozenset, description="模型能力集合")
    priority: dict[str, int] = Field(default_factory=dict, description="目标 -> 优先级（越小越优先）")
    cost_per_1k_tokens: float = Field(default=0.0, ge=0, description="每千 token 成本")
    speed_rating: int = Field(default=5, ge=1, le=10, description="速度评分")
    quality_rating: int = Field(default=5, ge=1, le=10, description="质量评分")
    api_key_ref: str | None = Field(default=None, description="API Key 环境变量名")
    base_url_ref: str | None = Field(default=None, description="Base URL 环境变量名")
    model_name: str | None = Field(default=None, description="供应商侧的模型名称")
    temperature: float | None = Field(default=None, description="默认温度")
    weight: float = Field(default=1.0, ge=0, description="加权随机策略中的权重")

    @property
    def backend_model(self) -> str:
        """供应商侧实际调用的模型名"""
        return self.model_name or self.id

    def has_capabilities(self, required: Iterable[str]) -> bool:
        return set(required) <= self.capabilities

    def is_available(self, credentials: Mapping[str, str]) -> bool:
        """凭据可用性判定：未声明 api_key_ref 的模型视为无需凭据"""
        if not self.api_key_ref:
            return True
        return bool(credentials.get(self.api_key_ref))


class RoutingRule(BaseModel):
    """路由规则"""
    model_config = ConfigDict(frozen=True)

    triggers: tuple[str, ...] = Field(default=(), description="触发关键词")
    preferred_models: tuple[str, ...] = Field(default=(), description="首选模型")
    fallback_models: tuple[str, ...] = Field(default=(), description="备选模型")
    required_capabilities: frozenset[str] = Field(
        default_factory=frozenset, description="该目标要求的模型能力"
    )


class SelectionStrategy(BaseModel):
    """
    目录级选择策略

    primary 是目录默认的选择策略（ROUTER_SELECTION_STRATEGY 优先）；
    secondary / tertiary / fallback 依次作为 priority 同值时的决胜依据，
    speed_optimization / quality_optimization 在其后追加速度、质量决胜。
    """
    model_config = ConfigDict(frozen=True)

    primary: SelectionStrategyName | None = Field(default=None, description="主策略")
    secondary: TieBreaker | None = Field(default=None, description="第一决胜依据")
    tertiary: TieBreaker | None = Field(default=None, description="第二决胜依据")
    fallback: TieBreaker | None = Field(default=None, description="第三决胜依据")
    default_model: str = Field(..., description="默认模型 ID")
    fallback_chain: tuple[str, ...] = Field(default=(), description="目录级回退链")
    speed_optimization: bool = Field(default=False, description="速度优化")
    quality_optimization: bool = Field(default=False, description="质量优化")

    @property
    def tie_breakers(self) -> tuple[TieBreaker, ...]:
        """priority 同值时依次比较的指标（去重，保持顺序）"""
        order: list[TieBreaker] = [
            criterion for criterion in (self.secondary, self.tertiary, self.fallback) if criterion
        ]
        if self.speed_optimization:
            order.append(TieBreaker.SPEED_RATING)
        if self.quality_optimization:
            order.append(TieBreaker.QUALITY_RATING)
        return tuple(dict.fromkeys(order))


class ContentPart(BaseModel):
    """多段消息中的一段"""
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = Field(..., description="片段类型，如 text / image_url / image")
    text: str | None = Field(default=None, description="文本内容")
    image_url: Any = Field(default=None, description="图片地址或对象")


class ChatMessage(BaseModel):
    """对话消息"""
    model_config = ConfigDict(frozen=True)

    role: str = Field(..., description="角色")
    content: str | tuple[ContentPart, ...] = Field(default="", description="纯文本或多段内容")

    @property
    def text(self) -> str:
        """将多段消息展平为文本"""
        if isinstance(self.content, str):
            return self.content
        return " ".join(part.text for part in self.content if part.text)

    @property
    def has_image(self) -> bool:
        if isinstance(self.content, str):
            return False
        return any(part.type in ("image_url", "image") for part in self.content)


class RoutingRequest(BaseModel):
    """路由请求"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    messages: tuple[ChatMessage, ...] = Field(default=(), description="对话消息")
    user_intent: str | None = Field(default=None, description="显式指定的模型 ID")
    tools: tuple[dict[str, Any], ...] | None = Field(default=None, description="工具定义")
    temperature: float | None = Field(default=None, description="生成温度")
    stream: bool = Field(default=False, description="是否流式")

    @classmethod
    def from_text(cls, text: str, **kwargs: Any) -> RoutingRequest:
        return cls(messages=(ChatMessage(role="user", content=text),), **kwargs)

    @property
    def last_message_text(self) -> str:
        return self.messages[-1].text if self.messages else ""

    @property
    def full_text(self) -> str:
        return " ".join(message.text for message in self.messages if message.text)

    @property
    def has_image(self) -> bool:
        return any(message.has_image for message in self.messages)

    def cache_key(self) -> str:
        """按消息列表序列化生成缓存键"""
        payload = [message.model_dump(mode="json") for message in self.messages]
        return json.dumps(payload, ensure_ascii=False, sort_keys=True)


class IntentAnalysis(BaseModel):
    """意图分析结果"""
    model_config = ConfigDict(frozen=True)

    kind: IntentKind = Field(..., description="意图类型")
    target_model: str | None = Field(default=None, description="显式目标模型")
    detected_capabilities: frozenset[str] = Field(default_factory=frozenset, description="检测到的能力")
    confidence: float = Field(..., ge=0.0, le=1.0, description="置信度")
    destination: str | None = Field(default=None, description="路由目标")
    analysis_method: str = Field(default="rule_based", description="分析方式")
    escalation_path: tuple[str, ...] = Field(default=(), description="升级路径")
    has_image: bool = Field(default=False, description="是否包含图片")
    is_chinese: bool = Field(default=False, description="是否以中文为主")
    complexity: str | None = Field(default=None, description="复杂度分层")


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class RoutingMetadata(_CamelModel):
    """决策元数据"""
    routing_strategy: RoutingStrategy = Field(..., description="路由方式")
    user_intent_detected: bool = Field(default=False, description="是否采纳用户显式意图")
    capability_match: int = Field(default=0, description="检测到的能力数量")
    cost_estimate: float = Field(default=0.0, description="每千 token 成本估计")
    speed_rating: int = Field(default=5, description="所选模型速度评分")
    destination: str | None = Field(default=None, description="路由目标")
    selection_strategy: str | None = Field(default=None, description="实际使用的选择策略")
    escalations: int = Field(default=0, description="升级次数")
    analysis_method: str | None = Field(default=None, description="分析方式")


class RoutingDecision(_CamelModel):
    """路由决策"""
    selected_model: str = Field(..., description="选中的模型 ID")
    confidence: float = Field(..., ge=0.0, le=1.0, description="置信度")
    reasoning: str = Field(..., description="决策说明")
    fallback_chain: tuple[str, ...] = Field(default=(), description="回退链")
    metadata: RoutingMetadata = Field(..., description="元数据")
