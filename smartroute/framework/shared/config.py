"""
配置管理

基于 pydantic-settings 实现：
- 环境变量 / .env 支持
- 路由运行时参数（置信度阈值、重试次数、分析模式、选择策略）
- 复杂度分层模型偏好列表
- 配置验证

设计原则：
- 类型安全
- 环境隔离
- 易于测试
"""

from enum import Enum
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisMode(str, Enum):
    """意图分析模式"""
    RULE_BASED = "rule_based"
    LLM_ENHANCED = "llm_enhanced"


class SelectionStrategyName(str, Enum):
    """模型选择策略"""
    PRIORITY = "priority"
    ROUND_ROBIN = "round_robin"
    WEIGHTED = "weighted"
    LOAD_BALANCE = "load_balance"
    FASTEST = "fastest"
    A_B_TEST = "a_b_test"
    FALLBACK = "fallback"


class ComplexityTier(str, Enum):
    """请求复杂度分层"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def split_model_list(raw: str | None) -> list[str]:
    """解析逗号分隔的模型 ID 列表"""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


class RoutingConfig(BaseModel):
    """路由配置"""
    confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0, description="置信度阈值")
    max_retries: int = Field(default=3, ge=0, description="最大升级次数")
    confidence_increment: float = Field(default=0.1, ge=0.0, le=1.0, description="每次升级的置信度增量")
    analysis_mode: AnalysisMode = Field(default=AnalysisMode.RULE_BASED, description="意图分析模式")
    analysis_timeout: float = Field(default=5.0, gt=0, description="LLM 分析超时(秒)")
    selection_strategy: SelectionStrategyName | None = Field(
        default=None, description="模型选择策略，未设置时使用目录 selection_strategy.primary"
    )
    ab_test_ratio: int = Field(default=50, ge=0, le=100, description="A/B 测试中第一个候选的流量百分比")
    default_route: str = Field(default="basic", description="默认路由目标")
    escalation_ladder: list[str] = Field(
        default_factory=lambda: ["basic", "enhanced", "rag", "agent"],
        description="升级阶梯",
    )
    complexity_models: dict[ComplexityTier, list[str]] = Field(
        default_factory=dict, description="复杂度分层模型偏好"
    )
    detect_chinese_capability: bool = Field(
        default=False, description="中文占比检测是否计入 chinese 能力"
    )
    routing_model_name: str | None = Field(default=None, description="LLM 分析使用的目录模型 ID")
    routing_temperature: float = Field(default=0.1, description="LLM 分析温度")
    intent_cache_enabled: bool = Field(default=True, description="启用意图分析缓存")
    intent_cache_ttl: int = Field(default=300, ge=0, description="意图缓存过期时间(秒)")
    intent_cache_max_size: int = Field(default=1000, ge=1, description="意图缓存最大条目数")

    @field_validator("escalation_ladder")
    @classmethod
    def _ladder_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("escalation_ladder 不能为空")
        if len(set(value)) != len(value):
            raise ValueError("escalation_ladder 不能包含重复项")
        return value


class Settings(BaseSettings):
    """应用配置类"""

    # 通用配置
    ENVIRONMENT: str = Field(default="development", description="运行环境")
    DEBUG: bool = Field(default=False, description="调试模式")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别")
    LOG_FORMAT: str = Field(default="", description="日志格式 (console / json)，留空时生产环境使用 json")

    # 模型目录
    MODELS_CONFIG_PATH: str = Field(
        default="config/models-config.json", description="模型目录配置文件路径"
    )

    # 路由配置
    ROUTER_CONFIDENCE_THRESHOLD: float = Field(default=0.6, description="路由置信度阈值")
    ROUTER_MAX_RETRIES: int = Field(default=3, description="路由最大升级次数")
    ROUTER_ANALYSIS_MODE: AnalysisMode = Field(
        default=AnalysisMode.RULE_BASED, description="意图分析模式"
    )
    ROUTER_ANALYSIS_TIMEOUT: float = Field(default=5.0, description="LLM 分析超时(秒)")
    ROUTER_SELECTION_STRATEGY: SelectionStrategyName | None = Field(
        default=None, description="模型选择策略（覆盖目录 primary）"
    )
    ROUTER_AB_TEST_RATIO: int = Field(default=50, description="A/B 测试流量比例")
    ROUTER_DEFAULT_ROUTE: str = Field(default="basic", description="默认路由目标")
    DETECT_CHINESE_CAPABILITY: bool = Field(
        default=False, description="中文占比检测是否计入 chinese 能力"
    )

    # 复杂度分层模型偏好（逗号分隔）
    COMPLEXITY_LOW_MODELS: str = Field(default="", description="低复杂度模型列表")
    COMPLEXITY_MEDIUM_MODELS: str = Field(default="", description="中复杂度模型列表")
    COMPLEXITY_HIGH_MODELS: str = Field(default="", description="高复杂度模型列表")

    # LLM 增强分析
    ROUTING_MODEL_NAME: str = Field(default="", description="LLM 分析使用的目录模型 ID")
    ROUTING_TEMPERATURE: float = Field(default=0.1, description="LLM 分析温度")

    # 意图缓存
    INTENT_CACHE_ENABLED: bool = Field(default=True, description="启用意图分析缓存")
    INTENT_CACHE_TTL: int = Field(default=300, description="意图缓存过期时间(秒)")
    INTENT_CACHE_MAX_SIZE: int = Field(default=1000, description="意图缓存最大条目数")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """是否为生产环境"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def log_level(self) -> str:
        """DEBUG 模式强制使用 DEBUG 级别"""
        return "DEBUG" if self.DEBUG else self.LOG_LEVEL.upper()

    @property
    def log_format(self) -> str:
        if self.LOG_FORMAT:
            return self.LOG_FORMAT.lower()
        return "json" if self.is_production else "console"

    def get_complexity_models(self) -> dict[ComplexityTier, list[str]]:
        """获取各复杂度分层的模型偏好列表"""
        return {
            ComplexityTier.LOW: split_model_list(self.COMPLEXITY_LOW_MODELS),
            ComplexityTier.MEDIUM: split_model_list(self.COMPLEXITY_MEDIUM_MODELS),
            ComplexityTier.HIGH: split_model_list(self.COMPLEXITY_HIGH_MODELS),
        }

    def get_routing_config(self) -> RoutingConfig:
        """构建经过校验的路由配置"""
        return RoutingConfig(
            confidence_threshold=self.ROUTER_CONFIDENCE_THRESHOLD,
            max_retries=self.ROUTER_MAX_RETRIES,
            analysis_mode=self.ROUTER_ANALYSIS_MODE,
            analysis_timeout=self.ROUTER_ANALYSIS_TIMEOUT,
            selection_strategy=self.ROUTER_SELECTION_STRATEGY,
            ab_test_ratio=self.ROUTER_AB_TEST_RATIO,
            default_route=self.ROUTER_DEFAULT_ROUTE,
            complexity_models=self.get_complexity_models(),
            detect_chinese_capability=self.DETECT_CHINESE_CAPABILITY,
            routing_model_name=self.ROUTING_MODEL_NAME or None,
            routing_temperature=self.ROUTING_TEMPERATURE,
            intent_cache_enabled=self.INTENT_CACHE_ENABLED,
            intent_cache_ttl=self.INTENT_CACHE_TTL,
            intent_cache_max_size=self.INTENT_CACHE_MAX_SIZE,
        )

    def validate_config(self) -> list[str]:
        """验证配置项"""
        errors = []

        if not (0.0 <= self.ROUTER_CONFIDENCE_THRESHOLD <= 1.0):
            errors.append("ROUTER_CONFIDENCE_THRESHOLD 必须在 0-1 范围内")

        if self.ROUTER_MAX_RETRIES < 0:
            errors.append("ROUTER_MAX_RETRIES 不能为负数")

        if self.ROUTER_ANALYSIS_TIMEOUT <= 0:
            errors.append("ROUTER_ANALYSIS_TIMEOUT 必须大于 0")

        if not (0 <= self.ROUTER_AB_TEST_RATIO <= 100):
            errors.append("ROUTER_AB_TEST_RATIO 必须在 0-100 范围内")

        if (
            self.ROUTER_ANALYSIS_MODE == AnalysisMode.LLM_ENHANCED
            and not self.ROUTING_MODEL_NAME
        ):
            errors.append("llm_enhanced 模式需要设置 ROUTING_MODEL_NAME")

        if not self.MODELS_CONFIG_PATH or not self.MODELS_CONFIG_PATH.strip():
            errors.append("MODELS_CONFIG_PATH 不能为空")
        elif not Path(self.MODELS_CONFIG_PATH).exists():
            errors.append(f"模型配置文件不存在: {self.MODELS_CONFIG_PATH}")

        return errors

    def is_valid(self) -> bool:
        """检查配置是否有效"""
        return len(self.validate_config()) == 0


# 全局配置实例
_settings: Settings | None = None


def get_settings() -> Settings:
    """获取全局配置实例（延迟创建）"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """丢弃缓存的配置实例，下次访问时重新读取环境"""
    global _settings
    _settings = None


def validate_config() -> list[str]:
    """验证当前配置"""
    return get_settings().validate_config()
