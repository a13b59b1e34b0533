"""
routing/ - 路由领域层

请求路由决策流水线：
显式模型检测 → 能力检测 → 规则打分 → 置信度门控/升级 → 模型选择 → 回退链
"""

from .capability_detector import CapabilityDetector, CapabilityReport, analyze_complexity
from .catalog import ModelCatalog, load_catalog, parse_catalog, validate_catalog
from .escalation import ConfidenceEscalator, EscalationResult, Reanalysis
from .explicit_detector import ExplicitModelDetector
from .fallback import resolve_fallback_chain
from .models import (
    ChatMessage,
    ContentPart,
    IntentAnalysis,
    IntentKind,
    ModelDescriptor,
    ProviderType,
    RoutingDecision,
    RoutingMetadata,
    RoutingRequest,
    RoutingRule,
    RoutingStrategy,
    SelectionStrategy,
    TieBreaker,
)
from .scorer import RuleBasedScorer, ScoreResult
from .selector import ModelSelector

__all__ = [
    "CapabilityDetector", "CapabilityReport", "analyze_complexity",
    "ModelCatalog", "load_catalog", "parse_catalog", "validate_catalog",
    "ConfidenceEscalator", "EscalationResult", "Reanalysis",
    "ExplicitModelDetector",
    "resolve_fallback_chain",
    "ChatMessage", "ContentPart", "IntentAnalysis", "IntentKind", "ModelDescriptor",
    "ProviderType", "RoutingDecision", "RoutingMetadata", "RoutingRequest", "RoutingRule",
    "RoutingStrategy", "SelectionStrategy", "TieBreaker",
    "RuleBasedScorer", "ScoreResult",
    "ModelSelector",
]
