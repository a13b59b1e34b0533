"""
orchestrators/ - 路由编排

负责：
- UnifiedRouter: 路由决策主流程
- RouterService: 目录快照与热重载
- LLMIntentAnalyzer: llm_enhanced 模式下的意图重新分析
- 供应商客户端构建
- 意图分析缓存
"""

from .intent_cache import IntentCache
from .llm_analyzer import LLMIntentAnalyzer
from .model_registry import PROVIDER_BUILDERS, build_client
from .router_service import RouterService, RouterSnapshot
from .unified_router import UnifiedRouter

__all__ = [
    "IntentCache",
    "LLMIntentAnalyzer",
    "PROVIDER_BUILDERS",
    "build_client",
    "RouterService",
    "RouterSnapshot",
    "UnifiedRouter",
]
