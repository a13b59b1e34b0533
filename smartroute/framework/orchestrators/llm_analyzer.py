"""
LLM 增强意图分析

在 llm_enhanced 模式下，置信度不足时请 LLM 基于用户输入与规则分析结果重新判断路由目标。
调用受超时、重试与断路器约束；任何失败都由上层回退到规则分析结果。
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from smartroute.domain.routing.catalog import ModelCatalog
from smartroute.domain.routing.escalation import Reanalysis
from smartroute.framework.shared.config import RoutingConfig
from smartroute.framework.shared.error_handler import ErrorHandler, to_llm_error
from smartroute.framework.shared.exceptions import ConfigurationError, UnknownDestinationError
from smartroute.framework.shared.logging import get_logger
from .model_registry import build_client

logger = get_logger(__name__)

ROUTING_SYSTEM_PROMPT = """你是一个 LLM 请求路由分析器。
请基于用户输入和规则分析结果，判断最合适的路由目标，并给出 0-1 之间的置信度。
可选路由目标：{destinations}

请仅返回 JSON：
{{"route": "路由目标", "confidence": 0.8, "reasoning": "简短理由"}}"""

ROUTING_USER_PROMPT = """用户输入：{text}
规则分析结果：{rule_result}"""


class RouteReanalysis(BaseModel):
    """LLM 返回的结构化路由判断"""
    route: str = Field(..., description="路由目标")
    confidence: float = Field(..., ge=0.0, le=1.0, description="置信度")
    reasoning: str = Field(default="", description="理由")


class LLMIntentAnalyzer:
    """基于 LangChain 的意图重新分析器"""

    def __init__(
        self,
        model: BaseChatModel,
        timeout: float = 5.0,
        error_handler: ErrorHandler | None = None,
        model_id: str | None = None,
    ):
        self.model = model
        self.timeout = timeout
        self.error_handler = error_handler or ErrorHandler()
        self.model_id = model_id
        self._chain = self._create_routing_chain()

    @classmethod
    def from_catalog(
        cls,
        catalog: ModelCatalog,
        config: RoutingConfig,
        credentials: Mapping[str, str] | None = None,
    ) -> LLMIntentAnalyzer:
        """使用目录中的 routing_model_name 模型构建分析器"""
        model_id = config.routing_model_name
        descriptor = catalog.get(model_id) if model_id else None
        if descriptor is None:
            raise ConfigurationError(
                f"llm_enhanced 模式的分析模型不在目录中: {model_id}",
                config_key="ROUTING_MODEL_NAME",
            )
        descriptor = descriptor.model_copy(update={"temperature": config.routing_temperature})
        return cls(
            build_client(descriptor, credentials),
            timeout=config.analysis_timeout,
            model_id=descriptor.id,
        )

    def _create_routing_chain(self) -> Runnable:
        prompt = ChatPromptTemplate.from_messages([
            ("system", ROUTING_SYSTEM_PROMPT),
            ("human", ROUTING_USER_PROMPT),
        ])
        return prompt | self.model | JsonOutputParser()

    async def _invoke(self, payload: dict[str, Any]) -> RouteReanalysis | None:
        try:
            raw = await self._chain.ainvoke(payload)
        except OutputParserException as e:
            logger.warning("LLM 分析结果不是有效 JSON，忽略", model=self.model_id, error=str(e))
            return None
        except Exception as e:
            raise to_llm_error(e, "意图分析", self.model_id) from e

        try:
            return RouteReanalysis.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning("LLM 分析结果字段无效，忽略", model=self.model_id, error=str(e))
            return None

    async def reanalyze(
        self,
        text: str,
        current_destination: str,
        confidence: float,
        destinations: Sequence[str],
    ) -> Reanalysis | None:
        """
        请求 LLM 重新判断路由目标

        Raises:
            AnalysisTimeoutError: 超过 timeout
            UnknownDestinationError: LLM 返回了不存在的路由目标
            LLMError: 重试后仍失败
        """
        payload = {
            "destinations": ", ".join(destinations),
            "text": text,
            "rule_result": json.dumps(
                {"route": current_destination, "confidence": confidence}, ensure_ascii=False
            ),
        }
        result = await self.error_handler.execute_with_timeout(
            self._invoke, payload, timeout=self.timeout, operation="LLM 意图分析"
        )
        if result is None:
            return None

        if result.route not in destinations:
            raise UnknownDestinationError(
                f"LLM 返回了未知的路由目标: {result.route}", destination=result.route
            )

        logger.debug(
            "LLM 分析完成",
            route=result.route,
            confidence=result.confidence,
            model=self.model_id,
        )
        return Reanalysis(
            destination=result.route,
            confidence=result.confidence,
            reasoning=result.reasoning,
        )
