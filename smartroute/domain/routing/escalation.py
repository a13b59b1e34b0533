"""
置信度门控与升级

状态机：basic → enhanced → rag → agent（agent 为终态）。
每轮若置信度达到阈值即终止；否则沿阶梯升一级、置信度 +0.1（上限 1.0），
再重新打分（llm_enhanced 模式下调用 LLM 重新分析）。
升级次数受 max_retries 限制，耗尽时返回最后一次结果，不抛出异常。
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from smartroute.framework.shared.config import AnalysisMode, RoutingConfig
from smartroute.framework.shared.exceptions import (
    AnalysisTimeoutError,
    LLMError,
    UnknownDestinationError,
)
from smartroute.framework.shared.logging import get_logger
from .capability_detector import CapabilityReport
from .scorer import RuleBasedScorer, ScoreResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class Reanalysis:
    """LLM 重新分析的结果"""
    destination: str
    confidence: float
    reasoning: str = ""


class IntentReanalyzer(Protocol):
    async def reanalyze(
        self,
        text: str,
        current_destination: str,
        confidence: float,
        destinations: Sequence[str],
    ) -> Reanalysis | None:
        ...


@dataclass(frozen=True)
class EscalationResult:
    """门控结果"""
    destination: str
    confidence: float
    attempts: int
    path: tuple[str, ...]
    analysis_method: str = "rule_based"

    @property
    def escalated(self) -> bool:
        return self.attempts > 0


class ConfidenceEscalator:
    """置信度门控 + 阶梯升级"""

    def __init__(
        self,
        scorer: RuleBasedScorer,
        config: RoutingConfig | None = None,
        reanalyzer: IntentReanalyzer | None = None,
    ):
        self.scorer = scorer
        self.config = config or RoutingConfig()
        self.reanalyzer = reanalyzer

    @property
    def ladder(self) -> list[str]:
        return self.config.escalation_ladder

    def next_rung(self, destination: str) -> str:
        """阶梯上的下一级；终态或阶梯外的目标保持不变"""
        ladder = self.ladder
        if destination not in ladder:
            return destination
        index = ladder.index(destination)
        return ladder[min(index + 1, len(ladder) - 1)]

    def _rung_index(self, destination: str) -> int:
        return self.ladder.index(destination) if destination in self.ladder else -1

    async def _reanalyze(
        self, text: str, destination: str, confidence: float
    ) -> Reanalysis | None:
        if self.reanalyzer is None or self.config.analysis_mode != AnalysisMode.LLM_ENHANCED:
            return None
        try:
            result = await self.reanalyzer.reanalyze(
                text, destination, confidence, self.scorer.destinations or self.ladder
            )
        except AnalysisTimeoutError as e:
            logger.warning("LLM 分析超时，使用规则结果", destination=destination, timeout=e.details.get("timeout"))
            return None
        except UnknownDestinationError as e:
            logger.warning("LLM 返回未知路由目标，已忽略", destination=e.details.get("destination"))
            return None
        except LLMError as e:
            logger.warning("LLM 分析失败，使用规则结果", error=e.message)
            return None
        return result

    async def run(
        self, initial: ScoreResult, report: CapabilityReport, text: str = ""
    ) -> EscalationResult:
        destination = initial.destination
        confidence = initial.confidence
        path = [destination]
        attempts = 0
        method = "rule_based"

        while confidence < self.config.confidence_threshold and attempts < self.config.max_retries:
            attempts += 1
            escalated = self.next_rung(destination)
            nudged = round(min(1.0, confidence + self.config.confidence_increment), 4)
            rescored = self.scorer.rescore(escalated, report)
            candidate_destination, candidate_confidence = escalated, max(nudged, rescored)

            reanalysis = await self._reanalyze(text, escalated, candidate_confidence)
            if reanalysis is not None:
                method = "llm_enhanced"
                # 只接受不回退阶梯的 LLM 结果
                if self._rung_index(reanalysis.destination) >= self._rung_index(escalated):
                    candidate_destination = reanalysis.destination
                candidate_confidence = max(candidate_confidence, min(1.0, reanalysis.confidence))

            destination, confidence = candidate_destination, candidate_confidence
            path.append(destination)
            logger.debug(
                "置信度不足，升级路由",
                attempt=attempts,
                destination=destination,
                confidence=confidence,
            )

        if confidence < self.config.confidence_threshold:
            logger.info(
                "升级次数耗尽，按低置信度结果路由",
                destination=destination,
                confidence=confidence,
                attempts=attempts,
            )

        return EscalationResult(
            destination=destination,
            confidence=confidence,
            attempts=attempts,
            path=tuple(path),
            analysis_method=method,
        )
