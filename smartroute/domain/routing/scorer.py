"""
规则打分器

对每个路由目标计算命中分数并转换为置信度：
    confidence = min(1.0, 0.5 + 0.1 * score)

- score = 规则触发词命中数 + 同名能力关键词命中数 + 已检测能力中目标所需能力的命中数
- 最高置信度胜出；同分时优先非默认目标
- 没有任何目标得分时返回默认目标，置信度固定为 0.6
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from smartroute.framework.shared.exceptions import UnknownDestinationError
from smartroute.framework.shared.logging import get_logger
from .capability_detector import CapabilityReport
from .catalog import ModelCatalog
from .models import RoutingRule
from .segmentation import KeywordMatcher, PreparedText

logger = get_logger(__name__)

BASELINE_CONFIDENCE = 0.6


def confidence_from_score(score: int) -> float:
    return round(min(1.0, 0.5 + 0.1 * score), 4)


@dataclass(frozen=True)
class ScoreResult:
    """打分结果"""
    destination: str
    confidence: float
    score: int = 0
    scores: dict[str, int] = field(default_factory=dict)


class RuleBasedScorer:
    """基于关键词规则的路由打分器"""

    def __init__(
        self,
        routing_rules: Mapping[str, RoutingRule],
        keywords: Mapping[str, Sequence[str]] | None = None,
        required_capabilities: Mapping[str, frozenset[str]] | None = None,
        default_destination: str = "basic",
        matcher: KeywordMatcher | None = None,
    ):
        self.routing_rules = dict(routing_rules)
        self.keywords = dict(keywords or {})
        self.required_capabilities = dict(required_capabilities or {})
        self.default_destination = default_destination
        self.matcher = matcher or KeywordMatcher()

    @classmethod
    def from_catalog(
        cls,
        catalog: ModelCatalog,
        default_destination: str = "basic",
        matcher: KeywordMatcher | None = None,
    ) -> "RuleBasedScorer":
        required = {
            destination: catalog.required_capabilities(destination)
            for destination in catalog.routing_rules
        }
        return cls(
            routing_rules=catalog.routing_rules,
            keywords=catalog.keywords,
            required_capabilities=required,
            default_destination=default_destination,
            matcher=matcher,
        )

    @property
    def destinations(self) -> list[str]:
        return list(self.routing_rules)

    def _destination_keywords(self, destination: str) -> list[str]:
        rule = self.routing_rules.get(destination)
        words = list(rule.triggers) if rule else []
        # 形如 code_tasks 的目标同时使用 code 能力关键词
        capability = destination.removesuffix("_tasks")
        for word in self.keywords.get(capability, ()):
            if word not in words:
                words.append(word)
        return words

    def score_destination(
        self, destination: str, prepared: PreparedText | None, capabilities: frozenset[str]
    ) -> int:
        """计算单个目标的命中分数"""
        words = self._destination_keywords(destination)
        required = self.required_capabilities.get(destination, frozenset())
        if not words and not required:
            raise UnknownDestinationError(
                f"路由目标 {destination} 没有可用的打分条目", destination=destination
            )

        score = len(required & capabilities)
        if prepared is not None:
            score += len(self.matcher.matched(prepared, words))
        return score

    def score(self, report: CapabilityReport) -> ScoreResult:
        """
        选出置信度最高的目标

        图片请求只在要求 vision 能力的目标之间比较（如果存在这样的目标）。
        """
        candidates = self.destinations
        if report.has_image:
            vision_destinations = [
                d for d in candidates if "vision" in self.required_capabilities.get(d, frozenset())
            ]
            if vision_destinations:
                candidates = vision_destinations

        best = self.default_destination
        best_score = 0
        max_confidence = BASELINE_CONFIDENCE
        scores: dict[str, int] = {}

        for destination in candidates:
            try:
                score = self.score_destination(destination, report.prepared, report.capabilities)
            except UnknownDestinationError as e:
                logger.warning("跳过无法打分的路由目标", destination=destination, error=e.message)
                continue
            scores[destination] = score
            if score <= 0:
                continue

            confidence = confidence_from_score(score)
            if confidence > max_confidence or (
                confidence == max_confidence
                and best == self.default_destination
                and destination != self.default_destination
            ):
                best = destination
                best_score = score
                max_confidence = confidence

        if report.has_image and best == self.default_destination and candidates != self.destinations:
            # 图片请求至少落到一个 vision 目标上
            best = candidates[0]

        logger.debug("规则打分完成", destination=best, confidence=max_confidence, scores=scores)
        return ScoreResult(
            destination=best, confidence=max_confidence, score=best_score, scores=scores
        )

    def rescore(self, destination: str, report: CapabilityReport) -> float:
        """对指定目标重新打分，返回该目标的置信度"""
        try:
            score = self.score_destination(destination, report.prepared, report.capabilities)
        except UnknownDestinationError:
            return BASELINE_CONFIDENCE
        return confidence_from_score(score) if score > 0 else BASELINE_CONFIDENCE
