"""
能力检测器

从对话内容中提取所需的模型能力：
- 图片片段检测（强制 vision 能力）
- 关键词驱动的能力集合（中文按分词匹配）
- 中文占比检测
- 复杂度分层
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from smartroute.framework.shared.config import ComplexityTier
from smartroute.framework.shared.logging import get_logger
from .defaults import COMPLEX_PATTERNS, DEFAULT_CAPABILITY_KEYWORDS, TECHNICAL_TERMS
from .models import ChatMessage
from .segmentation import KeywordMatcher, PreparedText

logger = get_logger(__name__)

_COMPILED_PATTERNS = tuple(re.compile(p, re.IGNORECASE | re.DOTALL) for p in COMPLEX_PATTERNS)


@dataclass(frozen=True)
class CapabilityReport:
    """能力检测结果"""
    capabilities: frozenset[str]
    has_image: bool = False
    is_chinese: bool = False
    matched_keywords: dict[str, list[str]] = field(default_factory=dict)
    prepared: PreparedText | None = None


@dataclass(frozen=True)
class ComplexityAssessment:
    """复杂度评估结果"""
    score: int
    tier: ComplexityTier
    reasons: tuple[str, ...] = ()

    @property
    def is_complex(self) -> bool:
        return self.score >= 2


def analyze_complexity(text: str) -> ComplexityAssessment:
    """按文本长度、复杂句式和专业术语评估复杂度"""
    score = 0
    reasons: list[str] = []

    if len(text) > 200:
        score += 2
        reasons.append("long_input")

    for pattern in _COMPILED_PATTERNS:
        if pattern.search(text):
            score += 1
            reasons.append("complex_sentence")

    lowered = text.lower()
    for term in TECHNICAL_TERMS:
        if term in lowered:
            score += 1
            reasons.append("technical_term")

    if score >= 4:
        tier = ComplexityTier.HIGH
    elif score >= 2:
        tier = ComplexityTier.MEDIUM
    else:
        tier = ComplexityTier.LOW
    return ComplexityAssessment(score=score, tier=tier, reasons=tuple(reasons))


class CapabilityDetector:
    """基于关键词的能力检测器"""

    def __init__(
        self,
        keywords: Mapping[str, Sequence[str]] | None = None,
        matcher: KeywordMatcher | None = None,
        detect_chinese_capability: bool = False,
    ):
        self.keywords = dict(keywords if keywords is not None else DEFAULT_CAPABILITY_KEYWORDS)
        self.matcher = matcher or KeywordMatcher()
        self.detect_chinese_capability = detect_chinese_capability

    def detect(self, messages: Sequence[ChatMessage]) -> CapabilityReport:
        has_image = any(message.has_image for message in messages)
        text = " ".join(message.text for message in messages if message.text)
        return self.detect_text(text, has_image=has_image)

    def detect_text(self, text: str, has_image: bool = False) -> CapabilityReport:
        capabilities: set[str] = set()
        matched: dict[str, list[str]] = {}

        if has_image:
            capabilities.add("vision")

        if not text or not text.strip():
            return CapabilityReport(capabilities=frozenset(capabilities), has_image=has_image)

        prepared = self.matcher.prepare(text)
        for capability, words in self.keywords.items():
            hits = self.matcher.matched(prepared, words)
            if hits:
                capabilities.add(capability)
                matched[capability] = hits

        if prepared.is_chinese and self.detect_chinese_capability:
            capabilities.add("chinese")

        logger.debug(
            "能力检测完成",
            capabilities=sorted(capabilities),
            has_image=has_image,
            is_chinese=prepared.is_chinese,
        )
        return CapabilityReport(
            capabilities=frozenset(capabilities),
            has_image=has_image,
            is_chinese=prepared.is_chinese,
            matched_keywords=matched,
            prepared=prepared,
        )
