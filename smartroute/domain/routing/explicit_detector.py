"""
显式模型检测器

识别用户文本中直接点名模型的切换意图，例如"换成gpt4.1"、"use claude"、"换个高级的模型"。
没有切换意图关键词时直接返回 None，避免普通提及模型名称时误切换。
"""

from collections.abc import Iterable, Sequence

from smartroute.framework.shared.logging import get_logger
from .defaults import (
    DEFAULT_HIGH_QUALITY_MODELS,
    DEFAULT_MODEL_ALIASES,
    QUALITY_KEYWORDS,
    SWITCH_KEYWORDS,
)

logger = get_logger(__name__)


class ExplicitModelDetector:
    """别名表驱动的显式模型检测"""

    def __init__(
        self,
        aliases: Sequence[tuple[str, str]] = DEFAULT_MODEL_ALIASES,
        high_quality_models: Sequence[str] = DEFAULT_HIGH_QUALITY_MODELS,
        known_models: Iterable[str] = (),
        switch_keywords: Sequence[str] = SWITCH_KEYWORDS,
        quality_keywords: Sequence[str] = QUALITY_KEYWORDS,
    ):
        self.aliases = [(alias.lower(), target) for alias, target in aliases]
        self.high_quality_models = list(high_quality_models)
        # 完整 ID 按长度降序匹配，避免短 ID 抢先命中长 ID 的前缀
        self.known_models = sorted(set(known_models), key=len, reverse=True)
        self.switch_keywords = [k.lower() for k in switch_keywords]
        self.quality_keywords = [k.lower() for k in quality_keywords]

    def has_switch_intent(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.switch_keywords)

    def detect(self, text: str) -> str | None:
        """
        检测显式模型切换

        Args:
            text: 最后一条消息的文本

        Returns:
            规范模型 ID；未检测到切换意图时返回 None
        """
        if not text or not text.strip():
            return None

        lowered = text.lower()
        if not self.has_switch_intent(lowered):
            return None

        if self.high_quality_models and any(k in lowered for k in self.quality_keywords):
            target = self.high_quality_models[0]
            logger.debug("检测到高质量模型请求", target=target)
            return target

        for alias, target in self.aliases:
            if alias in lowered:
                logger.debug("检测到模型别名", alias=alias, target=target)
                return target

        for model_id in self.known_models:
            if model_id.lower() in lowered:
                logger.debug("检测到完整模型 ID", target=model_id)
                return model_id

        return None
