"""
文本分词与关键词匹配

中文文本使用 jieba（搜索引擎模式）分词后按词元匹配，避免"年代码头"误命中"代码"这类跨词子串；
相邻词元拼接（bigram）用于召回被分词边界切开的关键词。
英文关键词始终按小写子串匹配。
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import jieba

jieba.setLogLevel(logging.WARNING)

CJK_PATTERN = re.compile(r"[\u4e00-\u9fff]")
CHINESE_RATIO_THRESHOLD = 0.3

Segmenter = Callable[[str], list[str]]


def chinese_ratio(text: str) -> float:
    """CJK 字符占文本总长度的比例"""
    if not text:
        return 0.0
    return len(CJK_PATTERN.findall(text)) / len(text)


def contains_cjk(text: str) -> bool:
    return bool(CJK_PATTERN.search(text))


def jieba_segment(text: str) -> list[str]:
    """
    jieba 搜索引擎模式分词，去除空白词元并转小写

    精确模式会把"详细分析"合成一个词元；搜索模式额外切出"详细"、"分析"等短词，
    而"年代码头"仍然只得到"年代"、"码头"。
    """
    return [token.strip().lower() for token in jieba.lcut_for_search(text) if token.strip()]


def token_bigrams(tokens: list[str]) -> set[str]:
    return {tokens[i] + tokens[i + 1] for i in range(len(tokens) - 1)}


@dataclass(frozen=True)
class PreparedText:
    """预处理后的文本，供多次关键词匹配复用"""
    raw: str
    lowered: str
    is_chinese: bool
    tokens: frozenset[str] = field(default_factory=frozenset)
    bigrams: frozenset[str] = field(default_factory=frozenset)


class KeywordMatcher:
    """关键词匹配器"""

    def __init__(
        self,
        segmenter: Segmenter | None = None,
        chinese_threshold: float = CHINESE_RATIO_THRESHOLD,
    ):
        self.segmenter = segmenter or jieba_segment
        self.chinese_threshold = chinese_threshold

    def prepare(self, text: str) -> PreparedText:
        lowered = text.lower()
        is_chinese = chinese_ratio(text) > self.chinese_threshold
        if not is_chinese:
            return PreparedText(raw=text, lowered=lowered, is_chinese=False)

        tokens = [token.lower() for token in self.segmenter(text)]
        return PreparedText(
            raw=text,
            lowered=lowered,
            is_chinese=True,
            tokens=frozenset(tokens),
            bigrams=frozenset(token_bigrams(tokens)),
        )

    def matches(self, prepared: PreparedText, keyword: str) -> bool:
        keyword = keyword.strip().lower()
        if not keyword:
            return False
        if prepared.is_chinese and contains_cjk(keyword):
            return keyword in prepared.tokens or keyword in prepared.bigrams
        return keyword in prepared.lowered

    def matched(self, prepared: PreparedText, keywords: Iterable[str]) -> list[str]:
        """返回命中的关键词（去重，保持输入顺序）"""
        hits: list[str] = []
        for keyword in keywords:
            if keyword not in hits and self.matches(prepared, keyword):
                hits.append(keyword)
        return hits
