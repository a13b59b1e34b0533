"""
显式模型检测单元测试
"""

import pytest

from smartroute.domain.routing.explicit_detector import ExplicitModelDetector


class TestExplicitModelDetector:
    """测试显式模型检测器"""

    def setup_method(self):
        self.detector = ExplicitModelDetector()

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("换成gpt4.1", "gpt4.1"),
            ("切换到 GPT-4o 吧", "gpt-4o-all"),
            ("请使用claude回答", "claude-sonnet-4-all"),
            ("switch to deepseek", "deepseek-reasoner"),
            ("用qvq看一下这张图", "qvq-plus"),
            ("改用混元", "hunyuan-turbos-latest"),
        ],
    )
    def test_alias_detection(self, text, expected):
        assert self.detector.detect(text) == expected

    @pytest.mark.parametrize("text", ["换个高级的模型", "use the best model"])
    def test_quality_request(self, text):
        assert self.detector.detect(text) == "claude-sonnet-4-all"

    @pytest.mark.parametrize("text", ["", "   ", "gpt4.1 是什么", "tell me about claude"])
    def test_no_switch_intent(self, text):
        """只提及模型名称不算切换"""
        assert self.detector.detect(text) is None

    def test_switch_without_known_model(self):
        assert self.detector.detect("换成一个随便的") is None

    def test_quality_ranking_from_catalog(self, catalog):
        detector = ExplicitModelDetector(high_quality_models=catalog.high_quality_models())
        assert detector.detect("use a better model") == "claude-sonnet-4-all"

    def test_known_model_ids_longest_first(self):
        detector = ExplicitModelDetector(aliases=(), known_models=["gpt-4o", "gpt-4o-all"])
        assert detector.detect("use gpt-4o-all please") == "gpt-4o-all"

    def test_alias_order_wins(self):
        detector = ExplicitModelDetector(aliases=(("fast", "a"), ("faster", "b")))
        assert detector.detect("use the faster one") == "a"
