"""
模型选择器

在满足能力与凭据要求的候选模型中按策略选出一个：
- priority / fallback: priority[destination] 最小者胜出，同值依次比较目录配置的决胜指标，再按声明顺序
- round_robin: 持久游标轮询
- weighted: 按模型权重加权随机
- load_balance: 平均延迟 + 错误率惩罚最小者
- fastest: 平均延迟最小者
- a_b_test: 前两名候选按固定比例分流

候选集为空时抛出 NoEligibleModelError。
游标与性能统计在并发请求间共享，由锁保护。
"""

import os
import random
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import asdict, dataclass

from smartroute.framework.shared.config import SelectionStrategyName
from smartroute.framework.shared.exceptions import NoEligibleModelError
from smartroute.framework.shared.logging import get_logger
from .models import ModelDescriptor, TieBreaker

logger = get_logger(__name__)

DEFAULT_PRIORITY = 999
DEFAULT_LATENCY_MS = 1000.0
ERROR_PENALTY_MS = 2000.0


@dataclass
class PerformanceStats:
    """单个模型的运行统计（指数加权平均）"""
    avg_latency_ms: float = 0.0
    error_rate: float = 0.0
    total_requests: int = 0
    failed_requests: int = 0

    @property
    def effective_latency(self) -> float:
        return self.avg_latency_ms if self.total_requests else DEFAULT_LATENCY_MS


RankKey = Callable[[ModelDescriptor], tuple[float, ...]]
Strategy = Callable[[list[ModelDescriptor], RankKey], ModelDescriptor]


def priority_key(destination: str, tie_breakers: Sequence[TieBreaker] = ()) -> RankKey:
    """priority[destination] 升序，同值时按决胜指标比较（成本越低、评分越高越优先）"""
    def key(model: ModelDescriptor) -> tuple[float, ...]:
        values: list[float] = [model.priority.get(destination, DEFAULT_PRIORITY)]
        for criterion in tie_breakers:
            if criterion == TieBreaker.COST_EFFICIENCY:
                values.append(model.cost_per_1k_tokens)
            elif criterion == TieBreaker.SPEED_RATING:
                values.append(-model.speed_rating)
            elif criterion == TieBreaker.QUALITY_RATING:
                values.append(-model.quality_rating)
        return tuple(values)

    return key


class ModelSelector:
    """多策略模型选择器"""

    def __init__(
        self,
        strategy: SelectionStrategyName | str = SelectionStrategyName.PRIORITY,
        ab_test_ratio: int = 50,
        rng: random.Random | None = None,
        ema_alpha: float = 0.1,
    ):
        self.strategy = SelectionStrategyName(strategy)
        self.ab_test_ratio = ab_test_ratio
        self.ema_alpha = ema_alpha
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._cursor = 0
        self._stats: dict[str, PerformanceStats] = {}
        self._strategies: dict[SelectionStrategyName, Strategy] = {
            SelectionStrategyName.PRIORITY: self._by_priority,
            SelectionStrategyName.FALLBACK: self._by_priority,
            SelectionStrategyName.ROUND_ROBIN: self._round_robin,
            SelectionStrategyName.WEIGHTED: self._weighted,
            SelectionStrategyName.LOAD_BALANCE: self._load_balance,
            SelectionStrategyName.FASTEST: self._fastest,
            SelectionStrategyName.A_B_TEST: self._ab_test,
        }

    @staticmethod
    def eligible(
        models: Sequence[ModelDescriptor],
        required_capabilities: frozenset[str] = frozenset(),
        credentials: Mapping[str, str] | None = None,
    ) -> list[ModelDescriptor]:
        """具备全部所需能力且凭据可用的模型（保持声明顺序）"""
        credentials = os.environ if credentials is None else credentials
        return [
            model for model in models
            if model.has_capabilities(required_capabilities) and model.is_available(credentials)
        ]

    def select(
        self,
        models: Sequence[ModelDescriptor],
        destination: str,
        required_capabilities: frozenset[str] = frozenset(),
        credentials: Mapping[str, str] | None = None,
        preferred: Sequence[str] | None = None,
        strategy: SelectionStrategyName | str | None = None,
        fallback: Sequence[str] | None = None,
        tie_breakers: Sequence[TieBreaker] = (),
    ) -> ModelDescriptor:
        """
        选出一个模型

        Args:
            models: 目录中的模型（声明顺序）
            destination: 路由目标，priority 策略按 priority[destination] 排序
            required_capabilities: 必须具备的能力
            credentials: 凭据来源，默认读取环境变量
            preferred: 偏好模型 ID 列表，与候选集有交集时只在交集中选择
            strategy: 覆盖默认策略
            fallback: 备选模型 ID 列表，偏好模型全部不可用时只在其中选择
            tie_breakers: priority 同值时的决胜指标

        Raises:
            NoEligibleModelError: 候选集为空
        """
        candidates = self.eligible(models, required_capabilities, credentials)
        if not candidates:
            raise NoEligibleModelError(
                f"没有满足要求的模型: {destination}",
                destination=destination,
                required_capabilities=required_capabilities,
            )

        for tier in (preferred, fallback):
            if not tier:
                continue
            narrowed = [model for model in candidates if model.id in tier]
            if narrowed:
                candidates = narrowed
                break

        name = SelectionStrategyName(strategy) if strategy else self.strategy
        selected = self._strategies[name](candidates, priority_key(destination, tie_breakers))
        logger.debug(
            "模型选择完成",
            strategy=name.value,
            destination=destination,
            selected=selected.id,
            candidates=len(candidates),
        )
        return selected

    def _by_priority(self, candidates: list[ModelDescriptor], rank: RankKey) -> ModelDescriptor:
        # min 在同值时返回最先出现者，即声明顺序
        return min(candidates, key=rank)

    def _round_robin(self, candidates: list[ModelDescriptor], rank: RankKey) -> ModelDescriptor:
        with self._lock:
            index = self._cursor % len(candidates)
            self._cursor += 1
        return candidates[index]

    def _weighted(self, candidates: list[ModelDescriptor], rank: RankKey) -> ModelDescriptor:
        total = sum(model.weight for model in candidates)
        with self._lock:
            if total <= 0:
                return self._rng.choice(candidates)
            point = self._rng.random() * total
        for model in candidates:
            point -= model.weight
            if point < 0:
                return model
        return candidates[-1]

    def _load_balance(self, candidates: list[ModelDescriptor], rank: RankKey) -> ModelDescriptor:
        with self._lock:
            def load(model: ModelDescriptor) -> float:
                stats = self._stats.get(model.id, PerformanceStats())
                return stats.effective_latency + stats.error_rate * ERROR_PENALTY_MS

            return min(candidates, key=load)

    def _fastest(self, candidates: list[ModelDescriptor], rank: RankKey) -> ModelDescriptor:
        with self._lock:
            return min(
                candidates,
                key=lambda model: self._stats.get(model.id, PerformanceStats()).effective_latency,
            )

    def _ab_test(self, candidates: list[ModelDescriptor], rank: RankKey) -> ModelDescriptor:
        if len(candidates) < 2:
            return candidates[0]
        first = self._by_priority(candidates, rank)
        second = self._by_priority([m for m in candidates if m.id != first.id], rank)
        with self._lock:
            roll = self._rng.randrange(100)
        return first if roll < self.ab_test_ratio else second

    def update_performance_stats(self, model_id: str, latency_ms: float, success: bool) -> None:
        """记录一次请求的延迟与成败（由执行层在请求完成后调用）"""
        alpha = self.ema_alpha
        with self._lock:
            stats = self._stats.setdefault(model_id, PerformanceStats())
            if stats.total_requests == 0:
                stats.avg_latency_ms = float(latency_ms)
            else:
                stats.avg_latency_ms = (1 - alpha) * stats.avg_latency_ms + alpha * latency_ms
            stats.error_rate = (1 - alpha) * stats.error_rate + alpha * (0.0 if success else 1.0)
            stats.total_requests += 1
            if not success:
                stats.failed_requests += 1

    def get_performance_stats(self) -> dict[str, dict[str, float]]:
        with self._lock:
            return {model_id: asdict(stats) for model_id, stats in self._stats.items()}

    def reset(self) -> None:
        with self._lock:
            self._cursor = 0
            self._stats.clear()
