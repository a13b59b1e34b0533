"""
意图分析缓存

按序列化后的消息列表缓存 IntentAnalysis，带 TTL 与容量上限（超出时淘汰最早写入的条目）。
只缓存分析结果，不缓存模型选择（选择依赖轮询游标与实时统计）。
"""

import hashlib
import threading
import time
from collections import OrderedDict

from smartroute.domain.routing.models import IntentAnalysis
from smartroute.framework.shared.logging import get_logger

logger = get_logger(__name__)


class IntentCache:
    """线程安全的 TTL 缓存"""

    def __init__(self, ttl: float = 300, max_size: int = 1000):
        self.ttl = ttl
        self.max_size = max_size
        self._entries: OrderedDict[str, tuple[IntentAnalysis, float]] = OrderedDict()
        self._lock = threading.Lock()
        self.stats = {"hits": 0, "misses": 0, "evictions": 0}

    @staticmethod
    def make_key(serialized_messages: str) -> str:
        return hashlib.md5(serialized_messages.encode("utf-8")).hexdigest()

    def get(self, key: str) -> IntentAnalysis | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats["misses"] += 1
                return None

            analysis, cached_at = entry
            if self.ttl and time.monotonic() - cached_at > self.ttl:
                del self._entries[key]
                self.stats["misses"] += 1
                logger.debug("意图缓存过期", key=key[:8])
                return None

            self.stats["hits"] += 1
            return analysis

    def put(self, key: str, analysis: IntentAnalysis) -> None:
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
                self.stats["evictions"] += 1
            self._entries[key] = (analysis, time.monotonic())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
