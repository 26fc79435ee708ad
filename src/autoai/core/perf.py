"""
性能监控

按标签记录耗时（perception / decision / execution），用于定位单步瓶颈。
"""
from __future__ import annotations

import threading
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional

from .logger import logger

TAG_PERCEPTION = "perception"
TAG_DECISION = "decision"
TAG_EXECUTION = "execution"


@dataclass(frozen=True)
class PerfStats:
    tag: str
    count: int
    avg_ms: float
    min_ms: int
    max_ms: int
    total_ms: int

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "count": self.count,
            "avg_ms": round(self.avg_ms, 1),
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "total_ms": self.total_ms,
        }


class PerformanceMonitor:
    """耗时统计，单个标签最多保留 max_samples 个样本"""

    def __init__(self, max_samples: int = 200) -> None:
        self._samples: Dict[str, List[int]] = {}
        self._max_samples = max_samples
        self._lock = threading.Lock()
        self._log = logger.bind(module="PerformanceMonitor")

    def record(self, tag: str, duration_ms: int) -> None:
        with self._lock:
            samples = self._samples.setdefault(tag, [])
            samples.append(int(duration_ms))
            if len(samples) > self._max_samples:
                del samples[: len(samples) - self._max_samples]

    @asynccontextmanager
    async def measure(self, tag: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = int((time.perf_counter() - start) * 1000)
            self.record(tag, elapsed)
            self._log.debug(f"[{tag}] 耗时 {elapsed}ms")

    def stats(self, tag: str) -> Optional[PerfStats]:
        with self._lock:
            samples = list(self._samples.get(tag) or [])
        if not samples:
            return None
        total = sum(samples)
        return PerfStats(
            tag=tag,
            count=len(samples),
            avg_ms=total / len(samples),
            min_ms=min(samples),
            max_ms=max(samples),
            total_ms=total,
        )

    def all_stats(self) -> Dict[str, PerfStats]:
        with self._lock:
            tags = list(self._samples.keys())
        result = {}
        for tag in tags:
            item = self.stats(tag)
            if item is not None:
                result[tag] = item
        return result

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def report(self) -> str:
        lines = ["=== 性能统计 ==="]
        for tag, item in sorted(self.all_stats().items()):
            lines.append(
                f"{tag}: 次数={item.count} 平均={item.avg_ms:.1f}ms "
                f"最小={item.min_ms}ms 最大={item.max_ms}ms"
            )
        if len(lines) == 1:
            lines.append("暂无数据")
        return "\n".join(lines)
