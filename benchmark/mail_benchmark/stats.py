"""压测统计."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, MutableSequence, Optional

from .models import OperationKind, OperationStats, RequestResult, StressTestResult


def percentile(samples: Iterable[float], p: float) -> float:
    """最近秩百分位：排序后取 floor(n * p / 100)，越界取最后一个."""
    ordered = sorted(samples)
    if not ordered:
        return 0.0
    index = min(int(len(ordered) * p / 100), len(ordered) - 1)
    return ordered[index]


@dataclass
class _Counter:
    count: int = 0
    errors: int = 0
    total_ms: float = 0.0
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None

    def add(self, latency_ms: float, success: bool):
        self.count += 1
        if not success:
            self.errors += 1
        self.total_ms += latency_ms
        if self.min_ms is None or latency_ms < self.min_ms:
            self.min_ms = latency_ms
        if self.max_ms is None or latency_ms > self.max_ms:
            self.max_ms = latency_ms

    def snapshot(self) -> OperationStats:
        if self.count == 0:
            return OperationStats()
        return OperationStats(
            count=self.count,
            avg_duration_ms=self.total_ms / self.count,
            min_duration_ms=self.min_ms or 0.0,
            max_duration_ms=self.max_ms or 0.0,
            errors=self.errors,
        )


class StatsCollector:
    """压测统计汇总，只由聚合协程写入."""

    def __init__(self):
        self._overall = _Counter()
        self._by_kind: Dict[OperationKind, _Counter] = {kind: _Counter() for kind in OperationKind}

    @property
    def total_requests(self) -> int:
        return self._overall.count

    def record(self, result: RequestResult):
        """记录单个请求结果."""
        self._overall.add(result.latency_ms, result.success)
        self._by_kind[result.operation].add(result.latency_ms, result.success)

    async def consume(self, queue: asyncio.Queue, trace: Optional[MutableSequence] = None):
        """从队列读取结果直到收到 None."""
        while True:
            result = await queue.get()
            if result is None:
                return
            self.record(result)
            if trace is not None:
                trace.append(result)

    def freeze(self, start_time: datetime, end_time: datetime) -> StressTestResult:
        """生成只读结果快照."""
        overall = self._overall
        total = overall.count
        failed = overall.errors
        elapsed = (end_time - start_time).total_seconds()

        return StressTestResult(
            start_time=start_time,
            end_time=end_time,
            total_requests=total,
            success_requests=total - failed,
            failed_requests=failed,
            total_duration_s=elapsed,
            avg_response_ms=overall.total_ms / total if total else 0.0,
            min_response_ms=overall.min_ms if total else 0.0,
            max_response_ms=overall.max_ms if total else 0.0,
            requests_per_second=total / elapsed if total and elapsed > 0 else 0.0,
            error_rate=failed / total * 100 if total else 0.0,
            operation_stats={kind: counter.snapshot() for kind, counter in self._by_kind.items()},
        )
