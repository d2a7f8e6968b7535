"""搜索策略对比测试."""

import asyncio
import logging
import time
from typing import Dict, List, Mapping, Sequence

from .generator import RequestGenerator
from .models import SearchBenchmarkConfig, SearchBenchmarkResult, StrategyRanking
from .search import SearchStrategy
from .stats import percentile

logger = logging.getLogger(__name__)


class SearchBenchmark:
    """依次测试每个搜索策略，策略之间与查询之间均不并发."""

    def __init__(
        self,
        config: SearchBenchmarkConfig,
        strategies: Sequence[SearchStrategy],
        generator: RequestGenerator,
    ):
        self.config = config
        self.strategies = list(strategies)
        self.generator = generator

    async def run(self) -> Dict[str, SearchBenchmarkResult]:
        """执行对比测试，返回按策略顺序排列的结果."""
        results: Dict[str, SearchBenchmarkResult] = {}

        print("\n" + "=" * 60)
        print("搜索策略对比测试")
        print("=" * 60)
        print(f"策略数: {len(self.strategies)}, 每个策略 {self.config.iterations} 次查询\n")

        for strategy in self.strategies:
            print(f"测试策略: {strategy.name}")
            print(f"  说明: {strategy.description}")
            try:
                result = await self._benchmark_strategy(strategy)
            except Exception as e:
                logger.warning(f"策略 {strategy.name} 初始化失败，跳过: {e}")
                print(f"  失败: {e}\n")
                continue

            results[strategy.name] = result
            print(f"  初始化: {result.setup_duration_ms:.2f} ms")
            print(
                f"  平均: {result.avg_duration_ms:.2f} ms, "
                f"最小: {result.min_duration_ms:.2f} ms, 最大: {result.max_duration_ms:.2f} ms"
            )
            print(
                f"  P50: {result.p50_duration_ms:.2f} ms, "
                f"P95: {result.p95_duration_ms:.2f} ms, P99: {result.p99_duration_ms:.2f} ms"
            )
            print(
                f"  成功: {result.success_queries}/{result.total_queries} "
                f"({result.success_ratio * 100:.1f}%)"
            )
            print(f"  平均结果数: {result.avg_results:.1f}\n")

        return results

    async def _benchmark_strategy(self, strategy: SearchStrategy) -> SearchBenchmarkResult:
        setup_start = time.perf_counter()
        await strategy.setup()
        setup_ms = (time.perf_counter() - setup_start) * 1000

        # 等待索引构建
        if self.config.settle_delay > 0:
            await asyncio.sleep(self.config.settle_delay)

        durations: List[float] = []
        failed = 0
        total_results = 0
        for _ in range(self.config.iterations):
            request = self.generator.generate_search_request()
            start = time.perf_counter()
            try:
                mails = await strategy.search(request)
            except Exception as e:
                failed += 1
                logger.debug(f"{strategy.name} 查询失败: {e}")
                continue
            durations.append((time.perf_counter() - start) * 1000)
            total_results += len(mails)

        return summarize(strategy, setup_ms, durations, failed, total_results)


def summarize(
    strategy: SearchStrategy,
    setup_ms: float,
    durations: Sequence[float],
    failed: int,
    total_results: int,
) -> SearchBenchmarkResult:
    """根据成功查询的耗时样本计算统计值."""
    success = len(durations)
    return SearchBenchmarkResult(
        strategy_name=strategy.name,
        description=strategy.description,
        setup_duration_ms=setup_ms,
        avg_duration_ms=sum(durations) / success if success else 0.0,
        min_duration_ms=min(durations) if success else 0.0,
        max_duration_ms=max(durations) if success else 0.0,
        p50_duration_ms=percentile(durations, 50),
        p95_duration_ms=percentile(durations, 95),
        p99_duration_ms=percentile(durations, 99),
        total_queries=success + failed,
        success_queries=success,
        failed_queries=failed,
        total_results=total_results,
        avg_results=total_results / success if success else 0.0,
    )


def rank_strategies(results: Mapping[str, SearchBenchmarkResult]) -> StrategyRanking:
    """横向对比：最快平均、最快 P99、最可靠；并列时先出现者胜出."""
    fastest_avg = fastest_p99 = most_reliable = None
    for name, result in results.items():
        if result.success_queries == 0:
            continue
        if fastest_avg is None or result.avg_duration_ms < results[fastest_avg].avg_duration_ms:
            fastest_avg = name
        if fastest_p99 is None or result.p99_duration_ms < results[fastest_p99].p99_duration_ms:
            fastest_p99 = name
        if most_reliable is None or result.success_ratio > results[most_reliable].success_ratio:
            most_reliable = name

    if fastest_avg is None:
        return StrategyRanking()
    return StrategyRanking(
        fastest_average=fastest_avg,
        fastest_average_ms=results[fastest_avg].avg_duration_ms,
        fastest_p99=fastest_p99,
        fastest_p99_ms=results[fastest_p99].p99_duration_ms,
        most_reliable=most_reliable,
        most_reliable_ratio=results[most_reliable].success_ratio,
    )
