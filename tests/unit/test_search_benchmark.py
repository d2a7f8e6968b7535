"""
Unit tests for per-strategy summaries and the cross-strategy ranking.
"""

import pytest

from mail_benchmark.models import SearchBenchmarkConfig, StrategyRanking
from mail_benchmark.search_benchmark import SearchBenchmark, rank_strategies, summarize
from tests.fakes import StubStrategy, make_search_result


class TestSummarize:

    def test_statistics_from_successful_samples(self):
        durations = [float(v) for v in range(1, 101)]

        result = summarize(StubStrategy("regex"), 12.0, durations, failed=5, total_results=300)

        assert result.strategy_name == "regex"
        assert result.setup_duration_ms == 12.0
        assert result.total_queries == 105
        assert result.success_queries == 100
        assert result.failed_queries == 5
        assert result.avg_duration_ms == pytest.approx(50.5)
        assert result.min_duration_ms == 1.0
        assert result.max_duration_ms == 100.0
        assert result.p50_duration_ms == 51.0
        assert result.p95_duration_ms == 96.0
        assert result.p99_duration_ms == 100.0
        assert result.avg_results == pytest.approx(3.0)

    def test_all_failed(self):
        result = summarize(StubStrategy("regex"), 1.0, [], failed=10, total_results=0)

        assert result.total_queries == 10
        assert result.success_ratio == 0.0
        assert result.avg_duration_ms == 0.0
        assert result.p99_duration_ms == 0.0
        assert result.avg_results == 0.0

    def test_single_sample_percentiles(self):
        result = summarize(StubStrategy("regex"), 1.0, [7.5], failed=0, total_results=1)

        assert result.p50_duration_ms == result.p95_duration_ms == result.p99_duration_ms == 7.5


class TestRankStrategies:

    def test_picks_best_per_category(self):
        results = {
            "a": make_search_result("a", avg=5.0, p99=30.0, success=90, total=100),
            "b": make_search_result("b", avg=8.0, p99=12.0, success=100, total=100),
            "c": make_search_result("c", avg=6.0, p99=20.0, success=95, total=100),
        }

        ranking = rank_strategies(results)

        assert ranking.fastest_average == "a"
        assert ranking.fastest_average_ms == 5.0
        assert ranking.fastest_p99 == "b"
        assert ranking.fastest_p99_ms == 12.0
        assert ranking.most_reliable == "b"
        assert ranking.most_reliable_ratio == 1.0

    def test_ties_go_to_first_encountered(self):
        results = {
            "first": make_search_result("first", avg=5.0, p99=9.0, success=50, total=50),
            "second": make_search_result("second", avg=5.0, p99=9.0, success=50, total=50),
        }

        ranking = rank_strategies(results)

        assert ranking.fastest_average == "first"
        assert ranking.fastest_p99 == "first"
        assert ranking.most_reliable == "first"

    def test_zero_success_strategies_are_ineligible(self):
        results = {
            "broken": make_search_result("broken", avg=0.0, p99=0.0, success=0, total=50),
            "slow": make_search_result("slow", avg=40.0, p99=80.0, success=10, total=50),
        }

        ranking = rank_strategies(results)

        assert ranking.fastest_average == "slow"
        assert ranking.most_reliable == "slow"

    def test_nothing_eligible(self):
        assert rank_strategies({}) == StrategyRanking()
        results = {"broken": make_search_result("broken", avg=0.0, p99=0.0, success=0, total=5)}
        assert rank_strategies(results).fastest_average is None


class TestSearchBenchmark:

    @pytest.mark.asyncio
    async def test_failed_queries_counted(self, generator):
        strategy = StubStrategy("flaky", fail_every=2, results=2)
        config = SearchBenchmarkConfig(iterations=10, settle_delay=0)

        results = await SearchBenchmark(config, [strategy], generator).run()

        result = results["flaky"]
        assert strategy.setup_calls == 1
        assert result.total_queries == 10
        assert result.success_queries == 5
        assert result.failed_queries == 5
        assert result.total_results == 10
        assert result.success_ratio == 0.5

    @pytest.mark.asyncio
    async def test_results_keep_strategy_order(self, generator):
        strategies = [StubStrategy(name) for name in ("zeta", "alpha", "mid")]
        config = SearchBenchmarkConfig(iterations=3, settle_delay=0)

        results = await SearchBenchmark(config, strategies, generator).run()

        assert list(results) == ["zeta", "alpha", "mid"]
