"""测试结果报告."""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .models import SearchBenchmarkResult, StrategyRanking, StressTestResult
from .search_benchmark import rank_strategies

logger = logging.getLogger(__name__)

SearchResults = Mapping[str, SearchBenchmarkResult]


def print_stress_result(result: StressTestResult):
    """打印文本格式压测结果."""
    print(f"\n{'=' * 60}")
    print("压测结果")
    print(f"{'=' * 60}")
    print(f"总请求数:        {result.total_requests}")
    print(f"成功请求:        {result.success_requests} ({result.success_rate:.2f}%)")
    print(f"失败请求:        {result.failed_requests}")
    print(f"错误率:          {result.error_rate:.2f}%")
    print(f"总耗时:          {result.total_duration_s:.2f} 秒")
    print(f"QPS:             {result.requests_per_second:.2f}")
    print(f"{'=' * 60}")
    print("响应时间 (毫秒)")
    print(f"{'=' * 60}")
    print(f"最小值:          {result.min_response_ms:.2f} ms")
    print(f"平均值:          {result.avg_response_ms:.2f} ms")
    print(f"最大值:          {result.max_response_ms:.2f} ms")
    print(f"{'=' * 60}")
    print("操作统计")
    print(f"{'=' * 60}")
    print(f"{'操作':<10}{'次数':>8}{'平均(ms)':>12}{'最小(ms)':>12}{'最大(ms)':>12}{'错误':>8}")
    for kind, stats in result.operation_stats.items():
        print(
            f"{kind.value:<10}{stats.count:>8}{stats.avg_duration_ms:>12.2f}"
            f"{stats.min_duration_ms:>12.2f}{stats.max_duration_ms:>12.2f}{stats.errors:>8}"
        )
    print(f"{'=' * 60}\n")


def print_search_results(results: SearchResults):
    """打印搜索策略结果表."""
    print(f"\n{'=' * 60}")
    print("搜索策略结果 (毫秒)")
    print(f"{'=' * 60}")
    if not results:
        print("没有可用的策略结果")
    for name, r in results.items():
        print(f"{name}:")
        print(f"  平均 {r.avg_duration_ms:.2f} | P50 {r.p50_duration_ms:.2f} | "
              f"P95 {r.p95_duration_ms:.2f} | P99 {r.p99_duration_ms:.2f}")
        print(f"  成功 {r.success_queries}/{r.total_queries}, 平均结果数 {r.avg_results:.1f}")
    print(f"{'=' * 60}\n")


def comparison_report(ranking: StrategyRanking) -> str:
    """生成策略对比文字报告."""
    if ranking.fastest_average is None:
        return "\n=== 搜索策略对比 ===\n\n没有成功完成查询的策略\n"
    lines = [
        "",
        "=== 搜索策略对比 ===",
        "",
        f"最快平均: {ranking.fastest_average} ({ranking.fastest_average_ms:.2f} ms)",
        f"最快 P99: {ranking.fastest_p99} ({ranking.fastest_p99_ms:.2f} ms)",
        f"最可靠:   {ranking.most_reliable} ({ranking.most_reliable_ratio * 100:.1f}% 成功)",
        "",
        "建议:",
        f"  • 追求平均性能: 使用 '{ranking.fastest_average}'",
        f"  • 追求延迟稳定: 使用 '{ranking.fastest_p99}'",
        f"  • 追求可靠性:   使用 '{ranking.most_reliable}'",
        "",
    ]
    return "\n".join(lines)


def build_report(
    stress: Optional[StressTestResult],
    search: Optional[SearchResults],
    ranking: Optional[StrategyRanking] = None,
) -> Dict[str, Any]:
    """组装 JSON 报告."""
    output: Dict[str, Any] = {"timestamp": datetime.now().isoformat()}
    if stress is not None:
        output["stress_test_result"] = stress.to_dict()
    if search is not None:
        output["search_benchmark"] = {name: r.to_dict() for name, r in search.items()}
        output["ranking"] = (ranking or rank_strategies(search)).to_dict()
    return output


def report(
    stress: Optional[StressTestResult],
    search: Optional[SearchResults] = None,
    output_format: str = "text",
):
    """根据格式输出结果."""
    ranking = rank_strategies(search) if search is not None else None
    match output_format:
        case "json":
            print(json.dumps(build_report(stress, search, ranking), indent=2, ensure_ascii=False))
        case _:
            if stress is not None:
                print_stress_result(stress)
            if search is not None:
                print_search_results(search)
                print(comparison_report(ranking))


class Reporter:
    """把结果写入输出目录：JSON 报告与文本摘要."""

    def __init__(self, output_dir: str, json_report: bool = True):
        self.output_dir = output_dir
        self.json_report = json_report

    def generate(
        self,
        stress: Optional[StressTestResult],
        search: Optional[SearchResults] = None,
        timestamp: Optional[datetime] = None,
    ) -> List[str]:
        """返回生成的文件路径."""
        os.makedirs(self.output_dir, exist_ok=True)
        stamp = (timestamp or datetime.now()).strftime("%Y%m%d_%H%M%S")
        ranking = rank_strategies(search) if search is not None else None
        paths = []

        if self.json_report:
            path = os.path.join(self.output_dir, f"report_{stamp}.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(build_report(stress, search, ranking), f, indent=2, ensure_ascii=False)
            paths.append(path)

        path = os.path.join(self.output_dir, f"summary_{stamp}.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write(self._summary_text(stress, search, ranking))
        paths.append(path)

        for path in paths:
            logger.info(f"报告已生成: {path}")
        return paths

    @staticmethod
    def _summary_text(
        stress: Optional[StressTestResult],
        search: Optional[SearchResults],
        ranking: Optional[StrategyRanking],
    ) -> str:
        lines = ["=== 邮件服务压测报告 ===", f"生成时间: {datetime.now().isoformat()}", ""]

        if stress is not None:
            lines += [
                "--- 压测结果 ---",
                f"总请求数: {stress.total_requests}",
                f"成功请求: {stress.success_requests}",
                f"失败请求: {stress.failed_requests}",
                f"错误率: {stress.error_rate:.2f}%",
                f"总耗时: {stress.total_duration_s:.2f} 秒",
                f"平均响应: {stress.avg_response_ms:.2f} ms",
                f"最小响应: {stress.min_response_ms:.2f} ms",
                f"最大响应: {stress.max_response_ms:.2f} ms",
                f"QPS: {stress.requests_per_second:.2f}",
                "",
                "--- 操作统计 ---",
            ]
            for kind, stats in stress.operation_stats.items():
                lines += [
                    f"{kind.value}:",
                    f"  次数: {stats.count}",
                    f"  平均: {stats.avg_duration_ms:.2f} ms",
                    f"  最小: {stats.min_duration_ms:.2f} ms",
                    f"  最大: {stats.max_duration_ms:.2f} ms",
                    f"  错误: {stats.errors}",
                ]
            lines.append("")

        if search is not None:
            lines.append("--- 搜索策略结果 ---")
            for name, r in search.items():
                lines += [
                    f"{name}:",
                    f"  查询总数: {r.total_queries}",
                    f"  成功: {r.success_queries}",
                    f"  失败: {r.failed_queries}",
                    f"  平均: {r.avg_duration_ms:.2f} ms",
                    f"  最小: {r.min_duration_ms:.2f} ms",
                    f"  最大: {r.max_duration_ms:.2f} ms",
                    f"  P99: {r.p99_duration_ms:.2f} ms",
                ]
            if ranking is not None:
                lines.append(comparison_report(ranking))

        return "\n".join(lines) + "\n"
