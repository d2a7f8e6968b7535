"""压测期间的监控调度与报告."""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import MonitoringConfig
from .base import MetricsError, MetricsSource
from .prometheus import MetricsDiff, PrometheusClient, PrometheusMetrics, calculate_diff
from .system import SystemMetrics, SystemMonitor

logger = logging.getLogger(__name__)

HIGH_ERROR_RATE_PERCENT = 5
HIGH_CPU_PERCENT = 80
HIGH_MEMORY_MB = 1024
PEAK_CPU_PERCENT = 90
HIGH_MEMORY_PERCENT = 85
PEAK_CONNECTIONS = 1000


@dataclass
class SystemSummary:
    """系统指标汇总."""

    avg_cpu_usage_percent: float = 0.0
    peak_cpu_usage_percent: float = 0.0
    avg_memory_usage_mb: float = 0.0
    peak_memory_usage_mb: float = 0.0
    avg_memory_usage_percent: float = 0.0
    avg_tcp_connections: float = 0.0
    peak_tcp_connections: int = 0
    avg_load_average_1min: float = 0.0

    @classmethod
    def from_snapshots(cls, snapshots: List[SystemMetrics]) -> "SystemSummary":
        if not snapshots:
            return cls()
        count = len(snapshots)
        return cls(
            avg_cpu_usage_percent=sum(s.cpu_usage_percent for s in snapshots) / count,
            peak_cpu_usage_percent=max(s.cpu_usage_percent for s in snapshots),
            avg_memory_usage_mb=sum(s.used_memory_mb for s in snapshots) / count,
            peak_memory_usage_mb=max(s.used_memory_mb for s in snapshots),
            avg_memory_usage_percent=sum(s.memory_usage_percent for s in snapshots) / count,
            avg_tcp_connections=sum(s.tcp_established for s in snapshots) / count,
            peak_tcp_connections=max(s.tcp_established for s in snapshots),
            avg_load_average_1min=sum(s.load_average_1min for s in snapshots) / count,
        )


@dataclass
class MonitoringReport:
    """监控报告."""

    start_time: datetime
    end_time: datetime
    prometheus_diff: Optional[MetricsDiff] = None
    prometheus_snapshots: List[PrometheusMetrics] = field(default_factory=list)
    system_summary: Optional[SystemSummary] = None
    system_snapshots: List[SystemMetrics] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)

    @property
    def prometheus_available(self) -> bool:
        return self.prometheus_diff is not None

    @property
    def system_available(self) -> bool:
        return self.system_summary is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "test_info": {
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat(),
                "duration_s": round((self.end_time - self.start_time).total_seconds(), 3),
            },
            "prometheus_available": self.prometheus_available,
            "system_available": self.system_available,
            "insights": list(self.insights),
        }
        if self.prometheus_diff is not None:
            data["prometheus_diff"] = self.prometheus_diff.to_dict()
            data["prometheus_snapshots"] = [s.to_dict() for s in self.prometheus_snapshots]
        if self.system_summary is not None:
            data["system_summary"] = {
                k: round(v, 2) if isinstance(v, float) else v
                for k, v in vars(self.system_summary).items()
            }
            data["system_snapshots"] = [s.to_dict() for s in self.system_snapshots]
        return data


def build_insights(
    diff: Optional[MetricsDiff], summary: Optional[SystemSummary]
) -> List[str]:
    """根据阈值生成性能提示."""
    insights = []
    if diff is not None:
        if diff.http_error_rate_percent > HIGH_ERROR_RATE_PERCENT:
            insights.append(f"错误率偏高: {diff.http_error_rate_percent:.2f}%")
        if diff.avg_cpu_usage_percent > HIGH_CPU_PERCENT:
            insights.append(f"CPU 使用率偏高: {diff.avg_cpu_usage_percent:.2f}%")
        if diff.avg_memory_usage_mb > HIGH_MEMORY_MB:
            insights.append(f"内存占用偏高: {diff.avg_memory_usage_mb:.2f}MB")
    if summary is not None:
        if summary.peak_cpu_usage_percent > PEAK_CPU_PERCENT:
            insights.append(f"CPU 峰值 {summary.peak_cpu_usage_percent:.2f}%，建议扩容")
        if summary.avg_memory_usage_percent > HIGH_MEMORY_PERCENT:
            insights.append(f"内存使用率 {summary.avg_memory_usage_percent:.2f}%，存在 OOM 风险")
        if summary.peak_tcp_connections > PEAK_CONNECTIONS:
            insights.append(f"连接数峰值 {summary.peak_tcp_connections}，请确认已使用连接池")
    return insights


class MonitoringManager:
    """在压测期间周期性采集 Prometheus 与系统指标."""

    def __init__(
        self,
        config: MonitoringConfig,
        output_dir: str = "",
        prometheus: Optional[MetricsSource] = None,
        system: Optional[MetricsSource] = None,
    ):
        self.config = config
        self.output_dir = output_dir
        if prometheus is None and config.prometheus_url:
            prometheus = PrometheusClient(config.prometheus_url)
        if system is None and config.enable_system_monitor:
            system = SystemMonitor(config.target_host, config.is_docker, config.container_id)
        self.prometheus = prometheus
        self.system = system

        self.prometheus_snapshots: List[PrometheusMetrics] = []
        self.system_snapshots: List[SystemMetrics] = []
        self.start_time: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    async def _sample(self, source: Optional[MetricsSource], snapshots: list, label: str) -> bool:
        if source is None:
            return False
        try:
            snapshots.append(await source.collect())
        except MetricsError as e:
            logger.warning(f"{label}采集失败: {e}")
            return False
        return True

    async def start(self):
        """采集初始快照并启动周期采集."""
        self.start_time = datetime.now()
        print("\n启动监控...")
        if await self._sample(self.prometheus, self.prometheus_snapshots, "Prometheus 指标"):
            print("Prometheus 监控已启动")
        if await self._sample(self.system, self.system_snapshots, "系统指标"):
            print("系统监控已启动")
        self._task = asyncio.create_task(self._periodic_collection())

    async def _periodic_collection(self):
        while True:
            await asyncio.sleep(self.config.scrape_interval)
            if await self._sample(self.prometheus, self.prometheus_snapshots, "Prometheus 指标"):
                if self.config.enable_realtime_log:
                    m = self.prometheus_snapshots[-1]
                    print(
                        f"Prometheus: 内存={m.memory_usage_mb:.1f}MB, "
                        f"请求数={m.http_requests_total:.0f}"
                    )
            if await self._sample(self.system, self.system_snapshots, "系统指标"):
                if self.config.enable_realtime_log:
                    m = self.system_snapshots[-1]
                    print(
                        f"系统: CPU={m.cpu_usage_percent:.1f}%, "
                        f"内存={m.memory_usage_percent:.1f}%, 连接数={m.tcp_established}"
                    )

    async def stop(self) -> MonitoringReport:
        """停止采集，生成并保存报告."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        print("\n停止监控...")
        await self._sample(self.prometheus, self.prometheus_snapshots, "Prometheus 指标")
        await self._sample(self.system, self.system_snapshots, "系统指标")
        for source in (self.prometheus, self.system):
            if source is not None:
                await source.close()

        report = self.generate_report(datetime.now())
        if self.output_dir:
            self.save_report(report)
        return report

    def generate_report(self, end_time: datetime) -> MonitoringReport:
        """至少有两次快照时才计算差值与汇总."""
        diff = None
        if len(self.prometheus_snapshots) >= 2:
            diff = calculate_diff(self.prometheus_snapshots[0], self.prometheus_snapshots[-1])
        summary = None
        if len(self.system_snapshots) >= 2:
            summary = SystemSummary.from_snapshots(self.system_snapshots)

        return MonitoringReport(
            start_time=self.start_time or end_time,
            end_time=end_time,
            prometheus_diff=diff,
            prometheus_snapshots=list(self.prometheus_snapshots) if diff else [],
            system_summary=summary,
            system_snapshots=list(self.system_snapshots) if summary else [],
            insights=build_insights(diff, summary),
        )

    def save_report(self, report: MonitoringReport) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        filename = os.path.join(
            self.output_dir, f"monitoring_{report.end_time.strftime('%Y%m%d_%H%M%S')}.json"
        )
        with open(filename, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
        print(f"\n监控报告已保存: {filename}")
        return filename

    @staticmethod
    def print_summary(report: MonitoringReport):
        """打印监控摘要."""
        print(f"\n{'=' * 60}")
        print("监控摘要")
        print(f"{'=' * 60}")
        duration = (report.end_time - report.start_time).total_seconds()
        print(f"监控时长:        {duration:.2f} 秒")
        print(f"开始:            {report.start_time:%Y-%m-%d %H:%M:%S}")
        print(f"结束:            {report.end_time:%Y-%m-%d %H:%M:%S}")

        if (diff := report.prometheus_diff) is not None:
            print(f"{'-' * 60}")
            print("Prometheus 指标")
            print(f"HTTP 请求:       {diff.http_requests_increase:.0f} ({diff.http_requests_per_second:.2f} 请求/秒)")
            print(f"错误率:          {diff.http_error_rate_percent:.2f}%")
            print(f"平均 CPU:        {diff.avg_cpu_usage_percent:.2f}%")
            print(f"平均内存:        {diff.avg_memory_usage_mb:.2f} MB")
            print(f"Goroutine 峰值:  {diff.peak_goroutines:.0f}")
            print(f"平均连接数:      {diff.avg_active_connections:.0f}")
            end = diff.end_metrics
            print(
                f"响应时间:        P50 {end.http_request_duration_p50_ms:.2f} ms | "
                f"P95 {end.http_request_duration_p95_ms:.2f} ms | "
                f"P99 {end.http_request_duration_p99_ms:.2f} ms"
            )

        if (summary := report.system_summary) is not None:
            print(f"{'-' * 60}")
            print("系统指标")
            print(f"CPU:             平均 {summary.avg_cpu_usage_percent:.2f}% | 峰值 {summary.peak_cpu_usage_percent:.2f}%")
            print(
                f"内存:            平均 {summary.avg_memory_usage_mb:.2f} MB "
                f"({summary.avg_memory_usage_percent:.2f}%) | 峰值 {summary.peak_memory_usage_mb:.2f} MB"
            )
            print(f"TCP 连接:        平均 {summary.avg_tcp_connections:.0f} | 峰值 {summary.peak_tcp_connections}")
            print(f"1 分钟负载:      {summary.avg_load_average_1min:.2f}")

        print(f"{'-' * 60}")
        if report.insights:
            print("性能提示")
            for insight in report.insights:
                print(f"  {insight}")
        else:
            print("未发现性能问题")
        print(f"{'=' * 60}\n")
