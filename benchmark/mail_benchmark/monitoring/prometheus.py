"""Prometheus 指标抓取与解析."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import aiohttp
from prometheus_client.parser import text_string_to_metric_families

from .base import MetricsError, MetricsSource

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


@dataclass
class PrometheusMetrics:
    """一次抓取的关键指标快照，耗时单位为毫秒."""

    timestamp: datetime = field(default_factory=datetime.now)

    http_requests_total: float = 0.0
    http_request_duration_p50_ms: float = 0.0
    http_request_duration_p95_ms: float = 0.0
    http_request_duration_p99_ms: float = 0.0
    http_errors_total: float = 0.0
    http_active_connections: float = 0.0

    process_cpu_seconds: float = 0.0
    memory_usage_mb: float = 0.0
    goroutines_count: float = 0.0

    db_connections_active: float = 0.0
    db_connections_idle: float = 0.0
    db_queries_total: float = 0.0
    db_query_duration_p99_ms: float = 0.0

    custom_metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        if not self.custom_metrics:
            data.pop("custom_metrics")
        return data


@dataclass
class MetricsDiff:
    """两次快照之间的变化."""

    start_time: datetime
    end_time: datetime
    duration_s: float
    http_requests_increase: float
    http_requests_per_second: float
    http_error_rate_percent: float
    avg_cpu_usage_percent: float
    avg_memory_usage_mb: float
    peak_goroutines: float
    avg_active_connections: float
    start_metrics: PrometheusMetrics
    end_metrics: PrometheusMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_s": round(self.duration_s, 3),
            "http_requests_increase": self.http_requests_increase,
            "http_requests_per_second": round(self.http_requests_per_second, 2),
            "http_error_rate_percent": round(self.http_error_rate_percent, 2),
            "avg_cpu_usage_percent": round(self.avg_cpu_usage_percent, 2),
            "avg_memory_usage_mb": round(self.avg_memory_usage_mb, 2),
            "peak_goroutines": self.peak_goroutines,
            "avg_active_connections": self.avg_active_connections,
            "start_metrics": self.start_metrics.to_dict(),
            "end_metrics": self.end_metrics.to_dict(),
        }


def _sample_key(name: str, labels: Mapping[str, str]) -> str:
    if not labels:
        return name
    inner = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{inner}}}"


def parse_metrics(text: str, timestamp: Optional[datetime] = None) -> PrometheusMetrics:
    """解析 Prometheus 文本格式；计数器按标签求和，其余未识别的样本放入 custom_metrics."""
    metrics = PrometheusMetrics(timestamp=timestamp or datetime.now())
    try:
        families = list(text_string_to_metric_families(text))
    except ValueError as e:
        raise MetricsError(f"指标解析失败: {e}") from e

    for family in families:
        for sample in family.samples:
            name, labels, value = sample.name, sample.labels, float(sample.value)
            quantile = labels.get("quantile")

            if "http_requests_total" in name:
                metrics.http_requests_total += value
            elif "http_request_duration_seconds" in name and quantile is not None:
                match quantile:
                    case "0.5":
                        metrics.http_request_duration_p50_ms = value * 1000
                    case "0.95":
                        metrics.http_request_duration_p95_ms = value * 1000
                    case "0.99":
                        metrics.http_request_duration_p99_ms = value * 1000
                    case _:
                        metrics.custom_metrics[_sample_key(name, labels)] = value
            elif "http_errors_total" in name:
                metrics.http_errors_total += value
            elif "http_connections_active" in name or "fiber_connections_active" in name:
                metrics.http_active_connections = value
            elif "process_cpu_seconds_total" in name:
                metrics.process_cpu_seconds = value
            elif "process_resident_memory_bytes" in name:
                metrics.memory_usage_mb = value / BYTES_PER_MB
            elif "go_goroutines" in name:
                metrics.goroutines_count = value
            elif "db_connections_active" in name:
                metrics.db_connections_active = value
            elif "db_connections_idle" in name:
                metrics.db_connections_idle = value
            elif "db_queries_total" in name:
                metrics.db_queries_total += value
            elif "db_query_duration" in name and quantile == "0.99":
                metrics.db_query_duration_p99_ms = value * 1000
            else:
                metrics.custom_metrics[_sample_key(name, labels)] = value

    return metrics


def calculate_diff(start: PrometheusMetrics, end: PrometheusMetrics) -> MetricsDiff:
    """计算两次快照之间的速率与平均值，分母为 0 时结果为 0."""
    duration_s = (end.timestamp - start.timestamp).total_seconds()
    increase = end.http_requests_total - start.http_requests_total
    errors = end.http_errors_total - start.http_errors_total
    cpu_seconds = end.process_cpu_seconds - start.process_cpu_seconds

    return MetricsDiff(
        start_time=start.timestamp,
        end_time=end.timestamp,
        duration_s=duration_s,
        http_requests_increase=increase,
        http_requests_per_second=increase / duration_s if duration_s > 0 else 0.0,
        http_error_rate_percent=errors / increase * 100 if increase > 0 else 0.0,
        avg_cpu_usage_percent=cpu_seconds / duration_s * 100 if duration_s > 0 else 0.0,
        avg_memory_usage_mb=(start.memory_usage_mb + end.memory_usage_mb) / 2,
        peak_goroutines=max(start.goroutines_count, end.goroutines_count),
        avg_active_connections=(start.http_active_connections + end.http_active_connections) / 2,
        start_metrics=start,
        end_metrics=end,
    )


class PrometheusClient(MetricsSource):
    """从 /metrics 端点抓取指标."""

    name = "prometheus"

    def __init__(self, metrics_url: str, timeout: float = 10):
        self.metrics_url = metrics_url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def collect(self) -> PrometheusMetrics:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        try:
            async with self._session.get(self.metrics_url) as response:
                if response.status != 200:
                    raise MetricsError(f"指标端点返回状态码 {response.status}")
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MetricsError(f"抓取指标失败: {e}") from e
        return parse_metrics(text)

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None
