"""压测监控."""

from .base import MetricsError, MetricsSource
from .manager import MonitoringManager, MonitoringReport, SystemSummary
from .prometheus import MetricsDiff, PrometheusClient, PrometheusMetrics, calculate_diff, parse_metrics
from .system import SystemMetrics, SystemMonitor

__all__ = [
    "MetricsError",
    "MetricsSource",
    "MetricsDiff",
    "MonitoringManager",
    "MonitoringReport",
    "PrometheusClient",
    "PrometheusMetrics",
    "SystemMetrics",
    "SystemMonitor",
    "SystemSummary",
    "calculate_diff",
    "parse_metrics",
]
