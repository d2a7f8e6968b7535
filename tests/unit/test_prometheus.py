"""
Unit tests for Prometheus metric parsing, snapshot diffs and the scrape client.
"""

from datetime import datetime, timedelta

import pytest
from aiohttp import test_utils, web

from mail_benchmark.monitoring import (
    MetricsError,
    PrometheusClient,
    PrometheusMetrics,
    calculate_diff,
    parse_metrics,
)

METRICS_TEXT = """\
# HELP http_requests_total Total HTTP requests
# TYPE http_requests_total counter
http_requests_total{method="GET",status="200"} 100
http_requests_total{method="POST",status="201"} 50
# HELP http_errors_total Total HTTP errors
# TYPE http_errors_total counter
http_errors_total{status="500"} 3
# HELP http_request_duration_seconds Request latency
# TYPE http_request_duration_seconds summary
http_request_duration_seconds{quantile="0.5"} 0.01
http_request_duration_seconds{quantile="0.95"} 0.05
http_request_duration_seconds{quantile="0.99"} 0.1
http_request_duration_seconds_sum 12
http_request_duration_seconds_count 150
# HELP process_cpu_seconds_total CPU time
# TYPE process_cpu_seconds_total counter
process_cpu_seconds_total 12.5
# HELP process_resident_memory_bytes Resident memory
# TYPE process_resident_memory_bytes gauge
process_resident_memory_bytes 104857600
# HELP go_goroutines Goroutines
# TYPE go_goroutines gauge
go_goroutines 42
# HELP mail_queue_depth Pending mails
# TYPE mail_queue_depth gauge
mail_queue_depth{queue="outbound"} 7
"""


class TestParseMetrics:

    def test_known_metrics(self):
        metrics = parse_metrics(METRICS_TEXT)

        assert metrics.http_requests_total == 150
        assert metrics.http_errors_total == 3
        assert metrics.http_request_duration_p50_ms == pytest.approx(10.0)
        assert metrics.http_request_duration_p95_ms == pytest.approx(50.0)
        assert metrics.http_request_duration_p99_ms == pytest.approx(100.0)
        assert metrics.process_cpu_seconds == 12.5
        assert metrics.memory_usage_mb == pytest.approx(100.0)
        assert metrics.goroutines_count == 42

    def test_unknown_metrics_kept_with_labels(self):
        metrics = parse_metrics(METRICS_TEXT)

        assert metrics.custom_metrics['mail_queue_depth{queue="outbound"}'] == 7
        assert "http_request_duration_seconds_count" in metrics.custom_metrics

    def test_timestamp_passthrough(self):
        stamp = datetime(2024, 3, 1, 10, 0, 0)

        assert parse_metrics("", stamp).timestamp == stamp

    def test_malformed_text(self):
        with pytest.raises(MetricsError):
            parse_metrics('broken_metric{a="b"} notanumber\n')

    def test_to_dict_omits_empty_custom(self):
        data = PrometheusMetrics(timestamp=datetime(2024, 1, 1)).to_dict()

        assert "custom_metrics" not in data
        assert data["timestamp"] == "2024-01-01T00:00:00"


class TestCalculateDiff:

    def _pair(self, seconds=10.0):
        t0 = datetime(2024, 1, 1, 12, 0, 0)
        start = PrometheusMetrics(
            timestamp=t0,
            http_requests_total=100,
            http_errors_total=0,
            process_cpu_seconds=1.0,
            memory_usage_mb=100.0,
            goroutines_count=10,
            http_active_connections=4,
        )
        end = PrometheusMetrics(
            timestamp=t0 + timedelta(seconds=seconds),
            http_requests_total=600,
            http_errors_total=25,
            process_cpu_seconds=3.0,
            memory_usage_mb=300.0,
            goroutines_count=50,
            http_active_connections=8,
        )
        return start, end

    def test_rates_and_averages(self):
        diff = calculate_diff(*self._pair())

        assert diff.duration_s == 10.0
        assert diff.http_requests_increase == 500
        assert diff.http_requests_per_second == pytest.approx(50.0)
        assert diff.http_error_rate_percent == pytest.approx(5.0)
        assert diff.avg_cpu_usage_percent == pytest.approx(20.0)
        assert diff.avg_memory_usage_mb == pytest.approx(200.0)
        assert diff.peak_goroutines == 50
        assert diff.avg_active_connections == 6

    def test_zero_duration(self):
        diff = calculate_diff(*self._pair(seconds=0))

        assert diff.http_requests_per_second == 0.0
        assert diff.avg_cpu_usage_percent == 0.0

    def test_no_new_requests(self):
        start, _ = self._pair()
        end = PrometheusMetrics(timestamp=start.timestamp + timedelta(seconds=5), http_requests_total=100)

        assert calculate_diff(start, end).http_error_rate_percent == 0.0


class TestPrometheusClient:

    @pytest.mark.asyncio
    async def test_collect(self):
        async def handler(request):
            return web.Response(text=METRICS_TEXT)

        app = web.Application()
        app.router.add_get("/metrics", handler)

        async with test_utils.TestServer(app) as server:
            client = PrometheusClient(str(server.make_url("/metrics")))
            try:
                metrics = await client.collect()
            finally:
                await client.close()

        assert metrics.http_requests_total == 150

    @pytest.mark.asyncio
    async def test_bad_status(self):
        async def handler(request):
            return web.Response(status=503, text="unavailable")

        app = web.Application()
        app.router.add_get("/metrics", handler)

        async with test_utils.TestServer(app) as server:
            client = PrometheusClient(str(server.make_url("/metrics")))
            try:
                with pytest.raises(MetricsError, match="503"):
                    await client.collect()
            finally:
                await client.close()
