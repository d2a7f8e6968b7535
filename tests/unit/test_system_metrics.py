"""
Unit tests for system metric parsers and the subprocess runner.
"""

import pytest

from mail_benchmark.monitoring import MetricsError, SystemMetrics, SystemMonitor
from mail_benchmark.monitoring.system import (
    parse_cpu_usage,
    parse_docker_memory,
    parse_free_output,
    parse_load_average,
    parse_memory_value,
    parse_vm_stat,
)

FREE_OUTPUT = """\
              total        used        free      shared  buff/cache   available
Mem:          15896        4567        8123         123        3205       10890
Swap:          2047           0        2047
"""

VM_STAT_OUTPUT = """\
Mach Virtual Memory Statistics: (page size of 16384 bytes)
Pages free:                                1000.
Pages active:                              2000.
Pages inactive:                             500.
Pages speculative:                          100.
Pages wired down:                           500.
"""


class TestMemoryParsers:

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("123.4MiB", 123.4),
            ("2GiB", 2048.0),
            ("512KiB", 0.5),
            ("1048576B", 1.0),
            (" 64MB", 64.0),
            ("garbage", 0.0),
        ],
    )
    def test_memory_value(self, text, expected):
        assert parse_memory_value(text) == pytest.approx(expected)

    def test_docker_memory(self):
        assert parse_docker_memory("123.4MiB / 2GiB\n") == pytest.approx((123.4, 2048.0))

    def test_docker_memory_malformed(self):
        with pytest.raises(MetricsError):
            parse_docker_memory("123.4MiB")

    def test_free_output(self):
        assert parse_free_output(FREE_OUTPUT) == (15896.0, 4567.0, 8123.0)

    def test_free_output_without_mem_line(self):
        with pytest.raises(MetricsError):
            parse_free_output("Swap: 0 0 0\n")

    def test_vm_stat_uses_reported_page_size(self):
        total, used, free = parse_vm_stat(VM_STAT_OUTPUT)

        assert free == pytest.approx(15.625)
        assert used == pytest.approx(46.875)
        assert total == pytest.approx(62.5)

    def test_vm_stat_default_page_size(self):
        total, used, free = parse_vm_stat("Pages free: 256.\nPages active: 256.\n")

        assert free == pytest.approx(1.0)
        assert used == pytest.approx(1.0)

    def test_set_memory(self):
        metrics = SystemMetrics()

        metrics.set_memory(1000.0, 250.0)

        assert metrics.free_memory_mb == 750.0
        assert metrics.memory_usage_percent == 25.0

    def test_set_memory_zero_total(self):
        metrics = SystemMetrics()

        metrics.set_memory(0.0, 0.0)

        assert metrics.memory_usage_percent == 0.0


class TestCpuAndLoad:

    @pytest.mark.parametrize(
        "output, expected",
        [("12.5%\n", 12.5), ("3.2", 3.2), ("7.0 us", 7.0), ("12,5%", 12.5)],
    )
    def test_cpu_usage(self, output, expected):
        assert parse_cpu_usage(output) == pytest.approx(expected)

    @pytest.mark.parametrize("output", ["", "n/a"])
    def test_cpu_usage_unparseable(self, output):
        with pytest.raises(MetricsError):
            parse_cpu_usage(output)

    def test_linux_uptime(self):
        output = " 10:00:01 up 3 days,  2 users,  load average: 1.23, 2.34, 3.45\n"

        assert parse_load_average(output) == (1.23, 2.34, 3.45)

    def test_macos_uptime(self):
        output = "10:00  up 1 day, 3:02, 2 users, load averages: 1.50 1.60 1.70\n"

        assert parse_load_average(output) == (1.5, 1.6, 1.7)

    def test_uptime_without_load(self):
        assert parse_load_average("up 3 days") == (0.0, 0.0, 0.0)


class TestSubprocessRunner:

    @pytest.mark.asyncio
    async def test_run_returns_output(self):
        assert (await SystemMonitor()._run("sh", "-c", "echo hello")).strip() == "hello"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        with pytest.raises(MetricsError, match="3"):
            await SystemMonitor()._run("sh", "-c", "exit 3")

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        with pytest.raises(MetricsError):
            await SystemMonitor()._run("definitely-not-a-real-binary-xyz")
