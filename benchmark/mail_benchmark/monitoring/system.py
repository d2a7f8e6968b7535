"""通过命令行工具采集系统资源指标."""

import asyncio
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .base import MetricsError, MetricsSource

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 10
LINUX_CPU = "top -bn1 | grep 'Cpu(s)' | awk '{print $2}'"
DARWIN_CPU = "top -l 1 -n 0 | grep 'CPU usage' | awk '{print $3}'"
ESTABLISHED = "netstat -an | grep ESTABLISHED | wc -l"

_MEMORY_VALUE_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([A-Za-z]*)")
_VM_STAT_RE = re.compile(r"^(Pages [a-z ]+):\s+(\d+)", re.MULTILINE)
_PAGE_SIZE_RE = re.compile(r"page size of (\d+) bytes")


@dataclass
class SystemMetrics:
    """系统资源快照."""

    timestamp: datetime = field(default_factory=datetime.now)
    cpu_usage_percent: float = 0.0
    cpu_cores: int = field(default_factory=lambda: os.cpu_count() or 0)
    load_average_1min: float = 0.0
    load_average_5min: float = 0.0
    load_average_15min: float = 0.0
    total_memory_mb: float = 0.0
    used_memory_mb: float = 0.0
    free_memory_mb: float = 0.0
    memory_usage_percent: float = 0.0
    tcp_connections: int = 0
    tcp_established: int = 0

    def set_memory(self, total: float, used: float, free: Optional[float] = None):
        self.total_memory_mb = total
        self.used_memory_mb = used
        self.free_memory_mb = total - used if free is None else free
        self.memory_usage_percent = used / total * 100 if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


def parse_memory_value(text: str) -> float:
    """把 "123.4MiB"、"2GiB" 之类的值换算为 MB."""
    match = _MEMORY_VALUE_RE.match(text)
    if not match:
        return 0.0
    value, unit = float(match.group(1)), match.group(2).upper()
    if unit in ("GIB", "GB", "G"):
        return value * 1024
    if unit in ("KIB", "KB", "K"):
        return value / 1024
    if unit in ("B",):
        return value / 1024 / 1024
    return value


def parse_cpu_usage(output: str) -> float:
    text = output.strip().splitlines()[0].strip() if output.strip() else ""
    text = text.removesuffix("%").removesuffix("us").strip()
    try:
        return float(text.replace(",", "."))
    except ValueError as e:
        raise MetricsError(f"无法解析 CPU 使用率: {output!r}") from e


def parse_load_average(output: str) -> Tuple[float, float, float]:
    """解析 uptime 输出中的 "load average: 1.23, 2.34, 3.45"."""
    _, found, tail = output.partition("load average")
    if not found:
        return 0.0, 0.0, 0.0
    parts = tail.lstrip("s:").replace(",", " ").split()
    try:
        loads = [float(p) for p in parts[:3]]
    except ValueError:
        return 0.0, 0.0, 0.0
    if len(loads) < 3:
        return 0.0, 0.0, 0.0
    return loads[0], loads[1], loads[2]


def parse_docker_memory(output: str) -> Tuple[float, float]:
    """解析 docker stats 的 "123.4MiB / 2GiB"，返回 (已用, 总量)."""
    parts = output.strip().split("/")
    if len(parts) != 2:
        raise MetricsError(f"无法识别的 docker 内存格式: {output!r}")
    return parse_memory_value(parts[0]), parse_memory_value(parts[1])


def parse_free_output(output: str) -> Tuple[float, float, float]:
    """解析 free -m 的 Mem: 行，返回 (总量, 已用, 空闲)."""
    for line in output.splitlines():
        if line.startswith("Mem:"):
            fields = line.split()
            if len(fields) >= 7:
                return float(fields[1]), float(fields[2]), float(fields[3])
            break
    raise MetricsError("free 输出中没有 Mem: 行")


def parse_vm_stat(output: str) -> Tuple[float, float, float]:
    """解析 macOS vm_stat，返回 (总量, 已用, 空闲)."""
    match = _PAGE_SIZE_RE.search(output)
    page_size = float(match.group(1)) if match else 4096.0
    pages = {name: float(count) for name, count in _VM_STAT_RE.findall(output)}

    free = pages.get("Pages free", 0.0) * page_size / 1024 / 1024
    used = (
        pages.get("Pages active", 0.0)
        + pages.get("Pages inactive", 0.0)
        + pages.get("Pages wired down", 0.0)
    ) * page_size / 1024 / 1024
    return free + used, used, free


class SystemMonitor(MetricsSource):
    """本机、远程 SSH 主机或 Docker 容器的资源采样."""

    name = "system"

    def __init__(self, target_host: str = "", is_docker: bool = False, container_id: str = ""):
        self.target_host = target_host
        self.is_docker = is_docker
        self.container_id = container_id

    async def _run(self, *argv: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise MetricsError(f"无法执行 {argv[0]}: {e}") from e
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=COMMAND_TIMEOUT)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise MetricsError(f"命令超时: {' '.join(argv)}") from e

        output = stdout.decode(errors="replace")
        if proc.returncode != 0:
            raise MetricsError(f"命令失败 ({proc.returncode}): {' '.join(argv)}: {output.strip()}")
        return output

    async def _shell(self, command: str) -> str:
        if self.target_host:
            return await self._run("ssh", self.target_host, command)
        return await self._run("sh", "-c", command)

    async def collect(self) -> SystemMetrics:
        """采集 CPU 与内存（失败则抛出），连接数失败只告警."""
        metrics = SystemMetrics()
        await self._collect_cpu(metrics)
        await self._collect_memory(metrics)
        try:
            await self._collect_connections(metrics)
        except MetricsError as e:
            logger.warning(f"采集连接数失败: {e}")
        return metrics

    async def _collect_cpu(self, metrics: SystemMetrics):
        if self.is_docker:
            output = await self._run(
                "docker", "stats", self.container_id, "--no-stream", "--format", "{{.CPUPerc}}"
            )
        elif self.target_host:
            output = await self._shell(LINUX_CPU)
        elif sys.platform == "darwin":
            output = await self._shell(DARWIN_CPU)
        elif sys.platform.startswith("linux"):
            output = await self._shell(LINUX_CPU)
        else:
            raise MetricsError(f"不支持的平台: {sys.platform}")
        metrics.cpu_usage_percent = parse_cpu_usage(output)

        try:
            if self.target_host:
                uptime = await self._run("ssh", self.target_host, "uptime")
            else:
                uptime = await self._run("uptime")
        except MetricsError as e:
            logger.debug(f"采集负载失败: {e}")
        else:
            (
                metrics.load_average_1min,
                metrics.load_average_5min,
                metrics.load_average_15min,
            ) = parse_load_average(uptime)

    async def _collect_memory(self, metrics: SystemMetrics):
        if self.is_docker:
            output = await self._run(
                "docker", "stats", self.container_id, "--no-stream", "--format", "{{.MemUsage}}"
            )
            used, total = parse_docker_memory(output)
            metrics.set_memory(total, used)
        elif self.target_host or sys.platform.startswith("linux"):
            if self.target_host:
                output = await self._shell("free -m")
            else:
                output = await self._run("free", "-m")
            total, used, free = parse_free_output(output)
            metrics.set_memory(total, used, free)
        elif sys.platform == "darwin":
            total, used, free = parse_vm_stat(await self._run("vm_stat"))
            metrics.set_memory(total, used, free)
        else:
            raise MetricsError(f"不支持的平台: {sys.platform}")

    async def _collect_connections(self, metrics: SystemMetrics):
        output = await self._shell(ESTABLISHED)
        try:
            count = int(output.strip())
        except ValueError as e:
            raise MetricsError(f"无法解析连接数: {output!r}") from e
        metrics.tcp_established = count
        metrics.tcp_connections = count
