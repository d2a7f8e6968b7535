"""监控数据源接口."""

from abc import ABC, abstractmethod
from typing import Any


class MetricsError(Exception):
    """指标采集失败."""


class MetricsSource(ABC):
    """可周期采样的指标来源."""

    name = "metrics"

    @abstractmethod
    async def collect(self) -> Any:
        """采集一次快照，失败时抛出 MetricsError."""

    async def close(self):
        """释放资源."""
