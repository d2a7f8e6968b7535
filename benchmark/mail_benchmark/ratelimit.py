"""共享速率限制器."""

import asyncio
import logging
from typing import Optional

from .config import ConfigError

logger = logging.getLogger(__name__)


class Ticker:
    """固定间隔发放令牌，无人等待时多余的令牌直接丢弃."""

    def __init__(self, rate: float):
        if rate <= 0:
            raise ConfigError(f"请求速率必须大于 0，当前为 {rate}")
        self.rate = rate
        self.interval = 1.0 / rate
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """启动令牌生产协程."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            try:
                self._queue.put_nowait(next_tick)
            except asyncio.QueueFull:
                self.dropped += 1

            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                # 事件循环落后时跳过错过的节拍
                missed = int((now - next_tick) / self.interval) + 1
                self.dropped += missed
                next_tick += missed * self.interval

    async def wait(self) -> float:
        """等待下一个令牌."""
        return await self._queue.get()

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.debug(f"速率限制器已停止，丢弃令牌 {self.dropped} 个")

    async def __aenter__(self) -> "Ticker":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()
