"""负载测试核心逻辑."""

import asyncio
import logging
import random
import time
from collections import deque
from datetime import datetime
from typing import Deque, Optional, Sequence, Set

from .config import validate_stress_config
from .gateway import MailOperationGateway
from .generator import RequestGenerator, new_user_ids
from .models import OperationKind, RequestResult, RunState, StressTestConfig, StressTestResult
from .ratelimit import Ticker
from .selector import OperationSelector
from .stats import StatsCollector

logger = logging.getLogger(__name__)

# 保留的最近请求记录条数
TRACE_LIMIT = 100000


class LoadTester:
    """负载测试器：固定并发、共享速率限制、固定时长."""

    def __init__(
        self,
        config: StressTestConfig,
        gateway: MailOperationGateway,
        user_ids: Optional[Sequence[str]] = None,
        verbose: bool = False,
        trace_limit: int = TRACE_LIMIT,
    ):
        validate_stress_config(config)
        self.config = config
        self.gateway = gateway
        self.verbose = verbose
        self.state = RunState.IDLE
        self.results: Deque[RequestResult] = deque(maxlen=trace_limit)
        self.generator: Optional[RequestGenerator] = None

        self._rng = random.Random(config.random_seed)
        self._selector = OperationSelector(config.operations, self._rng)
        self._user_ids = list(user_ids) if user_ids is not None else None
        self._stop_event = asyncio.Event()
        self._in_flight: Set[asyncio.Task] = set()
        self._stats = StatsCollector()
        self._deadline = 0.0

    def stop(self):
        """请求停止：不再发起新请求，进行中的请求被取消并记为失败."""
        self._stop_event.set()
        self._begin_drain()
        for op in list(self._in_flight):
            op.cancel()

    def _begin_drain(self):
        if self.state is RunState.RUNNING:
            self.state = RunState.DRAINING
            logger.debug("压测进入收尾阶段")

    def _prepare_users(self):
        user_ids = self._user_ids
        if user_ids is None:
            user_ids = new_user_ids(self.config.num_users)
        self.generator = RequestGenerator(user_ids, self._rng)

    async def _execute(self, kind: OperationKind):
        match kind:
            case OperationKind.CREATE:
                await self.gateway.create_mail(self.generator.generate_create_request())
            case OperationKind.LIST:
                await self.gateway.list_mails(self.generator.generate_list_request())
            case OperationKind.SEARCH:
                await self.gateway.search_mails(self.generator.generate_search_request())

    async def _make_request(self, kind: OperationKind) -> RequestResult:
        """执行单个请求."""
        start_time = time.perf_counter()
        op = asyncio.create_task(self._execute(kind))
        self._in_flight.add(op)
        try:
            await asyncio.wait((op,))
        finally:
            self._in_flight.discard(op)
            if not op.done():
                op.cancel()
        latency_ms = (time.perf_counter() - start_time) * 1000

        if op.cancelled():
            return RequestResult(kind, success=False, latency_ms=latency_ms, error="Cancelled")
        if (exc := op.exception()) is not None:
            return RequestResult(kind, success=False, latency_ms=latency_ms, error=str(exc))
        return RequestResult(kind, success=True, latency_ms=latency_ms)

    def _should_stop(self) -> bool:
        loop = asyncio.get_running_loop()
        return self._stop_event.is_set() or loop.time() >= self._deadline

    async def _next_tick(self, ticker: Ticker) -> bool:
        """等待令牌，同时响应停止信号与截止时间."""
        remaining = self._deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            return False

        tick = asyncio.create_task(ticker.wait())
        stop = asyncio.create_task(self._stop_event.wait())
        try:
            await asyncio.wait(
                (tick, stop), timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            tick.cancel()
            stop.cancel()
        return tick.done() and not tick.cancelled() and not self._should_stop()

    async def _worker(self, worker_id: int, ticker: Ticker, queue: asyncio.Queue):
        """工作协程."""
        while not self._should_stop():
            if not await self._next_tick(ticker):
                break
            kind = self._selector.select()
            result = await self._make_request(kind)
            await queue.put(result)
        logger.debug(f"worker {worker_id} 退出")

    async def _warmup(self):
        print(f"预热中... ({self.config.warmup} 请求)")
        for _ in range(self.config.warmup):
            try:
                await self.gateway.search_mails(self.generator.generate_search_request())
            except Exception as e:
                logger.debug(f"预热请求失败: {e}")
        print("预热完成\n")

    async def _progress_reporter(self, start: float):
        """进度报告协程."""
        if not self.verbose:
            return

        while True:
            await asyncio.sleep(1)
            count = self._stats.total_requests
            elapsed = time.perf_counter() - start
            current_qps = count / elapsed if elapsed > 0 else 0
            print(
                f"\r  进度: {count} 请求, {elapsed:.1f}s / {self.config.duration}s, "
                f"当前 QPS: {current_qps:.1f}",
                end="",
                flush=True,
            )

    async def run(self) -> StressTestResult:
        """执行测试."""
        if self.state is not RunState.IDLE:
            raise RuntimeError("每个 LoadTester 只能运行一次")

        self._prepare_users()
        self._print_header()

        if self.config.warmup > 0:
            await self._warmup()

        print("开始测试...")
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        aggregator = asyncio.create_task(self._stats.consume(queue, self.results))

        start_time = datetime.now()
        started = time.perf_counter()
        self._deadline = loop.time() + self.config.duration
        drain_handle = loop.call_at(self._deadline, self._begin_drain)
        self.state = RunState.RUNNING
        progress_task = asyncio.create_task(self._progress_reporter(started))

        try:
            async with Ticker(self.config.request_rate) as ticker:
                workers = [
                    asyncio.create_task(self._worker(i, ticker, queue))
                    for i in range(self.config.concurrent_workers)
                ]
                try:
                    await asyncio.gather(*workers)
                except asyncio.CancelledError:
                    self.stop()
                    for task in workers:
                        task.cancel()
                    await asyncio.gather(*workers, return_exceptions=True)
                    raise
        finally:
            drain_handle.cancel()
            progress_task.cancel()
            self._begin_drain()
            await queue.put(None)
            await aggregator
            if self.verbose:
                print()

        end_time = datetime.now()
        self.state = RunState.COMPLETED
        return self._stats.freeze(start_time, end_time)

    def _print_header(self):
        """打印测试头信息."""
        print("\n" + "=" * 60)
        print("邮件服务压力测试")
        print("=" * 60)
        print(f"网关: {self.gateway.name}")
        print(f"用户数: {len(self.generator.user_ids)}")
        print(f"并发数: {self.config.concurrent_workers}")
        print(f"请求速率: {self.config.request_rate} 请求/秒")
        print(f"测试时长: {self.config.duration} 秒")
        ops = self.config.operations
        print(
            f"操作权重: create={ops.create_mail_weight} "
            f"list={ops.list_mail_weight} search={ops.search_weight}"
        )
        print("=" * 60 + "\n")
