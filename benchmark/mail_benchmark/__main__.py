"""入口点."""

import asyncio
import contextlib
import logging
import random
import signal
import sys
from typing import Optional

from .api_gateway import ApiGateway
from .charts import ChartGenerator
from .cli import config_from_args, parse_args
from .db_gateway import DirectGateway
from .generator import RequestGenerator, new_user_ids
from .models import BenchmarkConfig, StressTestResult
from .monitoring import MonitoringManager
from .reporter import Reporter, report
from .search import create_strategies
from .search_benchmark import SearchBenchmark
from .seed import seed_mails
from .store import MongoMailStore
from .tester import LoadTester

logger = logging.getLogger(__name__)


async def _run_stress(tester: LoadTester) -> StressTestResult:
    """压测期间 Ctrl-C / SIGTERM 触发有序停止."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, tester.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass
    try:
        return await tester.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def run(
    config: BenchmarkConfig,
    seed_data: bool = False,
    run_stress: bool = True,
    run_benchmark: bool = True,
):
    """按配置执行预置数据、压测、搜索策略对比与报告."""
    st = config.stress_test
    user_ids = new_user_ids(st.num_users)
    generator = RequestGenerator(user_ids, random.Random(st.random_seed))
    store = MongoMailStore(config.mongodb)

    async with contextlib.AsyncExitStack() as stack:
        if not st.use_api or run_benchmark:
            await stack.enter_async_context(store)
            print("创建数据库索引...")
            await store.ensure_indexes()

        if st.use_api:
            print(f"使用 API 网关: {st.api_endpoint}")
            gateway = ApiGateway(st.api_endpoint, timeout=st.timeout)
        else:
            print("使用数据库直连网关")
            gateway = DirectGateway(store)
        await stack.enter_async_context(gateway)

        if seed_data:
            await seed_mails(gateway, generator, st.num_mails_per_user)

        monitor: Optional[MonitoringManager] = None
        if config.monitoring.enabled:
            monitor = MonitoringManager(config.monitoring, config.report.output_dir)
            await monitor.start()

        stress = None
        if run_stress:
            tester = LoadTester(st, gateway, user_ids, verbose=config.verbose)
            stress = await _run_stress(tester)

        search = None
        if run_benchmark:
            strategies = create_strategies(store, config.benchmark.search_methods)
            search = await SearchBenchmark(config.benchmark, strategies, generator).run()

        if monitor is not None:
            MonitoringManager.print_summary(await monitor.stop())

    report(stress, search, config.output_format)

    if stress is not None or search is not None:
        Reporter(config.report.output_dir, config.report.json_report).generate(stress, search)
        if config.report.generate_chart:
            ChartGenerator(config.report.output_dir).generate(stress, search)
        logger.info(f"报告输出目录: {config.report.output_dir}")


def main():
    """主函数."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        asyncio.run(
            run(
                config,
                seed_data=args.seed_data,
                run_stress=not args.no_stress,
                run_benchmark=not args.no_benchmark,
            )
        )
    except KeyboardInterrupt:
        print("\n\n测试被用户中断")
        sys.exit(1)
    except Exception as e:
        print(f"\n错误: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
