"""命令行接口."""

import argparse

from .config import create_config, load_config
from .models import BenchmarkConfig


def parse_args(argv=None) -> argparse.Namespace:
    """解析命令行参数."""
    parser = argparse.ArgumentParser(
        description="邮件服务压力测试与搜索策略对比工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  # 使用默认配置（config/default.yaml）
  uv run python -m mail_benchmark

  # 预置数据后压测 60 秒，100 并发，每秒 500 请求
  uv run python -m mail_benchmark --seed-data -c 100 -r 500 -d 60s

  # 通过 HTTP API 压测，跳过搜索策略对比
  uv run python -m mail_benchmark --use-api --api-endpoint http://localhost:8080 --no-benchmark

  # 只做搜索策略对比，每个策略 200 次查询，JSON 输出
  uv run python -m mail_benchmark --no-stress -n 200 -o json
        """,
    )

    parser.add_argument(
        "--config",
        "-C",
        help="配置文件路径 (默认: $CONFIG_PATH 或 config/default.yaml)",
    )

    # 执行阶段
    parser.add_argument(
        "--seed-data",
        action="store_true",
        help="压测前预置测试邮件 (数量: stress_test.num_mails_per_user)",
    )

    parser.add_argument(
        "--no-stress",
        action="store_true",
        help="跳过压力测试",
    )

    parser.add_argument(
        "--no-benchmark",
        action="store_true",
        help="跳过搜索策略对比",
    )

    # 网关
    parser.add_argument(
        "--use-api",
        action="store_true",
        help="通过 HTTP API 而不是直连数据库",
    )

    parser.add_argument(
        "--api-endpoint",
        help="API 地址，例如: http://localhost:8080",
    )

    # 压测参数，覆盖配置文件
    parser.add_argument(
        "--workers",
        "-c",
        type=int,
        help="并发 worker 数",
    )

    parser.add_argument(
        "--rate",
        "-r",
        type=int,
        help="每秒请求数上限",
    )

    parser.add_argument(
        "--duration",
        "-d",
        help="测试时长，秒数或 30s / 5m 形式",
    )

    parser.add_argument(
        "--iterations",
        "-n",
        type=int,
        help="每个搜索策略的查询次数",
    )

    parser.add_argument(
        "--random-seed",
        type=int,
        help="随机种子，便于复现请求序列",
    )

    parser.add_argument(
        "--monitor",
        action="store_true",
        help="启用监控 (Prometheus / 系统指标)",
    )

    # 其他选项
    parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="输出格式 (默认: text)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="显示详细进度与调试日志",
    )

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> BenchmarkConfig:
    """从配置文件与参数创建配置."""
    return create_config(
        base=load_config(args.config),
        workers=args.workers,
        rate=args.rate,
        duration=args.duration,
        iterations=args.iterations,
        use_api=args.use_api,
        api_endpoint=args.api_endpoint,
        random_seed=args.random_seed,
        monitor=args.monitor,
        output=args.output,
        verbose=args.verbose,
    )
