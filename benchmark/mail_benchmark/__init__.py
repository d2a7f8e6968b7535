"""邮件服务压力测试与搜索策略对比工具."""

__version__ = "0.1.0"

from .api_gateway import ApiGateway
from .cli import config_from_args, parse_args
from .config import ConfigError, create_config, load_config, validate_config
from .db_gateway import DirectGateway
from .gateway import MailOperationError, MailOperationGateway
from .generator import RequestGenerator
from .models import (
    BenchmarkConfig,
    OperationKind,
    OperationStats,
    OperationWeights,
    RequestResult,
    SearchBenchmarkResult,
    StrategyRanking,
    StressTestResult,
)
from .reporter import Reporter, report
from .search_benchmark import SearchBenchmark, rank_strategies
from .selector import OperationSelector
from .store import MailStore, MongoMailStore
from .tester import LoadTester

__all__ = [
    "ApiGateway",
    "BenchmarkConfig",
    "ConfigError",
    "DirectGateway",
    "LoadTester",
    "MailOperationError",
    "MailOperationGateway",
    "MailStore",
    "MongoMailStore",
    "OperationKind",
    "OperationSelector",
    "OperationStats",
    "OperationWeights",
    "RequestGenerator",
    "RequestResult",
    "Reporter",
    "SearchBenchmark",
    "SearchBenchmarkResult",
    "StrategyRanking",
    "StressTestResult",
    "config_from_args",
    "create_config",
    "load_config",
    "parse_args",
    "rank_strategies",
    "report",
    "validate_config",
]
