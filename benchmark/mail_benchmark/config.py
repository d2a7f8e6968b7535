"""配置管理."""

import copy
import logging
import math
import os
import re
from dataclasses import fields
from typing import Any, Dict, Optional, Union

import yaml

from .models import (
    DEFAULT_SEARCH_METHODS,
    BenchmarkConfig,
    MongoConfig,
    MonitoringConfig,
    OperationWeights,
    ReportConfig,
    SearchBenchmarkConfig,
    StressTestConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/default.yaml"

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(ValueError):
    """配置错误，在测试启动前抛出."""


def parse_duration(value: Any) -> float:
    """解析时长为秒，支持数字与 Go 风格字符串（如 300ms、30s、1h30m）."""
    if isinstance(value, bool):
        raise ConfigError(f"无效的时长: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        seconds = _parse_duration_text(value)
    else:
        raise ConfigError(f"无效的时长: {value!r}")
    if not math.isfinite(seconds):
        raise ConfigError(f"时长必须是有限值: {value!r}")
    return seconds


def _parse_duration_text(value: str) -> float:
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ConfigError(f"无效的时长: {value!r}")
    return total


def check_weights(weights: OperationWeights) -> None:
    """校验操作权重：均非负且总和大于 0."""
    for name in ("create_mail_weight", "list_mail_weight", "search_weight"):
        value = getattr(weights, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(f"操作权重 {name} 必须是非负整数，当前为 {value!r}")
    if weights.total <= 0:
        raise ConfigError("操作权重总和必须大于 0")


def _require_positive(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} 必须是数字，当前为 {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} 必须大于 0，当前为 {value!r}")


def validate_stress_config(st: StressTestConfig) -> None:
    """校验压测参数."""
    _require_positive("stress_test.num_users", st.num_users)
    _require_positive("stress_test.concurrent_workers", st.concurrent_workers)
    _require_positive("stress_test.request_rate", st.request_rate)
    _require_positive("stress_test.duration", st.duration)
    _require_positive("stress_test.timeout", st.timeout)
    if st.num_mails_per_user < 0:
        raise ConfigError("stress_test.num_mails_per_user 不能为负数")
    if st.warmup < 0:
        raise ConfigError("stress_test.warmup 不能为负数")
    check_weights(st.operations)


def validate_config(config: BenchmarkConfig) -> None:
    """校验配置，任何错误都在测试启动前抛出 ConfigError."""
    validate_stress_config(config.stress_test)

    bench = config.benchmark
    _require_positive("benchmark.iterations", bench.iterations)
    if not math.isfinite(bench.settle_delay) or bench.settle_delay < 0:
        raise ConfigError("benchmark.settle_delay 不能为负数")
    if not bench.search_methods:
        raise ConfigError("benchmark.search_methods 不能为空")
    unknown = [m for m in bench.search_methods if m not in DEFAULT_SEARCH_METHODS]
    if unknown:
        raise ConfigError(
            f"未知的搜索策略: {', '.join(unknown)}（可选: {', '.join(DEFAULT_SEARCH_METHODS)}）"
        )

    if config.monitoring.enabled:
        _require_positive("monitoring.scrape_interval", config.monitoring.scrape_interval)

    if config.output_format not in ("text", "json"):
        raise ConfigError(f"未知的输出格式: {config.output_format}")


def _build_section(cls, raw: Any, name: str, converters: Optional[Dict[str, Any]] = None):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"配置段 {name} 必须是映射")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"忽略未知配置项 {name}: {', '.join(unknown)}")

    values = {k: v for k, v in raw.items() if k in known}
    for key, convert in (converters or {}).items():
        if key in values:
            values[key] = convert(values[key])
    return cls(**values)


def config_from_dict(data: Dict[str, Any]) -> BenchmarkConfig:
    """从 YAML 解析出的字典构建配置."""
    if not isinstance(data, dict):
        raise ConfigError("配置文件顶层必须是映射")

    return BenchmarkConfig(
        mongodb=_build_section(MongoConfig, data.get("mongodb"), "mongodb"),
        stress_test=_build_section(
            StressTestConfig,
            data.get("stress_test"),
            "stress_test",
            {
                "duration": parse_duration,
                "operations": lambda raw: _build_section(
                    OperationWeights, raw, "stress_test.operations"
                ),
            },
        ),
        benchmark=_build_section(
            SearchBenchmarkConfig,
            data.get("benchmark"),
            "benchmark",
            {"settle_delay": parse_duration, "search_methods": list},
        ),
        report=_build_section(ReportConfig, data.get("report"), "report"),
        monitoring=_build_section(
            MonitoringConfig,
            data.get("monitoring"),
            "monitoring",
            {"scrape_interval": parse_duration},
        ),
    )


def _override_from_env(config: BenchmarkConfig) -> None:
    if uri := os.environ.get("MONGO_URI"):
        config.mongodb.uri = uri
    if database := os.environ.get("MONGO_DATABASE"):
        config.mongodb.database = database


def load_config(path: Optional[str] = None) -> BenchmarkConfig:
    """加载配置文件：参数 > CONFIG_PATH 环境变量 > config/default.yaml."""
    explicit = path or os.environ.get("CONFIG_PATH")
    config_path = explicit or DEFAULT_CONFIG_PATH

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"配置文件解析失败 {config_path}: {e}") from e
        config = config_from_dict(data)
        logger.info(f"已加载配置: {config_path}")
    elif explicit:
        raise ConfigError(f"配置文件不存在: {config_path}")
    else:
        logger.warning(f"未找到配置文件 {config_path}，使用默认配置")
        config = BenchmarkConfig()

    _override_from_env(config)
    validate_config(config)
    return config


def create_config(
    base: Optional[BenchmarkConfig] = None,
    workers: Optional[int] = None,
    rate: Optional[int] = None,
    duration: Union[str, float, None] = None,
    iterations: Optional[int] = None,
    use_api: bool = False,
    api_endpoint: Optional[str] = None,
    random_seed: Optional[int] = None,
    monitor: bool = False,
    output: str = "text",
    verbose: bool = False,
) -> BenchmarkConfig:
    """创建测试配置，命令行参数覆盖配置文件中的值."""
    config = copy.deepcopy(base) if base is not None else BenchmarkConfig()
    st = config.stress_test

    if workers is not None:
        st.concurrent_workers = workers
    if rate is not None:
        st.request_rate = rate
    if duration is not None:
        st.duration = parse_duration(duration)
    if use_api:
        st.use_api = True
    if api_endpoint:
        st.api_endpoint = api_endpoint.rstrip("/")
    if random_seed is not None:
        st.random_seed = random_seed
    if iterations is not None:
        config.benchmark.iterations = iterations
    if monitor:
        config.monitoring.enabled = True

    config.output_format = output
    config.verbose = verbose

    validate_config(config)
    return config
