"""数据模型定义."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_SEARCH_METHODS = ("text_search", "regex", "aggregation", "index_optimized")

MAIL_TYPE_RECEIVED = 0
MAIL_TYPE_SENT = 1


class OperationKind(str, Enum):
    """压测操作类型."""

    CREATE = "create"
    LIST = "list"
    SEARCH = "search"


class RunState(str, Enum):
    """压测运行状态."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# 配置
# ---------------------------------------------------------------------------


@dataclass
class OperationWeights:
    """操作权重."""

    create_mail_weight: int = 30
    list_mail_weight: int = 50
    search_weight: int = 20

    @property
    def total(self) -> int:
        return self.create_mail_weight + self.list_mail_weight + self.search_weight


@dataclass
class MongoConfig:
    """MongoDB 连接配置."""

    uri: str = "mongodb://localhost:27017"
    database: str = "mail_stress_test"
    timeout: int = 10


@dataclass
class StressTestConfig:
    """压测配置."""

    num_users: int = 100
    num_mails_per_user: int = 1000
    concurrent_workers: int = 50
    request_rate: int = 100
    duration: float = 300.0
    use_api: bool = False
    api_endpoint: str = "http://localhost:8080"
    timeout: int = 30
    warmup: int = 0
    random_seed: Optional[int] = None
    operations: OperationWeights = field(default_factory=OperationWeights)


@dataclass
class SearchBenchmarkConfig:
    """搜索策略对比配置."""

    search_methods: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_METHODS))
    sample_size: int = 1000
    iterations: int = 100
    settle_delay: float = 0.1


@dataclass
class ReportConfig:
    """报告输出配置."""

    output_dir: str = "./reports"
    generate_chart: bool = True
    json_report: bool = True


@dataclass
class MonitoringConfig:
    """监控配置."""

    enabled: bool = False
    prometheus_url: str = ""
    scrape_interval: float = 5.0
    enable_system_monitor: bool = False
    target_host: str = ""
    is_docker: bool = False
    container_id: str = ""
    enable_realtime_log: bool = False


@dataclass
class BenchmarkConfig:
    """测试配置."""

    mongodb: MongoConfig = field(default_factory=MongoConfig)
    stress_test: StressTestConfig = field(default_factory=StressTestConfig)
    benchmark: SearchBenchmarkConfig = field(default_factory=SearchBenchmarkConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    output_format: str = "text"
    verbose: bool = False


# ---------------------------------------------------------------------------
# 邮件文档与请求
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    text = value.replace("Z", "+00:00")
    # Go 的 RFC3339Nano 带 9 位小数，fromisoformat 最多接受 6 位
    if "." in text:
        head, _, tail = text.partition(".")
        width = len(tail) - len(tail.lstrip("0123456789"))
        text = f"{head}.{tail[:min(width, 6)]}{tail[width:]}"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass
class Mail:
    """邮件文档（每个用户一份副本）."""

    user_id: str
    from_user: str
    subject: str
    content: str
    thread_id: str = ""
    to: List[str] = field(default_factory=list)
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    type: int = MAIL_TYPE_RECEIVED
    reply_to: str = ""
    created_at: Optional[datetime] = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """转换为存储文档，字段名与服务端保持一致."""
        doc: Dict[str, Any] = {
            "from": self.from_user,
            "to": list(self.to),
            "subject": self.subject,
            "content": self.content,
            "type": self.type,
            "threadId": self.thread_id,
            "userId": self.user_id,
            "createdAt": self.created_at,
        }
        if self.cc:
            doc["cc"] = list(self.cc)
        if self.bcc:
            doc["bcc"] = list(self.bcc)
        if self.reply_to:
            doc["replyTo"] = self.reply_to
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Mail":
        """从存储文档或 API 响应构建."""
        raw_id = doc.get("_id", doc.get("id"))
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            user_id=doc.get("userId", ""),
            from_user=doc.get("from", ""),
            to=list(doc.get("to") or []),
            cc=list(doc.get("cc") or []),
            bcc=list(doc.get("bcc") or []),
            subject=doc.get("subject", ""),
            content=doc.get("content", ""),
            type=int(doc.get("type", MAIL_TYPE_RECEIVED)),
            reply_to=doc.get("replyTo", ""),
            thread_id=doc.get("threadId", ""),
            created_at=_parse_timestamp(doc.get("createdAt")),
        )


@dataclass
class ThreadMail:
    """会话中的邮件摘要."""

    from_user: str
    msg_id: str
    subject: str
    content: str
    to: List[str] = field(default_factory=list)
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    type: int = MAIL_TYPE_SENT

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "from": self.from_user,
            "msg_id": self.msg_id,
            "subject": self.subject,
            "content": self.content,
            "to": list(self.to),
            "type": self.type,
        }
        if self.cc:
            doc["cc"] = list(self.cc)
        if self.bcc:
            doc["bcc"] = list(self.bcc)
        return doc


@dataclass
class MailRequest:
    """发信请求."""

    from_user: str
    to: List[str]
    subject: str
    content: str
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    reply_to: Optional[str] = None

    @property
    def recipients(self) -> List[str]:
        return [*self.to, *self.cc, *self.bcc]

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "from": self.from_user,
            "to": list(self.to),
            "subject": self.subject,
            "content": self.content,
        }
        if self.cc:
            payload["cc"] = list(self.cc)
        if self.bcc:
            payload["bcc"] = list(self.bcc)
        if self.reply_to:
            payload["replyTo"] = self.reply_to
        return payload


@dataclass
class ListMailsRequest:
    """收件箱列表请求."""

    user_id: str
    limit: int = 0
    offset: int = 0

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"userId": self.user_id}
        if self.limit > 0:
            payload["limit"] = self.limit
        if self.offset > 0:
            payload["offset"] = self.offset
        return payload


@dataclass
class SearchMailsRequest:
    """邮件搜索请求."""

    user_id: str
    search_term: str
    limit: int = 50

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"userId": self.user_id, "searchTerm": self.search_term}
        if self.limit > 0:
            payload["limit"] = self.limit
        return payload


# ---------------------------------------------------------------------------
# 结果
# ---------------------------------------------------------------------------


@dataclass
class RequestResult:
    """单个请求结果."""

    operation: OperationKind
    success: bool
    latency_ms: float
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class OperationStats:
    """单类操作统计."""

    count: int = 0
    avg_duration_ms: float = 0.0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_duration_ms": round(self.avg_duration_ms, 3),
            "min_duration_ms": round(self.min_duration_ms, 3),
            "max_duration_ms": round(self.max_duration_ms, 3),
            "errors": self.errors,
        }


@dataclass(frozen=True)
class StressTestResult:
    """压测结果汇总."""

    start_time: datetime
    end_time: datetime
    total_requests: int
    success_requests: int
    failed_requests: int
    total_duration_s: float
    avg_response_ms: float
    min_response_ms: float
    max_response_ms: float
    requests_per_second: float
    error_rate: float
    operation_stats: Dict[OperationKind, OperationStats]

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.success_requests / self.total_requests * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "total_requests": self.total_requests,
            "success_requests": self.success_requests,
            "failed_requests": self.failed_requests,
            "total_duration_s": round(self.total_duration_s, 3),
            "avg_response_ms": round(self.avg_response_ms, 3),
            "min_response_ms": round(self.min_response_ms, 3),
            "max_response_ms": round(self.max_response_ms, 3),
            "requests_per_second": round(self.requests_per_second, 2),
            "error_rate": round(self.error_rate, 2),
            "operation_stats": {
                kind.value: stats.to_dict() for kind, stats in self.operation_stats.items()
            },
        }


@dataclass(frozen=True)
class SearchBenchmarkResult:
    """单个搜索策略的测试结果."""

    strategy_name: str
    description: str
    setup_duration_ms: float
    avg_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    p50_duration_ms: float
    p95_duration_ms: float
    p99_duration_ms: float
    total_queries: int
    success_queries: int
    failed_queries: int
    total_results: int
    avg_results: float

    @property
    def success_ratio(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.success_queries / self.total_queries

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "description": self.description,
            "setup_duration_ms": round(self.setup_duration_ms, 3),
            "avg_duration_ms": round(self.avg_duration_ms, 3),
            "min_duration_ms": round(self.min_duration_ms, 3),
            "max_duration_ms": round(self.max_duration_ms, 3),
            "p50_duration_ms": round(self.p50_duration_ms, 3),
            "p95_duration_ms": round(self.p95_duration_ms, 3),
            "p99_duration_ms": round(self.p99_duration_ms, 3),
            "total_queries": self.total_queries,
            "success_queries": self.success_queries,
            "failed_queries": self.failed_queries,
            "total_results": self.total_results,
            "avg_results": round(self.avg_results, 2),
        }


@dataclass(frozen=True)
class StrategyRanking:
    """搜索策略横向对比."""

    fastest_average: Optional[str] = None
    fastest_average_ms: float = 0.0
    fastest_p99: Optional[str] = None
    fastest_p99_ms: float = 0.0
    most_reliable: Optional[str] = None
    most_reliable_ratio: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fastest_average": self.fastest_average,
            "fastest_average_ms": round(self.fastest_average_ms, 3),
            "fastest_p99": self.fastest_p99,
            "fastest_p99_ms": round(self.fastest_p99_ms, 3),
            "most_reliable": self.most_reliable,
            "most_reliable_ratio": round(self.most_reliable_ratio, 4),
        }
