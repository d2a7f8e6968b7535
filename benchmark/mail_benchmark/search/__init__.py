"""搜索策略."""

from typing import Dict, List, Sequence, Type

from ..config import ConfigError
from ..store import MailStore
from .aggregation import AggregationSearchStrategy
from .base import SearchStrategy
from .index_optimized import IndexOptimizedStrategy
from .regex_search import RegexSearchStrategy
from .text_search import TextSearchStrategy

STRATEGIES: Dict[str, Type[SearchStrategy]] = {
    cls.name: cls
    for cls in (
        TextSearchStrategy,
        RegexSearchStrategy,
        AggregationSearchStrategy,
        IndexOptimizedStrategy,
    )
}


def create_strategies(store: MailStore, names: Sequence[str]) -> List[SearchStrategy]:
    """按配置顺序创建策略."""
    strategies = []
    for name in names:
        if name not in STRATEGIES:
            raise ConfigError(f"未知的搜索策略: {name}（可选: {', '.join(STRATEGIES)}）")
        strategies.append(STRATEGIES[name](store))
    return strategies


__all__ = [
    "STRATEGIES",
    "SearchStrategy",
    "TextSearchStrategy",
    "RegexSearchStrategy",
    "AggregationSearchStrategy",
    "IndexOptimizedStrategy",
    "create_strategies",
]
