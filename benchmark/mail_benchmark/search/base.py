"""搜索策略接口."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import Mail, SearchMailsRequest
from ..store import MailStore

logger = logging.getLogger(__name__)


def regex_clause(term: str, prefix: str = "") -> Dict[str, Any]:
    """不区分大小写的正则条件."""
    return {"$regex": f"{prefix}{term}", "$options": "i"}


def subject_or_content(request: SearchMailsRequest, subject_prefix: str = "") -> Dict[str, Any]:
    """按用户过滤，主题或正文匹配搜索词."""
    return {
        "userId": request.user_id,
        "$or": [
            {"subject": regex_clause(request.search_term, subject_prefix)},
            {"content": regex_clause(request.search_term)},
        ],
    }


async def drop_text_indexes(store: MailStore, keep: Optional[str] = None) -> List[str]:
    """删除集合上已有的文本索引（每个集合只允许一个）."""
    dropped = []
    for index in await store.list_indexes():
        name = index.get("name")
        if name in ("_id_", keep):
            continue
        if "_fts" in (index.get("key") or {}):
            await store.drop_index(name)
            logger.info(f"已删除文本索引: {name}")
            dropped.append(name)
    return dropped


class SearchStrategy(ABC):
    """可互换的搜索实现."""

    name: str = ""
    description: str = ""

    def __init__(self, store: MailStore):
        self.store = store

    @abstractmethod
    async def setup(self):
        """幂等地准备索引."""

    @abstractmethod
    async def search(self, request: SearchMailsRequest) -> List[Mail]: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
