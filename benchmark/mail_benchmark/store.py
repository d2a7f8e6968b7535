"""MongoDB 邮件存储."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, TEXT, AsyncMongoClient, IndexModel
from pymongo.collation import Collation

from .models import MongoConfig

logger = logging.getLogger(__name__)

MAILS = "mails"
THREADS = "threads"

Sort = Sequence[Tuple[str, Any]]


class MailStore(ABC):
    """邮件存储能力，搜索策略与直连网关依赖此接口."""

    async def connect(self):
        """建立连接."""

    async def close(self):
        """关闭连接."""

    async def __aenter__(self) -> "MailStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @abstractmethod
    async def insert_mail(self, document: Dict[str, Any]) -> str:
        """插入邮件，返回 ID."""

    @abstractmethod
    async def find_mail(self, mail_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def find_mails(
        self,
        filter: Dict[str, Any],
        sort: Optional[Sort] = None,
        limit: int = 0,
        skip: int = 0,
        projection: Optional[Dict[str, Any]] = None,
        collation: Optional[Collation] = None,
    ) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def aggregate_mails(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def upsert_thread(self, user_id: str, thread_id: str, thread_mail: Dict[str, Any]): ...

    @abstractmethod
    async def create_indexes(self, indexes: List[IndexModel]) -> List[str]: ...

    @abstractmethod
    async def list_indexes(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def drop_index(self, name: str): ...


def thread_owner(user_id: str) -> Any:
    """会话文档以 ObjectId 存储用户 ID，非法值原样保留."""
    return ObjectId(user_id) if ObjectId.is_valid(user_id) else user_id


class MongoMailStore(MailStore):
    """基于 PyMongo 异步客户端的实现."""

    def __init__(self, config: MongoConfig):
        self.config = config
        self._client: Optional[AsyncMongoClient] = None
        self._db = None

    @property
    def mails(self):
        if self._db is None:
            raise RuntimeError("MongoDB 未连接")
        return self._db[MAILS]

    @property
    def threads(self):
        if self._db is None:
            raise RuntimeError("MongoDB 未连接")
        return self._db[THREADS]

    async def connect(self):
        timeout_ms = self.config.timeout * 1000
        self._client = AsyncMongoClient(
            self.config.uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        await self._client.admin.command("ping")
        self._db = self._client[self.config.database]
        logger.info(f"已连接 MongoDB: {self.config.database}")

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._db = None

    async def ensure_indexes(self):
        """创建基础索引."""
        await self.mails.create_indexes(
            [
                IndexModel([("userId", ASCENDING)]),
                IndexModel([("threadId", ASCENDING)]),
                IndexModel([("createdAt", DESCENDING)]),
                IndexModel([("subject", TEXT), ("content", TEXT)]),
            ]
        )
        await self.threads.create_indexes(
            [
                IndexModel([("user_id", ASCENDING), ("thread_id", ASCENDING)]),
                IndexModel([("user_id", ASCENDING)]),
            ]
        )

    async def insert_mail(self, document: Dict[str, Any]) -> str:
        result = await self.mails.insert_one(document)
        return str(result.inserted_id)

    async def find_mail(self, mail_id: str) -> Optional[Dict[str, Any]]:
        return await self.mails.find_one({"_id": ObjectId(mail_id)})

    async def find_mails(
        self,
        filter: Dict[str, Any],
        sort: Optional[Sort] = None,
        limit: int = 0,
        skip: int = 0,
        projection: Optional[Dict[str, Any]] = None,
        collation: Optional[Collation] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.mails.find(
            filter,
            projection,
            sort=list(sort) if sort else None,
            limit=max(limit, 0),
            skip=max(skip, 0),
            collation=collation,
        )
        return await cursor.to_list(None)

    async def aggregate_mails(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        cursor = await self.mails.aggregate(pipeline)
        return await cursor.to_list(None)

    async def upsert_thread(self, user_id: str, thread_id: str, thread_mail: Dict[str, Any]):
        owner = thread_owner(user_id)
        await self.threads.update_one(
            {"user_id": owner, "thread_id": thread_id},
            {
                "$push": {"mails": thread_mail},
                "$inc": {"total_mails": 1},
                "$setOnInsert": {"user_id": owner, "thread_id": thread_id},
            },
            upsert=True,
        )

    async def create_indexes(self, indexes: List[IndexModel]) -> List[str]:
        return await self.mails.create_indexes(indexes)

    async def list_indexes(self) -> List[Dict[str, Any]]:
        cursor = await self.mails.list_indexes()
        return [dict(index) for index in await cursor.to_list(None)]

    async def drop_index(self, name: str):
        await self.mails.drop_index(name)
