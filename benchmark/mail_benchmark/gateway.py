"""邮件操作网关接口."""

import contextlib
from abc import ABC, abstractmethod
from typing import Iterator, List

from .models import ListMailsRequest, Mail, MailRequest, SearchMailsRequest


class MailOperationError(Exception):
    """单次邮件操作失败."""


@contextlib.contextmanager
def wrap_errors(operation: str) -> Iterator[None]:
    """把底层存储或网络异常统一包装为 MailOperationError."""
    try:
        yield
    except MailOperationError:
        raise
    except Exception as e:
        raise MailOperationError(f"{operation} 失败: {e}") from e


class MailOperationGateway(ABC):
    """邮件操作网关：直连数据库或远程 API."""

    name = "gateway"

    async def open(self):
        """建立连接."""

    async def close(self):
        """释放连接."""

    async def __aenter__(self) -> "MailOperationGateway":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @abstractmethod
    async def create_mail(self, request: MailRequest) -> None: ...

    @abstractmethod
    async def list_mails(self, request: ListMailsRequest) -> List[Mail]: ...

    @abstractmethod
    async def search_mails(self, request: SearchMailsRequest) -> List[Mail]: ...
