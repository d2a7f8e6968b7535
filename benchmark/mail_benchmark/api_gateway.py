"""远程 HTTP API 邮件网关."""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .gateway import MailOperationError, MailOperationGateway, wrap_errors
from .models import ListMailsRequest, Mail, MailRequest, SearchMailsRequest

logger = logging.getLogger(__name__)

CREATE_OK = (200, 201)
QUERY_OK = (200,)


class ApiGateway(MailOperationGateway):
    """通过 /api/mails 接口访问邮件服务."""

    name = "api"

    def __init__(self, base_url: str, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def open(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _post(
        self, path: str, payload: Dict[str, Any], ok_status, parse: bool = True
    ) -> Any:
        if self._session is None:
            raise MailOperationError("API 会话未打开")

        async with self._session.post(f"{self.base_url}{path}", json=payload) as response:
            if response.status not in ok_status:
                body = await response.text()
                raise MailOperationError(
                    f"API error: status code {response.status}, body: {body}"
                )
            if not parse or response.content_length == 0:
                return None
            return await response.json(content_type=None)

    @staticmethod
    def _parse_mails(data: Any) -> List[Mail]:
        if data is None:
            return []
        if not isinstance(data, list):
            raise MailOperationError(f"API 响应格式错误: {type(data).__name__}")
        return [Mail.from_document(item) for item in data]

    async def create_mail(self, request: MailRequest) -> None:
        with wrap_errors("create_mail"):
            await self._post("/api/mails", request.to_payload(), CREATE_OK, parse=False)

    async def list_mails(self, request: ListMailsRequest) -> List[Mail]:
        with wrap_errors("list_mails"):
            data = await self._post("/api/mails/list", request.to_payload(), QUERY_OK)
            return self._parse_mails(data)

    async def search_mails(self, request: SearchMailsRequest) -> List[Mail]:
        with wrap_errors("search_mails"):
            data = await self._post("/api/mails/search", request.to_payload(), QUERY_OK)
            return self._parse_mails(data)
