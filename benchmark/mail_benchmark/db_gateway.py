"""直连数据库的邮件网关."""

import logging
import re
from datetime import datetime, timezone
from typing import List

from bson import ObjectId
from pymongo import DESCENDING

from .gateway import MailOperationError, MailOperationGateway, wrap_errors
from .models import (
    MAIL_TYPE_RECEIVED,
    MAIL_TYPE_SENT,
    ListMailsRequest,
    Mail,
    MailRequest,
    SearchMailsRequest,
    ThreadMail,
)
from .store import MailStore

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("createdAt", DESCENDING)]


class DirectGateway(MailOperationGateway):
    """通过 MailStore 直接读写，发信时维护会话."""

    name = "direct"

    def __init__(self, store: MailStore):
        self.store = store

    async def _resolve_thread(self, reply_to: str | None) -> str:
        if not reply_to:
            return str(ObjectId())
        original = await self.store.find_mail(reply_to)
        if original is None:
            raise MailOperationError(f"回复的原邮件不存在: {reply_to}")
        return original.get("threadId", "")

    async def create_mail(self, request: MailRequest) -> None:
        """发信：发件人一份已发送副本，每个收件人一份已接收副本."""
        with wrap_errors("create_mail"):
            thread_id = await self._resolve_thread(request.reply_to)
            created_at = datetime.now(timezone.utc)

            def copy_for(user_id: str, mail_type: int) -> Mail:
                return Mail(
                    user_id=user_id,
                    from_user=request.from_user,
                    to=request.to,
                    cc=request.cc,
                    bcc=request.bcc,
                    subject=request.subject,
                    content=request.content,
                    type=mail_type,
                    reply_to=request.reply_to or "",
                    thread_id=thread_id,
                    created_at=created_at,
                )

            sender_copy = copy_for(request.from_user, MAIL_TYPE_SENT)
            msg_id = await self.store.insert_mail(sender_copy.to_document())

            thread_mail = ThreadMail(
                from_user=request.from_user,
                msg_id=msg_id,
                subject=request.subject,
                content=request.content,
                to=request.to,
                cc=request.cc,
                bcc=request.bcc,
                type=MAIL_TYPE_SENT,
            )
            await self.store.upsert_thread(request.from_user, thread_id, thread_mail.to_document())

            received = thread_mail.to_document()
            received["type"] = MAIL_TYPE_RECEIVED
            for recipient in request.recipients:
                if recipient == request.from_user:
                    continue
                await self.store.insert_mail(copy_for(recipient, MAIL_TYPE_RECEIVED).to_document())
                await self.store.upsert_thread(recipient, thread_id, dict(received))

    async def list_mails(self, request: ListMailsRequest) -> List[Mail]:
        with wrap_errors("list_mails"):
            docs = await self.store.find_mails(
                {"userId": request.user_id},
                sort=NEWEST_FIRST,
                limit=request.limit,
                skip=request.offset,
            )
        return [Mail.from_document(doc) for doc in docs]

    async def search_mails(self, request: SearchMailsRequest) -> List[Mail]:
        """按主题或正文不区分大小写匹配."""
        pattern = re.escape(request.search_term)
        with wrap_errors("search_mails"):
            docs = await self.store.find_mails(
                {
                    "userId": request.user_id,
                    "$or": [
                        {"subject": {"$regex": pattern, "$options": "i"}},
                        {"content": {"$regex": pattern, "$options": "i"}},
                    ],
                },
                sort=NEWEST_FIRST,
                limit=request.limit,
            )
        return [Mail.from_document(doc) for doc in docs]
