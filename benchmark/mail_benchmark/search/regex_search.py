"""正则匹配搜索."""

from typing import List

from pymongo import ASCENDING, DESCENDING, IndexModel

from ..models import Mail, SearchMailsRequest
from .base import SearchStrategy, subject_or_content


class RegexSearchStrategy(SearchStrategy):
    name = "regex"
    description = "MongoDB Regex with $regex operator - flexible but can be slow on large datasets"

    async def setup(self):
        await self.store.create_indexes(
            [
                IndexModel([("userId", ASCENDING), ("subject", ASCENDING)], name="mail_userid_subject_idx"),
                IndexModel([("userId", ASCENDING), ("content", ASCENDING)], name="mail_userid_content_idx"),
            ]
        )

    async def search(self, request: SearchMailsRequest) -> List[Mail]:
        docs = await self.store.find_mails(
            subject_or_content(request),
            sort=[("createdAt", DESCENDING)],
            limit=request.limit,
        )
        return [Mail.from_document(doc) for doc in docs]
