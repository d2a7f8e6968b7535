"""全文索引搜索."""

from typing import List

from pymongo import TEXT, IndexModel

from ..models import Mail, SearchMailsRequest
from .base import SearchStrategy, drop_text_indexes

INDEX_NAME = "mail_text_index"


class TextSearchStrategy(SearchStrategy):
    name = "text_search"
    description = "MongoDB Text Index with $text operator - best for natural language search"

    async def setup(self):
        await drop_text_indexes(self.store)
        await self.store.create_indexes(
            [IndexModel([("subject", TEXT), ("content", TEXT)], name=INDEX_NAME)]
        )

    async def search(self, request: SearchMailsRequest) -> List[Mail]:
        score = {"$meta": "textScore"}
        docs = await self.store.find_mails(
            {"userId": request.user_id, "$text": {"$search": request.search_term}},
            sort=[("score", score)],
            limit=request.limit,
            projection={"score": score},
        )
        return [Mail.from_document(doc) for doc in docs]
