"""复合索引 + 排序规则搜索."""

from typing import List

from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel
from pymongo.collation import Collation, CollationStrength

from ..models import Mail, SearchMailsRequest
from .base import SearchStrategy, drop_text_indexes, subject_or_content

CONTENT_INDEX = "mail_optimized_content_idx"

# 不区分大小写
CASE_INSENSITIVE = Collation(locale="en", strength=CollationStrength.SECONDARY)


class IndexOptimizedStrategy(SearchStrategy):
    name = "index_optimized"
    description = (
        "Compound Index on userId + subject/content with case-insensitive collation "
        "- best performance for exact/prefix matches"
    )

    async def setup(self):
        await drop_text_indexes(self.store, keep=CONTENT_INDEX)
        await self.store.create_indexes(
            [
                IndexModel(
                    [("userId", ASCENDING), ("subject", ASCENDING), ("createdAt", DESCENDING)],
                    name="mail_optimized_subject_idx",
                    collation=CASE_INSENSITIVE,
                ),
                IndexModel([("userId", ASCENDING), ("content", TEXT)], name=CONTENT_INDEX),
            ]
        )

    async def search(self, request: SearchMailsRequest) -> List[Mail]:
        docs = await self.store.find_mails(
            subject_or_content(request, subject_prefix="^.*"),
            sort=[("createdAt", DESCENDING)],
            limit=request.limit,
            collation=CASE_INSENSITIVE,
        )
        return [Mail.from_document(doc) for doc in docs]
