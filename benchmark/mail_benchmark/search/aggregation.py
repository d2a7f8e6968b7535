"""聚合管道搜索，按相关度排序."""

from typing import Any, Dict, List

from pymongo import ASCENDING, DESCENDING, IndexModel

from ..models import Mail, SearchMailsRequest
from .base import SearchStrategy, subject_or_content

SUBJECT_SCORE = 10
CONTENT_SCORE = 5


def _score_if_match(field: str, term: str, score: int) -> Dict[str, Any]:
    return {
        "$cond": [
            {"$regexMatch": {"input": f"${field}", "regex": term, "options": "i"}},
            score,
            0,
        ]
    }


def build_pipeline(request: SearchMailsRequest) -> List[Dict[str, Any]]:
    """构建搜索管道：匹配、打分、排序、截断."""
    term = request.search_term
    pipeline: List[Dict[str, Any]] = [
        {"$match": subject_or_content(request)},
        {
            "$addFields": {
                "relevanceScore": {
                    "$add": [
                        _score_if_match("subject", term, SUBJECT_SCORE),
                        _score_if_match("content", term, CONTENT_SCORE),
                    ]
                }
            }
        },
        {"$sort": {"relevanceScore": -1, "createdAt": -1}},
    ]
    if request.limit > 0:
        pipeline.append({"$limit": request.limit})
    return pipeline


class AggregationSearchStrategy(SearchStrategy):
    name = "aggregation"
    description = "MongoDB Aggregation Pipeline - powerful for complex queries and transformations"

    async def setup(self):
        await self.store.create_indexes(
            [IndexModel([("userId", ASCENDING), ("createdAt", DESCENDING)], name="mail_userid_created_idx")]
        )

    async def search(self, request: SearchMailsRequest) -> List[Mail]:
        docs = await self.store.aggregate_mails(build_pipeline(request))
        return [Mail.from_document(doc) for doc in docs]
