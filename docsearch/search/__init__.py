"""
Search package - Index merging, query routing and ranking.

Queries are dispatched to priority-ordered handlers (scoped search, plain
prefix search) over a key-ordered merge of every loaded shard, then grouped
and ordered by the ranker.
"""

from .index import IndexMerger
from .ranker import ResultGroup, ResultRanker, ResultSet
from .router import MatchResult, Query, QueryHandler, QueryRouter

__all__ = [
    "IndexMerger",
    "MatchResult",
    "Query",
    "QueryHandler",
    "QueryRouter",
    "ResultGroup",
    "ResultRanker",
    "ResultSet",
]
