"""
Prefix Handler - Plain name prefix search.

The whole normalized query is matched against the start of every search
key. Always matches, so it is the router's fallback.
"""

from ...models import Entry
from ...utils.helpers import key_bucket
from ..index import IndexMerger
from ..router import Query, QueryHandler


class PrefixHandler(QueryHandler):
    """Match entries whose search key starts with the query."""

    name = "prefix"
    priority = 1000

    def matches(self, query: Query) -> bool:
        return True

    def buckets(self, query: Query) -> set[str]:
        return {key_bucket(query.name)}

    def get_results(self, query: Query, index: IndexMerger) -> list[Entry]:
        if query.is_empty:
            return []
        return index.lookup_prefix(query.name)
