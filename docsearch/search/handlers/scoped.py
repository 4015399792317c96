"""
Scoped Handler - Qualified "scope::name" search.

Triggers on queries with a scope qualifier:
  singlepp::train    Entries named train* inside singlepp (or nested scopes)

Entries whose own key spells the qualified name (e.g. a class indexed as
"tatami::SomeNumericArray") also match.
"""

from ...models import Entry
from ...utils.helpers import key_bucket
from ..index import IndexMerger
from ..router import Query, QueryHandler


class ScopedHandler(QueryHandler):
    """Match name prefix within a scope prefix."""

    name = "scoped"
    priority = 100

    def matches(self, query: Query) -> bool:
        return query.is_scoped and not query.is_empty

    def buckets(self, query: Query) -> set[str]:
        return {key_bucket(query.name), key_bucket(query.normalized)}

    def get_results(self, query: Query, index: IndexMerger) -> list[Entry]:
        results = [
            entry for entry in index.lookup_prefix(query.name)
            if entry.scope_key.startswith(query.scope)
        ]

        # Qualified keys; identity check keeps an entry from appearing twice
        seen = {id(entry) for entry in results}
        for entry in index.lookup_prefix(query.normalized):
            if id(entry) not in seen:
                results.append(entry)
                seen.add(id(entry))
        return results
