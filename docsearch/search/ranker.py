"""
Result Ranker - Group, order and truncate matched entries.

Entries sharing a search key are overloads of one name and form a single
result group. Groups are ordered by, in priority order:

  1. Exact name match before prefix-only match
  2. Shorter display name first
  3. Scope matching the query's scope qualifier first
  4. Search key, then record key (deterministic tie-break)

Only the first `limit` groups are kept; the full count is reported so the
caller can show "N more matches".
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Union

from ..models import Entry
from .router import Query


@dataclass
class ResultGroup:
    """All occurrences of one name, rendered as one result with several links."""
    search_key: str
    display_name: str
    entries: list[Entry] = field(default_factory=list)
    exact: bool = False
    scope_match: bool = False

    @property
    def targets(self) -> list[str]:
        return [entry.target for entry in self.entries]

    def sort_key(self) -> tuple:
        return (
            not self.exact,
            len(self.display_name),
            not self.scope_match,
            self.search_key,
            self.entries[0].key if self.entries else "",
        )


@dataclass
class ResultSet:
    """Ordered, possibly truncated output of one query."""
    query: str = ""
    groups: list[ResultGroup] = field(default_factory=list)
    total: int = 0
    truncated: bool = False
    partial: bool = False
    missing_buckets: frozenset[str] = frozenset()

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[ResultGroup]:
        return iter(self.groups)

    @property
    def entries(self) -> list[Entry]:
        return [entry for group in self.groups for entry in group.entries]

    @property
    def remaining(self) -> int:
        """Groups left out by truncation."""
        return self.total - len(self.groups)

    def pairs(self) -> Iterator[tuple[Entry, str]]:
        """(entry, matched key) pairs in display order."""
        for group in self.groups:
            for entry in group.entries:
                yield entry, group.search_key


class ResultRanker:
    """Order matches for display."""

    def __init__(self, limit: int = 30):
        self.limit = limit

    def rank(self, entries: Iterable[Entry], query: Union[Query, str],
             missing_buckets: Iterable[str] = ()) -> ResultSet:
        """
        Rank matched entries.

        Args:
            entries: Matches in index order
            query: Parsed query or raw text
            missing_buckets: Buckets that could not contribute

        Returns:
            ResultSet; `partial` is set when any bucket was missing
        """
        if isinstance(query, str):
            query = Query.parse(query)
        missing = frozenset(missing_buckets)

        groups: dict[str, ResultGroup] = {}
        for entry in entries:
            group = groups.get(entry.search_key)
            if group is None:
                group = ResultGroup(
                    search_key=entry.search_key,
                    display_name=entry.display_name,
                    exact=entry.search_key == query.name,
                )
                groups[entry.search_key] = group
            group.entries.append(entry)
            if query.is_scoped and entry.scope_key.startswith(query.scope):
                group.scope_match = True

        ordered = sorted(groups.values(), key=ResultGroup.sort_key)
        visible = ordered[:self.limit] if self.limit > 0 else ordered

        return ResultSet(
            query=query.text,
            groups=visible,
            total=len(ordered),
            truncated=len(visible) < len(ordered),
            partial=bool(missing),
            missing_buckets=missing,
        )
