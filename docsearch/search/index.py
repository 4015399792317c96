"""
Index Merger - Key-ordered lookup over all loaded shards.

Entries are grouped by their normalized search key. The sorted key list is
extended with a sorted merge whenever a shard arrives, so a prefix lookup is
two binary searches, one for each end of the matching range.
"""

import heapq
from bisect import bisect_left

from loguru import logger

from ..models import Entry, Shard


class IndexMerger:
    """Merged, read-only view over every shard added so far."""

    def __init__(self):
        self._keys: list[str] = []
        self._entries: dict[str, list[Entry]] = {}
        self._buckets: set[str] = set()

    def __len__(self) -> int:
        return sum(len(group) for group in self._entries.values())

    @property
    def buckets(self) -> frozenset[str]:
        return frozenset(self._buckets)

    def keys(self) -> list[str]:
        return list(self._keys)

    def add_shard(self, shard: Shard) -> bool:
        """
        Merge a shard into the index.

        Entries sharing a search key are appended after the ones already
        present; nothing is ever removed or reordered.

        Args:
            shard: Loaded shard

        Returns:
            False if a shard for the same bucket was already merged
        """
        if shard.bucket in self._buckets:
            logger.debug(f"Shard for bucket '{shard.bucket}' already merged, ignoring")
            return False
        self._buckets.add(shard.bucket)

        new_keys = set()
        for entry in shard.entries:
            group = self._entries.get(entry.search_key)
            if group is None:
                self._entries[entry.search_key] = [entry]
                new_keys.add(entry.search_key)
            else:
                group.append(entry)

        if new_keys:
            self._keys = list(heapq.merge(self._keys, sorted(new_keys)))

        logger.debug(
            f"Merged shard '{shard.bucket}': {len(shard)} entries, "
            f"{len(new_keys)} new keys, {len(self._keys)} keys total"
        )
        return True

    def lookup_exact(self, key: str) -> list[Entry]:
        """All entries whose search key equals key, in arrival order."""
        return list(self._entries.get(key, ()))

    def lookup_prefix(self, prefix: str) -> list[Entry]:
        """
        All entries whose search key starts with prefix.

        Args:
            prefix: Normalized prefix

        Returns:
            Entries ordered by search key, then arrival order
        """
        start = bisect_left(self._keys, prefix)
        # Every key starting with prefix sorts below prefix + U+FFFF
        end = bisect_left(self._keys, prefix + "\uffff", lo=start)

        results = []
        for key in self._keys[start:end]:
            results.extend(self._entries[key])
        return results
