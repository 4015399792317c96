"""
Query Router - Dispatches symbol queries to priority-ordered handlers.

Each handler declares a priority (lower = higher priority) and a matches()
method. The router finds the first matching handler, tells the caller which
shard buckets the query needs, and returns the handler's entries. Plain
prefix search is always the fallback (highest priority number).
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from ..models import Entry
from ..services.errors import ShardError
from ..services.shard_store import BucketStatus, ShardStore
from ..utils.helpers import normalize_key
from .index import IndexMerger


@dataclass(frozen=True)
class Query:
    """User input split into normalized name and optional scope tokens."""
    text: str
    normalized: str = ""
    name: str = ""
    scope: Optional[str] = None
    raw_scope: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.name

    @property
    def is_scoped(self) -> bool:
        return self.scope is not None

    @classmethod
    def parse(cls, text: str) -> "Query":
        """
        Parse raw input.

        "singlepp::train" gives scope "singlepp" and name "train". Text
        without "::" (or with only one non-empty side, like "foo::") is an
        unscoped query matched as a whole, spaces included.
        """
        tokens = [t.strip() for t in text.strip().split("::")]
        tokens = [t for t in tokens if t]
        if not tokens:
            return cls(text=text)

        if len(tokens) == 1:
            name = normalize_key(tokens[0])
            return cls(text=text, normalized=name, name=name)

        raw_scope = "::".join(tokens[:-1])
        return cls(
            text=text,
            normalized=normalize_key("::".join(tokens)),
            name=normalize_key(tokens[-1]),
            scope=normalize_key(raw_scope),
            raw_scope=raw_scope,
        )


@dataclass
class MatchResult:
    """Entries matched against the merged index, plus coverage gaps."""
    query: Query
    entries: list[Entry] = field(default_factory=list)
    pending: frozenset[str] = frozenset()
    failed: frozenset[str] = frozenset()

    @property
    def missing(self) -> frozenset[str]:
        return self.pending | self.failed

    @property
    def complete(self) -> bool:
        return not self.missing


class QueryHandler(ABC):
    """Base class for all query handlers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Handler identifier."""
        ...

    @property
    @abstractmethod
    def priority(self) -> int:
        """Lower number = checked first. Prefix search should be ~1000."""
        ...

    @abstractmethod
    def matches(self, query: Query) -> bool:
        """Return True if this handler should process the query."""
        ...

    @abstractmethod
    def buckets(self, query: Query) -> set[str]:
        """Shard buckets that must be loaded to answer the query."""
        ...

    @abstractmethod
    def get_results(self, query: Query, index: IndexMerger) -> list[Entry]:
        """Return matching entries from the merged index."""
        ...


class QueryRouter:
    """
    Routes queries to the appropriate handler and tracks shard coverage.

    The router connects the store to the index: every shard the store loads
    is merged before any waiter on that load resumes.
    """

    def __init__(self, store: ShardStore, index: Optional[IndexMerger] = None,
                 min_query_length: int = 2):
        self._store = store
        self._index = index or IndexMerger()
        self.min_query_length = min_query_length
        self._handlers: list[QueryHandler] = []

        for shard in store.all_loaded_shards():
            self._index.add_shard(shard)
        store.connect(self._index.add_shard)

    @property
    def index(self) -> IndexMerger:
        return self._index

    @property
    def store(self) -> ShardStore:
        return self._store

    def register(self, handler: QueryHandler) -> None:
        """Register a handler and re-sort by priority."""
        self._handlers.append(handler)
        self._handlers.sort(key=lambda h: h.priority)

    def handler_for(self, query: Query) -> Optional[QueryHandler]:
        for handler in self._handlers:
            if handler.matches(query):
                return handler
        return None

    def needed_buckets(self, text: str) -> set[str]:
        """Buckets the query needs, whether or not they are loaded."""
        query = Query.parse(text)
        if query.is_empty:
            return set()
        handler = self.handler_for(query)
        if handler is None:
            return set()
        return {b for b in handler.buckets(query) if b}

    def missing_buckets(self, text: str) -> set[str]:
        """
        Needed buckets that a load could still provide.

        Loaded, absent and malformed buckets are excluded; unavailable ones
        are included so the next keystroke retries them.
        """
        settled = (BucketStatus.LOADED, BucketStatus.ABSENT, BucketStatus.MALFORMED)
        return {b for b in self.needed_buckets(text) if self._store.status(b) not in settled}

    async def prepare(self, text: str) -> dict[str, ShardError]:
        """
        Load every bucket the query needs.

        Args:
            text: Raw query text

        Returns:
            Failures keyed by bucket; empty when all needed shards are merged
        """
        buckets = sorted(self.needed_buckets(text))
        outcomes = await asyncio.gather(
            *(self._store.ensure_loaded(b) for b in buckets),
            return_exceptions=True,
        )

        failures = {}
        for bucket, outcome in zip(buckets, outcomes):
            if isinstance(outcome, ShardError):
                failures[bucket] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
        return failures

    def match(self, text: str) -> MatchResult:
        """
        Match the query against whatever is merged right now.

        Args:
            text: Raw query text

        Returns:
            MatchResult whose pending/failed sets name the buckets that
            could not contribute. Empty input yields no entries.
        """
        query = Query.parse(text)
        if query.is_empty:
            return MatchResult(query=query)

        handler = self.handler_for(query)
        if handler is None:
            return MatchResult(query=query)

        if len(query.name) < self.min_query_length:
            logger.debug(f"Short query '{text}', relying on result truncation")

        pending = set()
        failed = set()
        for bucket in handler.buckets(query):
            status = self._store.status(bucket)
            if status in (BucketStatus.UNAVAILABLE, BucketStatus.MALFORMED):
                failed.add(bucket)
            elif status in (BucketStatus.UNKNOWN, BucketStatus.LOADING):
                pending.add(bucket)

        return MatchResult(
            query=query,
            entries=handler.get_results(query, self._index),
            pending=frozenset(pending),
            failed=frozenset(failed),
        )
