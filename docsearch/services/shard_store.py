"""
Shard Store - Lazily loaded, never evicted cache of index shards.

Shards are fetched through an injected ShardLoader the first time a bucket
is needed. Concurrent requests for the same bucket share one in-flight load.

Failure handling per bucket:
  - Loader error, OSError or timeout -> ShardUnavailable (retried on the
    next ensure_loaded)
  - Payload that breaks the wire format or is not UTF-8 -> MalformedShard
    (never refetched)

Other buckets stay usable either way.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from ..models import Shard
from .errors import MalformedShard, ShardError, ShardUnavailable
from .loaders import ShardLoader
from .shard_format import parse_shard


class BucketStatus(Enum):
    """Load state of one bucket."""
    UNKNOWN = "unknown"
    LOADING = "loading"
    LOADED = "loaded"
    ABSENT = "absent"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"


class ShardStore:
    """
    Cache of immutable shards keyed by bucket.

    Listeners registered with connect() are called once per newly loaded
    shard, in load order.

    Methods:
        ensure_loaded(bucket): Load (or return cached) shard
        all_loaded_shards(): Every cached shard
        status(bucket): BucketStatus for a bucket
    """

    def __init__(self, loader: ShardLoader, load_timeout: float = 5.0):
        self._loader = loader
        self.load_timeout = load_timeout

        self._shards: dict[str, Shard] = {}
        self._absent: set[str] = set()
        self._failures: dict[str, ShardError] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._listeners: list[Callable[[Shard], None]] = []

    def connect(self, callback: Callable[[Shard], None]) -> None:
        """Call callback(shard) for every shard loaded from now on."""
        self._listeners.append(callback)

    def status(self, bucket: str) -> BucketStatus:
        if bucket in self._absent:
            return BucketStatus.ABSENT
        if bucket in self._shards:
            return BucketStatus.LOADED
        if bucket in self._inflight:
            return BucketStatus.LOADING

        failure = self._failures.get(bucket)
        if isinstance(failure, MalformedShard):
            return BucketStatus.MALFORMED
        if failure is not None:
            return BucketStatus.UNAVAILABLE
        return BucketStatus.UNKNOWN

    def is_loaded(self, bucket: str) -> bool:
        """True once a bucket has resolved to a shard (possibly empty)."""
        return bucket in self._shards

    def get(self, bucket: str) -> Optional[Shard]:
        return self._shards.get(bucket)

    def failure(self, bucket: str) -> Optional[ShardError]:
        """Last failure recorded for a bucket, if it is not loaded."""
        return self._failures.get(bucket)

    def all_loaded_shards(self) -> list[Shard]:
        return list(self._shards.values())

    async def ensure_loaded(self, bucket: str) -> Shard:
        """
        Return the shard for a bucket, loading it if needed.

        Args:
            bucket: Bucket id (normalized leading character)

        Returns:
            The cached Shard; an empty one if the bucket has no shard

        Raises:
            ShardUnavailable: Load failed or timed out (retryable)
            MalformedShard: Payload is not a valid shard
        """
        shard = self._shards.get(bucket)
        if shard is not None:
            return shard

        failure = self._failures.get(bucket)
        if isinstance(failure, MalformedShard):
            raise failure

        task = self._inflight.get(bucket)
        if task is None:
            task = asyncio.create_task(self._load(bucket))
            self._inflight[bucket] = task
            task.add_done_callback(lambda t, b=bucket: self._on_load_done(b, t))

        # Cancelling one waiter must not cancel the load other waiters share
        return await asyncio.shield(task)

    def _on_load_done(self, bucket: str, task: asyncio.Task) -> None:
        self._inflight.pop(bucket, None)
        if not task.cancelled():
            # Mark the exception retrieved; it is also recorded in _failures
            task.exception()

    async def _load(self, bucket: str) -> Shard:
        self._failures.pop(bucket, None)
        try:
            payloads = await asyncio.wait_for(self._loader.fetch(bucket), timeout=self.load_timeout)
        except asyncio.TimeoutError:
            raise self._record(ShardUnavailable(bucket, f"timed out after {self.load_timeout}s")) from None
        except ShardUnavailable as e:
            raise self._record(e)
        except OSError as e:
            raise self._record(ShardUnavailable(bucket, str(e))) from e
        except UnicodeDecodeError as e:
            raise self._record(MalformedShard(bucket, f"not valid UTF-8: {e}")) from e

        try:
            parts = [parse_shard(bucket, payload, source) for source, payload in payloads]
        except MalformedShard as e:
            raise self._record(e)

        entries = tuple(entry for part in parts for entry in part.entries)
        shard = Shard(bucket=bucket, entries=entries, source=", ".join(p.source for p in parts))
        self._shards[bucket] = shard
        if not parts:
            self._absent.add(bucket)
        logger.debug(f"Loaded shard '{bucket}' ({len(entries)} entries)")

        for callback in self._listeners:
            try:
                callback(shard)
            except Exception:
                logger.exception(f"Error in shard listener {callback!r} for '{bucket}'")
        return shard

    def _record(self, error: ShardError) -> ShardError:
        """Remember a failure for its bucket."""
        self._failures[error.bucket] = error
        logger.warning(f"Shard load failed: {error}")
        return error

    async def aclose(self) -> None:
        """Cancel in-flight loads and close the loader."""
        for task in list(self._inflight.values()):
            task.cancel()
        await self._loader.aclose()
