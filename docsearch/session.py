"""
Search Session - Incremental search as the user types.

Owns one query cycle at a time:

  IDLE --keystroke--> (debounce) --buckets cached--> READY
                                 --buckets missing-> LOADING --ok----> READY
                                                             --error-> IDLE

Every keystroke takes a new sequence number. Loads are tagged with the
number of the query that started them; when a load finishes for a query
that has since been superseded its result is dropped, so the published
result set never goes back to an older query.

Signals:
    changed: Emitted with the new ResultSet when results change
    state-changed: Emitted with the new SessionState
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .search.ranker import ResultRanker, ResultSet
from .search.router import QueryRouter
from .services.errors import ShardError, ShardUnavailable


class SessionState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class SearchSession:
    """
    Debounced, cancellable search over lazily loaded shards.

    Methods:
        on_text_changed(text): Feed a keystroke (needs a running event loop)
        submit(text): Run a query now and wait for its result
        search(text): Synchronous view over what is merged right now
        connect(signal, callback): Subscribe to "changed"/"state-changed"
    """

    SIGNALS = ("changed", "state-changed")

    def __init__(self, router: QueryRouter, ranker: Optional[ResultRanker] = None,
                 debounce_ms: int = 150):
        self.router = router
        self.ranker = ranker or ResultRanker()
        self.debounce_ms = debounce_ms

        self.text = ""
        self.state = SessionState.IDLE
        self.result = ResultSet()
        self.error: Optional[ShardError] = None

        self._seq = 0
        self._published_seq = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._load_tasks: set[asyncio.Task] = set()

        self._callbacks: dict[int, tuple[str, Callable]] = {}
        self._next_handler_id = 1

    # -- signals -----------------------------------------------------------

    def connect(self, signal: str, callback: Callable) -> int:
        """
        Subscribe to a session signal.

        Args:
            signal: "changed" (callback(result_set)) or "state-changed"
                    (callback(state))
            callback: Called on the event loop thread

        Returns:
            Handler id for disconnect()
        """
        if signal not in self.SIGNALS:
            raise ValueError(f"Unknown signal '{signal}'")
        handler_id = self._next_handler_id
        self._next_handler_id += 1
        self._callbacks[handler_id] = (signal, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._callbacks.pop(handler_id, None)

    def _emit(self, signal: str, value) -> None:
        for name, callback in list(self._callbacks.values()):
            if name != signal:
                continue
            try:
                callback(value)
            except Exception:
                logger.exception(f"Error in '{signal}' callback {callback!r}")

    def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        self.state = state
        self._emit("state-changed", state)

    def _publish(self, seq: int, result: ResultSet) -> None:
        if seq < self._published_seq:
            logger.debug(f"Not publishing query #{seq}, #{self._published_seq} already shown")
            return
        self._published_seq = seq
        self.result = result
        self._emit("changed", result)

    # -- queries -----------------------------------------------------------

    def search(self, text: str) -> ResultSet:
        """
        Rank matches for text against the currently merged shards.

        Does not load anything; buckets that are not loaded show up in
        missing_buckets with partial set.
        """
        match = self.router.match(text)
        return self.ranker.rank(match.entries, match.query, match.missing)

    def on_text_changed(self, text: str) -> None:
        """
        Handle a keystroke.

        With a debounce window the query is evaluated once input has been
        quiet for debounce_ms; otherwise it is evaluated immediately.
        """
        self._seq += 1
        self.text = text

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
            self._debounce_task = None

        if self.debounce_ms > 0:
            self._set_state(SessionState.IDLE)
            self._debounce_task = asyncio.get_running_loop().create_task(
                self._debounced(self._seq)
            )
        else:
            self._evaluate(self._seq)

    async def submit(self, text: str) -> ResultSet:
        """
        Run a query without debouncing and wait until it settles.

        Returns:
            The published result set (a newer query's, if one superseded it)
        """
        self._seq += 1
        self.text = text
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
            self._debounce_task = None

        task = self._evaluate(self._seq)
        if task is not None:
            await task
        return self.result

    async def _debounced(self, seq: int) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        self._evaluate(seq)

    def _evaluate(self, seq: int) -> Optional[asyncio.Task]:
        if seq != self._seq:
            return None
        text = self.text

        if not text.strip():
            self.error = None
            self._publish(seq, ResultSet(query=text))
            self._set_state(SessionState.IDLE)
            return None

        if not self.router.missing_buckets(text):
            self.error = None
            self._publish(seq, self.search(text))
            self._set_state(SessionState.READY)
            return None

        self._set_state(SessionState.LOADING)
        task = asyncio.get_running_loop().create_task(self._load(seq, text))
        self._load_tasks.add(task)
        task.add_done_callback(self._on_load_done)
        return task

    async def _load(self, seq: int, text: str) -> None:
        try:
            failures = await self.router.prepare(text)
        except Exception:
            logger.exception(f"Loading shards for '{text}' failed")
            failures = None

        if seq != self._seq:
            logger.debug(f"Discarding stale results for '{text}' (query #{seq}, latest #{self._seq})")
            return

        result = self.search(text)
        if failures is None:
            # Unexpected error: show what is merged and stop waiting
            self._publish(seq, result)
            self._set_state(SessionState.IDLE)
        elif failures:
            unavailable = [f for f in failures.values() if isinstance(f, ShardUnavailable)]
            self.error = (unavailable or list(failures.values()))[0]
            self._publish(seq, result)
            self._set_state(SessionState.IDLE)
        else:
            self.error = None
            self._publish(seq, result)
            self._set_state(SessionState.READY)

    def _on_load_done(self, task: asyncio.Task) -> None:
        self._load_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Search load task failed")

    async def wait(self) -> None:
        """Wait until no debounce or load is pending."""
        while True:
            pending = [t for t in self._load_tasks if not t.done()]
            if self._debounce_task is not None and not self._debounce_task.done():
                pending.append(self._debounce_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel pending work and close the shard store."""
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        for task in list(self._load_tasks):
            task.cancel()
        await self.router.store.aclose()
