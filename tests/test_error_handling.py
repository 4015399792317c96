"""
Error handling tests.

A failing subscriber, a broken shard or an unreachable shard must never
stop the session from answering with what it has.
"""

import pytest

from conftest import SAMPLE_SHARD, StubLoader
from docsearch.config import create_router
from docsearch.services.errors import MalformedShard, ShardUnavailable
from docsearch.services.loaders import FileShardLoader
from docsearch.services.shard_store import BucketStatus, ShardStore
from docsearch.session import SearchSession, SessionState


def _session(loader):
    return SearchSession(create_router(ShardStore(loader, load_timeout=1.0)), debounce_ms=0)


class TestCallbackErrors:

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_block_others(self, router):
        session = SearchSession(router, debounce_ms=0)
        seen = []

        def broken(result):
            raise RuntimeError("render failed")

        session.connect("changed", broken)
        session.connect("changed", seen.append)
        await session.submit("tra")

        assert len(seen) == 1
        assert session.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_raising_state_callback_is_contained(self, router):
        session = SearchSession(router, debounce_ms=0)
        session.connect("state-changed", lambda state: 1 / 0)

        result = await session.submit("tra")
        assert result.total == 14


class TestShardErrors:

    @pytest.mark.asyncio
    async def test_malformed_shard_gives_partial_result(self):
        loader = StubLoader({"t": SAMPLE_SHARD, "s": "var searchData=[[ 'singlepp_0', "})
        session = _session(loader)

        result = await session.submit("singlepp::train")

        assert result.partial
        assert result.missing_buckets == frozenset({"s"})
        assert "TrainedSingle" in [g.display_name for g in result]
        assert isinstance(session.error, MalformedShard)
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_malformed_shard_not_refetched(self):
        loader = StubLoader({"t": SAMPLE_SHARD, "s": "not a shard"})
        session = _session(loader)

        await session.submit("singlepp::train")
        result = await session.submit("singlepp::trained")

        assert loader.calls.count("s") == 1
        assert result.partial
        assert session.router.store.status("s") is BucketStatus.MALFORMED

    @pytest.mark.asyncio
    async def test_unavailable_shard_retried_on_next_keystroke(self):
        loader = StubLoader({"t": SAMPLE_SHARD}, failures={"t": ShardUnavailable("t", "offline")})
        session = _session(loader)

        result = await session.submit("tra")
        assert result.partial
        assert isinstance(session.error, ShardUnavailable)

        del loader.failures["t"]
        result = await session.submit("tran")

        assert not result.partial
        assert [g.display_name for g in result] == ["transpose", "transpose.hpp"]
        assert loader.calls == ["t", "t"]

    @pytest.mark.asyncio
    async def test_unavailable_preferred_over_malformed(self):
        loader = StubLoader(
            {"t": "not a shard"},
            failures={"s": ShardUnavailable("s", "offline")},
        )
        session = _session(loader)

        await session.submit("singlepp::train")
        assert isinstance(session.error, ShardUnavailable)

    @pytest.mark.asyncio
    async def test_other_buckets_keep_working(self):
        loader = StubLoader({"t": SAMPLE_SHARD}, failures={"s": ShardUnavailable("s", "offline")})
        session = _session(loader)

        await session.submit("singlepp")
        result = await session.submit("transpose")

        assert session.error is None
        assert session.state is SessionState.READY
        assert len(result.entries) == 3


class TestUnexpectedErrors:
    """Test that no load failure leaves the session waiting."""

    @pytest.mark.asyncio
    async def test_undecodable_shard_file_ends_in_idle(self, tmp_path):
        (tmp_path / "all_t.js").write_bytes(b"var searchData=[['top',['top',['../a.html',1,'']]]];\xff")
        store = ShardStore(FileShardLoader(tmp_path), load_timeout=1.0)
        session = SearchSession(create_router(store), debounce_ms=0)

        session.on_text_changed("to")
        await session.wait()

        assert session.state is SessionState.IDLE
        assert isinstance(session.error, MalformedShard)
        assert session.result.partial
        assert session.result.query == "to"
        assert store.status("t") is BucketStatus.MALFORMED

    @pytest.mark.asyncio
    async def test_loader_bug_ends_in_idle(self):
        loader = StubLoader(failures={"t": RuntimeError("loader bug")})
        session = _session(loader)

        result = await session.submit("tra")

        assert session.state is SessionState.IDLE
        assert result.partial
        assert result.missing_buckets == frozenset({"t"})
        assert len(result) == 0
