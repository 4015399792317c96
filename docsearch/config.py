"""
docsearch - Session wiring

Builds a ready-to-use SearchSession from settings: the shard loader,
store, merged index, query router with its handlers, ranker and session.

Usage:
    from docsearch.config import create_session

    session = create_session()
    session.connect("changed", render)
    session.on_text_changed("singlepp::train")
"""

from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from .search.handlers import PrefixHandler, ScopedHandler
from .search.index import IndexMerger
from .search.ranker import ResultRanker
from .search.router import QueryRouter
from .services.loaders import FileShardLoader, HttpShardLoader, ShardLoader
from .services.shard_store import ShardStore
from .session import SearchSession
from .utils.helpers import load_settings


def create_loader(shard_settings: Dict[str, Any]) -> ShardLoader:
    """
    Pick the loader for the [shards] settings section.

    A non-empty base_url selects HTTP; otherwise shards are read from root.
    """
    section = shard_settings.get("section", "all")
    base_url = shard_settings.get("base_url", "")
    if base_url:
        logger.info(f"Loading '{section}' shards from {base_url}")
        return HttpShardLoader(base_url, section=section)

    root = Path(shard_settings.get("root", "docs/search"))
    logger.info(f"Loading '{section}' shards from {root}")
    return FileShardLoader(root, section=section)


def create_router(store: ShardStore, min_query_length: int = 2) -> QueryRouter:
    """Router over a fresh index with the standard handlers registered."""
    router = QueryRouter(store, IndexMerger(), min_query_length=min_query_length)
    router.register(ScopedHandler())
    router.register(PrefixHandler())
    return router


def create_session(settings: Optional[Dict[str, Any]] = None,
                   loader: Optional[ShardLoader] = None) -> SearchSession:
    """
    Build a search session.

    Args:
        settings: Settings dict as returned by load_settings(); loaded if None
        loader: Shard loader to use instead of the one settings describe

    Returns:
        SearchSession in IDLE state with nothing loaded yet
    """
    settings = settings or load_settings()
    shard_settings = settings["shards"]
    search_settings = settings["search"]

    store = ShardStore(
        loader or create_loader(shard_settings),
        load_timeout=shard_settings["load_timeout_ms"] / 1000,
    )
    router = create_router(store, min_query_length=search_settings["min_query_length"])
    ranker = ResultRanker(limit=search_settings["max_results"])

    return SearchSession(router, ranker, debounce_ms=settings["session"]["debounce_ms"])
