# docsearch Services Package
"""
Shard services for docsearch.

Services fetch, validate and cache the generated index shards.
"""

from .errors import MalformedShard, ShardError, ShardUnavailable
from .loaders import FileShardLoader, HttpShardLoader, ShardLoader
from .shard_format import SearchManifest, parse_manifest, parse_shard
from .shard_store import BucketStatus, ShardStore

__all__ = [
    "BucketStatus",
    "FileShardLoader",
    "HttpShardLoader",
    "MalformedShard",
    "SearchManifest",
    "ShardError",
    "ShardLoader",
    "ShardStore",
    "ShardUnavailable",
    "parse_manifest",
    "parse_shard",
]
