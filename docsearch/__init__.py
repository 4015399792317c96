# docsearch Package
"""
Incremental symbol search over generated documentation index shards.

Layers:
  - services: Shard loading, parsing and caching
  - search: Merged index, query routing and ranking
  - session: Debounced, cancellable search as the user types
"""

__version__ = "0.1.0-dev"
