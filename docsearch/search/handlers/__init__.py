"""
Query handlers - Pluggable matchers for the query router.

Each handler checks if it can handle a query, names the shard buckets it
needs, and returns entries from the merged index.
"""

from .prefix import PrefixHandler
from .scoped import ScopedHandler

__all__ = [
    "PrefixHandler",
    "ScopedHandler",
]
