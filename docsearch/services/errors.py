"""
Shard errors raised by the store and its loaders.

Both carry the bucket they concern so callers can degrade to partial
results for that bucket only.
"""


class ShardError(Exception):
    """Base class for per-bucket shard failures."""

    def __init__(self, bucket: str, reason: str = ""):
        self.bucket = bucket
        self.reason = reason
        message = f"shard '{bucket}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ShardUnavailable(ShardError):
    """Transient load failure (I/O, HTTP, timeout). Retryable."""


class MalformedShard(ShardError):
    """Payload violates the wire format. Not refetched."""
