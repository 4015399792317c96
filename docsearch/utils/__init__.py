# docsearch Utilities Package
"""
Shared utility functions and helpers for docsearch.
"""

from .helpers import (bucket_of, clean_label, decode_key, key_bucket,
                      load_settings, normalize_key)

__all__ = [
    "bucket_of",
    "clean_label",
    "decode_key",
    "key_bucket",
    "load_settings",
    "normalize_key",
]
