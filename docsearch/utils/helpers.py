"""
Helper utilities for docsearch.

Provides common functions used across the store, index and router:
- Key normalization shared with the index generator
- Scope label cleanup
- Settings loading
"""

import html
import re
import unicodedata
from pathlib import Path
from typing import Dict, Any, Optional

import toml
from loguru import logger

_ESCAPE_RE = re.compile(r"_([0-9a-f]{2})")
_TAG_RE = re.compile(r"<[^>]*>")


def normalize_key(text: str) -> str:
    """
    Convert text into the generator's index-safe key form.

    Diacritics are folded and letters lower-cased. ASCII letters and digits
    are kept; every other character becomes "_" plus two hex digits per
    UTF-8 byte.

    Args:
        text: Display name or user input

    Returns:
        Normalized key (e.g. "train_integrated" -> "train_5fintegrated")

    Example:
        normalize_key("tatami::Oracle")  # "tatami_3a_3aoracle"
    """
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(c for c in folded if not unicodedata.combining(c)).lower()

    parts = []
    for char in folded:
        if char.isascii() and char.isalnum():
            parts.append(char)
        else:
            parts.extend(f"_{byte:02x}" for byte in char.encode("utf-8"))
    return "".join(parts)


def decode_key(key: str) -> str:
    """
    Reverse the "_xx" escaping of a normalized key.

    Args:
        key: Normalized key without disambiguator suffix

    Returns:
        Decoded text (lower-cased, as stored)
    """
    raw = bytearray()
    pos = 0
    for match in _ESCAPE_RE.finditer(key):
        raw.extend(key[pos:match.start()].encode("utf-8"))
        raw.append(int(match.group(1), 16))
        pos = match.end()
    raw.extend(key[pos:].encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


def bucket_of(text: str) -> str:
    """
    Get the bucket id for a piece of text.

    The bucket is the normalized form of the first character, so it is
    either a single letter/digit or one escape sequence ("_7e" for "~").

    Returns:
        Bucket id, or "" for empty text
    """
    stripped = text.strip()
    if not stripped:
        return ""
    # Compatibility forms can fold into several characters ("ﬁ" -> "fi")
    return key_bucket(normalize_key(stripped[0]))


def key_bucket(key: str) -> str:
    """Bucket of an already-normalized key: its first character or escape run."""
    if not key:
        return ""
    if key[0] != "_":
        return key[0]

    # A multi-byte character spans several consecutive escapes
    match = _ESCAPE_RE.match(key)
    if not match:
        return key[0]
    lead = int(match.group(1), 16)
    width = 1
    if lead >= 0xF0:
        width = 4
    elif lead >= 0xE0:
        width = 3
    elif lead >= 0xC0:
        width = 2
    return key[:3 * width]


def clean_label(label: str) -> str:
    """Strip markup tags and decode HTML entities from a generated label."""
    return html.unescape(_TAG_RE.sub("", label)).strip()


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load search settings from TOML file.

    Args:
        path: Settings file; defaults to the package's data/settings.toml

    Returns:
        Dictionary containing settings with defaults applied

    Example settings structure:
        {
            "search": {
                "max_results": 30,
                "min_query_length": 2
            },
            "session": {
                "debounce_ms": 150
            },
            "shards": {
                "root": "docs/search",
                "base_url": "",
                "section": "all",
                "load_timeout_ms": 5000
            }
        }
    """
    # Default settings
    defaults = {
        "search": {
            "max_results": 30,
            "min_query_length": 2,
        },
        "session": {
            "debounce_ms": 150,
        },
        "shards": {
            "root": "docs/search",
            "base_url": "",
            "section": "all",
            "load_timeout_ms": 5000,
        },
    }

    settings_path = path or Path(__file__).parent.parent / "data" / "settings.toml"

    if settings_path.exists():
        try:
            loaded = toml.load(settings_path)
            return _deep_merge(defaults, loaded)
        except (OSError, toml.TomlDecodeError) as e:
            logger.warning(f"Could not load settings from {settings_path}: {e}; using defaults")
            return defaults
    else:
        logger.info(f"Settings file not found at {settings_path}, using defaults")
        return defaults


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides

    Returns:
        Merged dictionary (override takes precedence)
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
