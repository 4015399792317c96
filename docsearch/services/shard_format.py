"""
Shard Format - Validating parse of generated search index files.

Two resources come out of the generator:

  search/searchdata.js   Manifest of index sections and the leading
                         characters each section has shards for
  search/all_12.js       One shard:  var searchData=[ record, ... ];

Record layout:
    ['transpose_17', ['transpose',
        ['https://.../namespacetatami.html#a07c1d', 1, 'tatami::transpose(...)'],
        ['https://.../namespacetatami.html#a86be7', 1, 'tatami::transpose(...)']]]

i.e. [key, [displayLabel, link, link, ...]] where each link is
[url, sameFrameFlag, scopeLabel] or [url, scopeLabel]. JSON shards
({"searchData": [...]} or a bare list) are accepted as well.

The JavaScript literals the generator writes (single-quoted strings, ints,
nested arrays and int-keyed objects) are valid Python literals, so they are
read with ast.literal_eval rather than executed.
"""

import ast
import json
import re
from dataclasses import dataclass, field

from loguru import logger

from ..models import Entry, Shard
from ..utils.helpers import bucket_of, clean_label, decode_key, key_bucket, normalize_key
from .errors import MalformedShard

_ASSIGN_RE = re.compile(r"^\s*var\s+\w+\s*=\s*(.*?)\s*;?\s*$", re.S)
_MANIFEST_VAR_RE = re.compile(r"var\s+(\w+)\s*=\s*(\{.*?\})\s*;", re.S)
_SUFFIX_RE = re.compile(r"^(.+)_(\d+)$")

# literal_eval and json.loads fail with any of these on hostile input
_LITERAL_ERRORS = (ValueError, SyntaxError, TypeError, RecursionError, MemoryError)


@dataclass(frozen=True)
class SearchManifest:
    """Index sections and the leading characters each one has shards for."""
    sections: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    def files_for(self, section: str, bucket: str) -> list[str]:
        """
        Resource names (without extension) holding a bucket of a section.

        Several leading characters can fold into one bucket ("e" and "é"),
        so more than one file may be returned.
        """
        chars = self.sections.get(section, "")
        return [
            f"{section}_{index}"
            for index, char in enumerate(chars)
            if bucket_of(char) == bucket
        ]

    def buckets(self, section: str) -> frozenset[str]:
        return frozenset(bucket_of(char) for char in self.sections.get(section, ""))


def _literal(payload: str, what: str):
    text = payload.strip()
    match = _ASSIGN_RE.match(text)
    try:
        if match:
            return ast.literal_eval(match.group(1))
        return json.loads(text)
    except _LITERAL_ERRORS as e:
        raise ValueError(f"{what} is not a literal: {e}") from e


def parse_manifest(payload: str) -> SearchManifest:
    """
    Parse searchdata.js.

    Args:
        payload: File contents

    Returns:
        SearchManifest mapping section names to their leading characters

    Raises:
        ValueError: If indexSectionsWithContent or indexSectionNames is missing
    """
    tables = {}
    for name, body in _MANIFEST_VAR_RE.findall(payload):
        try:
            tables[name] = ast.literal_eval(body)
        except _LITERAL_ERRORS:
            logger.warning(f"Skipping unreadable manifest table '{name}'")

    contents = tables.get("indexSectionsWithContent")
    names = tables.get("indexSectionNames")
    if not isinstance(contents, dict) or not isinstance(names, dict):
        raise ValueError("manifest lacks indexSectionsWithContent/indexSectionNames")

    labels = tables.get("indexSectionLabels", {})
    sections = {}
    section_labels = {}
    for index, name in names.items():
        sections[name] = str(contents.get(index, ""))
        section_labels[name] = str(labels.get(index, name))
    return SearchManifest(sections=sections, labels=section_labels)


def derive_scope(label: str, display_name: str):
    """
    Enclosing scope of an occurrence from its descriptive label.

    "tatami::Oracle::total()" for "total" gives "tatami::Oracle";
    a label that is only the enclosing name ("singlepp") is the scope itself.
    """
    if not label:
        return None
    base = label.split("(", 1)[0].rstrip()
    suffix = f"::{display_name}"
    if base.endswith(suffix):
        base = base[:-len(suffix)]
    elif base == display_name:
        return None
    return base or None


def _records(data, bucket: str) -> list:
    if isinstance(data, dict):
        data = data.get("searchData")
    if not isinstance(data, list):
        raise MalformedShard(bucket, "searchData is not a list")
    return data


def _split_links(record) -> tuple[str, str, list]:
    """Validate one record and return (key, display label, links)."""
    if not isinstance(record, (list, tuple)) or len(record) != 2:
        raise ValueError("record is not a [key, body] pair")
    key, body = record
    if not isinstance(key, str) or not key:
        raise ValueError("record key is not a non-empty string")
    if not isinstance(body, (list, tuple)) or len(body) < 2:
        raise ValueError("record body has no links")
    label, *links = body
    if not isinstance(label, str):
        raise ValueError("display label is not a string")
    for link in links:
        if not isinstance(link, (list, tuple)) or len(link) not in (2, 3):
            raise ValueError("link is not [url, scope] or [url, flag, scope]")
        if not isinstance(link[0], str) or not isinstance(link[-1], str):
            raise ValueError("link url/scope is not a string")
    return key, label, links


def parse_shard(bucket: str, payload: str, source: str = "") -> Shard:
    """
    Parse one shard payload into typed entries.

    Records that violate the format, repeat a key, or belong to another
    bucket are skipped with a warning; the rest of the shard is kept.

    Args:
        bucket: Bucket the payload was fetched for
        payload: Raw file contents
        source: Where the payload came from (for log messages)

    Returns:
        Shard with one Entry per link of every valid record

    Raises:
        MalformedShard: If the payload as a whole is not a record list
    """
    where = source or bucket
    try:
        data = _literal(payload, f"shard {where}")
    except ValueError as e:
        raise MalformedShard(bucket, str(e)) from e
    records = _records(data, bucket)

    # Keys carry a running "_<n>" disambiguator only if every one of them does
    keys = [r[0] for r in records if isinstance(r, (list, tuple)) and r and isinstance(r[0], str)]
    suffixed = bool(keys) and all(_SUFFIX_RE.match(k) for k in keys)

    entries = []
    seen = set()
    for position, record in enumerate(records):
        try:
            key, label, links = _split_links(record)
        except ValueError as e:
            logger.warning(f"Skipping malformed record #{position} in {where}: {e}")
            continue

        if key in seen:
            logger.warning(f"Skipping duplicate key '{key}' in {where}")
            continue
        seen.add(key)

        base = _SUFFIX_RE.match(key).group(1) if suffixed else key
        search_key = normalize_key(decode_key(base))
        if key_bucket(search_key) != bucket:
            logger.warning(f"Skipping key '{key}' in {where}: not in bucket '{bucket}'")
            continue

        display_name = clean_label(label)
        for link in links:
            url = link[0]
            same_frame = bool(link[1]) if len(link) == 3 else True
            scope_label = clean_label(link[-1])
            scope = derive_scope(scope_label, display_name)
            entries.append(Entry(
                key=key,
                search_key=search_key,
                display_name=display_name,
                target=url,
                scope=scope,
                scope_key=normalize_key(scope) if scope else "",
                scope_label=scope_label,
                same_frame=same_frame,
                bucket=bucket,
            ))

    logger.debug(f"Parsed {where}: {len(seen)} records, {len(entries)} entries")
    return Shard(bucket=bucket, entries=tuple(entries), source=where)
